"""
SpecDate Backend — Spec, Application and Round Schemas
========================================================

What:  Request bodies and response shapes for specs, applications, likes,
       rounds, answers and spec dates.

Requirement operators: =, !=, >, >=, <, <=, in, not_in.
`in` / `not_in` take a list value; the others take a scalar.
"""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel, Field, model_validator

from app.schemas.profile import UserSummary

RequirementOperator = Literal["=", "!=", ">", ">=", "<", "<=", "in", "not_in"]
Scalar = Union[int, float, str]


# ══════════════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════════════


class RequirementIn(BaseModel):
    field: str = Field(min_length=1, max_length=64)
    operator: RequirementOperator
    value: Union[List[Scalar], Scalar]
    is_compulsory: bool = False

    @model_validator(mode="after")
    def value_matches_operator(self):
        if self.operator in ("in", "not_in") and not isinstance(self.value, list):
            raise ValueError(f"Operator '{self.operator}' requires a list value.")
        if isinstance(self.value, list) and not self.value:
            raise ValueError("Requirement value list must not be empty.")
        return self


class SpecCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    location_city: Optional[str] = Field(default=None, max_length=255)
    location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    duration: int = Field(ge=1, le=14, description="Days until the spec expires")
    max_participants: int = Field(ge=1, le=1000)
    requirements: List[RequirementIn] = Field(default_factory=list)


class SpecUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, max_length=5000)
    location_city: Optional[str] = Field(default=None, max_length=255)
    location_lat: Optional[float] = Field(default=None, ge=-90, le=90)
    location_lng: Optional[float] = Field(default=None, ge=-180, le=180)
    duration: Optional[int] = Field(default=None, ge=1, le=14)
    max_participants: Optional[int] = Field(default=None, ge=1, le=1000)
    status: Optional[Literal["OPEN", "CLOSED"]] = None
    requirements: Optional[List[RequirementIn]] = None


class RoundStartRequest(BaseModel):
    question: str = Field(min_length=1, max_length=1000)
    duration_minutes: Optional[int] = Field(default=None, ge=1, le=10080)


class AnswerRequest(BaseModel):
    answer: str = Field(min_length=1, max_length=5000)
    media_id: Optional[int] = None


class EliminateUserRequest(BaseModel):
    user_id: int


class EliminateUsersRequest(BaseModel):
    user_ids: List[int] = Field(min_length=1)


# ══════════════════════════════════════════════════════════════════════════
# Responses
# ══════════════════════════════════════════════════════════════════════════


class RequirementResponse(BaseModel):
    id: int
    field: str
    operator: str
    value: Union[List[Scalar], Scalar]
    is_compulsory: bool


class ApplicationResponse(BaseModel):
    id: int
    spec_id: int
    user_id: int
    user_role: str
    status: str
    created_at: datetime
    user: Optional[UserSummary] = None
    spec_title: Optional[str] = None


class AnswerResponse(BaseModel):
    id: int
    round_id: int
    user_id: int
    answer_text: str
    media_id: Optional[int] = None
    media_url: Optional[str] = None
    is_eliminated: bool
    created_at: datetime
    user: Optional[UserSummary] = None


class RoundResponse(BaseModel):
    id: int
    spec_id: int
    round_number: int
    question_text: str
    status: str
    elimination_count: int
    deadline_at: Optional[datetime] = None
    created_at: datetime
    answers: List[AnswerResponse] = Field(default_factory=list)


class SpecResponse(BaseModel):
    id: int
    user_id: int
    title: str
    description: Optional[str] = None
    location_city: Optional[str] = None
    location_lat: Optional[float] = None
    location_lng: Optional[float] = None
    expires_at: datetime
    max_participants: int
    status: str
    created_at: datetime
    updated_at: datetime
    owner: Optional[UserSummary] = None
    requirements: List[RequirementResponse] = Field(default_factory=list)
    applications_count: int = 0
    likes_count: int = 0
    tag: Optional[str] = None


class SpecDetailResponse(SpecResponse):
    is_liked: bool = False
    participants_count: int = 0
    applications: List[ApplicationResponse] = Field(default_factory=list)
    rounds: List[RoundResponse] = Field(default_factory=list)


class LikeResponse(BaseModel):
    liked: bool
    count: int


class NudgeResponse(BaseModel):
    nudged: int


class SpecDateResponse(BaseModel):
    id: int
    spec_id: int
    owner_id: int
    winner_id: int
    date_code: str
    created_at: datetime

    model_config = {"from_attributes": True}
