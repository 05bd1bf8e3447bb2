"""
SpecDate Backend — Profile and User Schemas
=============================================

What:  Contracts for the signed-in user (`GET /api/user`), profile updates,
       public profiles, user search results and the compact user summary
       embedded in specs, applications and answers.
"""

from datetime import date, datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field, field_validator


class ProfileResponse(BaseModel):
    full_name: Optional[str] = None
    dob: Optional[date] = None
    sex: Optional[str] = None
    height: Optional[int] = None
    ethnicity: Optional[str] = None
    religion: Optional[str] = None
    occupation: Optional[str] = None
    qualification: Optional[str] = None
    sexual_orientation: Optional[str] = None
    hobbies: Optional[List[str]] = None
    is_smoker: Optional[bool] = None
    is_drug_user: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    continent: Optional[str] = None
    profile_completed_at: Optional[datetime] = None
    avatar: Optional[str] = None
    avatar_media_id: Optional[int] = None

    model_config = {"from_attributes": True}


class PublicProfile(BaseModel):
    """Profile fields other users may see; exact coordinates are withheld."""
    full_name: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[str] = None
    height: Optional[int] = None
    ethnicity: Optional[str] = None
    religion: Optional[str] = None
    occupation: Optional[str] = None
    qualification: Optional[str] = None
    sexual_orientation: Optional[str] = None
    hobbies: Optional[List[str]] = None
    is_smoker: Optional[bool] = None
    is_drug_user: Optional[bool] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    avatar: Optional[str] = None


class BalanceResponse(BaseModel):
    red_sparks: int
    blue_sparks: int

    model_config = {"from_attributes": True}


class SparkSkinResponse(BaseModel):
    color_hex: str
    label: Optional[str] = None

    model_config = {"from_attributes": True}


class MediaBrief(BaseModel):
    id: int
    url: str


class MeResponse(BaseModel):
    id: int
    name: str
    username: str
    email: str
    mobile: str
    is_paused: bool
    terms_accepted: bool
    created_at: datetime
    profile: Optional[ProfileResponse] = None
    balance: Optional[BalanceResponse] = None
    spark_skin: Optional[SparkSkinResponse] = None
    profile_gallery_media: List[MediaBrief] = Field(default_factory=list)
    images: List[str] = Field(default_factory=list)
    avatar: Optional[str] = None
    profile_complete: bool = False


class UserSummary(BaseModel):
    """Compact user card embedded in feeds, applications and answers."""
    id: int
    name: str
    username: str
    full_name: Optional[str] = None
    avatar: Optional[str] = None
    age: Optional[int] = None
    sex: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None


class PublicUserResponse(BaseModel):
    id: int
    name: str
    username: str
    profile: PublicProfile
    images: List[str] = Field(default_factory=list)
    avatar: Optional[str] = None
    specs_created_count: int = 0
    specs_participated_count: int = 0
    dates_count: int = 0


class ProfileUpdateRequest(BaseModel):
    """
    Partial profile update; only fields present in the body are written.

    hobbies accepts a list or a comma-separated string.
    """
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    dob: Optional[date] = None
    full_name: Optional[str] = Field(default=None, max_length=255)
    sex: Optional[str] = Field(default=None, max_length=32)
    height: Optional[int] = Field(default=None, ge=50, le=300)
    ethnicity: Optional[str] = Field(default=None, max_length=100)
    religion: Optional[str] = Field(default=None, max_length=100)
    occupation: Optional[str] = Field(default=None, max_length=255)
    qualification: Optional[str] = Field(default=None, max_length=255)
    hobbies: Optional[Union[List[str], str]] = None
    is_smoker: Optional[bool] = None
    is_drug_user: Optional[bool] = None
    sexual_orientation: Optional[str] = Field(default=None, max_length=100)
    city: Optional[str] = Field(default=None, max_length=255)
    state: Optional[str] = Field(default=None, max_length=255)
    country: Optional[str] = Field(default=None, max_length=255)

    @field_validator("hobbies")
    @classmethod
    def normalize_hobbies(cls, v):
        if v is None:
            return v
        if isinstance(v, str):
            v = v.split(",")
        return [h.strip() for h in v if h and h.strip()]

    @field_validator("dob")
    @classmethod
    def dob_in_past(cls, v: Optional[date]) -> Optional[date]:
        if v is not None and v >= date.today():
            raise ValueError("The dob field must be a date before today.")
        return v


class AccountStatusResponse(BaseModel):
    is_paused: bool
