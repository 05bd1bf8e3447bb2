"""Media upload response contract."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MediaResponse(BaseModel):
    id: int
    user_id: int
    type: str
    url: str
    file_path: str
    mime_type: Optional[str] = None
    size: int
    created_at: datetime

    model_config = {"from_attributes": True}
