"""
Profile Models - One profile per user with display name, age and notes.
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field

MIN_AGE = 13
MAX_AGE = 120


class Profile(BaseModel):
    """Stored profile document, keyed by the owning user id."""
    user_id: str
    name: str
    age: int
    additional_info: str = ""
    created_at: datetime
    updated_at: datetime

    def is_complete(self) -> bool:
        return len(self.name.strip()) >= 2 and self.age >= MIN_AGE


class CreateProfileRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    age: int = Field(..., ge=MIN_AGE, le=MAX_AGE)
    additional_info: str = Field("", max_length=500)

    class Config:
        str_strip_whitespace = True
        json_schema_extra = {
            "example": {
                "name": "Sam",
                "age": 29,
                "additional_info": "Training for a half marathon"
            }
        }


class UpdateProfileRequest(BaseModel):
    """Partial update; omitted fields are left unchanged."""
    name: Optional[str] = Field(None, min_length=2, max_length=50)
    age: Optional[int] = Field(None, ge=MIN_AGE, le=MAX_AGE)
    additional_info: Optional[str] = Field(None, max_length=500)

    class Config:
        str_strip_whitespace = True


class ProfileStats(BaseModel):
    has_profile: bool
    is_complete: bool
    profile_created_at: Optional[datetime] = None
    profile_updated_at: Optional[datetime] = None
