"""
Database Schemas for EcoTrack

Each document model below corresponds to a MongoDB collection and doubles
as the create payload for its endpoint.  The ``*Read`` models describe
what the API sends back: the stored document with ``_id`` as a string
and the ``createdAt``/``updatedAt`` stamps.
"""
from typing import Annotated, Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from datetime import datetime

from bson import ObjectId

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]

ChallengeStatus = Literal["Not Started", "Ongoing", "Finished"]


# Users
class User(BaseModel):
    name: TrimmedStr
    email: EmailStr

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        return v.lower()


# Challenges
class Challenge(BaseModel):
    title: NonEmptyStr
    category: NonEmptyStr
    description: Optional[str] = None
    duration: Optional[int] = Field(None, description="Length in days")
    target: Optional[str] = None
    participants: int = 0
    impactMetric: Optional[str] = None
    createdBy: Optional[str] = Field(None, description="Creator email")
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    imageUrl: Optional[str] = None


class ChallengeUpdate(BaseModel):
    """Partial update: only the fields sent are merged into the document."""
    title: Optional[NonEmptyStr] = None
    category: Optional[NonEmptyStr] = None
    description: Optional[str] = None
    duration: Optional[int] = None
    target: Optional[str] = None
    participants: Optional[int] = None
    impactMetric: Optional[str] = None
    createdBy: Optional[str] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    imageUrl: Optional[str] = None

    @field_validator("title", "category", "participants")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("cannot be null")
        return v


# Enrollment of a user in a challenge
class UserChallenge(BaseModel):
    userId: NonEmptyStr = Field(..., description="Opaque user key, usually the email")
    challengeId: str = Field(..., description="Challenge id (stringified ObjectId)")
    status: ChallengeStatus = "Ongoing"
    progress: int = Field(0, ge=0, le=100, description="Percentage complete")
    joinDate: Optional[datetime] = None

    @field_validator("challengeId")
    @classmethod
    def valid_object_id(cls, v: str) -> str:
        if not ObjectId.is_valid(v):
            raise ValueError("must be a valid ObjectId")
        return v


class UserChallengeUpdate(BaseModel):
    status: Optional[ChallengeStatus] = None
    progress: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("status", mode="before")
    @classmethod
    def ignore_blank_status(cls, v):
        return v or None

    @field_validator("progress", mode="before")
    @classmethod
    def ignore_non_numeric_progress(cls, v):
        # strings and booleans leave progress untouched; numbers must be whole
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
        if isinstance(v, float) and not v.is_integer():
            raise ValueError("must be a whole number")
        return v


# Tips
class Tip(BaseModel):
    title: TrimmedStr
    content: NonEmptyStr
    category: Optional[str] = None
    author: Optional[str] = Field(None, description="Author email")
    authorName: Optional[str] = None
    upvotes: int = 0


# Events
class Event(BaseModel):
    title: NonEmptyStr
    date: datetime
    description: Optional[str] = None
    location: Optional[str] = None
    organizer: Optional[str] = Field(None, description="Organizer email")
    maxParticipants: int = 0
    currentParticipants: int = 0


# Responses
class Stored(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class UserRead(Stored, User):
    email: str


class ChallengeRead(Stored, Challenge):
    title: str
    category: str


class UserChallengeRead(Stored):
    userId: str
    challengeId: Optional[Union[ChallengeRead, str]] = None
    status: ChallengeStatus
    progress: Union[int, float]
    joinDate: Optional[datetime] = None


class TipRead(Stored, Tip):
    title: str
    content: str


class EventRead(Stored, Event):
    title: str


class Message(BaseModel):
    message: str
