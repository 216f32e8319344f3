"""Post domain schemas - Pydantic models for normalized input and API output"""

from typing import Optional

from pydantic import BaseModel

from ...shared.schemas import TrimmedRequest


class AvailabilitySlot(BaseModel):
    day: str
    start: str = ""
    end: str = ""
    flexible: bool = False


class PostInput(BaseModel):
    """Normalized create/update payload produced by validate_post_payload"""

    category: str
    seferName: str = ""
    topic: str
    learningStyle: str = ""
    familiarityLevel: str = ""
    timeZone: str
    availabilityNotes: str = ""
    availabilitySlots: list[AvailabilitySlot] = []
    openToOtherTimes: bool = False
    format: str
    city: str = ""
    state: str = ""
    email: str
    posterName: str = ""
    contactMethod: str = "relay"
    durationDays: Optional[int] = None


class PublicPost(BaseModel):
    """Post as shown to anyone browsing; never carries email or manage token"""

    id: str
    postCode: str
    category: str
    seferName: str
    topic: str
    learningStyle: str
    familiarityLevel: str
    timeZone: str
    availabilityNotes: str
    availabilitySlots: list[AvailabilitySlot]
    openToOtherTimes: bool
    format: str
    city: str
    state: str
    posterName: str
    createdAt: str
    expiresAt: str
    matchesAvailability: Optional[bool] = None


class PostListResponse(BaseModel):
    posts: list[PublicPost]


class PostDetailResponse(BaseModel):
    post: PublicPost


class CreatePostResponse(BaseModel):
    post: PublicPost
    manageUrl: str
    warning: Optional[str] = None


class RespondRequest(TrimmedRequest):
    """Respondent's message; empty means absent"""

    message: str = ""
    timeZone: str = ""
    availability: str = ""
    responderEmail: str = ""
