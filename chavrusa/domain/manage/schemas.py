"""Manage domain schemas - owner view of a post and its conversations"""

from pydantic import BaseModel

from ...shared.schemas import TrimmedRequest
from ..posts.schemas import AvailabilitySlot


class ManagePost(BaseModel):
    """Owner view: includes email and lifecycle fields, never the manage token"""

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
    durationDays: int
    status: str
    createdAt: str
    expiresAt: str
    email: str
    posterName: str
    contactMethod: str


class ConversationSummary(BaseModel):
    """A response as the poster sees it; the respondent's address stays hidden"""

    id: str
    createdAt: str
    message: str
    timeZone: str
    availability: str
    replyCount: int


class ManageResponse(BaseModel):
    post: ManagePost
    conversations: list[ConversationSummary]


class RenewResponse(BaseModel):
    ok: bool = True
    expiresAt: str


class ReplyRequest(TrimmedRequest):
    conversationId: str = ""
    message: str = ""
