import secrets

from sqlalchemy import Column, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship

from .database import Base

# Column names keep the camelCase spelling of the first board's schema so
# existing database files can be opened without renaming anything.

IN_PERSON_FORMATS = ("in_person_only", "in_person_preferred")
POST_FORMATS = ("in_person_only", "in_person_preferred", "remote_only", "flexible")

STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_INACTIVE = "inactive"


def generate_post_id() -> str:
    """Public, shareable post id"""
    return secrets.token_hex(8)


def generate_manage_token() -> str:
    """Secret bearer credential for edit/renew/deactivate/delete/reply"""
    return secrets.token_hex(16)


def generate_conversation_id() -> str:
    return secrets.token_hex(6)


class Post(Base):
    __tablename__ = "posts"

    id = Column("id", Text, primary_key=True, default=generate_post_id)
    manage_token = Column(
        "manageToken", Text, unique=True, nullable=False, default=generate_manage_token
    )
    category = Column("category", Text, nullable=False)
    sefer_name = Column("seferName", Text, nullable=False, server_default="")
    topic = Column("topic", Text, nullable=False)
    learning_style = Column("learningStyle", Text, nullable=False)
    familiarity_level = Column("familiarityLevel", Text, nullable=False)
    time_zone = Column("timeZone", Text, nullable=False)
    availability_notes = Column("availabilityNotes", Text, nullable=False, server_default="")
    availability_slots = Column("availabilitySlots", Text, nullable=False, server_default="[]")
    open_to_other_times = Column("openToOtherTimes", Integer, nullable=False, server_default="0")
    format = Column("format", Text, nullable=False)
    city = Column("city", Text, nullable=False, server_default="")
    state = Column("state", Text, nullable=False, server_default="")
    contact_method = Column("contactMethod", Text, nullable=False)
    poster_name = Column("posterName", Text, nullable=False, server_default="")
    email = Column("email", Text, nullable=False)
    duration_days = Column("durationDays", Integer, nullable=False)
    created_at = Column("createdAt", Text, nullable=False)
    expires_at = Column("expiresAt", Text, nullable=False)
    status = Column("status", Text, nullable=False)

    conversations = relationship(
        "Conversation",
        back_populates="post",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def post_code(self) -> str:
        return f"CB-{(self.id or '')[:6].upper()}"

    @property
    def shows_location(self) -> bool:
        return self.format in IN_PERSON_FORMATS


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column("id", Text, primary_key=True, default=generate_conversation_id)
    post_id = Column(
        "postId", Text, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    # Relay destination only; never returned to the poster
    responder_email = Column("responderEmail", Text, nullable=False)
    message = Column("message", Text, nullable=False)
    time_zone = Column("timeZone", Text, nullable=False, server_default="")
    availability = Column("availability", Text, nullable=False, server_default="")
    created_at = Column("createdAt", Text, nullable=False)

    post = relationship("Post", back_populates="conversations")
    replies = relationship(
        "Reply",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Reply(Base):
    __tablename__ = "replies"

    id = Column("id", Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(
        "conversationId",
        Text,
        ForeignKey("conversations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    message = Column("message", Text, nullable=False)
    created_at = Column("createdAt", Text, nullable=False)

    conversation = relationship("Conversation", back_populates="replies")

