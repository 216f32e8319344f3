"""Post service - Business logic for browsing, creating and responding to posts"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import send_new_response_email, send_post_live_email
from ...models import Post
from ...shared.schemas import OkResponse
from ...shared.validators import normalize, normalize_time, parse_slots_from_row, title_case_words
from ..conversations.repository import ConversationRepository
from .matching import matches, sort_by_availability
from .repository import PostRepository
from .schemas import CreatePostResponse, PublicPost, RespondRequest
from .validation import PostValidationError, validate_post_payload

logger = logging.getLogger(__name__)

NO_EMAIL_WARNING = (
    "Message saved, but this post has no email address for notifications. "
    "Use the manage link to view responses."
)
RELAY_NOT_CONFIGURED_WARNING = (
    "Message saved, but email relay is not configured yet. "
    "Set SMTP variables to enable notifications."
)
RELAY_FAILED_WARNING = "Message saved, but relay email delivery failed. Check SMTP settings."
CONFIRMATION_FAILED_WARNING = (
    "Post created, but the confirmation email could not be sent. "
    "Save the manage link shown now."
)


def to_public_post(post: Post, matches_availability: Optional[bool] = None) -> PublicPost:
    """Public view of a post: no email or manage token, location only when in person"""
    return PublicPost(
        id=post.id,
        postCode=post.post_code,
        category=post.category,
        seferName=post.sefer_name or "",
        topic=post.topic,
        learningStyle=post.learning_style or "",
        familiarityLevel=post.familiarity_level or "",
        timeZone=post.time_zone,
        availabilityNotes=post.availability_notes or "",
        availabilitySlots=parse_slots_from_row(post.availability_slots),
        openToOtherTimes=bool(post.open_to_other_times),
        format=post.format,
        city=post.city if post.shows_location else "",
        state=post.state if post.shows_location else "",
        posterName=title_case_words(post.poster_name),
        createdAt=post.created_at,
        expiresAt=post.expires_at,
        matchesAvailability=matches_availability,
    )


def build_manage_url(base_url: str, manage_token: str) -> str:
    return f"{base_url}/manage/{manage_token}"


class PostService:
    """Service layer for public post operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PostRepository()
        self.conversations = ConversationRepository()

    def list_posts(
        self,
        category: Optional[str] = None,
        post_format: Optional[str] = None,
        time_zone: Optional[str] = None,
        familiarity_level: Optional[str] = None,
        search: Optional[str] = None,
        day: Optional[str] = None,
        time: Optional[str] = None,
    ) -> list[PublicPost]:
        """
        Active posts, newest first.

        A day/time filter never hides posts: matching posts move to the front
        and every post is annotated with ``matchesAvailability``.
        """
        try:
            self.repo.sweep_expired(self.db)
            posts = self.repo.list_active_posts(
                self.db,
                category=normalize(category),
                post_format=normalize(post_format),
                time_zone=normalize(time_zone),
                familiarity_level=normalize(familiarity_level),
                search=normalize(search),
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load posts: {e}")
            raise HTTPException(status_code=500, detail="Could not load posts.") from e

        public_posts = [to_public_post(post) for post in posts]
        if not normalize(day) and not normalize_time(time):
            return public_posts

        annotated = []
        for public_post in public_posts:
            data = public_post.model_dump()
            data["matchesAvailability"] = matches(data, day, time)
            annotated.append(data)
        return [PublicPost(**data) for data in sort_by_availability(annotated, day, time)]

    def get_post(self, post_id: str) -> PublicPost:
        try:
            self.repo.sweep_expired(self.db)
            post = self.repo.get_public_post(self.db, post_id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load post {post_id}: {e}")
            raise HTTPException(status_code=500, detail="Could not load post.") from e

        if not post:
            raise HTTPException(status_code=404, detail="Post not found.")
        return to_public_post(post)

    async def create_post(self, payload: dict, base_url: str) -> CreatePostResponse:
        """Validate, store and confirm a new post; the manage URL is only returned here"""
        try:
            data = validate_post_payload(payload, require_duration=True)
        except PostValidationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

        try:
            post = self.repo.create_post(self.db, data)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Create post failed: {e}")
            raise HTTPException(status_code=500, detail="Could not create post.") from e

        logger.info(f"✅ Post {post.post_code} created ({post.duration_days} days)")
        manage_url = build_manage_url(base_url, post.manage_token)

        outcome = await send_post_live_email(
            to=post.email, topic=post.topic, expires_at=post.expires_at, manage_url=manage_url
        )
        warning = CONFIRMATION_FAILED_WARNING if outcome == "failed" else None

        return CreatePostResponse(post=to_public_post(post), manageUrl=manage_url, warning=warning)

    async def respond(self, post_id: str, data: RespondRequest, base_url: str) -> OkResponse:
        """
        Store a response and relay it to the poster.

        The conversation is kept whatever happens to the notification; relay
        problems come back as a warning.
        """
        if not data.message:
            raise HTTPException(status_code=400, detail="Message is required.")
        if not data.responderEmail:
            raise HTTPException(status_code=400, detail="Your email is required for relay replies.")

        try:
            self.repo.sweep_expired(self.db)
            post = self.repo.get_public_post(self.db, post_id)
            if not post:
                raise HTTPException(status_code=404, detail="Post not found.")

            conversation = self.conversations.create_conversation(
                self.db,
                post,
                responder_email=data.responderEmail,
                message=data.message,
                time_zone=data.timeZone,
                availability=data.availability,
            )
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to store response for post {post_id}: {e}")
            raise HTTPException(status_code=500, detail="Could not send response.") from e

        logger.info(f"💬 Conversation {conversation.id} opened on post {post.post_code}")

        if not post.email:
            return OkResponse(warning=NO_EMAIL_WARNING)

        outcome = await send_new_response_email(
            to=post.email,
            category=post.category,
            topic=post.topic,
            message=data.message,
            manage_url=build_manage_url(base_url, post.manage_token),
            responder_time_zone=data.timeZone,
            responder_availability=data.availability,
        )
        if outcome == "not_configured":
            return OkResponse(warning=RELAY_NOT_CONFIGURED_WARNING)
        if outcome == "failed":
            return OkResponse(warning=RELAY_FAILED_WARNING)
        return OkResponse()
