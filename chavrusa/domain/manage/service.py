"""Manage service - owner operations authorized by the post's manage token"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...email_service import RelayDeliveryError, RelayNotConfiguredError, send_owner_reply_email
from ...models import Post
from ...shared.schemas import OkResponse
from ...shared.validators import parse_slots_from_row, title_case_words
from ..conversations.repository import ConversationRepository
from ..posts.repository import PostRepository
from ..posts.validation import PostValidationError, parse_duration, validate_post_payload
from .schemas import ConversationSummary, ManagePost, ManageResponse, RenewResponse, ReplyRequest

logger = logging.getLogger(__name__)

MANAGE_LINK_NOT_FOUND = "Manage link not found."


def to_manage_post(post: Post) -> ManagePost:
    return ManagePost(
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
        city=post.city or "",
        state=post.state or "",
        durationDays=post.duration_days,
        status=post.status,
        createdAt=post.created_at,
        expiresAt=post.expires_at,
        email=post.email,
        posterName=title_case_words(post.poster_name),
        contactMethod=post.contact_method,
    )


class ManageService:
    """Service layer for manage-token operations"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PostRepository()
        self.conversations = ConversationRepository()

    def _get_post(self, token: str) -> Post:
        post = self.repo.get_post_by_manage_token(self.db, token)
        if not post:
            raise HTTPException(status_code=404, detail=MANAGE_LINK_NOT_FOUND)
        return post

    def get_manage_view(self, token: str) -> ManageResponse:
        """Post with its conversations, newest first, whatever the post status"""
        try:
            self.repo.sweep_expired(self.db)
            post = self._get_post(token)
            rows = self.conversations.list_with_reply_counts(self.db, post.id)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load manage page: {e}")
            raise HTTPException(status_code=500, detail="Could not load manage page.") from e

        return ManageResponse(
            post=to_manage_post(post),
            conversations=[
                ConversationSummary(
                    id=conversation.id,
                    createdAt=conversation.created_at,
                    message=conversation.message,
                    timeZone=conversation.time_zone or "",
                    availability=conversation.availability or "",
                    replyCount=int(reply_count or 0),
                )
                for conversation, reply_count in rows
            ],
        )

    def update_post(self, token: str, payload: dict) -> OkResponse:
        try:
            data = validate_post_payload(payload, require_duration=False)
        except PostValidationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

        try:
            post = self._get_post(token)
            self.repo.update_post(self.db, post, data)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to update post: {e}")
            raise HTTPException(status_code=500, detail="Could not update post.") from e

        logger.info(f"✏️ Post {post.post_code} updated")
        return OkResponse()

    def renew_post(self, token: str, payload: dict) -> RenewResponse:
        """Reactivate and push expiry forward from now"""
        try:
            duration_days = parse_duration(payload.get("durationDays"))
        except PostValidationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e

        try:
            post = self._get_post(token)
            self.repo.renew_post(self.db, post, duration_days)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to renew post: {e}")
            raise HTTPException(status_code=500, detail="Could not renew post.") from e

        logger.info(f"🔄 Post {post.post_code} renewed for {duration_days} days")
        return RenewResponse(expiresAt=post.expires_at)

    def deactivate_post(self, token: str) -> OkResponse:
        try:
            post = self._get_post(token)
            self.repo.deactivate_post(self.db, post)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to deactivate post: {e}")
            raise HTTPException(status_code=500, detail="Could not deactivate post.") from e

        logger.info(f"⏸️ Post {post.post_code} deactivated")
        return OkResponse()

    def delete_post(self, token: str) -> OkResponse:
        try:
            post = self._get_post(token)
            post_code = post.post_code
            self.repo.delete_post(self.db, post)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Failed to delete post: {e}")
            raise HTTPException(status_code=500, detail="Could not delete post.") from e

        logger.info(f"🗑️ Post {post_code} deleted by owner")
        return OkResponse()

    async def reply(self, token: str, data: ReplyRequest) -> OkResponse:
        """
        Relay the owner's reply to the respondent.

        Unlike the other notifications this one must be delivered: the reply is
        only stored after the email went out.
        """
        if not data.conversationId or not data.message:
            raise HTTPException(status_code=400, detail="Conversation and message are required.")

        try:
            post = self._get_post(token)
            conversation = self.conversations.get_conversation_for_post(
                self.db, data.conversationId, post.id
            )
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to load conversation: {e}")
            raise HTTPException(status_code=500, detail="Could not send relay reply.") from e

        if not conversation:
            raise HTTPException(status_code=404, detail="Conversation not found.")

        try:
            await send_owner_reply_email(
                to=conversation.responder_email,
                category=post.category,
                topic=post.topic,
                message=data.message,
            )
        except RelayNotConfiguredError as e:
            raise HTTPException(status_code=500, detail="SMTP relay is not configured.") from e
        except RelayDeliveryError as e:
            raise HTTPException(status_code=500, detail="Could not send relay reply.") from e

        try:
            self.conversations.create_reply(self.db, conversation, data.message)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Reply sent but could not be stored: {e}")
            raise HTTPException(status_code=500, detail="Could not send relay reply.") from e

        logger.info(f"📨 Owner reply relayed on conversation {conversation.id}")
        return OkResponse()
