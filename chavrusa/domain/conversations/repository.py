"""Conversation repository - Database operations for relay conversations and replies"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import Conversation, Post, Reply
from ...shared.clock import now_iso


class ConversationRepository:
    """Repository for conversation and reply database operations"""

    @staticmethod
    def create_conversation(
        db: Session,
        post: Post,
        responder_email: str,
        message: str,
        time_zone: str = "",
        availability: str = "",
    ) -> Conversation:
        conversation = Conversation(
            post_id=post.id,
            responder_email=responder_email,
            message=message,
            time_zone=time_zone,
            availability=availability,
            created_at=now_iso(),
        )
        db.add(conversation)
        db.commit()
        db.refresh(conversation)
        return conversation

    @staticmethod
    def list_with_reply_counts(db: Session, post_id: str) -> list[tuple[Conversation, int]]:
        """Conversations for a post, newest first, each with its reply count"""
        return (
            db.query(Conversation, func.count(Reply.id))
            .outerjoin(Reply, Reply.conversation_id == Conversation.id)
            .filter(Conversation.post_id == post_id)
            .group_by(Conversation.id)
            .order_by(Conversation.created_at.desc())
            .all()
        )

    @staticmethod
    def get_conversation_for_post(
        db: Session, conversation_id: str, post_id: str
    ) -> Optional[Conversation]:
        """A conversation only if it belongs to the given post"""
        return (
            db.query(Conversation)
            .filter(Conversation.id == conversation_id, Conversation.post_id == post_id)
            .first()
        )

    @staticmethod
    def create_reply(db: Session, conversation: Conversation, message: str) -> Reply:
        reply = Reply(conversation_id=conversation.id, message=message, created_at=now_iso())
        db.add(reply)
        db.commit()
        db.refresh(reply)
        return reply
