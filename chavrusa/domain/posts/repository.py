"""Post repository - Database operations for posts"""

import json
import logging
from typing import Optional

from sqlalchemy import func, inspect, or_, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from ...migrations import insert_post_row
from ...models import (
    STATUS_ACTIVE,
    STATUS_EXPIRED,
    STATUS_INACTIVE,
    Post,
    generate_manage_token,
    generate_post_id,
)
from ...shared.clock import iso_after_days, now_iso
from .schemas import PostInput

logger = logging.getLogger(__name__)


def _slots_json(data: PostInput) -> str:
    return json.dumps([slot.model_dump() for slot in data.availabilitySlots])


def _content_fields(data: PostInput) -> dict:
    """Column values shared by create and update"""
    return {
        "category": data.category,
        "sefer_name": data.seferName,
        "topic": data.topic,
        "learning_style": data.learningStyle,
        "familiarity_level": data.familiarityLevel,
        "time_zone": data.timeZone,
        "availability_notes": data.availabilityNotes,
        "availability_slots": _slots_json(data),
        "open_to_other_times": 1 if data.openToOtherTimes else 0,
        "format": data.format,
        "city": data.city,
        "state": data.state,
        "email": data.email,
        "poster_name": data.posterName,
        "contact_method": "relay",
    }


def _physical_row(post: Post) -> dict:
    """Attribute values keyed by the camelCase column names"""
    return {attr.columns[0].name: getattr(post, attr.key) for attr in inspect(Post).column_attrs}


def _is_schema_mismatch(error: Exception) -> bool:
    message = str(error)
    return "has no column named" in message or "NOT NULL constraint failed: posts." in message


class PostRepository:
    """Repository for post database operations"""

    @staticmethod
    def sweep_expired(db: Session) -> int:
        """Flip active posts past their expiry to expired. Safe to repeat."""
        result = db.execute(
            update(Post)
            .where(Post.status == STATUS_ACTIVE, Post.expires_at <= now_iso())
            .values(status=STATUS_EXPIRED)
        )
        db.commit()
        if result.rowcount:
            logger.info(f"⏰ Expired {result.rowcount} post(s)")
        return result.rowcount

    @staticmethod
    def create_post(db: Session, data: PostInput) -> Post:
        """Insert a new active post, repairing an outdated schema once if needed"""
        post = Post(
            id=generate_post_id(),
            manage_token=generate_manage_token(),
            **_content_fields(data),
            duration_days=data.durationDays,
            created_at=now_iso(),
            expires_at=iso_after_days(data.durationDays),
            status=STATUS_ACTIVE,
        )
        row = _physical_row(post)

        db.add(post)
        try:
            db.commit()
        except (OperationalError, IntegrityError) as e:
            db.rollback()
            if not _is_schema_mismatch(e):
                raise
            logger.warning(f"⚠️ Posts table does not match the model, repairing schema: {e}")
            insert_post_row(db.get_bind(), row)
            post = db.get(Post, row["id"])

        db.refresh(post)
        return post

    @staticmethod
    def list_active_posts(
        db: Session,
        category: Optional[str] = None,
        post_format: Optional[str] = None,
        time_zone: Optional[str] = None,
        familiarity_level: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Post]:
        """Active, unexpired posts, newest first, with optional equality filters"""
        query = db.query(Post).filter(Post.status == STATUS_ACTIVE, Post.expires_at > now_iso())

        if category:
            query = query.filter(Post.category == category)
        if post_format:
            query = query.filter(Post.format == post_format)
        if time_zone:
            query = query.filter(Post.time_zone == time_zone)
        if familiarity_level:
            query = query.filter(Post.familiarity_level == familiarity_level)
        if search:
            pattern = f"%{search.lower()}%"
            query = query.filter(
                or_(func.lower(Post.sefer_name).like(pattern), func.lower(Post.topic).like(pattern))
            )

        return query.order_by(Post.created_at.desc()).all()

    @staticmethod
    def get_public_post(db: Session, post_id: str) -> Optional[Post]:
        """A post by public id, only while active and unexpired"""
        return (
            db.query(Post)
            .filter(
                Post.id == post_id,
                Post.status == STATUS_ACTIVE,
                Post.expires_at > now_iso(),
            )
            .first()
        )

    @staticmethod
    def get_post_by_manage_token(db: Session, token: str) -> Optional[Post]:
        """A post by manage token regardless of status"""
        if not token:
            return None
        return db.query(Post).filter(Post.manage_token == token).first()

    @staticmethod
    def update_post(db: Session, post: Post, data: PostInput) -> Post:
        """Replace post content; status and expiry are left alone"""
        for key, value in _content_fields(data).items():
            setattr(post, key, value)
        db.commit()
        db.refresh(post)
        return post

    @staticmethod
    def renew_post(db: Session, post: Post, duration_days: int) -> Post:
        """Push expiry forward from now and reactivate"""
        post.duration_days = duration_days
        post.expires_at = iso_after_days(duration_days)
        post.status = STATUS_ACTIVE
        db.commit()
        db.refresh(post)
        return post

    @staticmethod
    def deactivate_post(db: Session, post: Post) -> Post:
        post.status = STATUS_INACTIVE
        db.commit()
        db.refresh(post)
        return post

    @staticmethod
    def delete_post(db: Session, post: Post) -> None:
        """Delete a post; conversations and replies cascade"""
        db.delete(post)
        db.commit()

    @staticmethod
    def get_post_by_id(db: Session, post_id: str) -> Optional[Post]:
        """A post by public id regardless of status (admin use)"""
        if not post_id:
            return None
        return db.query(Post).filter(Post.id == post_id).first()
