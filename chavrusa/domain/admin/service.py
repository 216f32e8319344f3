"""Admin service - site owner's override for removing any post"""

import logging
import secrets

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import get_owner_delete_key
from ...shared.schemas import OkResponse
from ..posts.repository import PostRepository
from .schemas import AdminDeleteRequest

logger = logging.getLogger(__name__)


class AdminService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = PostRepository()

    def delete_post(self, data: AdminDeleteRequest) -> OkResponse:
        """Delete a post by public id using the shared owner key instead of its manage token"""
        owner_key = get_owner_delete_key()
        if not owner_key:
            raise HTTPException(status_code=503, detail="Owner delete key is not configured.")
        if not data.key or not secrets.compare_digest(data.key.encode(), owner_key.encode()):
            logger.warning("⚠️ Admin delete rejected: bad owner key")
            raise HTTPException(status_code=403, detail="Unauthorized.")
        if not data.postId:
            raise HTTPException(status_code=400, detail="Post id is required.")

        try:
            post = self.repo.get_post_by_id(self.db, data.postId)
            if not post:
                raise HTTPException(status_code=404, detail="Post not found.")
            self.repo.delete_post(self.db, post)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"❌ Admin delete failed for post {data.postId}: {e}")
            raise HTTPException(status_code=500, detail="Could not delete post.") from e

        logger.info(f"🗑️ Post {data.postId} deleted with owner key")
        return OkResponse()
