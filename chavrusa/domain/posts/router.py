"""Post router - public browsing, posting and responding"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from ...config import (
    CREATE_POST_LIMIT,
    RATE_LIMIT_WINDOW_SECONDS,
    RESPOND_POST_LIMIT,
    get_base_url,
)
from ...database import get_db
from ...rate_limiter import create_rate_limiter
from ...shared.request_body import read_payload
from ...shared.schemas import OkResponse
from .schemas import CreatePostResponse, PostDetailResponse, PostListResponse, RespondRequest
from .service import PostService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/posts", tags=["Posts"])

rate_limit_create_post = create_rate_limiter(
    action="create-post",
    limit=CREATE_POST_LIMIT,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    message="Too many posts. Try again later.",
)

rate_limit_respond_post = create_rate_limiter(
    action="respond-post",
    limit=RESPOND_POST_LIMIT,
    window_seconds=RATE_LIMIT_WINDOW_SECONDS,
    message="Too many responses. Try again later.",
)


def get_post_service(db: Session = Depends(get_db)) -> PostService:
    """Dependency injection for PostService"""
    return PostService(db)


@router.get("", response_model=PostListResponse, response_model_exclude_none=True)
async def list_posts(
    category: Optional[str] = Query(None),
    format: Optional[str] = Query(None),
    timeZone: Optional[str] = Query(None),
    familiarityLevel: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    day: Optional[str] = Query(None),
    time: Optional[str] = Query(None),
    service: PostService = Depends(get_post_service),
):
    """List active posts with optional filters; day/time reorder rather than exclude"""
    posts = service.list_posts(
        category=category,
        post_format=format,
        time_zone=timeZone,
        familiarity_level=familiarityLevel,
        search=q,
        day=day,
        time=time,
    )
    return PostListResponse(posts=posts)


@router.get("/{post_id}", response_model=PostDetailResponse, response_model_exclude_none=True)
async def get_post(post_id: str, service: PostService = Depends(get_post_service)):
    return PostDetailResponse(post=service.get_post(post_id))


@router.post(
    "",
    response_model=CreatePostResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
)
async def create_post(
    request: Request,
    _: None = Depends(rate_limit_create_post),
    payload: dict = Depends(read_payload),
    service: PostService = Depends(get_post_service),
):
    """Create a post. The response carries the only copy of the manage URL."""
    return await service.create_post(payload, get_base_url(request))


@router.post("/{post_id}/respond", response_model=OkResponse, response_model_exclude_none=True)
async def respond_to_post(
    post_id: str,
    request: Request,
    _: None = Depends(rate_limit_respond_post),
    payload: dict = Depends(read_payload),
    service: PostService = Depends(get_post_service),
):
    data = RespondRequest.model_validate(payload)
    return await service.respond(post_id, data, get_base_url(request))
