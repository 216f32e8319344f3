"""Manage router - endpoints authorized by the secret manage token in the URL"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.request_body import read_payload
from ...shared.schemas import OkResponse
from .schemas import ManageResponse, RenewResponse, ReplyRequest
from .service import ManageService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/manage", tags=["Manage"])


def get_manage_service(db: Session = Depends(get_db)) -> ManageService:
    """Dependency injection for ManageService"""
    return ManageService(db)


@router.get("/{token}", response_model=ManageResponse)
async def get_manage_view(token: str, service: ManageService = Depends(get_manage_service)):
    return service.get_manage_view(token)


@router.post("/{token}/update", response_model=OkResponse, response_model_exclude_none=True)
async def update_post(
    token: str,
    payload: dict = Depends(read_payload),
    service: ManageService = Depends(get_manage_service),
):
    """Replace the post content; duration and status are not touched"""
    return service.update_post(token, payload)


@router.post("/{token}/renew", response_model=RenewResponse)
async def renew_post(
    token: str,
    payload: dict = Depends(read_payload),
    service: ManageService = Depends(get_manage_service),
):
    return service.renew_post(token, payload)


@router.post("/{token}/deactivate", response_model=OkResponse, response_model_exclude_none=True)
async def deactivate_post(token: str, service: ManageService = Depends(get_manage_service)):
    return service.deactivate_post(token)


@router.post("/{token}/delete", response_model=OkResponse, response_model_exclude_none=True)
async def delete_post(token: str, service: ManageService = Depends(get_manage_service)):
    """Delete the post with its conversations and replies"""
    return service.delete_post(token)


@router.post("/{token}/reply", response_model=OkResponse, response_model_exclude_none=True)
async def reply_to_conversation(
    token: str,
    payload: dict = Depends(read_payload),
    service: ManageService = Depends(get_manage_service),
):
    data = ReplyRequest.model_validate(payload)
    return await service.reply(token, data)
