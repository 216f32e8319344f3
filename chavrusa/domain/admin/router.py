"""Admin router - owner-key protected endpoints"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...database import get_db
from ...shared.request_body import read_payload
from ...shared.schemas import OkResponse
from .schemas import AdminDeleteRequest
from .service import AdminService

router = APIRouter(prefix="/api/admin", tags=["Admin"])


def get_admin_service(db: Session = Depends(get_db)) -> AdminService:
    return AdminService(db)


@router.post("/delete", response_model=OkResponse, response_model_exclude_none=True)
async def admin_delete_post(
    payload: dict = Depends(read_payload),
    service: AdminService = Depends(get_admin_service),
):
    return service.delete_post(AdminDeleteRequest.model_validate(payload))
