"""
Public branding (application logo).
"""
from fastapi import APIRouter, Depends, status

from app.api.v1.schemas.admin import LogoResponse
from app.core.dependencies import get_admin_service
from app.services.admin import AdminService

router = APIRouter(
    prefix="/branding",
    tags=["branding"],
)


@router.get(
    "",
    response_model=LogoResponse,
    summary="Get application logo",
    description="Returns the logo uploaded through the admin panel, or null.",
    status_code=status.HTTP_200_OK,
)
async def get_branding(admin: AdminService = Depends(get_admin_service)) -> LogoResponse:
    return LogoResponse(logo=await admin.get_logo())
