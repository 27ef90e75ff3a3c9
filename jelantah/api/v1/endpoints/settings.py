"""API endpoints for pricing settings."""
from fastapi import APIRouter, Depends

from jelantah.api.deps import DB, CurrentUser, require_roles
from jelantah.models.user import UserRole
from jelantah.schemas.settings import SettingsResponse, SettingsUpdate
from jelantah.services.settings_service import SettingsService

router = APIRouter()


@router.get("", response_model=SettingsResponse)
async def get_settings(db: DB, current_user: CurrentUser):
    """Current pricing settings (created with defaults on first read)."""
    return await SettingsService(db).get_or_create()


@router.put(
    "",
    response_model=SettingsResponse,
    dependencies=[Depends(require_roles(UserRole.ADMIN))],
)
async def update_settings(data: SettingsUpdate, db: DB):
    """Update pricing tiers and commission rates. Admin only."""
    return await SettingsService(db).update(data.model_dump(exclude_unset=True))
