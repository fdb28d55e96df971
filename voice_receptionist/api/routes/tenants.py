"""
Tenant configuration hooks
"""

from fastapi import APIRouter

from voice_receptionist.core.logging import get_logger
from voice_receptionist.services.tenant_cache import get_tenant_cache

logger = get_logger(__name__)

router = APIRouter(prefix="/tenants", tags=["tenants"])


@router.post("/{tenant_id}/cache/invalidate")
async def invalidate_tenant_config(tenant_id: str):
    """
    Drop the cached call configuration of a tenant

    Called after the tenant edits its configuration so the next call
    picks up the change.
    """
    await get_tenant_cache().invalidate(tenant_id)
    return {"tenant_id": tenant_id, "invalidated": True}
