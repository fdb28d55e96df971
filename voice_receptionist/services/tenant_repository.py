"""
Tenant Repository
Reads tenant call configuration from the tenants file
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Dict, Any

from voice_receptionist.core.config import settings
from voice_receptionist.core.exceptions import ConfigNotFoundError
from voice_receptionist.core.logging import get_logger
from voice_receptionist.models.tenant import TenantCallConfig

logger = get_logger(__name__)


def normalize_number(number: Optional[str]) -> str:
    """Strip formatting from a phone number, keeping a leading +"""
    if not number:
        return ""
    number = number.strip()
    digits = "".join(ch for ch in number if ch.isdigit())
    return f"+{digits}" if number.startswith("+") else digits


class TenantRepository(ABC):
    """Persistence collaborator for tenant call configuration"""

    @abstractmethod
    async def find_tenant_id(self, callee_number: str) -> Optional[str]:
        """Map the dialled number to a tenant id"""

    @abstractmethod
    async def load_config(self, tenant_id: str) -> TenantCallConfig:
        """Load the configuration; raises ConfigNotFoundError if missing"""


class JsonTenantRepository(TenantRepository):
    """
    File backed repository

    The file holds {"phone_numbers": {"+34...": "tenant_id"}, "tenants": [...]}.
    It is re-read on every load so edits take effect once the cache entry
    is invalidated or expires.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = Path(config_path or settings.tenants_file_path)

    def _read(self) -> Dict[str, Any]:
        if not self.config_path.exists():
            logger.warning(f"Tenants file not found: {self.config_path}")
            return {"phone_numbers": {}, "tenants": []}

        with open(self.config_path, "r", encoding="utf-8") as f:
            return json.load(f)

    async def find_tenant_id(self, callee_number: str) -> Optional[str]:
        wanted = normalize_number(callee_number)
        for number, tenant_id in self._read().get("phone_numbers", {}).items():
            if normalize_number(number) == wanted:
                return tenant_id
        return None

    async def load_config(self, tenant_id: str) -> TenantCallConfig:
        for tenant_data in self._read().get("tenants", []):
            if tenant_data.get("tenant_id") == tenant_id:
                logger.debug(f"Loaded configuration for tenant {tenant_id}")
                return TenantCallConfig(**tenant_data)

        raise ConfigNotFoundError(tenant_id)


# Singleton instance
_tenant_repository: Optional[TenantRepository] = None


def get_tenant_repository() -> TenantRepository:
    """Get the TenantRepository singleton instance"""
    global _tenant_repository
    if _tenant_repository is None:
        _tenant_repository = JsonTenantRepository()
    return _tenant_repository
