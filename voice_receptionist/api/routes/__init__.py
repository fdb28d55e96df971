"""API Routes"""

from . import webhooks, health, tenants

__all__ = ["webhooks", "health", "tenants"]
