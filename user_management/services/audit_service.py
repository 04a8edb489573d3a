"""
Audit trail client. Every user-facing write (and most reads) is reported to the
audit service. Audit failures are logged and swallowed: they never change the
outcome of the request that triggered them.
"""
import logging
from typing import Optional
import httpx
from user_management.config import get_settings
from user_management.schemas.integration import CallResult
from user_management.services.service_client import ServiceClient

logger = logging.getLogger(__name__)

SENSITIVE_FIELDS = ("password", "verification_code", "verificationCode")


def sanitize(values: Optional[dict]) -> Optional[dict]:
    """Copy of ``values`` with credentials redacted."""
    if not values:
        return values
    cleaned = dict(values)
    for key in SENSITIVE_FIELDS:
        if cleaned.get(key):
            cleaned[key] = "[REDACTED]"
    return cleaned


class AuditClient(ServiceClient):
    service = "AUDIT"

    def __init__(self, base_url: str, timeout: float, transport=None, service_name: str = "user-management-service"):
        super().__init__(base_url, timeout, transport)
        self.service_name = service_name

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AuditClient":
        settings = get_settings()
        return cls(
            settings.audit_service_url,
            settings.service_timeout_seconds,
            transport,
            service_name=settings.service_name,
        )

    async def log_activity(
        self,
        action: str,
        actor=None,
        resource_type: str = "User",
        resource_id: Optional[str] = None,
        description: str = "",
        status: str = "success",
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
        metadata: Optional[dict] = None,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> CallResult:
        if not self.base_url:
            logger.warning("[AUDIT] AUDIT_SERVICE_URL not configured. Skipping audit log.")
            return CallResult(success=False, detail="audit service not configured")

        payload = {
            "userId": getattr(actor, "id", None),
            "userEmail": getattr(actor, "email", None),
            "action": action,
            "resourceType": resource_type,
            "resourceId": resource_id,
            "description": description,
            "status": status,
            "service": self.service_name,
            "metadata": {
                "userName": getattr(actor, "fullname", None),
                "oldValues": sanitize(old_values),
                "newValues": sanitize(new_values),
                "ipAddress": client_ip,
                "userAgent": user_agent,
                **(metadata or {}),
            },
        }
        result = await self._request("POST", "/api/v1/audit/logs", json=payload)
        if result.failed:
            logger.error("[AUDIT] Could not record %s on %s: %s", action, resource_type, result.detail)
        return result

    async def log_create(self, resource_type: str, new_values: dict, actor, description: str, **kwargs) -> CallResult:
        return await self.log_activity(
            "CREATE", actor, resource_type, new_values.get("id"), description,
            new_values=new_values, **kwargs,
        )

    async def log_update(
        self, resource_type: str, old_values: dict, new_values: dict, actor, description: str, **kwargs
    ) -> CallResult:
        return await self.log_activity(
            "UPDATE", actor, resource_type, new_values.get("id"), description,
            old_values=old_values, new_values=new_values, **kwargs,
        )

    async def log_delete(self, resource_type: str, old_values: dict, actor, description: str, **kwargs) -> CallResult:
        return await self.log_activity(
            "DELETE", actor, resource_type, old_values.get("id"), description,
            old_values=old_values, **kwargs,
        )

    async def log_view(self, resource_type: str, resource_id: Optional[str], actor, description: str, **kwargs) -> CallResult:
        return await self.log_activity("VIEW", actor, resource_type, resource_id, description, **kwargs)
