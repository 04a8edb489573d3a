"""Verification emails are sent by the auth service; this is its client."""
from typing import Optional
import httpx
from user_management.config import get_settings
from user_management.schemas.integration import CallResult
from user_management.services.service_client import ServiceClient


class AuthNotificationClient(ServiceClient):
    service = "EMAIL"

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "AuthNotificationClient":
        settings = get_settings()
        return cls(settings.auth_service_url, settings.notification_timeout_seconds, transport)

    async def send_verification(
        self,
        email: str,
        fullname: str,
        code: str,
        expires_in_hours: int,
    ) -> CallResult:
        return await self._request(
            "POST",
            "/api/v1/auth/send-verification",
            json={
                "email": email,
                "fullname": fullname,
                "verificationCode": code,
                "expiresInHours": expires_in_hours,
            },
        )
