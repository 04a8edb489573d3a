from typing import Optional
import httpx
from user_management.config import get_settings
from user_management.schemas.integration import CallResult
from user_management.services.service_client import ServiceClient


class OrganizationClient(ServiceClient):
    """Client for the organization service, which owns user affiliations."""

    service = "ORG"

    @classmethod
    def from_settings(cls, transport: Optional[httpx.AsyncBaseTransport] = None) -> "OrganizationClient":
        settings = get_settings()
        return cls(settings.org_service_url, settings.service_timeout_seconds, transport)

    async def create_affiliation(
        self,
        user_id: str,
        role: str,
        department_id: str,
        specialty_id: Optional[str] = None,
        authorization: str = "",
    ) -> CallResult:
        payload = {"userId": user_id, "role": role, "departmentId": department_id}
        if specialty_id:
            payload["specialtyId"] = specialty_id
        return await self._request("POST", "/affiliations", authorization, json=payload)

    async def replace_affiliation(
        self,
        user_id: str,
        role: str,
        department_id: Optional[str],
        specialty_id: Optional[str],
        authorization: str = "",
    ) -> CallResult:
        """Drop the user's current affiliation and register the new one."""
        deleted = await self._request("DELETE", f"/affiliations/{user_id}", authorization)
        if deleted.failed and deleted.status_code != 404:
            return deleted
        payload = {
            "userId": user_id,
            "role": role,
            "departmentId": department_id,
            "specialtyId": specialty_id,
        }
        return await self._request("PUT", f"/affiliations/{user_id}", authorization, json=payload)

    async def delete_user_affiliations(self, user_id: str, authorization: str = "") -> CallResult:
        return await self._request("DELETE", f"/affiliations/by-user/{user_id}", authorization)

    async def list_affiliations(
        self,
        role: str,
        specialty_id: Optional[str] = None,
        specialty: Optional[str] = None,
        authorization: str = "",
    ) -> CallResult:
        params = {"role": role}
        if specialty_id:
            params["specialtyId"] = specialty_id
        elif specialty:
            params["specialty"] = specialty
        return await self._request("GET", "/affiliations", authorization, params=params)
