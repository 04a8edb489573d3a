import logging
import httpx
from typing import Optional
from user_management.schemas.integration import CallResult

logger = logging.getLogger(__name__)


def _response_detail(response: httpx.Response):
    try:
        return response.json()
    except ValueError:
        return response.text


class ServiceClient:
    """Base for the HTTP clients of sibling services.

    Every request resolves to a CallResult: transport errors, timeouts and
    non-2xx responses are reported as failures, never raised.
    """

    service = "service"

    def __init__(
        self,
        base_url: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or "").rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        authorization: str = "",
        **kwargs,
    ) -> CallResult:
        headers = kwargs.pop("headers", {})
        if authorization:
            headers["Authorization"] = authorization
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("[%s] %s %s timed out: %s", self.service, method, url, e)
            return CallResult(success=False, detail=f"Timeout calling {self.service}: {e}")
        except httpx.HTTPError as e:
            logger.warning("[%s] %s %s failed: %s", self.service, method, url, e)
            return CallResult(success=False, detail=str(e) or e.__class__.__name__)

        body = _response_detail(response)
        if response.is_error:
            logger.warning(
                "[%s] %s %s returned %s: %s",
                self.service, method, url, response.status_code, body,
            )
            return CallResult(success=False, status_code=response.status_code, detail=body)
        return CallResult(success=True, status_code=response.status_code, data=body)
