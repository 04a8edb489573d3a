"""
Outbound clients: payloads, forwarded headers and failure reporting.
"""
import json
import httpx
import pytest
from user_management.services.audit_service import AuditClient, sanitize
from user_management.services.notification_service import AuthNotificationClient
from user_management.services.organization_service import OrganizationClient


class Recorder:
    def __init__(self, responses=None):
        self.requests = []
        self.responses = responses or {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status, body = self.responses.get((request.method, request.url.path), (200, {"ok": True}))
        return httpx.Response(status, json=body)


def org_client(recorder):
    return OrganizationClient("http://org.test/api/v1/", 1.0, transport=httpx.MockTransport(recorder))


@pytest.mark.asyncio
async def test_create_affiliation_payload_and_authorization():
    recorder = Recorder()
    result = await org_client(recorder).create_affiliation("u1", "NURSE", "d1", authorization="Bearer abc")

    assert result.success
    request = recorder.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://org.test/api/v1/affiliations"
    assert request.headers["Authorization"] == "Bearer abc"
    assert json.loads(request.content) == {"userId": "u1", "role": "NURSE", "departmentId": "d1"}


@pytest.mark.asyncio
async def test_create_affiliation_includes_specialty_when_known():
    recorder = Recorder()
    await org_client(recorder).create_affiliation("u1", "DOCTOR", "d1", "s1")
    assert json.loads(recorder.requests[0].content)["specialtyId"] == "s1"
    assert "Authorization" not in recorder.requests[0].headers


@pytest.mark.asyncio
async def test_error_response_is_reported_not_raised():
    recorder = Recorder({("POST", "/api/v1/affiliations"): (409, {"message": "already affiliated"})})
    result = await org_client(recorder).create_affiliation("u1", "DOCTOR", "d1")

    assert result.failed
    assert result.status_code == 409
    assert result.detail == {"message": "already affiliated"}


@pytest.mark.asyncio
async def test_connection_error_is_reported_not_raised():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = OrganizationClient("http://org.test", 1.0, transport=httpx.MockTransport(refuse))
    result = await client.delete_user_affiliations("u1")

    assert result.failed
    assert result.status_code is None
    assert "connection refused" in result.detail


@pytest.mark.asyncio
async def test_timeout_is_reported_with_service_name():
    def slow(request):
        raise httpx.ReadTimeout("read timed out", request=request)

    client = OrganizationClient("http://org.test", 0.1, transport=httpx.MockTransport(slow))
    result = await client.create_affiliation("u1", "DOCTOR", "d1")

    assert result.failed
    assert result.detail.startswith("Timeout calling ORG")


@pytest.mark.asyncio
async def test_replace_affiliation_tolerates_missing_previous_one():
    recorder = Recorder({("DELETE", "/api/v1/affiliations/u1"): (404, {"message": "not found"})})
    result = await org_client(recorder).replace_affiliation("u1", "DOCTOR", "d2", "s2")

    assert result.success
    assert [r.method for r in recorder.requests] == ["DELETE", "PUT"]
    assert json.loads(recorder.requests[1].content) == {
        "userId": "u1", "role": "DOCTOR", "departmentId": "d2", "specialtyId": "s2",
    }


@pytest.mark.asyncio
async def test_replace_affiliation_stops_when_delete_fails():
    recorder = Recorder({("DELETE", "/api/v1/affiliations/u1"): (500, {"message": "boom"})})
    result = await org_client(recorder).replace_affiliation("u1", "DOCTOR", "d2", "s2")

    assert result.failed
    assert result.status_code == 500
    assert [r.method for r in recorder.requests] == ["DELETE"]


@pytest.mark.asyncio
async def test_list_affiliations_prefers_specialty_id():
    recorder = Recorder({("GET", "/api/v1/affiliations"): (200, [{"userId": "u1"}])})
    result = await org_client(recorder).list_affiliations("DOCTOR", specialty_id="s1", specialty="Cardio")

    assert result.data == [{"userId": "u1"}]
    params = recorder.requests[0].url.params
    assert params["role"] == "DOCTOR"
    assert params["specialtyId"] == "s1"
    assert "specialty" not in params


@pytest.mark.asyncio
async def test_send_verification_payload():
    recorder = Recorder()
    client = AuthNotificationClient("http://auth.test", 1.0, transport=httpx.MockTransport(recorder))
    result = await client.send_verification("ana@example.com", "Ana", "123456", 1)

    assert result.success
    request = recorder.requests[0]
    assert request.url.path == "/api/v1/auth/send-verification"
    assert json.loads(request.content) == {
        "email": "ana@example.com",
        "fullname": "Ana",
        "verificationCode": "123456",
        "expiresInHours": 1,
    }


@pytest.mark.asyncio
async def test_audit_is_skipped_without_url():
    recorder = Recorder()
    client = AuditClient("", 1.0, transport=httpx.MockTransport(recorder))
    result = await client.log_activity("CREATE")

    assert result.failed
    assert recorder.requests == []


@pytest.mark.asyncio
async def test_audit_payload_redacts_credentials():
    class Actor:
        id = "admin-1"
        email = "admin@example.com"
        fullname = "Admin"

    recorder = Recorder()
    client = AuditClient("http://audit.test", 1.0, transport=httpx.MockTransport(recorder), service_name="users")
    await client.log_update(
        "User",
        {"id": "u1", "password": "old-hash"},
        {"id": "u1", "password": "new-hash", "verificationCode": "123456"},
        Actor(),
        "Password updated",
    )

    payload = json.loads(recorder.requests[0].content)
    assert recorder.requests[0].url.path == "/api/v1/audit/logs"
    assert payload["action"] == "UPDATE"
    assert payload["userId"] == "admin-1"
    assert payload["resourceId"] == "u1"
    assert payload["service"] == "users"
    assert payload["metadata"]["oldValues"]["password"] == "[REDACTED]"
    assert payload["metadata"]["newValues"]["verificationCode"] == "[REDACTED]"


def test_sanitize_leaves_input_untouched():
    values = {"email": "a@example.com", "password": "x"}
    cleaned = sanitize(values)
    assert cleaned["password"] == "[REDACTED]"
    assert values["password"] == "x"
    assert sanitize(None) is None
