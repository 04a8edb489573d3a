"""FastAPI providers for the collaborators of the user services.

Tests swap any of these through ``app.dependency_overrides``.
"""
from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from user_management.config import Settings, get_settings
from user_management.database import get_db
from user_management.services.audit_service import AuditClient
from user_management.services.bulk_import_service import BulkImportService
from user_management.services.notification_service import AuthNotificationClient
from user_management.services.organization_service import OrganizationClient
from user_management.services.user_repository import UserRepository
from user_management.services.user_service import UserService


def get_repository(db: AsyncSession = Depends(get_db)) -> UserRepository:
    return UserRepository(db)


def get_organization_client() -> OrganizationClient:
    return OrganizationClient.from_settings()


def get_notification_client() -> AuthNotificationClient:
    return AuthNotificationClient.from_settings()


def get_audit_client() -> AuditClient:
    return AuditClient.from_settings()


def get_user_service(
    repository: UserRepository = Depends(get_repository),
    organization: OrganizationClient = Depends(get_organization_client),
    audit: AuditClient = Depends(get_audit_client),
    settings: Settings = Depends(get_settings),
) -> UserService:
    return UserService(repository, organization, audit, settings)


def get_bulk_import_service(
    repository: UserRepository = Depends(get_repository),
    organization: OrganizationClient = Depends(get_organization_client),
    notifier: AuthNotificationClient = Depends(get_notification_client),
    audit: AuditClient = Depends(get_audit_client),
    settings: Settings = Depends(get_settings),
) -> BulkImportService:
    return BulkImportService(repository, organization, notifier, audit, settings)
