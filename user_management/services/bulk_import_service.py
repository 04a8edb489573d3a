"""
Bulk user import.

A run goes through the uploaded file once:

1. parse the CSV into candidate rows (malformed rows and in-file duplicate
   emails are set aside),
2. drop candidates whose email is already stored,
3. for each remaining row, in order: create the user, attach the role
   profile (patient record, or department/specialty link for clinical
   staff) and mirror the link to the organization service,
4. send verification emails for pending accounts, record one audit entry and
   return the outcome.

Rows are independent. Each row's writes are committed as they happen and a
failing row is only reported, never rolled back across the batch. The
organization service may end up missing an affiliation that exists locally;
those rows are reported in ``errors`` while staying in ``inserted``.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional
from sqlalchemy.exc import SQLAlchemyError
from user_management.config import Settings
from user_management.roles import CLINICAL_ROLES, UserRole, UserStatus
from user_management.schemas.bulk_import import BulkImportResponse, ImportIssue, InsertedUser
from user_management.schemas.integration import CallResult
from user_management.services.audit_service import AuditClient
from user_management.services.credentials import build_verification, calculate_age, hash_password
from user_management.services.csv_import import ImportRow, parse_import_file
from user_management.services.notification_service import AuthNotificationClient
from user_management.services.organization_service import OrganizationClient
from user_management.services.user_repository import UserRepository

logger = logging.getLogger(__name__)

DUPLICATE_IN_STORE = "Email already exists in the database"
INSERT_FAILED = "Error inserting user"
LINK_FAILED = "Error linking department"
AFFILIATION_FAILED = "Error creating affiliation in organization service"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class PendingVerification:
    email: str
    fullname: str
    code: str


@dataclass
class ImportOutcome:
    received: int = 0
    inserted: list = field(default_factory=list)
    duplicates_csv: list = field(default_factory=list)
    duplicates_db: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    pending: list = field(default_factory=list)
    notifications_sent: int = 0
    notifications_failed: int = 0

    @property
    def message(self) -> str:
        return (
            f"Import completed. Total rows: {self.received}, Inserted: {len(self.inserted)}, "
            f"Errors: {len(self.errors)}, CSV duplicates: {len(self.duplicates_csv)}, "
            f"DB duplicates: {len(self.duplicates_db)}"
        )

    def totals(self) -> dict:
        return {
            "received": self.received,
            "inserted": len(self.inserted),
            "duplicatesCSV": len(self.duplicates_csv),
            "duplicatesDB": len(self.duplicates_db),
            "errors": len(self.errors),
        }

    def to_response(self) -> BulkImportResponse:
        return BulkImportResponse(
            message=self.message,
            inserted=self.inserted,
            duplicates_csv=self.duplicates_csv,
            duplicates_db=self.duplicates_db,
            errors=self.errors,
        )


class BulkImportService:
    def __init__(
        self,
        repository: UserRepository,
        organization: OrganizationClient,
        notifier: AuthNotificationClient,
        audit: AuditClient,
        settings: Settings,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.repository = repository
        self.organization = organization
        self.notifier = notifier
        self.audit = audit
        self.settings = settings
        self.clock = clock

    async def run(
        self,
        content: bytes,
        actor=None,
        authorization: str = "",
        filename: str = "",
    ) -> ImportOutcome:
        logger.info("[IMPORT] File received: %s (%d bytes)", filename or "<unnamed>", len(content or b""))
        parsed = parse_import_file(content)

        outcome = ImportOutcome(
            received=parsed.received,
            duplicates_csv=list(parsed.duplicates),
            errors=list(parsed.malformed),
        )
        logger.info(
            "[VALIDATION] To insert: %d, errors: %d, dupCSV: %d",
            len(parsed.rows), len(outcome.errors), len(outcome.duplicates_csv),
        )

        batch = await self._filter_existing(parsed.rows, outcome)
        for row in batch:
            outcome = await self._process_row(row, outcome, authorization)
        logger.info("[INSERT] Inserted OK: %d", len(outcome.inserted))

        await self._report(outcome, actor, filename)
        return outcome

    async def _filter_existing(self, rows: list, outcome: ImportOutcome) -> list:
        existing = await self.repository.existing_emails(row.email for row in rows)
        batch = []
        for row in rows:
            if row.email in existing:
                outcome.duplicates_db.append(ImportIssue(email=row.email, line=row.line, error=DUPLICATE_IN_STORE))
            else:
                batch.append(row)
        logger.info("[DUPLICATES] dupDB: %d, finalBatch: %d", len(outcome.duplicates_db), len(batch))
        return batch

    async def _process_row(self, row: ImportRow, outcome: ImportOutcome, authorization: str) -> ImportOutcome:
        try:
            user, code = await self._create_user(row)
        except (SQLAlchemyError, ValueError) as e:
            await self.repository.rollback()
            logger.error("[INSERT] Error inserting row %d (%s): %s", row.line, row.email, e)
            outcome.errors.append(ImportIssue(email=row.email, line=row.line, error=INSERT_FAILED, detail=str(e)))
            return outcome

        outcome.inserted.append(user)
        await self._link_profile(row, user, outcome, authorization)
        if code:
            outcome.pending.append(PendingVerification(user.email, user.fullname, code))
        return outcome

    async def _create_user(self, row: ImportRow) -> tuple:
        now = self.clock()
        password = row.password or self.settings.default_import_password
        code, expires = build_verification(row.status, now, self.settings.verification_code_ttl_hours)
        fields = {
            "email": row.email,
            "fullname": row.fullname,
            "password": hash_password(password, self.settings.bcrypt_rounds),
            "role": row.role.value,
            "status": row.status.value,
            "verification_code": code,
            "verification_code_expires": expires,
            "phone": row.phone,
            "date_of_birth": row.date_of_birth,
            "age": calculate_age(row.date_of_birth, now.date()) if row.date_of_birth else None,
            "id_type": row.id_type,
            "id_number": row.id_number,
        }
        user = await self.repository.create_user(**fields)
        return InsertedUser.model_validate(user), code

    async def _link_profile(self, row: ImportRow, user: InsertedUser, outcome: ImportOutcome, authorization: str) -> None:
        if row.role == UserRole.PATIENT:
            try:
                await self.repository.create_patient_profile(
                    user_id=user.id,
                    fullname=user.fullname,
                    birth_date=row.date_of_birth,
                    age=calculate_age(row.date_of_birth, self.clock().date()) if row.date_of_birth else None,
                    phone=row.phone,
                    document_number=row.id_number,
                    document_type=row.id_type,
                    status=UserStatus.ACTIVE.value,
                )
            except SQLAlchemyError as e:
                await self.repository.rollback()
                logger.error("[INSERT] Patient profile for %s not created: %s", user.email, e)
            return

        if row.role not in CLINICAL_ROLES:
            return

        try:
            department = await self.repository.get_or_create_department(row.department)
            specialty = await self.repository.get_or_create_specialty(
                row.specialty, department.id if department else None
            )
            if department is None:
                logger.info("[INSERT] %s %s has no department; no affiliation created", row.role.value, user.email)
                return
            await self.repository.create_dept_role(
                user_id=user.id,
                department_id=department.id,
                role=row.role.value,
                specialty_id=specialty.id if specialty else None,
            )
            department_id = department.id
            specialty_id = specialty.id if specialty else None
        except SQLAlchemyError as e:
            await self.repository.rollback()
            logger.error("[INSERT] Department link for %s failed: %s", user.email, e)
            outcome.errors.append(ImportIssue(email=user.email, line=row.line, error=LINK_FAILED, detail=str(e)))
            return

        result = await self.organization.create_affiliation(
            user_id=user.id,
            role=row.role.value,
            department_id=department_id,
            specialty_id=specialty_id,
            authorization=authorization,
        )
        if result.failed:
            logger.error("[ORG] Affiliation for imported user %s failed: %s", user.email, result.detail)
            outcome.errors.append(
                ImportIssue(email=user.email, line=row.line, error=AFFILIATION_FAILED, detail=result.detail)
            )

    async def _report(self, outcome: ImportOutcome, actor, filename: str) -> None:
        if outcome.pending:
            results = await asyncio.gather(
                *(
                    self.notifier.send_verification(
                        p.email, p.fullname, p.code, self.settings.verification_code_ttl_hours
                    )
                    for p in outcome.pending
                ),
                return_exceptions=True,
            )
            for result in results:
                if isinstance(result, CallResult) and result.success:
                    outcome.notifications_sent += 1
                else:
                    outcome.notifications_failed += 1
            logger.info(
                "[EMAILS] Sent OK: %d, Failed: %d", outcome.notifications_sent, outcome.notifications_failed
            )

        totals = outcome.totals()
        await self.audit.log_activity(
            "USERS_IMPORTED",
            actor,
            resource_type="User",
            description=(
                "Bulk import: received={received}, inserted={inserted}, errors={errors}, "
                "dupCSV={duplicatesCSV}, dupDB={duplicatesDB}".format(**totals)
            ),
            metadata={"filename": filename, **totals},
        )
