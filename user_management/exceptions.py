class UserManagementError(Exception):
    """Base for errors the API reports to the caller; ``status_code`` picks the HTTP status."""
    status_code = 400

    def __init__(self, reason: str, details: dict = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


class ImportFileError(UserManagementError):
    """The uploaded import file is empty or has no usable rows."""


class UserValidationError(UserManagementError):
    pass


class UserNotFoundError(UserManagementError):
    status_code = 404


class WrongRoleError(UserManagementError):
    status_code = 404


class PermissionDeniedError(UserManagementError):
    status_code = 403


class InvalidTransitionError(UserManagementError):
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Cannot change status from {current} to {target}",
            {"current": current, "target": target},
        )


class AffiliationError(UserManagementError):
    """The user was stored locally but the organization service rejected the affiliation."""
    status_code = 502
