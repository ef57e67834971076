"""Service error taxonomy.

Every error raised out of the lifecycle service is a :class:`ServiceError`.
The public ``reason`` is stable and safe to return to API callers; the
underlying ``cause`` is retained only for internal logging and is never part
of ``str(err)`` or :meth:`ServiceError.as_dict`.
"""

from __future__ import annotations

from typing import Any

ERROR_CODE_PREFIX = "KAFKAS-MGMT"


class ServiceError(Exception):
    """Base class for lifecycle service failures."""

    code: int = 9
    http_status: int = 500
    default_reason: str = "Unspecified error"

    def __init__(
        self, reason: str | None = None, *, cause: BaseException | None = None
    ) -> None:
        self.reason = reason or self.default_reason
        self.cause = cause
        super().__init__(self.reason)

    @property
    def error_code(self) -> str:
        return f"{ERROR_CODE_PREFIX}-{self.code}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "kind": "Error",
            "id": str(self.code),
            "code": self.error_code,
            "reason": self.reason,
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code}, reason={self.reason!r})"


class ValidationError(ServiceError):
    code = 8
    http_status = 400
    default_reason = "General validation failure"


class UnauthenticatedError(ServiceError):
    code = 15
    http_status = 401
    default_reason = "Account authentication could not be verified"


class NotFoundError(ServiceError):
    code = 7
    http_status = 404
    default_reason = "Resource not found"


class GeneralError(ServiceError):
    code = 9
    http_status = 500
    default_reason = "Unspecified error"


class TooManyInstancesError(ServiceError):
    code = 24
    http_status = 403
    default_reason = "The maximum number of allowed kafka instances has been reached"


class InsufficientQuotaError(ServiceError):
    code = 120
    http_status = 403
    default_reason = "Insufficient quota"


class FailedToCheckQuotaError(ServiceError):
    code = 121
    http_status = 500
    default_reason = "Failed to check quota"


class FailedToParseSearchError(ServiceError):
    code = 23
    http_status = 400
    default_reason = "Failed to parse search query"


class ExternalProvisioningError(ServiceError):
    """An identity-client or DNS-record operation failed."""

    code = 9
    http_status = 500
    default_reason = "Failed to provision external resources"


class FailedToCreateSSOClientError(ExternalProvisioningError):
    code = 106
    default_reason = "Failed to create kafka client in the mas sso"


class FailedToDeleteSSOClientError(ExternalProvisioningError):
    code = 107
    default_reason = "Failed to delete kafka client in the mas sso"


class FailedToChangeDNSRecordsError(ExternalProvisioningError):
    default_reason = "Unable to change domain record sets"
