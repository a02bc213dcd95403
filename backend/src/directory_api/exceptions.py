"""Domain-specific exceptions for the directory API.

These exceptions keep service-layer failures independent of HTTP responses.
Directory provider errors are fatal for a tenant's sync run; remote user
errors are recorded against the run and skipped.
"""

from typing import Any
from uuid import UUID


class DirectoryAPIError(Exception):
    """Base exception for all directory API errors."""

    def __init__(self, message: str = "An error occurred", details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(DirectoryAPIError):
    """Base class for resource not found errors."""

    pass


class TenantNotFoundError(NotFoundError):
    """Raised when a tenant cannot be found."""

    def __init__(self, tenant_id: UUID | str | None = None) -> None:
        details = {"tenant_id": str(tenant_id)} if tenant_id else {}
        super().__init__("Tenant not found", details)


class SyncRunNotFoundError(NotFoundError):
    """Raised when a sync run cannot be found."""

    def __init__(self, run_id: UUID | str | None = None) -> None:
        details = {"run_id": str(run_id)} if run_id else {}
        super().__init__("Sync run not found", details)


# =============================================================================
# Conflict Errors (409)
# =============================================================================


class ConflictError(DirectoryAPIError):
    """Base class for resource conflict errors."""

    pass


class SyncAlreadyRunningError(ConflictError):
    """Raised when a tenant already has a sync run in flight."""

    def __init__(self, tenant_id: UUID | str, run_id: UUID | str | None = None) -> None:
        details: dict[str, Any] = {"tenant_id": str(tenant_id)}
        if run_id:
            details["run_id"] = str(run_id)
        super().__init__("A sync is already in progress", details)


class SyncRunAlreadyFinalizedError(ConflictError):
    """Raised when finalizing a run that already reached a terminal status."""

    def __init__(self, run_id: UUID | str, status: str) -> None:
        super().__init__(
            "Sync run already finalized",
            {"run_id": str(run_id), "status": status},
        )


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(DirectoryAPIError):
    """Base class for validation errors."""

    pass


class InvalidRemoteUserError(ValidationError):
    """Raised when a directory user payload cannot be reconciled."""

    def __init__(self, reason: str, remote_id: str | None = None) -> None:
        details = {"remote_id": remote_id} if remote_id else {}
        super().__init__(f"Invalid directory user: {reason}", details)


# =============================================================================
# Directory Provider Errors (fatal for a sync run)
# =============================================================================


class DirectoryProviderError(DirectoryAPIError):
    """Base class for errors talking to the remote directory."""

    error_type = "PROVIDER_ERROR"


class AuthenticationError(DirectoryProviderError):
    """Raised when directory credentials are missing, invalid or revoked."""

    error_type = "AUTHENTICATION_ERROR"


class RateLimitedError(DirectoryProviderError):
    """Raised when the directory keeps rejecting requests with HTTP 429."""

    error_type = "RATE_LIMITED"

    def __init__(self, message: str = "Directory API rate limit exceeded", retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        details = {"retry_after": retry_after} if retry_after is not None else {}
        super().__init__(message, details)


class TransportError(DirectoryProviderError):
    """Raised on network failures or unusable directory responses."""

    error_type = "TRANSPORT_ERROR"


class FetchTimeoutError(DirectoryProviderError):
    """Raised when fetching the directory exceeds the configured timeout."""

    error_type = "FETCH_TIMEOUT"

    def __init__(self, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Directory fetch exceeded {timeout_seconds:g}s",
            {"timeout_seconds": timeout_seconds},
        )


# =============================================================================
# Reconciliation Policy Errors (fatal for a sync run)
# =============================================================================


class MassRemovalGuardError(DirectoryAPIError):
    """Raised when a fetch would deactivate too much of a tenant's population."""

    error_type = "MASS_REMOVAL_GUARD"

    def __init__(self, missing: int, population: int, max_ratio: float) -> None:
        self.missing = missing
        self.population = population
        self.max_ratio = max_ratio
        super().__init__(
            f"Refusing to deactivate {missing} of {population} synced employees "
            f"(limit {max_ratio:.0%}); remote directory view looks incomplete",
            {"missing": missing, "population": population, "max_ratio": max_ratio},
        )
