"""Gateway error types.

Every rejection carries a stable machine-readable ``code`` plus a human
``message``. ``to_dict`` renders the flat JSON body returned to clients.
"""

from __future__ import annotations

from typing import Any


class GatewayError(Exception):
    """Base error for all gateway failures."""

    code: str = "internal_error"
    message: str = "An internal error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.details = details or {}
        super().__init__(self.message)

    @property
    def headers(self) -> dict[str, str]:
        return {}

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        if request_id:
            body["request_id"] = request_id
        return body


class ValidationError(GatewayError):
    """Request validation error (400)."""

    code = "validation_error"
    message = "Validation error"
    status_code = 400


class AuthenticationError(GatewayError):
    """Base for credential failures (401)."""

    code = "authentication_required"
    message = "API key must be provided in Authorization header"
    status_code = 401


class MissingCredentialError(AuthenticationError):
    """No credential was presented."""


class MalformedCredentialError(AuthenticationError):
    """Presented credential does not match the required format."""

    code = "malformed_credential"
    message = "API key format is invalid"


class InvalidCredentialError(AuthenticationError):
    """Credential is unknown or has been deactivated."""

    code = "invalid_credential"
    message = "API key is invalid or inactive"


class ForbiddenError(GatewayError):
    """Operator permission denied (403)."""

    code = "forbidden"
    message = "Permission denied"
    status_code = 403


class DeniedError(GatewayError):
    """Target is on a deny list (403)."""

    code = "Blacklisted"
    message = "Target is blocked"
    status_code = 403

    _MESSAGES = {
        "global": (
            "It looks like the device IMEI you provided is on the global "
            "'naughty list'. Please contact support."
        ),
        "local": "It looks like the device IMEI you provided is on your local 'naughty list'.",
    }

    def __init__(self, scope: str, reason: str, target: str | None = None) -> None:
        self.scope = scope
        self.reason = reason
        self.target = target
        super().__init__(self._MESSAGES.get(scope, self.__class__.message))

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {
            "error": self.code,
            "message": self.message,
            "scope": self.scope,
            "reason": self.reason,
        }
        if request_id:
            body["request_id"] = request_id
        return body


class RateLimitExceededError(GatewayError):
    """Allowance for the current window is used up (429)."""

    code = "rate_limit_exceeded"
    message = "Rate limit exceeded"
    status_code = 429

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        usage: int,
        reset_time: str,
        retry_after: int,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self.usage = usage
        self.reset_time = reset_time
        self.retry_after = retry_after
        minutes = window_seconds // 60
        super().__init__(
            f"You have exceeded the rate limit of {limit} requests per {minutes} minutes.",
            details={
                "limit": limit,
                "windowMs": window_seconds * 1000,
                "usage": usage,
                "resetTime": reset_time,
            },
        )

    @property
    def headers(self) -> dict[str, str]:
        return {"Retry-After": str(self.retry_after)}

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body = super().to_dict(request_id)
        body["retryAfter"] = self.retry_after
        return body


class UpstreamError(GatewayError):
    """External collaborator failed (502)."""

    code = "upstream_failure"
    message = "Upstream provider failed"
    status_code = 502


class UpstreamTimeoutError(UpstreamError):
    """External collaborator did not answer in time (502)."""

    code = "upstream_timeout"
    message = "Upstream provider timed out"


class UpstreamFailureError(UpstreamError):
    """External collaborator returned an error (502)."""


class PersistenceWriteError(GatewayError):
    """A store write failed (500).

    Swallowed for telemetry writes; surfaced for everything else.
    """

    code = "persistence_write_failed"
    message = "Failed to persist data"
    status_code = 500


class NotFoundError(GatewayError):
    """Resource not found (404)."""

    code = "not_found"
    message = "Resource not found"
    status_code = 404


class ConflictError(GatewayError):
    """Resource already exists (409)."""

    code = "conflict"
    message = "Conflict"
    status_code = 409
