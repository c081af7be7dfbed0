"""Gateway error taxonomy.

Everything raised before the first byte reaches the caller is a
``GatewayError`` and is rendered as a plain JSON HTTP error. Failures after
streaming has begun never leave the provider adapter as exceptions; they
become an in-band ``Error`` event instead.
"""

from typing import Optional


class GatewayError(Exception):
    status_code: int = 500

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        return {"error": self.message}


class InvalidRequest(GatewayError):
    status_code = 400


class ModelNotFound(GatewayError):
    status_code = 400

    def __init__(self, model_id: str) -> None:
        super().__init__("Model not found")
        self.model_id = model_id


class CredentialMissing(GatewayError):
    status_code = 500

    def __init__(self, provider_name: str) -> None:
        super().__init__(f"{provider_name} API key not configured")
        self.provider_name = provider_name


class UpstreamRejected(GatewayError):
    """Non-success upstream status before any body was streamed."""

    def __init__(self, provider_name: str, status: int, body: str) -> None:
        # 401/403 describe our credential, not the caller's request
        forwarded = 502 if status in (401, 403) or status < 400 else status
        super().__init__(f"{provider_name} API error: {status}", status_code=forwarded)
        self.provider_name = provider_name
        self.status = status
        self.body = body

    def to_body(self) -> dict:
        return {"error": self.message, "details": self.body}


class UpstreamStreamFailure(Exception):
    """Read or decode failure after streaming started. Reported in-band only."""

    def __init__(self, message: str, details: str = "") -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class MalformedFrame(ValueError):
    """A single undecodable frame. Always skipped by the decode loop."""
