"""
Request-level error taxonomy.

Each error carries the HTTP status the gateway answers with. Provider
failures live in deepsite.providers.base; they never reach the client
individually, only as AllProvidersFailedError once every candidate is spent.
"""

from __future__ import annotations


class DeepSiteError(Exception):
    """Base for errors that are reported to the caller."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"ok": False, "message": self.message}


class ValidationError(DeepSiteError):
    status_code = 400


class NoProviderConfiguredError(DeepSiteError):
    status_code = 500

    def __init__(self, message: str = "No AI providers configured with API keys"):
        super().__init__(message)


class AllProvidersFailedError(DeepSiteError):
    status_code = 500

    def __init__(self, providers_attempted: list[str], last_error: str | None):
        super().__init__(f"All AI providers failed. Last error: {last_error}")
        self.providers_attempted = providers_attempted
        self.last_error = last_error

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["providersAttempted"] = self.providers_attempted
        return data


class ConnectionTestFailed(DeepSiteError):
    """A provider connectivity test reached the provider but failed."""

    def __init__(self, message: str, provider: str, status_code: int = 500):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["provider"] = self.provider
        return data


class RequestCancelled(DeepSiteError):
    """The caller abandoned the request while a generation was in flight."""

    # nginx's "client closed request"
    status_code = 499

    def __init__(self, message: str = "Request cancelled"):
        super().__init__(message)


class StorageUnavailable(Exception):
    """Chat history backend failed. Logged, never surfaced to the caller."""
