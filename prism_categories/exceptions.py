from typing import Any, Optional


class ConfigError(RuntimeError):
    """Missing or malformed configuration; raised before any network call."""


class PrismError(RuntimeError):
    """Base class for failures talking to the Prism Central API.

    ``payload`` holds the request body that was being sent when the failure
    happened so it can be echoed in diagnostics.
    """

    def __init__(self, message: str, *, payload: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload


class TransportError(PrismError):
    """Network / protocol level failure (no structured API error body)."""


class ApiError(PrismError):
    """Error reported by the API through ``code`` + ``message_list``."""

    def __init__(self, code: Any, message: str, *, payload: Optional[Any] = None):
        super().__init__(f"API error {code}: {message}", payload=payload)
        self.code = code
        self.message = message
