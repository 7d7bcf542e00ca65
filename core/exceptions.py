"""
Error types raised by the contract auditor.

Every error carries a generic ``public_message`` that is safe to show to
callers and an optional ``detail`` with the raw cause, which is only
logged or echoed back in debug mode.
"""

from typing import Optional


class AuditorError(Exception):
    """Base class for all auditor errors."""

    public_message = "Failed to analyze contract"
    status_code = 500

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.public_message = message or self.public_message
        self.detail = detail
        super().__init__(self.public_message)

    def to_dict(self, include_detail: bool = False) -> dict:
        body = {'success': False, 'error': self.public_message}
        if include_detail and self.detail:
            body['details'] = self.detail
        return body


class ValidationError(AuditorError):
    """Missing or malformed input, raised before any network call."""

    public_message = "Invalid request"
    status_code = 400


class ConfigError(AuditorError):
    """Required configuration (e.g. the explorer API key) is missing."""

    public_message = "Server configuration error"


class PatternLibraryError(ConfigError):
    """A pattern rule could not be loaded. Fatal at startup."""

    public_message = "Invalid pattern rule configuration"


class UpstreamError(AuditorError):
    """The block explorer was unreachable or returned an unusable response."""

    public_message = "Error fetching contract data"


class NotFoundError(AuditorError):
    """The explorer has no verified source for the address."""

    public_message = "Contract source code is not verified"
    status_code = 404
