"""Custom exceptions for the Splunk exporter."""
from typing import Optional

class SplunkExportException(Exception):
    """Base exception for the Splunk exporter."""
    pass

class AuthenticationError(SplunkExportException):
    """Authentication failed."""
    pass

class AuthorizationError(SplunkExportException):
    """Authorization failed."""
    pass

class NotFoundError(SplunkExportException):
    """Requested job or endpoint does not exist."""
    pass

class ProtocolError(SplunkExportException):
    """Splunk rejected the request or returned an unexpected response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class SplunkConnectionError(SplunkExportException):
    """Splunk could not be reached."""
    pass

class JobFailedError(SplunkExportException):
    """Search job finished in the FAILED state."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Unknown error"
        super().__init__(f"Search job failed: {self.reason}")

class CancellationError(SplunkExportException):
    """Export was cancelled before it finished."""
    pass

class ConfigurationError(SplunkExportException):
    """Export options are missing or invalid."""
    pass
