from typing import Dict, Optional


class HLVSException(Exception):
    """Base exception for the HLVS framework."""

    def __init__(self, message: str, error_code: str = None, details: Dict = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ProviderException(HLVSException):
    """Raised when an external inference provider fails."""
    pass


class RemoteCallError(ProviderException):
    """Raised when a remote call could not be completed, retries included."""
    pass


class RemoteTransportError(RemoteCallError):
    """Raised for a transport fault or a non-success status from the endpoint."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_code: str = "REMOTE_TRANSPORT_ERROR",
        details: Dict = None,
    ):
        super().__init__(message, error_code=error_code, details=details)
        self.status = status


class SamplingError(HLVSException):
    """Raised when frames cannot be sampled from a video source."""
    pass


class ConfigurationException(HLVSException):
    """Raised when configuration is invalid."""
    pass


class ValidationException(HLVSException):
    """Raised when input validation fails."""
    pass
