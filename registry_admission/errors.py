"""Typed error kinds raised by the admission path."""

from enum import Enum


class ErrorKind(Enum):
    """Error taxonomy shared by the auth service and the publish controller."""

    INVALID_INPUT = "invalid_input"
    INVALID_CREDENTIAL_USE = "invalid_credential_use"
    AUTHENTICATION_REQUIRED = "authentication_required"
    INVALID_CREDENTIALS = "invalid_credentials"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    DUPLICATE_VERSION = "duplicate_version"
    VERSION_REGRESSION = "version_regression"
    NOT_FOUND = "not_found"
    UNSUPPORTED_METHOD = "unsupported_method"


class AdmissionError(Exception):
    """Base exception for all admission errors."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT
    status_code: int = 400
    retryable: bool = False

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")


class InvalidInput(AdmissionError):
    """Raised when a request is missing required fields or is malformed."""

    kind = ErrorKind.INVALID_INPUT
    status_code = 400


class InvalidCredentialUse(AdmissionError):
    """Raised when a token is supplied for a namespace that takes none."""

    kind = ErrorKind.INVALID_CREDENTIAL_USE
    status_code = 400


class AuthenticationRequired(AdmissionError):
    """Raised when the namespace requires a token and none was given."""

    kind = ErrorKind.AUTHENTICATION_REQUIRED
    status_code = 401


class InvalidCredentials(AdmissionError):
    """Raised when a presented token does not grant access."""

    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401


class ProviderUnavailable(AdmissionError):
    """Raised when the OAuth provider cannot be reached or misbehaves.

    The only kind a caller may retry, with backoff.
    """

    kind = ErrorKind.PROVIDER_UNAVAILABLE
    status_code = 502
    retryable = True


class DuplicateVersion(AdmissionError):
    """Raised when a version is already published under the same name."""

    kind = ErrorKind.DUPLICATE_VERSION
    status_code = 409


class VersionRegression(AdmissionError):
    """Raised when a write targets a version older than the stored latest."""

    kind = ErrorKind.VERSION_REGRESSION
    status_code = 400


class NotFound(AdmissionError):
    """Raised when a record does not exist."""

    kind = ErrorKind.NOT_FOUND
    status_code = 404


class UnsupportedMethod(AdmissionError):
    """Raised when an auth flow is requested for a method that has none."""

    kind = ErrorKind.UNSUPPORTED_METHOD
    status_code = 400


__all__ = [
    "AdmissionError",
    "AuthenticationRequired",
    "DuplicateVersion",
    "ErrorKind",
    "InvalidCredentialUse",
    "InvalidCredentials",
    "InvalidInput",
    "NotFound",
    "ProviderUnavailable",
    "UnsupportedMethod",
    "VersionRegression",
]
