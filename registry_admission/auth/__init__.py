from .models import (
    AuthMethod,
    Credential,
    DeviceAuthorizationSession,
    GitHubIdentity,
    SessionState,
)
from .resolver import extract_token, resolve_auth_method

__all__ = [
    "AuthMethod",
    "Credential",
    "DeviceAuthorizationSession",
    "GitHubIdentity",
    "SessionState",
    "extract_token",
    "resolve_auth_method",
]
