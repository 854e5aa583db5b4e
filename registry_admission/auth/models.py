"""Authentication models and types."""

from dataclasses import dataclass
from enum import Enum


class AuthMethod(Enum):
    """Authentication method a resource namespace requires."""

    NONE = "none"
    GITHUB = "github"


class SessionState(Enum):
    """Lifecycle of a device-authorization session."""

    PENDING = "pending"
    AUTHORIZED = "authorized"
    DENIED = "denied"
    EXPIRED = "expired"

    @property
    def is_terminal(self) -> bool:
        return self is not SessionState.PENDING


@dataclass(frozen=True)
class Credential:
    """Credentials presented for a single write request."""

    method: AuthMethod
    token: str
    repo_ref: str


@dataclass
class GitHubIdentity:
    """Identity behind a GitHub access token."""

    login: str
    id: int


@dataclass
class DeviceAuthorizationSession:
    """One in-flight device-authorization grant.

    Timestamps are epoch seconds from the flow's clock.
    """

    handle: str
    device_code: str
    user_code: str
    verification_uri: str
    expires_at: float
    poll_interval_seconds: int
    next_poll_at: float = 0.0
    state: SessionState = SessionState.PENDING
    access_token: str | None = None

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at
