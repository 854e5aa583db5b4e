"""GitHub OAuth device-authorization flow and repository access checks.

Implements the device grant (RFC 8628) against GitHub: a client starts a
flow, shows the user code and verification URI, and then polls
``check_status`` at the provider-supplied interval until the session
reaches a terminal state. The poll cadence belongs to the caller; nothing
here sleeps or loops.

Tokens obtained this way (or any other GitHub token) are checked by
``validate_token`` against the repository named by a server's
``io.github.<owner>/<repo>`` name.
"""

import hashlib
import re
import secrets
import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog
from asyncache import cached  # type: ignore[import-untyped]
from cachetools import TTLCache

from ..config import GitHubOAuthConfig, get_auth_cache_ttl_seconds
from ..errors import InvalidInput, ProviderUnavailable
from .models import DeviceAuthorizationSession, GitHubIdentity, SessionState
from .sessions import DeviceSessionStore

logger = structlog.get_logger()

DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

# RFC 8628 section 3.5: slow_down adds 5 seconds to the polling interval
SLOW_DOWN_INCREMENT_SECONDS = 5

GITHUB_NAMESPACE_PREFIX = "io.github."

_OWNER_RE = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9-]{0,38})$")
_REPO_RE = re.compile(r"^[A-Za-z0-9._-]{1,100}$")

# Identity lookups: configurable TTL, max 1000 entries
_identity_cache: TTLCache[tuple[str, str], "GitHubIdentity | None"] = TTLCache(
    maxsize=1000, ttl=get_auth_cache_ttl_seconds()
)


def _token_hash(token: str) -> str:
    """Short token digest, safe for cache keys and logs."""
    return hashlib.sha256(token.encode()).hexdigest()[:16]


def _identity_key(auth: "GitHubDeviceAuth", token: str) -> tuple[str, str]:
    """Identity cache key, scoped to the API host the token belongs to."""
    return auth.config.api_url, _token_hash(token)


def clear_identity_cache() -> None:
    """Clear the identity cache. Useful for testing."""
    _identity_cache.clear()


def parse_repo_ref(repo_ref: str) -> tuple[str, str]:
    """Split a server name into a GitHub (owner, repository) pair.

    Accepts ``io.github.<owner>/<repo>`` as well as a bare ``<owner>/<repo>``.

    Raises:
        InvalidInput: If the reference cannot be parsed into a valid pair
    """
    ref = repo_ref.strip()
    if ref.startswith(GITHUB_NAMESPACE_PREFIX):
        ref = ref[len(GITHUB_NAMESPACE_PREFIX) :]

    parts = ref.split("/")
    if len(parts) != 2:
        raise InvalidInput(
            f"Repository reference '{repo_ref}' must have the form owner/repository"
        )

    owner, repo = parts
    if not _OWNER_RE.match(owner) or owner.endswith("-") or "--" in owner:
        raise InvalidInput(
            f"Repository reference '{repo_ref}' has an invalid owner '{owner}'"
        )
    if not _REPO_RE.match(repo) or repo in (".", ".."):
        raise InvalidInput(
            f"Repository reference '{repo_ref}' has an invalid repository name '{repo}'"
        )
    return owner, repo


class GitHubDeviceAuth:
    """GitHub device-authorization flow and token validation."""

    def __init__(
        self,
        config: GitHubOAuthConfig,
        sessions: DeviceSessionStore | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the GitHub device flow.

        Args:
            config: OAuth application settings
            sessions: Session table; a private one is created if omitted
            clock: Time source for session expiry and poll pacing
        """
        self.config = config
        self.clock = clock
        self.sessions = sessions or DeviceSessionStore(clock=clock)

    def _headers(self, token: str | None = None) -> dict[str, str]:
        headers = {
            "Accept": "application/json",
            "User-Agent": "registry-admission/1.0.0",
        }
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def _post_form(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """POST a form to the provider and return the decoded JSON body.

        Raises:
            ProviderUnavailable: On network failure, timeout, non-2xx
                status or a body that is not a JSON object
        """
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            try:
                response = await client.post(url, data=data, headers=self._headers())
            except (httpx.TimeoutException, httpx.RequestError) as e:
                logger.error(
                    "GitHub request failed",
                    url=url,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise ProviderUnavailable(f"GitHub request to {url} failed") from e

        if response.status_code not in (200, 201):
            logger.error(
                "GitHub request returned unexpected status",
                url=url,
                status=response.status_code,
                response=response.text[:200],
            )
            raise ProviderUnavailable(
                f"GitHub request to {url} returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailable(f"GitHub returned invalid JSON from {url}") from e
        if not isinstance(body, dict):
            raise ProviderUnavailable(f"GitHub returned an unexpected body from {url}")
        return body

    async def start_flow(self, scope: str | None = None) -> tuple[dict[str, str], str]:
        """Request a device code and open a pending session.

        Args:
            scope: OAuth scope to request; defaults to the configured scope

        Returns:
            User-facing instructions and the opaque session handle
        """
        body = await self._post_form(
            f"{self.config.base_url}/login/device/code",
            {"client_id": self.config.client_id, "scope": scope or self.config.scope},
        )

        try:
            device_code = str(body["device_code"])
            user_code = str(body["user_code"])
            verification_uri = str(body["verification_uri"])
            expires_in = int(body["expires_in"])
            interval = int(body.get("interval", 5))
        except (KeyError, TypeError, ValueError) as e:
            logger.error("Malformed device code response", keys=sorted(body.keys()))
            raise ProviderUnavailable("GitHub returned a malformed device code") from e

        now = self.clock()
        session = DeviceAuthorizationSession(
            handle=secrets.token_urlsafe(32),
            device_code=device_code,
            user_code=user_code,
            verification_uri=verification_uri,
            expires_at=now + expires_in,
            poll_interval_seconds=interval,
            next_poll_at=now + interval,
        )
        self.sessions.add(session)

        logger.info(
            "Device authorization started",
            user_code=user_code,
            expires_in=expires_in,
            interval=interval,
        )

        instructions = {
            "verification_uri": verification_uri,
            "user_code": user_code,
            "expires_in": str(expires_in),
            "interval": str(interval),
        }
        return instructions, session.handle

    async def check_status(self, handle: str) -> str:
        """Poll the provider once for the state of a session.

        Returns:
            One of "pending", "authorized", "denied" or "expired"
        """
        session = self.sessions.get(handle)
        if session is None:
            return SessionState.EXPIRED.value

        if session.state.is_terminal:
            return session.state.value

        now = self.clock()
        if session.is_expired(now):
            session.state = SessionState.EXPIRED
            self.sessions.discard(handle)
            return session.state.value

        if now < session.next_poll_at:
            return SessionState.PENDING.value

        session.next_poll_at = now + session.poll_interval_seconds
        body = await self._post_form(
            f"{self.config.base_url}/login/oauth/access_token",
            {
                "client_id": self.config.client_id,
                "device_code": session.device_code,
                "grant_type": DEVICE_GRANT_TYPE,
            },
        )

        access_token = body.get("access_token")
        if access_token:
            session.state = SessionState.AUTHORIZED
            session.access_token = str(access_token)
            logger.info("Device authorization granted", user_code=session.user_code)
            return session.state.value

        error = body.get("error")
        if error == "authorization_pending":
            pass
        elif error == "slow_down":
            session.poll_interval_seconds += SLOW_DOWN_INCREMENT_SECONDS
            session.next_poll_at = now + session.poll_interval_seconds
            logger.info(
                "Provider asked to slow down polling",
                interval=session.poll_interval_seconds,
            )
        elif error == "access_denied":
            session.state = SessionState.DENIED
            logger.info("Device authorization denied", user_code=session.user_code)
        elif error == "expired_token":
            session.state = SessionState.EXPIRED
            self.sessions.discard(handle)
        else:
            logger.error(
                "Unexpected device token response",
                error=error,
                description=body.get("error_description"),
            )
            raise ProviderUnavailable(f"GitHub device token poll failed: {error}")

        return session.state.value

    def access_token(self, handle: str) -> str | None:
        """Return the access token of an authorized session, if any."""
        session = self.sessions.get(handle)
        if session is None or session.state is not SessionState.AUTHORIZED:
            return None
        return session.access_token

    async def _get(
        self, client: httpx.AsyncClient, url: str, token: str
    ) -> httpx.Response:
        try:
            return await client.get(url, headers=self._headers(token))
        except (httpx.TimeoutException, httpx.RequestError) as e:
            logger.error(
                "GitHub API unreachable",
                url=url,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise ProviderUnavailable(f"GitHub API request to {url} failed") from e

    @cached(_identity_cache, key=_identity_key)  # type: ignore[misc]
    async def fetch_identity(self, token: str) -> GitHubIdentity | None:
        """Resolve the user behind a token, or None if GitHub rejects it."""
        url = f"{self.config.api_url}/user"
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            response = await self._get(client, url, token)

        if response.status_code in (401, 403):
            return None
        if response.status_code != 200:
            logger.error(
                "GitHub user lookup returned unexpected status",
                status=response.status_code,
                response=response.text[:200],
            )
            raise ProviderUnavailable(
                f"GitHub user lookup returned HTTP {response.status_code}"
            )

        try:
            result = response.json()
        except ValueError as e:
            raise ProviderUnavailable("GitHub user lookup returned invalid JSON") from e
        if not isinstance(result, dict):
            raise ProviderUnavailable("GitHub user lookup returned an unexpected body")
        return GitHubIdentity(login=result.get("login", ""), id=result.get("id", 0))

    async def validate_token(self, token: str, repo_ref: str) -> bool:
        """Check that a token is live and can read the referenced repository.

        Returns:
            True when GitHub accepts the token and grants at least read
            access to the repository, False otherwise

        Raises:
            InvalidInput: If repo_ref is not an owner/repository reference
            ProviderUnavailable: If GitHub cannot be reached
        """
        if not token:
            return False

        owner, repo = parse_repo_ref(repo_ref)

        identity = await self.fetch_identity(token)
        if identity is None:
            logger.warning("GitHub rejected token", token_hash=_token_hash(token))
            return False

        url = f"{self.config.api_url}/repos/{owner}/{repo}"
        async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
            response = await self._get(client, url, token)

        if response.status_code == 200:
            logger.info(
                "Repository access confirmed",
                login=identity.login,
                repository=f"{owner}/{repo}",
            )
            return True
        if response.status_code in (401, 403, 404):
            logger.warning(
                "Token has no access to repository",
                login=identity.login,
                repository=f"{owner}/{repo}",
                status=response.status_code,
            )
            return False

        logger.error(
            "GitHub repository lookup returned unexpected status",
            repository=f"{owner}/{repo}",
            status=response.status_code,
        )
        raise ProviderUnavailable(
            f"GitHub repository lookup returned HTTP {response.status_code}"
        )
