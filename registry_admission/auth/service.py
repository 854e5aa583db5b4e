"""Authentication service: credential validation and device-flow entry points."""

import structlog

from ..config import GitHubOAuthConfig
from ..errors import (
    AuthenticationRequired,
    InvalidCredentialUse,
    InvalidCredentials,
    UnsupportedMethod,
)
from .github import GitHubDeviceAuth
from .models import AuthMethod, Credential
from .resolver import extract_token, resolve_auth_method

logger = structlog.get_logger()


class AuthService:
    """Validates credentials against the method a namespace requires.

    Decision table for ``validate_auth``; any new method must define both
    rows explicitly:

    ====== ============ =========================================
    method token        result
    ====== ============ =========================================
    NONE   empty        valid
    NONE   present      InvalidCredentialUse
    GITHUB empty        AuthenticationRequired
    GITHUB present      GitHubDeviceAuth.validate_token verbatim
    ====== ============ =========================================
    """

    def __init__(
        self,
        github_config: GitHubOAuthConfig,
        github_auth: GitHubDeviceAuth | None = None,
    ):
        self.github_config = github_config
        self.github_auth = github_auth or GitHubDeviceAuth(github_config)

    async def start_auth_flow(
        self, method: AuthMethod, scope: str | None = None
    ) -> tuple[dict[str, str], str]:
        """Start an interactive login for the given method.

        Returns:
            User-facing instructions and an opaque session handle
        """
        if method is AuthMethod.GITHUB:
            return await self.github_auth.start_flow(scope)
        raise UnsupportedMethod(
            f"Auth method '{method.value}' has no interactive login flow"
        )

    async def check_auth_status(self, handle: str) -> str:
        """Poll a device-authorization session once."""
        return await self.github_auth.check_status(handle)

    def access_token(self, handle: str) -> str | None:
        """Return the token granted to an authorized session."""
        return self.github_auth.access_token(handle)

    async def validate_auth(self, credential: Credential) -> bool:
        """Validate credentials for the method they were resolved against."""
        method = credential.method
        has_token = bool(credential.token)

        if method is AuthMethod.NONE:
            if has_token:
                raise InvalidCredentialUse(
                    "Token provided but authentication method is 'none'"
                )
            return True

        if method is AuthMethod.GITHUB:
            if not has_token:
                raise AuthenticationRequired(
                    "Authentication is required for this server namespace"
                )
            return await self.github_auth.validate_token(
                credential.token, credential.repo_ref
            )

        raise UnsupportedMethod(f"Unsupported auth method: {method}")

    async def authorize(self, authorization: str | None, name: str) -> Credential:
        """Run the full admission gate for a write to ``name``.

        Raises:
            InvalidCredentials: If the credentials do not grant access
        """
        credential = Credential(
            method=resolve_auth_method(name),
            token=extract_token(authorization),
            repo_ref=name,
        )

        if not await self.validate_auth(credential):
            logger.warning(
                "Authentication failed",
                name=name,
                method=credential.method.value,
            )
            raise InvalidCredentials("Invalid authentication credentials")

        logger.info(
            "Authentication successful", name=name, method=credential.method.value
        )
        return credential
