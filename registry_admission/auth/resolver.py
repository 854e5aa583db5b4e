"""Namespace to auth-method resolution and bearer token extraction."""

from .models import AuthMethod

BEARER_PREFIX = "Bearer "

# Reserved namespace prefixes and the method that proves ownership of them.
# Checked in order; names matching none of them need no authentication.
NAMESPACE_AUTH_METHODS: tuple[tuple[str, AuthMethod], ...] = (
    ("io.github.", AuthMethod.GITHUB),
)


def resolve_auth_method(name: str) -> AuthMethod:
    """Return the auth method required to write a server with this name.

    Pure and total: every name maps to a method.
    """
    for prefix, method in NAMESPACE_AUTH_METHODS:
        if name.startswith(prefix):
            return method
    return AuthMethod.NONE


def extract_token(raw: str | None) -> str:
    """Extract the token from an Authorization header value.

    The "Bearer " scheme is matched case-insensitively and is optional;
    a value without it is taken as the token verbatim.
    """
    if not raw:
        return ""
    if raw[: len(BEARER_PREFIX)].lower() == BEARER_PREFIX.lower():
        return raw[len(BEARER_PREFIX) :]
    return raw
