"""Semantic-version parsing and ordering for published records."""

import semver

from ..errors import InvalidInput


def parse_version(version: str) -> semver.Version:
    """Parse a version string into a comparable semantic version.

    A leading "v" is tolerated and missing minor/patch components are
    filled with zero, so "v1.0" and "1.0.0" parse to the same value.

    Raises:
        InvalidInput: If the string is not a semantic version
    """
    candidate = version.strip()
    if candidate[:1] in ("v", "V"):
        candidate = candidate[1:]
    try:
        return semver.Version.parse(candidate, optional_minor_and_patch=True)
    except (ValueError, TypeError) as e:
        raise InvalidInput(f"Version '{version}' is not a valid semantic version") from e


def normalize_version(version: str) -> str:
    """Return the canonical major.minor.patch[-pre][+build] form."""
    return str(parse_version(version))


def compare_versions(a: str, b: str) -> int:
    """Compare two version strings by semver precedence.

    Build metadata does not take part in ordering.

    Returns:
        Negative if a < b, zero if equal, positive if a > b
    """
    return parse_version(a).compare(parse_version(b))
