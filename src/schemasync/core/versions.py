"""Version token parsing and ordering.

Schema directories are named after their version (``v1``, ``v1.2.0``,
``20240103120000``, ``2.0.0-rc.1``). This module provides:
- parse_version: Parse a token into a comparable Version
- compare_versions: Three-way comparison with string fallback
- find_max_version: Pick the highest parseable token from a list

Ordering rules:
- Numeric segments compare numerically; missing segments count as zero
  (``v1 == 1.0.0``)
- A release sorts above its own pre-releases (``1.0.0-rc.1 < 1.0.0``)
- Pre-release parts compare numerically when both are numeric, otherwise
  as strings; numeric parts sort below alphanumeric ones
- Build metadata (``+build.5``) is ignored
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import total_ordering

logger = logging.getLogger(__name__)

_PART = r"[0-9A-Za-z\-~]"

VERSION_PATTERN = re.compile(
    r"^v?(?P<segments>[0-9]+(?:\.[0-9]+)*?)"
    rf"(?:-(?P<pre_numeric>[0-9]+{_PART}*(?:\.{_PART}+)*)"
    rf"|-?(?P<pre_alpha>[A-Za-z\-~]+{_PART}*(?:\.{_PART}+)*))?"
    rf"(?:\+(?P<metadata>{_PART}+(?:\.{_PART}+)*))?$"
)


class InvalidVersionError(ValueError):
    """Raised when a token cannot be parsed as a version."""


def _compare_prerelease(left: str, right: str) -> int:
    """Compare two non-empty pre-release strings."""
    left_parts = left.split(".")
    right_parts = right.split(".")
    for lhs, rhs in zip(left_parts, right_parts):
        if lhs == rhs:
            continue
        lhs_numeric = lhs.isdigit()
        rhs_numeric = rhs.isdigit()
        if lhs_numeric and rhs_numeric:
            return -1 if int(lhs) < int(rhs) else 1
        if lhs_numeric:
            return -1
        if rhs_numeric:
            return 1
        return -1 if lhs < rhs else 1
    if len(left_parts) == len(right_parts):
        return 0
    return -1 if len(left_parts) < len(right_parts) else 1


@total_ordering
@dataclass(frozen=True, eq=False)
class Version:
    """A parsed version token.

    Attributes:
        original: The token exactly as it appeared in the object key.
        segments: Numeric release segments with trailing zeros removed.
        prerelease: Pre-release label ("" for a release).
        metadata: Build metadata, kept for display only.
    """

    original: str
    segments: tuple[int, ...]
    prerelease: str = ""
    metadata: str = ""

    def compare(self, other: Version) -> int:
        """Return -1, 0 or 1 as this version is lower, equal or higher."""
        if self.segments != other.segments:
            width = max(len(self.segments), len(other.segments))
            lhs = self.segments + (0,) * (width - len(self.segments))
            rhs = other.segments + (0,) * (width - len(other.segments))
            return -1 if lhs < rhs else 1
        if self.prerelease == other.prerelease:
            return 0
        if not self.prerelease:
            return 1
        if not other.prerelease:
            return -1
        return _compare_prerelease(self.prerelease, other.prerelease)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        return self.compare(other) == 0

    def __lt__(self, other: Version) -> bool:
        return self.compare(other) < 0

    def __hash__(self) -> int:
        return hash((self.segments, self.prerelease))

    def __str__(self) -> str:
        return self.original


def parse_version(token: str) -> Version:
    """Parse a version token.

    Args:
        token: Directory name such as ``v10`` or ``1.2.0-rc.1``.

    Returns:
        Parsed Version.

    Raises:
        InvalidVersionError: If the token is not a version.
    """
    match = VERSION_PATTERN.match(token)
    if match is None:
        raise InvalidVersionError(f"Malformed version: {token}")

    segments = [int(s) for s in match.group("segments").split(".")]
    while len(segments) > 1 and segments[-1] == 0:
        segments.pop()

    prerelease = match.group("pre_numeric") or match.group("pre_alpha") or ""
    return Version(
        original=token,
        segments=tuple(segments),
        prerelease=prerelease,
        metadata=match.group("metadata") or "",
    )


def compare_versions(left: str, right: str) -> int:
    """Compare two version strings.

    Falls back to plain string comparison when either side does not parse,
    so the result is always defined.

    Returns:
        -1 if left < right, 0 if equal, 1 if left > right.
    """
    try:
        return parse_version(left).compare(parse_version(right))
    except InvalidVersionError:
        if left < right:
            return -1
        if left > right:
            return 1
        return 0


def find_max_version(tokens: list[str]) -> str:
    """Return the highest version among tokens.

    Tokens that do not parse are skipped with a warning. On ties the token
    seen first wins.

    Raises:
        InvalidVersionError: If no tokens were given or none of them parse.
    """
    if not tokens:
        raise InvalidVersionError("No versions provided")

    best: Version | None = None
    for token in tokens:
        try:
            candidate = parse_version(token)
        except InvalidVersionError as e:
            logger.warning("Failed to parse version %r, skipping: %s", token, e)
            continue
        if best is None or candidate > best:
            best = candidate

    if best is None:
        raise InvalidVersionError("No valid versions found")
    return best.original
