"""npm-style semantic version comparison and range satisfaction."""

import re
from enum import Enum
from typing import Optional

from semantic_version import NpmSpec, Version

from .errors import RangeParseError


VERSION_PATTERN = re.compile(r'(\d+\.\d+\.\d+)')

# Operator followed by whitespace, e.g. ">= 1.2.3"
_SPACED_OPERATOR = re.compile(r'(<=|>=|<|>|=|\^|~)\s+')


class RangeCheck(Enum):
    """Outcome of checking a version against a range expression."""

    SATISFIED = "satisfied"
    NOT_SATISFIED = "not_satisfied"
    PARSE_FAILURE = "parse_failure"


def parse_version(text: Optional[str]) -> Version:
    """Parse a concrete semantic version.

    Args:
        text: Version string such as "4.17.21" or "v1.0.0"

    Returns:
        Parsed version

    Raises:
        RangeParseError: If the string is not a valid semantic version
    """
    if not isinstance(text, str):
        raise RangeParseError(f"Invalid version: {text!r}")

    cleaned = text.strip()
    if cleaned.startswith("="):
        cleaned = cleaned[1:].lstrip()
    if cleaned[:1] in ("v", "V"):
        cleaned = cleaned[1:]

    try:
        return Version(cleaned)
    except ValueError as e:
        raise RangeParseError(f"Invalid version: {text!r}") from e


def _normalize_range(range_expr: str) -> str:
    """Rewrite a range expression into the grammar NpmSpec accepts.

    Commas are treated as AND (same as whitespace) and whitespace between an
    operator and its version is removed.
    """
    groups = []
    for group in range_expr.split("||"):
        group = group.replace(",", " ")
        group = _SPACED_OPERATOR.sub(r'\1', group)
        # Keep hyphen ranges intact while collapsing other whitespace
        parts = [" ".join(part.split()) for part in group.split(" - ")]
        groups.append(" - ".join(parts).strip())
    return "||".join(groups)


def parse_range(range_expr: Optional[str]) -> NpmSpec:
    """Parse an npm range expression.

    Args:
        range_expr: Range such as "<4.17.21", "^1.2.0 || >=2.1.0" or
            ">= 1.0.0, < 1.4.2"

    Returns:
        Parsed range

    Raises:
        RangeParseError: If the range cannot be parsed
    """
    if not isinstance(range_expr, str):
        raise RangeParseError(f"Invalid range: {range_expr!r}")

    normalized = _normalize_range(range_expr)
    # NpmSpec reads an empty range or group as "*"
    if not all(normalized.split("||")):
        raise RangeParseError(f"Empty range: {range_expr!r}")

    try:
        return NpmSpec(normalized)
    except ValueError as e:
        raise RangeParseError(f"Invalid range: {range_expr!r}") from e


def evaluate(version: Optional[str], range_expr: Optional[str]) -> RangeCheck:
    """Check a version against a range without raising.

    Callers decide whether a PARSE_FAILURE deserves a warning.

    Args:
        version: Concrete version string
        range_expr: npm range expression

    Returns:
        SATISFIED, NOT_SATISFIED or PARSE_FAILURE
    """
    try:
        parsed_version = parse_version(version)
        spec = parse_range(range_expr)
    except RangeParseError:
        return RangeCheck.PARSE_FAILURE

    if spec.match(parsed_version):
        return RangeCheck.SATISFIED
    return RangeCheck.NOT_SATISFIED


def satisfies(version: Optional[str], range_expr: Optional[str]) -> bool:
    """Return True if version is inside range_expr; malformed input is False."""
    return evaluate(version, range_expr) is RangeCheck.SATISFIED


def compare(a: str, b: str) -> int:
    """Compare two versions by semantic version precedence.

    Build metadata is ignored.

    Args:
        a: First version
        b: Second version

    Returns:
        -1 if a < b, 0 if equal, 1 if a > b

    Raises:
        RangeParseError: If either version is invalid
    """
    left = parse_version(a)
    right = parse_version(b)

    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def greater_than(a: str, b: str) -> bool:
    return compare(a, b) > 0


def major_of(version: str) -> int:
    return parse_version(version).major


def extract_version(clause: str) -> Optional[str]:
    """Return the first bare X.Y.Z found in a clause.

    This is a loose extraction: operators and prerelease suffixes are
    ignored, so ">=1.2.3-beta" yields "1.2.3".

    Args:
        clause: A single clause such as ">=4.17.21"

    Returns:
        Extracted version or None
    """
    match = VERSION_PATTERN.search(clause)
    if match:
        return match.group(1)
    return None
