"""Semantic version parsing and range matching.

Chart dependency ranges follow the npm-like constraint grammar (``^1.2``,
``~1.2.3``, ``1.2.x``, ``1.0.0 - 2.0.0``, ``>=1.0 <2.0``, ``||``) with the
comma-as-AND spelling also accepted (``>=1.0.0, <2.0.0``).
"""

import re
from functools import lru_cache
from typing import Iterable, List, Optional, Union

import semantic_version

from .models import VersionSpec
from .parser import parse_range

SpecLike = Union[semantic_version.NpmSpec, semantic_version.SimpleSpec]

_OP_SPACE_RE = re.compile(r'(>=|<=|!=|>|<|=|\^|~)\s+')


class InvalidRangeError(ValueError):
    """Raised when a range expression cannot be parsed."""


def parse_version(raw: str) -> Optional[semantic_version.Version]:
    """Parse a version string, tolerating a ``v`` prefix and partial versions.

    Returns None for strings that are not versions at all.
    """
    text = (raw or "").strip()
    if text[:1] in ("v", "V"):
        text = text[1:]
    try:
        return semantic_version.Version(text)
    except ValueError:
        pass
    try:
        return semantic_version.Version.coerce(text)
    except ValueError:
        return None


def _normalize_npm(spec_str: str) -> str:
    """Collapse comma-AND and operator spacing into NpmSpec grammar."""
    s = spec_str.strip().replace(",", " ")
    s = _OP_SPACE_RE.sub(r"\1", s)
    return " ".join(s.split())


def _normalize_simple(spec_str: str) -> str:
    """Normalize hyphen and x-ranges into SimpleSpec-compatible form."""
    s = spec_str.strip()

    # Hyphen ranges: "1.2.3 - 1.4.5" => ">=1.2.3,<=1.4.5"
    m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
    if m:
        return f">={m.group(1)},<={m.group(2)}"

    # x-ranges: 1.2.x or 1.x or 1.* -> comparator pairs
    s2 = s.replace('*', 'x').lower()
    m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
    if m:
        major, minor = int(m.group(1)), int(m.group(2))
        return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

    m = re.match(r'^\s*(\d+)\.x\s*$', s2)
    if m:
        major = int(m.group(1))
        return f">={major}.0.0,<{major + 1}.0.0"

    return ",".join(part.strip() for part in _OP_SPACE_RE.sub(r"\1", s).replace(" ", ",").split(",") if part.strip())


@lru_cache(maxsize=1024)
def compile_range(spec_str: str) -> SpecLike:
    """Compile a range expression, preferring NpmSpec over SimpleSpec."""
    try:
        return semantic_version.NpmSpec(_normalize_npm(spec_str) or "*")
    except ValueError:
        pass
    try:
        return semantic_version.SimpleSpec(_normalize_simple(spec_str))
    except ValueError as e:
        raise InvalidRangeError(f"Invalid semver range '{spec_str}': {e}") from e


def matches(version: Union[str, semantic_version.Version], spec: Union[str, VersionSpec]) -> bool:
    """Return True when ``version`` satisfies ``spec``.

    Pre-release versions only match ranges that name a pre-release.
    """
    vspec = spec if isinstance(spec, VersionSpec) else parse_range(spec)
    ver = version if isinstance(version, semantic_version.Version) else parse_version(version)
    if ver is None:
        return False
    if ver.prerelease and not vspec.include_prerelease:
        return False
    return compile_range(vspec.raw).match(ver)


def satisfying(candidates: Iterable[str], spec: Union[str, VersionSpec]) -> List[str]:
    """Filter candidate version strings down to those matching ``spec``, ascending."""
    vspec = spec if isinstance(spec, VersionSpec) else parse_range(spec)
    compile_range(vspec.raw)  # surface InvalidRangeError even with no candidates
    return sort_versions(v for v in candidates if matches(v, vspec))


def sort_versions(candidates: Iterable[str]) -> List[str]:
    """Sort version strings ascending; unparsable strings sort first, by text."""
    def _key(v: str):
        parsed = parse_version(v)
        if parsed is None:
            return (0, semantic_version.Version("0.0.0"), v)
        return (1, parsed, v)
    return sorted(candidates, key=_key)
