"""Token and range parsing utilities."""

import re
from typing import Optional, Tuple

from .models import ResolutionMode, VersionSpec

_PRERELEASE_RE = re.compile(r"\d+\.\d+\.\d+-[0-9A-Za-z]")
_LATEST_TOKENS = {"", "*", "x", "latest"}


def tokenize_rightmost_colon(s: str) -> Tuple[str, Optional[str]]:
    """Return (identifier, spec or None) using the rightmost-colon rule."""
    s = s.strip()
    if ':' not in s:
        return s, None
    parts = s.rsplit(':', 1)
    identifier = parts[0].strip()
    spec_part = parts[1].strip() if len(parts) > 1 else ''
    spec = spec_part if spec_part else None
    return identifier, spec


def _determine_resolution_mode(spec: str) -> ResolutionMode:
    """Determine resolution mode from spec string."""
    if spec.strip().lower() in _LATEST_TOKENS:
        return ResolutionMode.LATEST
    range_ops = ['^', '~', '*', 'x', 'X', ' - ', '<', '>', '=', '!', '|', ',', ' ']
    if any(op in spec.strip() for op in range_ops):
        return ResolutionMode.RANGE
    return ResolutionMode.EXACT


def _determine_include_prerelease(spec: str) -> bool:
    """Pre-releases only match when the range itself names one."""
    return bool(_PRERELEASE_RE.search(spec))


def parse_range(raw_spec: Optional[str]) -> VersionSpec:
    """Normalize a raw range expression into a VersionSpec.

    ``None``, empty, ``*`` and ``latest`` all mean "any released version".
    """
    spec = (raw_spec or "").strip()
    mode = _determine_resolution_mode(spec)
    if mode == ResolutionMode.LATEST:
        return VersionSpec(raw="*", mode=mode, include_prerelease=False)
    return VersionSpec(raw=spec, mode=mode, include_prerelease=_determine_include_prerelease(spec))
