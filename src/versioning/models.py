"""Data models for version ranges and version picking."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class ResolutionMode(Enum):
    """Resolution strategy derived from the range expression."""
    EXACT = "exact"
    RANGE = "range"
    LATEST = "latest"


@dataclass(frozen=True)
class VersionSpec:
    """Normalized representation of a range expression and derived behavior flags."""
    raw: str
    mode: ResolutionMode
    include_prerelease: bool


@dataclass(frozen=True)
class PickResult:
    """Outcome of applying a version policy to a set of candidates."""
    version: Optional[str]
    candidate_count: int
    error: Optional[str] = None
