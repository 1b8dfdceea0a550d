"""CLI configuration overrides for runtime tunables.

Applied after the YAML config so CLI flags take the highest precedence.
"""

from __future__ import annotations

import logging

from constants import Constants

logger = logging.getLogger(__name__)


def apply_cli_overrides(args) -> None:
    """Apply CLI overrides for resolver and planner tunables."""
    if getattr(args, "MAX_WORKERS", None) is not None:
        Constants.MAX_WORKERS = max(1, int(args.MAX_WORKERS))
    if getattr(args, "TIMEOUT", None) is not None:
        Constants.RESOLUTION_TIMEOUT_SEC = float(args.TIMEOUT)
    if getattr(args, "RANGE_POLICY", None):
        Constants.RANGE_POLICY = args.RANGE_POLICY
    if getattr(args, "STRICT_CYCLES", False):
        Constants.PLAN_BREAK_CYCLES = False
    if getattr(args, "NAMESPACE", None):
        Constants.DEFAULT_NAMESPACE = args.NAMESPACE
    logger.debug(
        "Effective settings: workers=%s timeout=%s policy=%s break_cycles=%s namespace=%s",
        Constants.MAX_WORKERS,
        Constants.RESOLUTION_TIMEOUT_SEC,
        Constants.RANGE_POLICY,
        Constants.PLAN_BREAK_CYCLES,
        Constants.DEFAULT_NAMESPACE,
    )
