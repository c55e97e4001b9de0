"""
Best-effort call wrapper for side-channel collaborators
(calendar sync, admin chat alerts, confirmation emails).

A best-effort call never raises: the outcome is captured, logged,
and handed back to the caller, who must not fold it into its own success.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class BestEffortResult:
    label: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


def run_best_effort(label: str, func: Callable[..., Any], *args, **kwargs) -> BestEffortResult:
    """
    Call ``func`` and capture any exception.

    A return value that is a dict or object with ``success=False`` counts as a
    failure too, so "soft" failures from notification helpers are logged
    the same way as raised ones.
    """
    try:
        value = func(*args, **kwargs)
    except Exception as e:
        logger.error(f"❌ {label} failed (non-blocking): {e}")
        return BestEffortResult(label=label, ok=False, error=str(e))

    soft_failure = _soft_failure(value)
    if soft_failure is not None:
        logger.warning(f"⚠️ {label} reported failure (non-blocking): {soft_failure}")
        return BestEffortResult(label=label, ok=False, value=value, error=soft_failure)

    logger.info(f"✅ {label} done")
    return BestEffortResult(label=label, ok=True, value=value)


def _soft_failure(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        if value.get("success") is False:
            return value.get("error") or "unknown error"
        return None
    if getattr(value, "success", None) is False:
        return getattr(value, "error", None) or "unknown error"
    return None
