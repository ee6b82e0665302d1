"""Degrade-to-default helpers for calls into unreliable collaborators."""

import logging
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Callable, Optional, TypeVar

from ..enums.failure_kind import FailureKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


def degrade(
    label: str,
    func: Callable[..., T],
    *args: Any,
    default: T,
    kind: FailureKind = FailureKind.UNAVAILABLE,
    **kwargs: Any,
) -> T:
    """
    Call ``func`` and return its result, or ``default`` if it raises.

    The failure is logged under ``label`` with its ``kind`` and never
    propagated to the caller.

    Parameters:
    -----------
    label : str
        Short identifier of the call site used in log messages
    func : Callable
        The callable to invoke
    default : T
        Value returned when ``func`` raises
    kind : FailureKind
        Category recorded in the log message when ``func`` raises
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        logger.warning(f"{label} failed ({kind.value}): {e}")
        return default


def future_result_or_default(
    label: str,
    future: "Future[T]",
    default: T,
    timeout: Optional[float] = None,
) -> T:
    """Wait for ``future`` and degrade to ``default`` on error or timeout."""
    try:
        return future.result(timeout=timeout)
    except FutureTimeoutError:
        future.cancel()
        logger.warning(f"{label} failed ({FailureKind.TIMEOUT.value}) after {timeout}s")
        return default
    except Exception as e:
        logger.warning(f"{label} failed ({FailureKind.UNAVAILABLE.value}): {e}")
        return default
