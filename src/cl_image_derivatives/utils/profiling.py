"""Timing helpers for the transform pipeline."""

import inspect
import time
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from functools import wraps
from typing import ParamSpec, TypeVar, cast

from loguru import logger

P = ParamSpec("P")
R = TypeVar("R")


def _log_elapsed(label: str, start_time: float) -> None:
    elapsed_time = time.perf_counter() - start_time
    logger.info(f"[PROFILE] {label} took {elapsed_time:.3f}s")


def timed(func: Callable[P, R]) -> Callable[P, R]:
    """Decorator that logs how long each call of ``func`` took.

    Works for plain functions and coroutines.

    Usage:
        @timed
        def generate(self, source, width, height, options):
            ...
    """

    if inspect.iscoroutinefunction(func):

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            start_time = time.perf_counter()
            try:
                return await cast(Callable[P, Awaitable[R]], func)(*args, **kwargs)
            finally:
                _log_elapsed(func.__qualname__, start_time)

        return cast(Callable[P, R], async_wrapper)

    @wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        start_time = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            _log_elapsed(func.__qualname__, start_time)

    return wrapper


@contextmanager
def timed_block(label: str) -> Iterator[None]:
    """Log the wall-clock time spent inside a ``with`` block."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        _log_elapsed(label, start_time)
