"""Filesystem-backed queue of pending derivatives.

A deferred request writes ``<dest>.queue`` (JSON) and returns immediately.
The first request that misses on ``<dest>`` generates the file from that
descriptor and removes it.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from loguru import logger
from pydantic import ValidationError

from .errors import DerivativeError
from .schemas import MissResult, MissStatus, QueueDescriptor, RequestDescriptor
from .storage import DerivativeStorage

if TYPE_CHECKING:
    from ..transform.engine import TransformEngine


class DeferredQueue:
    def __init__(self, storage: DerivativeStorage, engine: TransformEngine):
        self._storage: DerivativeStorage = storage
        self._engine: TransformEngine = engine
        # destination -> (lock, number of callers holding or waiting on it)
        self._locks: dict[Path, tuple[threading.Lock, int]] = {}
        self._locks_guard: threading.Lock = threading.Lock()

    def enqueue(self, source_path: Path, descriptor: RequestDescriptor, destination: Path) -> Path:
        """Persist ``descriptor`` as ``<destination>.queue``; returns the descriptor path.

        The write is complete before this returns, so a concurrent miss never
        sees a partial descriptor.
        """
        record = QueueDescriptor(
            source=self._storage.relative(source_path),
            width=descriptor.width,
            height=descriptor.height,
            options=descriptor.options.to_record(),
        )
        queue_path = self._storage.queue_path(destination)
        DerivativeStorage.write_atomic(queue_path, record.model_dump_json().encode("utf-8"))
        logger.info(f"Queued {destination.name} ({descriptor.width}x{descriptor.height})")
        return queue_path

    def is_pending(self, destination: Path) -> bool:
        return self._storage.queue_path(destination).is_file()

    @property
    def in_flight(self) -> int:
        """Number of destinations currently being fulfilled or waited on."""
        with self._locks_guard:
            return len(self._locks)

    @contextmanager
    def _single_flight(self, destination: Path) -> Iterator[None]:
        with self._locks_guard:
            lock, users = self._locks.get(destination, (threading.Lock(), 0))
            self._locks[destination] = (lock, users + 1)
        try:
            with lock:
                yield
        finally:
            with self._locks_guard:
                lock, users = self._locks[destination]
                if users <= 1:
                    del self._locks[destination]
                else:
                    self._locks[destination] = (lock, users - 1)

    def fulfill_on_miss(self, destination: Path) -> MissResult:
        """Generate ``destination`` from its pending descriptor, if there is one.

        Returns:
            MissResult with status
            - ``not_pending``: no (readable) descriptor, fall through to not-found
            - ``stale``: the source is gone, descriptor removed
            - ``fulfilled``: file published, descriptor removed, bytes attached
            - ``failed``: generation raised, error logged, descriptor kept
        """
        destination = destination.resolve()
        with self._single_flight(destination):
            return self._fulfill(destination)

    def _fulfill(self, destination: Path) -> MissResult:
        queue_path = self._storage.queue_path(destination)
        if not queue_path.is_file():
            # Also the case for waiters whose descriptor was consumed by the lock holder
            return MissResult(status=MissStatus.not_pending)

        try:
            record = QueueDescriptor.model_validate_json(queue_path.read_bytes())
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable descriptor {queue_path}: {e}")
            return MissResult(status=MissStatus.not_pending)

        source_path = self._storage.absolute(record.source)
        if not source_path.is_file():
            queue_path.unlink(missing_ok=True)
            logger.warning(f"Removed stale descriptor {queue_path.name}: {record.source} is gone")
            return MissResult(status=MissStatus.stale)

        try:
            encoded = self._engine.generate(
                source_path,
                record.width,
                record.height,
                record.options,
                destination=destination,
            )
        except (DerivativeError, OSError, ValidationError) as e:
            logger.error(
                f"Failed to generate {destination} from {source_path} "
                + f"({record.width}x{record.height}, options={record.options}): {e}"
            )
            return MissResult(status=MissStatus.failed)

        queue_path.unlink(missing_ok=True)
        logger.info(f"Fulfilled queued {destination.name}")
        return MissResult(
            status=MissStatus.fulfilled,
            content=encoded.data,
            media_type=encoded.mime_type,
            content_length=encoded.length,
        )

