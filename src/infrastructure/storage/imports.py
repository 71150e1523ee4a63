"""
Pending import batches.

A batch lives here between parsing and commit while the coach fixes rows in
the preview. Batches are never persisted: a restart simply discards
unfinished imports.
"""

import logging
import threading
from uuid import UUID

from src.core.roster import ImportBatch


logger = logging.getLogger(__name__)


class ImportBatchNotFoundError(Exception):
    """Raised when a batch id is unknown or was already committed."""
    pass


class ImportBatchRegistry:
    def __init__(self, max_batches: int = 50) -> None:
        self._batches: dict[UUID, ImportBatch] = {}
        self._max_batches = max_batches
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._batches)

    def add(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            # Oldest pending batch goes first (dicts keep insertion order)
            while len(self._batches) >= self._max_batches:
                oldest = next(iter(self._batches))
                del self._batches[oldest]
                logger.info("Evicted stale import batch", extra={"batch_id": str(oldest)})
            self._batches[batch.id] = batch
        return batch

    def get(self, batch_id: UUID) -> ImportBatch:
        try:
            return self._batches[batch_id]
        except KeyError:
            raise ImportBatchNotFoundError(f"Import batch {batch_id} not found")

    def replace(self, batch: ImportBatch) -> ImportBatch:
        with self._lock:
            if batch.id not in self._batches:
                raise ImportBatchNotFoundError(f"Import batch {batch.id} not found")
            self._batches[batch.id] = batch
        return batch

    def pop(self, batch_id: UUID) -> ImportBatch:
        with self._lock:
            try:
                return self._batches.pop(batch_id)
            except KeyError:
                raise ImportBatchNotFoundError(f"Import batch {batch_id} not found")
