"""Per-patient mutual exclusion for ledger mutations.

Two payments recorded at the same time for one patient must not both pass
the outstanding-balance check against the same stale balance. Mutations take
the patient's lock first; different patients never share a lock.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Optional

from src.services.config import get_settings
from src.services.errors import ConcurrentModificationError

logger = logging.getLogger(__name__)


class PatientLockRegistry:
    """Lazily created lock per (tenant_id, patient_id) key.

    Entries are reference-counted and dropped once no caller holds or waits
    for them, so the registry does not grow with the number of patients.
    """

    def __init__(self, timeout_seconds: float = 5.0):
        """Initialize registry.

        Args:
            timeout_seconds: Default wait before giving up on a busy patient
        """
        self.timeout_seconds = timeout_seconds
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, List] = {}  # key -> [lock, users]

    def _checkout(self, key: Hashable) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, tenant_id: int, patient_id: int, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the patient's lock for the duration of the block.

        Raises:
            ConcurrentModificationError: If the lock is not acquired in time
        """
        key = (tenant_id, patient_id)
        wait = self.timeout_seconds if timeout is None else timeout
        lock = self._checkout(key)
        try:
            if not lock.acquire(timeout=wait):
                logger.warning(f"Timed out after {wait}s waiting for ledger lock of patient {patient_id}")
                raise ConcurrentModificationError()
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(key)

    def active_keys(self) -> List[Hashable]:
        """Keys currently held or waited on."""
        with self._guard:
            return list(self._locks)


_default_registry: Optional[PatientLockRegistry] = None
_default_registry_guard = threading.Lock()


def get_patient_locks() -> PatientLockRegistry:
    """Return the process-wide registry shared by all services."""
    global _default_registry
    with _default_registry_guard:
        if _default_registry is None:
            _default_registry = PatientLockRegistry(get_settings().patient_lock_timeout_seconds)
        return _default_registry


__all__ = ["PatientLockRegistry", "get_patient_locks"]
