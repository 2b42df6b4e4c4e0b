# nullifier_registry.py
"""
Spent-nullifier set and proof-of-innocence records.

The registry is the only thing standing between a valid withdraw proof and a
double spend: the proof says "I own some commitment in the tree", the
registry says "and nobody has withdrawn it yet". Check and insert therefore
happen under one lock, so of N concurrent registrations of the same hash
exactly one returns a record and the other N-1 raise NullifierAlreadySpent.

Entries are never removed.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from errors import InnocenceAlreadyRecorded, NullifierAlreadySpent
from field_codec import short_hex, to_field

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class NullifierRecord:
    nullifier_hash: int
    used_at: int


@dataclass(frozen=True)
class InnocenceRecord:
    nullifier_hash: int
    association_set_id: int
    # unix seconds, the timestamp the proof is bound to
    proven_at: int


class NullifierRegistry:
    """Append-only set of spent nullifier hashes."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[int, NullifierRecord] = {}

    def try_register(self, nullifier_hash: int, used_at: Optional[int] = None) -> NullifierRecord:
        """
        Mark a nullifier hash as spent.

        Returns the new record, or raises NullifierAlreadySpent if the hash
        was registered before. Linearizable.
        """
        nullifier_hash = to_field(nullifier_hash)
        with self._lock:
            if nullifier_hash in self._records:
                logger.warning(f"Double spend rejected for nullifier hash {short_hex(nullifier_hash)}")
                raise NullifierAlreadySpent(nullifier_hash)
            record = NullifierRecord(
                nullifier_hash=nullifier_hash,
                used_at=_now_ms() if used_at is None else used_at,
            )
            self._records[nullifier_hash] = record
        logger.info(f"Registered nullifier hash {short_hex(nullifier_hash)}")
        return record

    def is_spent(self, nullifier_hash: int) -> bool:
        with self._lock:
            return nullifier_hash in self._records

    def __contains__(self, nullifier_hash: object) -> bool:
        return isinstance(nullifier_hash, int) and self.is_spent(nullifier_hash)

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def get(self, nullifier_hash: int) -> Optional[NullifierRecord]:
        with self._lock:
            return self._records.get(nullifier_hash)


class InnocenceRegistry:
    """
    At most one innocence record per (nullifier hash, association set id).

    Proving innocence does not spend anything; the same note may be proven
    against several association sets, once each.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[Tuple[int, int], InnocenceRecord] = {}

    def try_record(
        self,
        nullifier_hash: int,
        association_set_id: int,
        proven_at: Optional[int] = None,
    ) -> InnocenceRecord:
        key = (to_field(nullifier_hash), association_set_id)
        with self._lock:
            if key in self._records:
                raise InnocenceAlreadyRecorded(*key)
            record = InnocenceRecord(
                nullifier_hash=key[0],
                association_set_id=association_set_id,
                proven_at=int(time.time()) if proven_at is None else proven_at,
            )
            self._records[key] = record
        logger.info(
            f"Recorded innocence of {short_hex(key[0])} in association set {association_set_id}"
        )
        return record

    def is_recorded(self, nullifier_hash: int, association_set_id: int) -> bool:
        with self._lock:
            return (nullifier_hash, association_set_id) in self._records

    def get(self, nullifier_hash: int, association_set_id: int) -> Optional[InnocenceRecord]:
        with self._lock:
            return self._records.get((nullifier_hash, association_set_id))

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
