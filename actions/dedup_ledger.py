"""
Dedup Ledger
In-memory record of notification events that have already been handled
"""

import logging
from collections import defaultdict
from enum import Enum
from typing import Dict, Hashable, Set, Tuple


logger = logging.getLogger(__name__)


class EventClass(str, Enum):
    """Ledger partitions"""
    REMINDER = "reminder"
    MISSED = "missed"
    LOW_STOCK = "lowstock"
    PUSH = "push"  # events whose push was delivered


class CompactionPolicy(str, Enum):
    """What to clear once a partition outgrows the threshold"""
    GLOBAL = "global"              # clear every partition
    PER_PARTITION = "per_partition"  # clear only the oversized partition


LedgerKey = Tuple[Hashable, ...]


class DedupLedger:
    """
    Partitioned set of "already fired" keys.

    The ledger is not durable and not shared between processes: it only
    prevents repeats within one process lifetime. Keys are inserted before a
    dispatch attempt and removed again when that attempt hard-fails.
    """

    def __init__(
        self,
        compact_threshold: int = 1000,
        policy: CompactionPolicy = CompactionPolicy.GLOBAL
    ):
        if compact_threshold < 1:
            raise ValueError("compact_threshold must be positive")
        self.compact_threshold = compact_threshold
        self.policy = CompactionPolicy(policy)
        self._partitions: Dict[EventClass, Set[LedgerKey]] = defaultdict(set)

    def has_fired(self, event_class: EventClass, key: LedgerKey) -> bool:
        return key in self._partitions[EventClass(event_class)]

    def mark_fired(self, event_class: EventClass, key: LedgerKey) -> None:
        self._partitions[EventClass(event_class)].add(key)

    def unmark(self, event_class: EventClass, key: LedgerKey) -> None:
        self._partitions[EventClass(event_class)].discard(key)

    @staticmethod
    def push_key(event_class: EventClass, key: LedgerKey) -> LedgerKey:
        """Key recording a delivered push for (event_class, key)"""
        return (EventClass(event_class).value,) + tuple(key)

    def rearm(self, event_class: EventClass, key: LedgerKey) -> None:
        """Forget an event entirely, including its delivered push"""
        self.unmark(event_class, key)
        self.unmark(EventClass.PUSH, self.push_key(event_class, key))

    def size(self, event_class: EventClass) -> int:
        return len(self._partitions[EventClass(event_class)])

    def clear(self) -> None:
        for partition in self._partitions.values():
            partition.clear()

    def maybe_compact(self) -> bool:
        """Clear the ledger when a partition exceeds the threshold; True if anything was cleared"""
        oversized = [
            event_class for event_class, keys in self._partitions.items()
            if len(keys) > self.compact_threshold
        ]
        if not oversized:
            return False

        if self.policy == CompactionPolicy.GLOBAL:
            self.clear()
        else:
            for event_class in oversized:
                self._partitions[event_class].clear()

        logger.info(
            f"Compacted dedup ledger ({self.policy.value}); "
            f"oversized partitions: {[c.value for c in oversized]}"
        )
        return True


__all__ = ["EventClass", "CompactionPolicy", "LedgerKey", "DedupLedger"]
