"""
Tests for Dedup Ledger
======================
"""

import pytest

from actions.dedup_ledger import CompactionPolicy, DedupLedger, EventClass


class TestLedgerBasics:

    @pytest.mark.unit
    def test_mark_and_unmark(self, ledger):
        key = ("U101", "morning", "2024-07-01", "08:00")
        assert not ledger.has_fired(EventClass.REMINDER, key)

        ledger.mark_fired(EventClass.REMINDER, key)
        assert ledger.has_fired(EventClass.REMINDER, key)

        ledger.unmark(EventClass.REMINDER, key)
        assert not ledger.has_fired(EventClass.REMINDER, key)

    @pytest.mark.unit
    def test_unmark_unknown_key_is_a_noop(self, ledger):
        ledger.unmark(EventClass.MISSED, ("U101", "morning", "2024-07-01"))
        assert ledger.size(EventClass.MISSED) == 0

    @pytest.mark.unit
    def test_partitions_are_independent(self, ledger):
        key = ("U101", "morning", "2024-07-01")
        ledger.mark_fired(EventClass.MISSED, key)

        assert not ledger.has_fired(EventClass.LOW_STOCK, key)
        assert ledger.size(EventClass.MISSED) == 1
        assert ledger.size(EventClass.LOW_STOCK) == 0

    @pytest.mark.unit
    def test_accepts_partition_names(self, ledger):
        ledger.mark_fired("lowstock", ("U101", "evening", "2024-07-01"))
        assert ledger.has_fired(EventClass.LOW_STOCK, ("U101", "evening", "2024-07-01"))

    @pytest.mark.unit
    def test_rearm_forgets_delivered_push(self, ledger):
        key = ("U101", "morning", "2024-07-01")
        push_key = DedupLedger.push_key(EventClass.LOW_STOCK, key)
        ledger.mark_fired(EventClass.LOW_STOCK, key)
        ledger.mark_fired(EventClass.PUSH, push_key)
        ledger.mark_fired(EventClass.PUSH, DedupLedger.push_key(EventClass.MISSED, key))

        ledger.rearm(EventClass.LOW_STOCK, key)

        assert push_key == ("lowstock", "U101", "morning", "2024-07-01")
        assert not ledger.has_fired(EventClass.LOW_STOCK, key)
        assert not ledger.has_fired(EventClass.PUSH, push_key)
        assert ledger.has_fired(EventClass.PUSH, DedupLedger.push_key(EventClass.MISSED, key))

    @pytest.mark.unit
    def test_threshold_must_be_positive(self):
        with pytest.raises(ValueError):
            DedupLedger(compact_threshold=0)


class TestCompaction:

    @staticmethod
    def _fill(ledger, count):
        for i in range(count):
            ledger.mark_fired(EventClass.REMINDER, (f"U{i}", "morning", "2024-07-01", "08:00"))

    @pytest.mark.unit
    def test_no_compaction_at_threshold(self, ledger):
        self._fill(ledger, 1000)

        assert ledger.maybe_compact() is False
        assert ledger.size(EventClass.REMINDER) == 1000

    @pytest.mark.unit
    def test_global_compaction_clears_every_partition(self, ledger):
        missed_key = ("U1", "morning", "2024-07-01")
        ledger.mark_fired(EventClass.MISSED, missed_key)
        self._fill(ledger, 1001)

        assert ledger.maybe_compact() is True
        assert not ledger.has_fired(EventClass.REMINDER, ("U0", "morning", "2024-07-01", "08:00"))
        assert not ledger.has_fired(EventClass.MISSED, missed_key)
        assert ledger.size(EventClass.REMINDER) == 0

    @pytest.mark.unit
    def test_per_partition_compaction_keeps_small_partitions(self):
        ledger = DedupLedger(policy=CompactionPolicy.PER_PARTITION)
        missed_key = ("U1", "morning", "2024-07-01")
        ledger.mark_fired(EventClass.MISSED, missed_key)
        self._fill(ledger, 1001)

        assert ledger.maybe_compact() is True
        assert ledger.size(EventClass.REMINDER) == 0
        assert ledger.has_fired(EventClass.MISSED, missed_key)

    @pytest.mark.unit
    def test_custom_threshold(self):
        ledger = DedupLedger(compact_threshold=2)
        self._fill(ledger, 3)

        assert ledger.maybe_compact() is True
