"""Unit tests for RecencyResolver.

Each test follows the pattern:
- Given: A seeded recency index
- When: A candidate is resolved
- Then: Acceptance and index state match the strictly-newer rule
"""
import pytest

from cip25_sync.models import AssetRecord
from cip25_sync.services.sync.matchers.recency_resolver import RecencyResolver


def record(slot_no: int, policy_id: str = "p1", asset_name: str = "a1", metadata: str = "{}") -> AssetRecord:
    return AssetRecord(policy_id=policy_id, asset_name=asset_name, metadata=metadata, slot_no=slot_no)


class TestRecencyResolver:
    """Per-key slot recency decisions."""

    def test_accepts_unknown_key(self):
        resolver = RecencyResolver()
        assert resolver.resolve(record(10)) is True
        assert resolver.known_slot(("p1", "a1")) == 10

    def test_accepts_strictly_newer_slot(self):
        resolver = RecencyResolver()
        resolver.seed([("p1", "a1", 10)])
        assert resolver.resolve(record(11)) is True
        assert resolver.known_slot(("p1", "a1")) == 11

    def test_rejects_older_slot(self):
        resolver = RecencyResolver()
        resolver.seed([("p1", "a1", 100)])
        assert resolver.resolve(record(80)) is False
        assert resolver.known_slot(("p1", "a1")) == 100

    def test_equal_slot_keeps_first_seen(self):
        resolver = RecencyResolver()
        assert resolver.resolve(record(50, metadata='{"v":1}')) is True
        assert resolver.resolve(record(50, metadata='{"v":2}')) is False
        assert resolver.accepted == 1
        assert resolver.rejected == 1

    def test_slot_zero_is_a_real_slot(self):
        resolver = RecencyResolver()
        resolver.seed([("p1", "a1", 0)])
        assert resolver.resolve(record(0)) is False
        assert resolver.resolve(record(1)) is True

    @pytest.mark.parametrize("slots", [(100, 80), (80, 100)])
    def test_newest_wins_in_either_order(self, slots):
        resolver = RecencyResolver()
        for slot in slots:
            resolver.resolve(record(slot))
        assert resolver.known_slot(("p1", "a1")) == 100

    def test_keys_are_independent(self):
        resolver = RecencyResolver()
        resolver.seed([("p1", "a1", 100)])
        assert resolver.resolve(record(5, asset_name="a2")) is True
        assert resolver.resolve(record(5, policy_id="p2")) is True

    def test_keys_do_not_collide_on_separator(self):
        # ("p-1", "a") and ("p", "1-a") would collide if joined with "-"
        resolver = RecencyResolver()
        resolver.seed([("p-1", "a", 100)])
        assert resolver.resolve(record(1, policy_id="p", asset_name="1-a")) is True

    def test_seed_keeps_highest_slot_and_never_decreases(self):
        resolver = RecencyResolver()
        count = resolver.seed([("p1", "a1", 30), ("p1", "a1", 20)])
        assert count == 1
        assert resolver.known_slot(("p1", "a1")) == 30

        resolver.observe(record(10))
        assert resolver.known_slot(("p1", "a1")) == 30
