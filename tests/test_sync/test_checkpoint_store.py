"""Tests for CheckpointStore and the ProgressState file format."""
import json

import pytest

from cip25_sync.core.exceptions import CheckpointError
from cip25_sync.models import AssetRecord, ProgressState
from cip25_sync.services.sync.checkpoint_store import CheckpointStore


def sample_state() -> ProgressState:
    return ProgressState(
        processed_transaction_ids={"tx2", "tx1"},
        pending_batch=[
            AssetRecord(policy_id="p1", asset_name="a1", metadata='{"name":"x"}', slot_no=10),
        ],
        failed_attempts={"tx3": 2},
    )


class TestCheckpointStore:
    """Load/save behaviour of the progress file."""

    def test_missing_file_loads_empty_state(self, tmp_path):
        state = CheckpointStore(tmp_path / "progress.json").load()
        assert state.processed_transaction_ids == set()
        assert state.pending_batch == []

    def test_unparseable_file_loads_empty_state(self, tmp_path):
        path = tmp_path / "progress.json"
        path.write_text("{not json")
        state = CheckpointStore(path).load()
        assert state.processed_transaction_ids == set()
        assert state.pending_batch == []

    def test_wrong_shape_loads_empty_state(self, tmp_path):
        path = tmp_path / "progress.json"
        path.write_text(json.dumps({"processedTransactionIds": 5}))
        assert CheckpointStore(path).load().processed_transaction_ids == set()

    def test_save_then_load_restores_state(self, tmp_path):
        store = CheckpointStore(tmp_path / "progress.json")

        assert store.save(sample_state()) is True
        loaded = store.load()

        assert loaded.processed_transaction_ids == {"tx1", "tx2"}
        assert loaded.pending_batch[0].key == ("p1", "a1")
        assert loaded.pending_batch[0].slot_no == 10
        assert loaded.failed_attempts == {"tx3": 2}

    def test_file_uses_camel_case_keys(self, tmp_path):
        store = CheckpointStore(tmp_path / "progress.json")
        store.save(sample_state())

        payload = json.loads(store.path.read_text())

        assert payload["processedTransactionIds"] == ["tx1", "tx2"]
        assert payload["pendingMetadataBatch"] == [
            {"policyId": "p1", "assetName": "a1", "metadata": '{"name":"x"}', "slotNo": 10}
        ]
        assert payload["deadLetteredTransactionIds"] == []

    def test_loads_legacy_row_batches(self, tmp_path):
        path = tmp_path / "progress.json"
        path.write_text(json.dumps({
            "processedTransactionIds": ["tx1"],
            "pendingMetadataBatch": [["p1", "a1", '{"name":"x"}', 10]],
        }))

        state = CheckpointStore(path).load()

        assert state.pending_batch == [
            AssetRecord(policy_id="p1", asset_name="a1", metadata='{"name":"x"}', slot_no=10)
        ]
        assert state.failed_attempts == {}

    def test_save_overwrites_previous_checkpoint(self, tmp_path):
        store = CheckpointStore(tmp_path / "progress.json")
        store.save(sample_state())
        store.save(ProgressState(processed_transaction_ids={"only"}))

        loaded = store.load()
        assert loaded.processed_transaction_ids == {"only"}
        assert loaded.pending_batch == []
        assert [p.name for p in tmp_path.iterdir()] == ["progress.json"]

    def test_save_failure_is_reported_not_raised(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file, not a directory")
        store = CheckpointStore(blocker / "progress.json")

        assert store.save(sample_state()) is False

    def test_reset_deletes_file(self, tmp_path):
        store = CheckpointStore(tmp_path / "progress.json")
        store.save(sample_state())

        assert store.reset() is True
        assert not store.path.exists()
        assert store.reset() is False

    def test_reset_failure_raises(self, tmp_path):
        path = tmp_path / "progress.json"
        path.mkdir()

        with pytest.raises(CheckpointError):
            CheckpointStore(path).reset()
