"""Tests for KupoService and KupoAdapter.

The HTTP client is mocked by patching KupoService._get_client, so no
request leaves the process.
"""
from unittest.mock import AsyncMock, MagicMock, Mock, patch

import httpx
import pytest

from cip25_sync.core.exceptions import MatchFetchError, MetadataFetchError
from cip25_sync.models import Match
from cip25_sync.services.core.kupo_service import KupoService
from cip25_sync.services.sync.adapters.kupo_adapter import KupoAdapter
from tests.helpers import label_721


def json_response(payload):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = payload
    response.headers = {}
    return response


def error_response(status_code: int):
    response = MagicMock()
    response.status_code = status_code
    response.raise_for_status.side_effect = httpx.HTTPStatusError(
        f"status {status_code}", request=Mock(), response=Mock(status_code=status_code)
    )
    return response


def make_adapter(matches_path: str = "/matches", max_retries: int = 3) -> KupoAdapter:
    service = KupoService(
        base_url="http://kupo.test",
        timeout=5,
        max_retries=max_retries,
        retry_wait_max=0,
    )
    return KupoAdapter(kupo_service=service, matches_path=matches_path)


@pytest.fixture
def mock_client():
    with patch.object(KupoService, '_get_client') as mock_get_client:
        client = AsyncMock()
        mock_get_client.return_value = client
        yield client


class TestFetchMatches:
    """Unspent match listing."""

    @pytest.mark.asyncio
    async def test_parses_matches(self, mock_client):
        mock_client.get.return_value = json_response([
            {"transaction_id": "A", "output_index": 0, "created_at": {"slot_no": 10, "header_hash": "h"}},
            {"transaction_id": "B", "output_index": 1, "created_at": {"slot_no": 12, "header_hash": "h"}},
        ])

        matches = await make_adapter().fetch_matches()

        assert matches == [Match(transaction_id="A", slot_no=10), Match(transaction_id="B", slot_no=12)]
        mock_client.get.assert_awaited_once_with("/matches?unspent")

    @pytest.mark.asyncio
    async def test_uses_configured_pattern(self, mock_client):
        mock_client.get.return_value = json_response([])

        await make_adapter(matches_path="/matches/policy.*").fetch_matches()

        mock_client.get.assert_awaited_once_with("/matches/policy.*?unspent")

    @pytest.mark.asyncio
    async def test_one_match_per_transaction(self, mock_client):
        mock_client.get.return_value = json_response([
            {"transaction_id": "A", "created_at": {"slot_no": 10}},
            {"transaction_id": "A", "created_at": {"slot_no": 10}},
            {"transaction_id": "B", "created_at": {"slot_no": 11}},
        ])

        matches = await make_adapter().fetch_matches()

        assert [m.transaction_id for m in matches] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_skips_malformed_matches(self, mock_client):
        mock_client.get.return_value = json_response([
            {"transaction_id": "A"},
            {"created_at": {"slot_no": 1}},
            {"transaction_id": "B", "created_at": {"slot_no": "11"}},
            "junk",
            {"transaction_id": "C", "created_at": {"slot_no": 13}},
        ])

        matches = await make_adapter().fetch_matches()

        assert [m.transaction_id for m in matches] == ["C"]

    @pytest.mark.asyncio
    async def test_retries_transport_errors(self, mock_client):
        mock_client.get.side_effect = [
            httpx.ConnectError("connection refused"),
            json_response([{"transaction_id": "A", "created_at": {"slot_no": 10}}]),
        ]

        matches = await make_adapter().fetch_matches()

        assert len(matches) == 1
        assert mock_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_raises_after_retries_exhausted(self, mock_client):
        mock_client.get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(MatchFetchError):
            await make_adapter(max_retries=2).fetch_matches()

        assert mock_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_non_list_response_is_an_error(self, mock_client):
        mock_client.get.return_value = json_response({"hint": "bad pattern"})

        with pytest.raises(MatchFetchError):
            await make_adapter().fetch_matches()


class TestFetchMetadata:
    """Per-transaction metadata lookup."""

    @pytest.mark.asyncio
    async def test_returns_label_721_blocks(self, mock_client):
        block = label_721({"p1": {"a1": {"name": "x"}}})
        mock_client.get.return_value = json_response([
            {"hash": "h1", "raw": "a1", "schema": {"674": {"string": "memo"}}},
            {"hash": "h2", "raw": "a2", "schema": {"721": block}},
        ])

        result = await make_adapter().fetch_metadata(10, "A")

        assert result == [block]
        mock_client.get.assert_awaited_once_with("/metadata/10?transaction_id=A")

    @pytest.mark.asyncio
    async def test_returns_none_without_label_721(self, mock_client):
        mock_client.get.return_value = json_response([{"schema": {"674": {"string": "memo"}}}])

        assert await make_adapter().fetch_metadata(10, "A") is None

    @pytest.mark.asyncio
    async def test_returns_none_for_empty_metadata(self, mock_client):
        mock_client.get.return_value = json_response([])

        assert await make_adapter().fetch_metadata(10, "A") is None

    @pytest.mark.asyncio
    async def test_http_error_raises_metadata_error(self, mock_client):
        mock_client.get.return_value = error_response(503)

        with pytest.raises(MetadataFetchError) as exc_info:
            await make_adapter(max_retries=1).fetch_metadata(10, "A")

        assert exc_info.value.transaction_id == "A"

    @pytest.mark.asyncio
    async def test_invalid_json_raises_metadata_error(self, mock_client):
        response = json_response(None)
        response.json.side_effect = ValueError("Expecting value")
        mock_client.get.return_value = response

        with pytest.raises(MetadataFetchError):
            await make_adapter().fetch_metadata(10, "A")

        # Body errors are not retried
        assert mock_client.get.await_count == 1

    @pytest.mark.asyncio
    async def test_unexpected_shape_raises_metadata_error(self, mock_client):
        mock_client.get.return_value = json_response({"schema": {}})

        with pytest.raises(MetadataFetchError):
            await make_adapter().fetch_metadata(10, "A")


class TestKupoServiceLifecycle:
    """Client creation and shutdown."""

    @pytest.mark.asyncio
    async def test_close_releases_client(self):
        service = KupoService(base_url="http://kupo.test/", timeout=1, max_retries=1)
        client = await service._get_client()

        assert str(client.base_url).rstrip("/") == "http://kupo.test"
        assert await service._get_client() is client

        await service.close()
        assert service._client is None
