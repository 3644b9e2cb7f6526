"""
Tests for the cluster collaborators over a mocked Elasticsearch client.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from elasticsearch import NotFoundError

from ...config import SourceClusterConfig, TargetClusterConfig
from ..clients import MATCH_ALL, SourceCluster, TargetCluster
from ..error_tracker import DocumentNotFound, ExternalServiceError


def search_response(scroll_id, ids):
    return {
        "_scroll_id": scroll_id,
        "hits": {"hits": [{"_id": doc_id, "_source": {"n": doc_id}} for doc_id in ids]},
    }


@pytest.fixture
def es_client():
    client = MagicMock()
    client.count = AsyncMock(return_value={"count": 42})
    client.get = AsyncMock()
    client.search = AsyncMock()
    client.scroll = AsyncMock()
    client.clear_scroll = AsyncMock()
    client.bulk = AsyncMock()
    client.close = AsyncMock()
    client.indices.get_mapping = AsyncMock()
    client.indices.exists = AsyncMock()
    client.indices.create = AsyncMock()
    return client


class TestSourceCluster:
    """Test read-side operations."""

    @pytest.mark.asyncio
    async def test_count(self, es_client):
        assert await SourceCluster(es_client, "source").count("products") == 42
        es_client.count.assert_awaited_once_with(index="products")

    @pytest.mark.asyncio
    async def test_get_mapping(self, es_client):
        es_client.indices.get_mapping.return_value = {"products": {"mappings": {"properties": {"a": {"type": "text"}}}}}
        mapping = await SourceCluster(es_client, "source").get_mapping("products")
        assert mapping == {"properties": {"a": {"type": "text"}}}

    @pytest.mark.asyncio
    async def test_get_mapping_invalid_response(self, es_client):
        es_client.indices.get_mapping.return_value = {}
        with pytest.raises(ExternalServiceError):
            await SourceCluster(es_client, "source").get_mapping("products")

    @pytest.mark.asyncio
    async def test_open_cursor_uses_match_all_scroll(self, es_client):
        es_client.search.return_value = search_response("s1", ["a", "b"])

        cursor_id, records = await SourceCluster(es_client, "source").open_cursor("products", None, 2, "1m")

        assert cursor_id == "s1"
        assert [r.id for r in records] == ["a", "b"]
        assert records[0].fields == {"n": "a"}
        es_client.search.assert_awaited_once_with(index="products", scroll="1m", size=2, query=MATCH_ALL)

    @pytest.mark.asyncio
    async def test_advance_and_close_cursor(self, es_client):
        es_client.scroll.return_value = search_response("s2", [])
        source = SourceCluster(es_client, "source")

        cursor_id, records = await source.advance_cursor("s1", "1m")
        await source.close_cursor(cursor_id)

        assert cursor_id == "s2"
        assert records == []
        es_client.scroll.assert_awaited_once_with(scroll_id="s1", scroll="1m")
        es_client.clear_scroll.assert_awaited_once_with(scroll_id="s2")

    @pytest.mark.asyncio
    async def test_invalid_scroll_response(self, es_client):
        es_client.scroll.return_value = {"error": "bad"}
        with pytest.raises(ExternalServiceError):
            await SourceCluster(es_client, "source").advance_cursor("s1", "1m")

    def test_from_config(self):
        config = SourceClusterConfig(host="search.example.com", username="u", password="p")
        with patch("clustersync.sync.clients.AsyncElasticsearch") as es_class:
            source = SourceCluster.from_config(config)
        es_class.assert_called_once_with(**config.to_elasticsearch_kwargs())
        assert source.name == "source"


class TestTargetCluster:
    """Test write-side operations."""

    @pytest.mark.asyncio
    async def test_get_found(self, es_client):
        es_client.get.return_value = {"found": True, "_source": {"x": 1}}
        assert await TargetCluster(es_client, "target").get("idx", "a") == {"x": 1}

    @pytest.mark.asyncio
    async def test_get_missing_raises_not_found(self, es_client):
        es_client.get.side_effect = NotFoundError("not found", meta=MagicMock(status=404), body={})
        with pytest.raises(DocumentNotFound) as exc_info:
            await TargetCluster(es_client, "target").get("idx", "a")
        assert exc_info.value.document_id == "a"

    @pytest.mark.asyncio
    async def test_get_not_found_flag(self, es_client):
        es_client.get.return_value = {"found": False}
        with pytest.raises(DocumentNotFound):
            await TargetCluster(es_client, "target").get("idx", "a")

    @pytest.mark.asyncio
    async def test_exists_and_create(self, es_client):
        es_client.indices.exists.return_value = False
        target = TargetCluster(es_client, "target")

        assert await target.exists("idx") is False
        await target.create("idx", {"properties": {}})

        es_client.indices.create.assert_awaited_once_with(index="idx", mappings={"properties": {}})

    @pytest.mark.asyncio
    async def test_bulk_write(self, es_client):
        es_client.bulk.return_value = {"errors": False, "took": 3, "items": [{"index": {"_id": "a", "result": "created"}}]}
        operations = [{"index": {"_index": "idx", "_id": "a"}}, {"x": 1}]

        response = await TargetCluster(es_client, "target").bulk_write(operations, refresh=False, timeout="30s")

        assert response == {"errors": False, "items": [{"index": {"_id": "a", "result": "created"}}]}
        es_client.bulk.assert_awaited_once_with(operations=operations, refresh=False, timeout="30s")

    @pytest.mark.asyncio
    async def test_close(self, es_client):
        await TargetCluster(es_client, "target").close()
        es_client.close.assert_awaited_once()

    def test_from_config(self):
        config = TargetClusterConfig(cloud_id="dep:abc", api_key_id="id", api_key_secret="secret")
        with patch("clustersync.sync.clients.AsyncElasticsearch") as es_class:
            TargetCluster.from_config(config)
        kwargs = es_class.call_args.kwargs
        assert kwargs["cloud_id"] == "dep:abc"
        assert kwargs["api_key"] == ("id", "secret")
