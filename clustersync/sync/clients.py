"""
Source and target cluster collaborators.

Thin async wrappers over `AsyncElasticsearch` exposing only the operations
the replication engine consumes. They translate raw responses into the
package's own types and are constructed once per process, then injected into
the extractor, detector, writer and provisioner.
"""

from typing import Any, Dict, List, Optional, Tuple

from elasticsearch import AsyncElasticsearch, NotFoundError

from ..config import SourceClusterConfig, TargetClusterConfig
from .error_tracker import DocumentNotFound, ExternalServiceError
from .logging_manager import get_logger
from .models import SourceRecord

logger = get_logger(__name__)

MATCH_ALL = {"match_all": {}}


def _body(response):
    """Unwrap a transport response into its plain body."""
    return getattr(response, "body", response)


def _hits_to_records(response) -> List[SourceRecord]:
    hits = response.get("hits", {}).get("hits", [])
    return [SourceRecord(id=hit["_id"], fields=hit.get("_source") or {}) for hit in hits]


class ClusterClient:
    """Operations shared by both sides of the pair."""

    def __init__(self, es_client: AsyncElasticsearch, name: str):
        self.es_client = es_client
        self.name = name

    async def count(self, index: str) -> int:
        response = _body(await self.es_client.count(index=index))
        return int(response["count"])

    async def get(self, index: str, doc_id: str) -> Dict[str, Any]:
        """
        Fetch a stored document's source.

        Raises:
            DocumentNotFound: when the index holds no document with this id
        """
        try:
            response = _body(await self.es_client.get(index=index, id=doc_id))
        except NotFoundError:
            raise DocumentNotFound(f"Document {doc_id} not found in {index}", document_id=doc_id)
        if not response.get("found", True):
            raise DocumentNotFound(f"Document {doc_id} not found in {index}", document_id=doc_id)
        return response.get("_source") or {}

    async def close(self) -> None:
        await self.es_client.close()


class SourceCluster(ClusterClient):
    """The cluster documents are read from."""

    @classmethod
    def from_config(cls, config: SourceClusterConfig) -> 'SourceCluster':
        kwargs = config.to_elasticsearch_kwargs()
        logger.info(f"Connecting to source cluster at {kwargs['hosts'][0]}")
        return cls(AsyncElasticsearch(**kwargs), name="source")

    async def get_mapping(self, index: str) -> Dict[str, Any]:
        """Return the `mappings` section of the index definition."""
        response = _body(await self.es_client.indices.get_mapping(index=index))
        try:
            return response[index]["mappings"]
        except (KeyError, TypeError):
            raise ExternalServiceError(f"Invalid mapping response for index {index}")

    async def open_cursor(self, index: str, query: Optional[Dict[str, Any]], page_size: int, lease: str) -> Tuple[Optional[str], List[SourceRecord]]:
        response = _body(await self.es_client.search(
            index=index,
            scroll=lease,
            size=page_size,
            query=query or MATCH_ALL,
        ))
        if "hits" not in response:
            raise ExternalServiceError("Invalid scroll response from source cluster")
        return response.get("_scroll_id"), _hits_to_records(response)

    async def advance_cursor(self, cursor_id: str, lease: str) -> Tuple[Optional[str], List[SourceRecord]]:
        response = _body(await self.es_client.scroll(scroll_id=cursor_id, scroll=lease))
        if "hits" not in response:
            raise ExternalServiceError("Invalid scroll result from source cluster")
        return response.get("_scroll_id", cursor_id), _hits_to_records(response)

    async def close_cursor(self, cursor_id: str) -> None:
        await self.es_client.clear_scroll(scroll_id=cursor_id)


class TargetCluster(ClusterClient):
    """The cluster documents are written to."""

    @classmethod
    def from_config(cls, config: TargetClusterConfig) -> 'TargetCluster':
        logger.info("Connecting to target cluster via cloud id")
        return cls(AsyncElasticsearch(**config.to_elasticsearch_kwargs()), name="target")

    async def exists(self, index: str) -> bool:
        return bool(await self.es_client.indices.exists(index=index))

    async def create(self, index: str, mappings: Dict[str, Any]) -> None:
        await self.es_client.indices.create(index=index, mappings=mappings)

    async def bulk_write(self, operations: List[Dict[str, Any]], refresh: bool = True, timeout: str = "2m") -> Dict[str, Any]:
        """
        Send one bulk request.

        Returns:
            Dict with `errors` (bool) and `items` (one entry per action)
        """
        response = _body(await self.es_client.bulk(
            operations=operations,
            refresh=refresh,
            timeout=timeout,
        ))
        return {"errors": bool(response.get("errors")), "items": list(response.get("items", []))}
