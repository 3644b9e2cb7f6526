"""
Conversion of source records into documents the target accepts.
"""

import copy
import json
from typing import Iterable, List, Sequence, Tuple

from .error_tracker import DocumentTransformError
from .logging_manager import get_logger
from .models import DocumentError, SourceRecord, SyncDocument

logger = get_logger(__name__)

DEFAULT_PAYLOAD_FIELDS = ("jsonPayload",)


class DocumentTransformer:
    """
    Copies each record and decodes payload fields stored as JSON text.

    Payload fields already holding objects or arrays, and records without a
    payload field, pass through unchanged.
    """

    def __init__(self, payload_fields: Sequence[str] = DEFAULT_PAYLOAD_FIELDS):
        self.payload_fields = tuple(payload_fields)

    def transform(self, record: SourceRecord) -> SyncDocument:
        """
        Raises:
            DocumentTransformError: when a payload field holds text that is not a JSON object or array
        """
        fields = copy.deepcopy(record.fields)
        for name in self.payload_fields:
            value = fields.get(name)
            if not isinstance(value, str):
                continue
            try:
                decoded = json.loads(value)
            except json.JSONDecodeError as e:
                raise DocumentTransformError(
                    f"Failed to parse {name} for document {record.id}: {e}",
                    document_id=record.id,
                )
            if not isinstance(decoded, (dict, list)):
                raise DocumentTransformError(
                    f"{name} for document {record.id} decodes to {type(decoded).__name__}, expected object or array",
                    document_id=record.id,
                )
            fields[name] = decoded
        return SyncDocument(id=record.id, fields=fields)

    def transform_page(self, records: Iterable[SourceRecord]) -> Tuple[List[SyncDocument], List[DocumentError]]:
        """Transform a page; a failing record is reported and left out, the rest continue."""
        documents: List[SyncDocument] = []
        errors: List[DocumentError] = []
        for record in records:
            try:
                documents.append(self.transform(record))
            except DocumentTransformError as e:
                logger.error(e.message)
                errors.append(DocumentError(document_id=record.id, cause=e.message, stage="transform"))
        return documents, errors
