"""
Creation of the target index from the source index mapping.
"""

import copy
import json
from typing import Any, Dict

from .clients import SourceCluster, TargetCluster
from .config import MappingAdjustments
from .error_tracker import ProvisioningError
from .logging_manager import get_logger

logger = get_logger(__name__)

ANALYZER_KEYS = ("analyzer", "search_analyzer")


def adjust_mapping(mappings: Dict[str, Any], adjustments: MappingAdjustments) -> Dict[str, Any]:
    """
    Return a copy of `mappings` with target-incompatible definitions relaxed.

    Adjustments naming a field the mapping does not have are ignored.
    """
    adjusted = copy.deepcopy(mappings)
    properties = adjusted.get("properties", {})

    for name in adjustments.object_fields:
        field = properties.get(name)
        if field is None:
            continue
        field["type"] = "object"
        field.pop("fields", None)
        # Keyword/text parameters are invalid on an object field
        for key in ("ignore_above", "index", "norms", *ANALYZER_KEYS):
            field.pop(key, None)

    for name in adjustments.strip_analyzer_fields:
        field = properties.get(name)
        if field is None:
            continue
        for key in ANALYZER_KEYS:
            field.pop(key, None)

    for name in adjustments.drop_fields:
        properties.pop(name, None)

    return adjusted


class IndexProvisioner:
    """Makes sure the target index exists before documents are streamed."""

    def __init__(self, source: SourceCluster, target: TargetCluster, adjustments: MappingAdjustments):
        self.source = source
        self.target = target
        self.adjustments = adjustments

    async def ensure_target_index(self, source_index: str, target_index: str) -> bool:
        """
        Create the target index when it does not exist.

        Returns:
            True if the index was created by this call

        Raises:
            ProvisioningError: if the existence check, mapping fetch or creation fails
        """
        try:
            if await self.target.exists(target_index):
                return False

            logger.info(f"Target index {target_index} does not exist. Creating...")
            source_mapping = await self.source.get_mapping(source_index)
            mappings = adjust_mapping(source_mapping, self.adjustments)
            logger.info(f"Creating target index {target_index} with mapping: {json.dumps(mappings)}")
            await self.target.create(target_index, mappings)
        except Exception as e:
            raise ProvisioningError(
                f"Failed to provision target index {target_index}: {e}",
                recovery_suggestion="Check the source mapping and the target cluster permissions",
            ) from e

        logger.info(f"Created target index {target_index}")
        return True
