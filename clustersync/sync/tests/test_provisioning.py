"""
Tests for target index provisioning and mapping adjustment.
"""

import pytest

from ..config import MappingAdjustments
from ..error_tracker import ProvisioningError
from ..provisioning import IndexProvisioner, adjust_mapping
from .fake_clusters import FakeSourceCluster, FakeTargetCluster, FakeTransportError

SOURCE_MAPPING = {
    "properties": {
        "jsonPayload": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "brand": {"type": "text", "analyzer": "brand_analyzer", "search_analyzer": "brand_search"},
        "marketVariation": {"type": "text", "analyzer": "market_analyzer"},
        "title": {"type": "text", "analyzer": "standard"},
        "internal": {"type": "keyword"},
    }
}


class TestAdjustMapping:
    """Test mapping edits applied before index creation."""

    def test_default_adjustments(self):
        adjusted = adjust_mapping(SOURCE_MAPPING, MappingAdjustments())
        properties = adjusted["properties"]

        assert properties["jsonPayload"] == {"type": "object"}
        assert properties["brand"] == {"type": "text"}
        assert properties["marketVariation"] == {"type": "text"}
        assert properties["title"] == {"type": "text", "analyzer": "standard"}
        assert properties["internal"] == {"type": "keyword"}

    def test_source_mapping_untouched(self):
        adjust_mapping(SOURCE_MAPPING, MappingAdjustments(drop_fields=["internal"]))
        assert "internal" in SOURCE_MAPPING["properties"]
        assert SOURCE_MAPPING["properties"]["jsonPayload"]["type"] == "text"

    def test_drop_fields_and_unknown_names(self):
        adjustments = MappingAdjustments(object_fields=["missing"], strip_analyzer_fields=["nope"], drop_fields=["internal"])
        adjusted = adjust_mapping(SOURCE_MAPPING, adjustments)

        assert "internal" not in adjusted["properties"]
        assert "missing" not in adjusted["properties"]

    def test_mapping_without_properties(self):
        assert adjust_mapping({"dynamic": True}, MappingAdjustments()) == {"dynamic": True}


class TestIndexProvisioner:
    """Test creating the target index at most once."""

    @pytest.fixture
    def source(self):
        return FakeSourceCluster({"a": {"x": 1}}, mapping=SOURCE_MAPPING)

    @pytest.mark.asyncio
    async def test_creates_missing_index(self, source):
        target = FakeTargetCluster()
        provisioner = IndexProvisioner(source, target, MappingAdjustments())

        created = await provisioner.ensure_target_index("source-index", "target-index")

        assert created
        assert target.create_calls == ["target-index"]
        assert target.mappings["target-index"]["properties"]["jsonPayload"] == {"type": "object"}

    @pytest.mark.asyncio
    async def test_existing_index_left_alone(self, source):
        target = FakeTargetCluster()
        target.indices["target-index"] = {}
        provisioner = IndexProvisioner(source, target, MappingAdjustments())

        created = await provisioner.ensure_target_index("source-index", "target-index")

        assert not created
        assert target.create_calls == []
        assert source.mapping_calls == 0

    @pytest.mark.asyncio
    async def test_creation_failure_raises(self, source):
        target = FakeTargetCluster()
        target.fail_create = FakeTransportError("mapper_parsing_exception")
        provisioner = IndexProvisioner(source, target, MappingAdjustments())

        with pytest.raises(ProvisioningError) as exc_info:
            await provisioner.ensure_target_index("source-index", "target-index")
        assert "target-index" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_mapping_fetch_failure_raises(self, source):
        source.fail_mapping = FakeTransportError("security_exception")
        provisioner = IndexProvisioner(source, FakeTargetCluster(), MappingAdjustments())

        with pytest.raises(ProvisioningError):
            await provisioner.ensure_target_index("source-index", "target-index")
