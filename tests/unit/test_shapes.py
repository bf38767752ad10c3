"""
本地形状库与形状适配器测试
"""

import json

import pytest

from stockmedia.adapters.shape_adapter import ShapeAdapter
from stockmedia.adapters.shape_catalog import InMemoryShapeCatalog
from stockmedia.domain.models import MediaType


class TestInMemoryShapeCatalog:
    """内存形状库测试"""

    def test_loads_complete_items_only(self, shape_catalog):
        assert shape_catalog.count() == 3
        assert shape_catalog.total_file_size() == 1800

    def test_defaults_for_optional_fields(self, shape_catalog):
        star = shape_catalog.get_by_id(3)
        assert star.shape_category == "general"
        assert star.description == "SVG shape from mostlyused category"

    def test_search_all_sorted_by_filename(self, shape_catalog):
        records, total = shape_catalog.search("")
        assert total == 3
        assert [r.original_filename for r in records] == ["Arrow Right.svg", "Circle.svg", "Star.svg"]

    def test_search_matches_keywords_and_description(self, shape_catalog):
        records, _ = shape_catalog.search("round")
        assert [r.id for r in records] == [1]
        records, _ = shape_catalog.search("pointing")
        assert [r.id for r in records] == [2]

    def test_search_is_case_insensitive(self, shape_catalog):
        records, _ = shape_catalog.search("CIRCLE")
        assert [r.id for r in records] == [1]

    def test_every_token_must_match(self, shape_catalog):
        assert shape_catalog.search("arrow right")[1] == 1
        assert shape_catalog.search("arrow circle")[1] == 0

    def test_category_filters_are_exact(self, shape_catalog):
        records, _ = shape_catalog.search("", category="basic")
        assert [r.id for r in records] == [1]
        records, _ = shape_catalog.search("", shape_category="directional")
        assert [r.id for r in records] == [2]
        assert shape_catalog.search("", category="bas")[1] == 0

    def test_paging(self, shape_catalog):
        records, total = shape_catalog.search("", offset=2, limit=2)
        assert total == 3
        assert [r.id for r in records] == [3]

    def test_categories(self, shape_catalog):
        assert shape_catalog.get_categories() == ["arrows", "basic", "mostlyused"]
        assert shape_catalog.get_shape_categories() == ["directional", "general", "geometric"]

    def test_popular(self, shape_catalog):
        assert [r.id for r in shape_catalog.get_popular(["mostlyused", "basic"])] == [1, 3]

    def test_from_index_requires_items(self):
        with pytest.raises(ValueError):
            InMemoryShapeCatalog.from_index({"total_files": 0})

    def test_from_index_file_missing(self, tmp_path):
        catalog = InMemoryShapeCatalog.from_index_file(tmp_path / "missing.json")
        assert catalog.count() == 0

    def test_from_index_file_corrupt(self, tmp_path):
        path = tmp_path / "master_index.json"
        path.write_text("{broken", encoding="utf-8")
        assert InMemoryShapeCatalog.from_index_file(path).count() == 0

    def test_from_index_file(self, tmp_path, shape_index):
        path = tmp_path / "master_index.json"
        path.write_text(json.dumps(shape_index), encoding="utf-8")
        assert InMemoryShapeCatalog.from_index_file(str(path)).count() == 3


class TestShapeAdapter:
    """形状适配器测试"""

    def test_contract(self, shape_adapter):
        assert shape_adapter.get_name() == "shapes"
        assert shape_adapter.supports_type(MediaType.SHAPE)
        assert not shape_adapter.supports_type(MediaType.IMAGE)
        assert shape_adapter.is_configured()
        assert not ShapeAdapter(InMemoryShapeCatalog()).is_configured()

    def test_search_transform(self, shape_adapter):
        result = shape_adapter.search("circle")

        assert result.total == 1
        assert result.providers == ("shapes",)
        item = result.items[0]
        assert item.id == "shape_1"
        assert item.type == MediaType.SHAPE
        assert item.mime_type == "image/svg+xml"
        assert item.url == "http://media.test/storage/shapes/basic/circle.svg"
        assert item.thumbnail_url == item.url
        assert item.width is None
        assert item.height is None
        assert item.file_size == 400
        assert item.source == "shapes"
        assert item.source_id == "1"
        assert item.license == "Free for commercial use"
        assert item.tags == ("circle", "round", "basic", "geometric")
        assert item.metadata["category"] == "basic"
        assert item.metadata["original_filename"] == "Circle.svg"

    def test_path_is_url_encoded(self, shape_adapter, shape_catalog):
        record = shape_catalog.get_by_id(2)
        assert shape_adapter.shape_url(record) == "http://media.test/storage/shapes/arrows/arrow-right.svg"

    def test_search_paging(self, shape_adapter):
        first = shape_adapter.search("", page=1, limit=2)
        second = shape_adapter.search("", page=2, limit=2)

        assert first.count == 2
        assert first.has_more is True
        assert second.count == 1
        assert second.has_more is False
        assert second.total == 3

    def test_search_filters(self, shape_adapter):
        assert shape_adapter.search("", filters={"category": "arrows"}).items[0].id == "shape_2"
        assert shape_adapter.search("", filters={"shapeCategory": "geometric"}).items[0].id == "shape_1"
        assert shape_adapter.search("", filters={"shape_category": "general"}).items[0].id == "shape_3"

    def test_download_media(self, shape_adapter):
        assert shape_adapter.download_media("shape_2") == "http://media.test/storage/shapes/arrows/arrow-right.svg"
        assert shape_adapter.download_media("3") == "http://media.test/storage/shapes/mostlyused/star.svg"
        assert shape_adapter.download_media("shape_99") is None
        assert shape_adapter.download_media("abc") is None

    def test_featured(self, shape_adapter):
        assert [item.id for item in shape_adapter.get_featured()] == ["shape_1", "shape_3"]

    def test_by_category(self, shape_adapter):
        result = shape_adapter.get_by_category("arrows")
        assert [item.id for item in result.items] == ["shape_2"]
        assert result.total == 1

    def test_suggestions(self, shape_adapter):
        assert shape_adapter.get_suggestions("ba") == ["basic"]
        assert shape_adapter.get_suggestions("ge") == ["general", "geometric"]
        assert shape_adapter.get_suggestions("g") == []
        assert shape_adapter.get_suggestions("ge", limit=1) == ["general"]

    def test_statistics(self, shape_adapter):
        assert shape_adapter.get_statistics() == {"total": 3, "categories": 3, "average_size": 600.0}

    def test_config_info(self, shape_adapter):
        info = shape_adapter.get_config_info()
        assert info["name"] == "shapes"
        assert info["total_shapes"] == 3
        assert info["supported_types"] == ["shape"]
