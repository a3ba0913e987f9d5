"""
Bronze Layer Unit Tests

CSV source reading with name-based typing.
"""

from datetime import datetime

import pytest

from src.utils.bronze_layer_utils import (
    RAW_EVENT_COLUMNS,
    add_ingestion_metadata,
    drop_metadata_columns,
    read_category_map,
    read_city_map,
    read_raw_events,
)


RAW_HEADER = (
    "created_at,l1_category_id,l2_category_id,store_id,sku_id,sku_name,"
    "selling_price,mrp,inventory,image_url,brand_id,brand,unit"
)


def write_csv(path, header, lines):
    path.write_text("\n".join([header] + lines) + "\n", encoding="utf-8")
    return str(path)


class TestReadSources:
    """Test the bronze CSV readers."""

    def test_raw_events_typed_and_renamed(self, spark_session, tmp_path):
        path = write_csv(tmp_path / "stream.csv", RAW_HEADER, [
            '2025-03-01 10:15:00,10,1001,1,SKU-1,"Milk, Toned",27.0,28.0,12,https://img/1.png,101,Amul,500 ml',
        ])

        df = read_raw_events(spark_session, path)
        row = df.first()

        assert df.columns == list(RAW_EVENT_COLUMNS.keys())
        assert row.timestamp == datetime(2025, 3, 1, 10, 15)
        assert row.store_id == 1
        assert row.sku_name == "Milk, Toned"
        assert row.mrp == 28.0
        assert row.inventory == 12

    def test_unparseable_values_become_null(self, spark_session, tmp_path):
        path = write_csv(tmp_path / "stream.csv", RAW_HEADER, [
            "2025-03-01 10:15:00,10,1001,1,SKU-1,Milk,27.0,n/a,lots,https://img/1.png,101,Amul,500 ml",
        ])

        row = read_raw_events(spark_session, path).first()

        assert row.mrp is None
        assert row.inventory is None

    def test_category_map_matched_by_name(self, spark_session, tmp_path):
        """Source column order differs from the contract."""
        path = write_csv(
            tmp_path / "categories.csv",
            "l1_category,l1_category_id,l2_category,l2_category_id",
            ["Dairy,10,Milk,1001"],
        )

        row = read_category_map(spark_session, path).first()

        assert (row.l1_category_id, row.l1_category, row.l2_category_id, row.l2_category) == \
            (10, "Dairy", 1001, "Milk")

    def test_missing_column_raises(self, spark_session, tmp_path):
        path = write_csv(tmp_path / "city_map.csv", "store_id", ["1"])

        with pytest.raises(ValueError, match="city_name"):
            read_city_map(spark_session, path)


class TestIngestionMetadata:

    def test_metadata_round_trip(self, make_raw_events, day):
        raw = make_raw_events([(day(0), 1, "A", 5)])

        with_metadata = add_ingestion_metadata(raw, "/landing/stream.csv")

        assert "_metadata_source_file" in with_metadata.columns
        assert "_metadata_ingestion_timestamp" in with_metadata.columns
        assert with_metadata.first()["_metadata_source_file"] == "/landing/stream.csv"
        assert drop_metadata_columns(with_metadata).columns == raw.columns
