"""
Tests for table I/O helpers
"""

import pytest
from pyspark.sql import functions as F

from src.utils.spark_helpers import is_path, read_table, write_table


class TestIsPath:
    """Test path vs catalog table name resolution."""

    @pytest.mark.parametrize("target", [
        "/data/gold/city_insights",
        "dbfs:/mnt/gold/city_insights",
        "gold\\city_insights",
        "city_insights_out",
    ])
    def test_paths(self, target):
        assert is_path(target)

    @pytest.mark.parametrize("target", [
        "default.gold_blinkit_city_insights",
        "workspace.default.gold_blinkit_city_insights",
    ])
    def test_catalog_tables(self, target):
        assert not is_path(target)


class TestWriteTable:
    """Test publishing to storage paths."""

    def test_overwrite_replaces_previous_output(self, spark_session, tmp_path):
        output = str(tmp_path / "city_insights")

        write_table(spark_session.range(5), output, fmt="parquet")
        write_table(spark_session.range(2), output, fmt="parquet")

        assert read_table(spark_session, output, fmt="parquet").count() == 2

    def test_partitioned_write(self, spark_session, tmp_path):
        output = str(tmp_path / "city_insights")
        df = spark_session.range(4).withColumn("date", F.lit("2025-03-01"))

        write_table(df, output, fmt="parquet", partition_by=["date"])

        assert (tmp_path / "city_insights" / "date=2025-03-01").is_dir()
        assert read_table(spark_session, output, fmt="parquet").count() == 4

    @pytest.mark.slow
    def test_failed_write_keeps_previous_output(self, spark_session, tmp_path):
        output = str(tmp_path / "city_insights")
        write_table(spark_session.range(3), output, fmt="parquet")

        failing = spark_session.range(10).withColumn(
            "id", F.when(F.col("id") == 7, F.raise_error(F.lit("write failed"))).otherwise(F.col("id"))
        )

        with pytest.raises(Exception):
            write_table(failing, output, fmt="parquet")

        assert read_table(spark_session, output, fmt="parquet").count() == 3
        assert sorted(p.name for p in tmp_path.iterdir()) == ["city_insights"]

    def test_non_delta_catalog_table_rejected(self, spark_session):
        with pytest.raises(ValueError, match="delta"):
            write_table(spark_session.range(1), "default.city_insights", fmt="parquet")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
