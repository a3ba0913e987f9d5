"""
Pytest configuration and shared fixtures
"""

from datetime import datetime, timedelta

import pytest
from pyspark.sql import SparkSession
from pyspark.sql.types import (
    StructType, StructField, StringType, IntegerType, DoubleType, TimestampType
)

from src.utils.silver_layer_utils import ENRICHED_SNAPSHOT_SCHEMA


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


@pytest.fixture(scope="session")
def spark_session():
    """Create a Spark session for the entire test session."""
    spark = SparkSession.builder \
        .appName("test_session") \
        .master("local[1]") \
        .config("spark.sql.shuffle.partitions", "1") \
        .config("spark.ui.enabled", "false") \
        .getOrCreate()

    yield spark

    spark.stop()


@pytest.fixture
def make_snapshots(spark_session):
    """
    Build an EnrichedSnapshot DataFrame from compact tuples.

    Each tuple: (timestamp, store_id, sku_id, inventory, mrp, selling_price[, city_name])
    """
    def _make(rows):
        data = []
        for row in rows:
            ts, store_id, sku_id, inventory, mrp, selling_price = row[:6]
            city_name = row[6] if len(row) > 6 else "Mumbai"
            data.append((
                ts, 101, "Amul", f"https://img/{sku_id}.png", city_name,
                sku_id, f"SKU {sku_id}", 10, "Dairy", 1001, "Milk",
                mrp, selling_price, store_id, inventory,
            ))
        return spark_session.createDataFrame(data, ENRICHED_SNAPSHOT_SCHEMA)

    return _make


@pytest.fixture
def day():
    """Timestamp factory: day(n, hour) -> 2025-03-01 + n days at hour."""
    base = datetime(2025, 3, 1)

    def _day(n, hour=10):
        return base + timedelta(days=n, hours=hour)

    return _day


RAW_EVENT_SCHEMA = StructType([
    StructField("timestamp", TimestampType(), True),
    StructField("l1_category_id", IntegerType(), True),
    StructField("l2_category_id", IntegerType(), True),
    StructField("store_id", IntegerType(), True),
    StructField("sku_id", StringType(), True),
    StructField("sku_name", StringType(), True),
    StructField("selling_price", DoubleType(), True),
    StructField("mrp", DoubleType(), True),
    StructField("inventory", IntegerType(), True),
    StructField("image_url", StringType(), True),
    StructField("brand_id", IntegerType(), True),
    StructField("brand", StringType(), True),
    StructField("unit", StringType(), True),
])


@pytest.fixture
def make_raw_events(spark_session):
    """
    Build a raw scrape-stream DataFrame from compact tuples.

    Each tuple: (timestamp, store_id, sku_id, inventory[, l1_category_id, l2_category_id])
    """
    def _make(rows):
        data = []
        for row in rows:
            ts, store_id, sku_id, inventory = row[:4]
            l1, l2 = (row[4], row[5]) if len(row) > 5 else (10, 1001)
            data.append((
                ts, l1, l2, store_id, sku_id, f"SKU {sku_id}", 80.0, 100.0,
                inventory, f"https://img/{sku_id}.png", 101, "Amul", "500 ml",
            ))
        return spark_session.createDataFrame(data, RAW_EVENT_SCHEMA)

    return _make
