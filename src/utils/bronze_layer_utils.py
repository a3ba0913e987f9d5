"""
Bronze Layer Utility Functions
==============================

Reads the raw scrape stream and the two reference mappings from CSV with
explicit, name-based typing. No business logic lives here: the bronze
tables preserve the source records plus `_metadata_` lineage columns.
"""

from typing import Dict

from pyspark.sql import DataFrame, SparkSession
from pyspark.sql.functions import current_timestamp, lit

from src.utils.data_quality import require_columns
from src.utils.spark_helpers import cast_columns


# ============================================================================
# SOURCE CONTRACTS (column -> Spark SQL type, in table order)
# ============================================================================

RAW_EVENT_COLUMNS: Dict[str, str] = {
    "timestamp": "timestamp",
    "l1_category_id": "int",
    "l2_category_id": "int",
    "store_id": "int",
    "sku_id": "string",
    "sku_name": "string",
    "selling_price": "double",
    "mrp": "double",
    "inventory": "int",
    "image_url": "string",
    "brand_id": "int",
    "brand": "string",
    "unit": "string",
}

CATEGORY_MAP_COLUMNS: Dict[str, str] = {
    "l1_category_id": "int",
    "l1_category": "string",
    "l2_category_id": "int",
    "l2_category": "string",
}

CITY_MAP_COLUMNS: Dict[str, str] = {
    "store_id": "int",
    "city_name": "string",
}

# Source exports name the snapshot time `created_at`
SOURCE_COLUMN_RENAMES = {"created_at": "timestamp"}

METADATA_PREFIX = "_metadata_"


def conform_to_contract(df: DataFrame, column_types: Dict[str, str], table_name: str) -> DataFrame:
    """
    Rename source columns, cast by name and select in contract order.

    Extra source columns are dropped; missing ones raise.

    Args:
        df: DataFrame as read from the source (any column order)
        column_types: Target contract
        table_name: Name used in error messages

    Returns:
        DataFrame matching the contract
    """
    for source_name, target_name in SOURCE_COLUMN_RENAMES.items():
        if source_name in df.columns and target_name not in df.columns:
            df = df.withColumnRenamed(source_name, target_name)

    require_columns(df, column_types.keys(), table_name)

    df = cast_columns(df, column_types, safe=True)
    return df.select(*column_types.keys())


def read_csv_source(
    spark: SparkSession,
    path: str,
    column_types: Dict[str, str],
    table_name: str
) -> DataFrame:
    """
    Read a header CSV as strings and apply the column contract.

    Values that fail to cast become null (Spark cast semantics).
    """
    df = (
        spark.read
        .option("header", True)
        .option("inferSchema", False)
        .option("encoding", "UTF-8")
        .option("multiLine", True)
        .option("escape", '"')
        .csv(path)
    )
    return conform_to_contract(df, column_types, table_name)


def read_raw_events(spark: SparkSession, path: str) -> DataFrame:
    """Read the raw category scraping stream."""
    return read_csv_source(spark, path, RAW_EVENT_COLUMNS, "scraping_stream")


def read_category_map(spark: SparkSession, path: str) -> DataFrame:
    """Read the l1/l2 category reference mapping."""
    return read_csv_source(spark, path, CATEGORY_MAP_COLUMNS, "categories")


def read_city_map(spark: SparkSession, path: str) -> DataFrame:
    """Read the store -> city reference mapping."""
    return read_csv_source(spark, path, CITY_MAP_COLUMNS, "city_map")


def add_ingestion_metadata(df: DataFrame, source_file: str) -> DataFrame:
    """
    Add lineage columns using the `_metadata_` prefix.

    Args:
        df: Bronze DataFrame
        source_file: Originating file path

    Returns:
        DataFrame with `_metadata_ingestion_timestamp` and `_metadata_source_file`
    """
    return (
        df
        .withColumn(f"{METADATA_PREFIX}ingestion_timestamp", current_timestamp())
        .withColumn(f"{METADATA_PREFIX}source_file", lit(source_file))
    )


def drop_metadata_columns(df: DataFrame) -> DataFrame:
    """Remove bronze lineage columns before business transformations."""
    return df.drop(*[c for c in df.columns if c.startswith(METADATA_PREFIX)])
