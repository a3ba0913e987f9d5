"""
Silver Layer Utility Functions
==============================

Builds `silver_all_blinkit_category_data` (EnrichedSnapshot): raw scrape
events inner-joined with the store -> city and l1/l2 category mappings.

Events without both mappings are excluded from the silver table. They are
not recovered, but `find_unmapped_events` / `report_unmapped_events` expose
them as a data-quality signal.
"""

from typing import Dict

from pyspark.sql import DataFrame
from pyspark.sql.functions import broadcast, col, lit, when
from pyspark.sql.types import (
    StructType, StructField, StringType, IntegerType, DoubleType, TimestampType
)

from src.utils.bronze_layer_utils import (
    CATEGORY_MAP_COLUMNS, CITY_MAP_COLUMNS, RAW_EVENT_COLUMNS, drop_metadata_columns
)
from src.utils.data_quality import require_columns


ENRICHED_SNAPSHOT_SCHEMA = StructType([
    StructField("timestamp", TimestampType(), True),
    StructField("brand_id", IntegerType(), True),
    StructField("brand", StringType(), True),
    StructField("image_url", StringType(), True),
    StructField("city_name", StringType(), True),
    StructField("sku_id", StringType(), True),
    StructField("sku_name", StringType(), True),
    StructField("category_id", IntegerType(), True),
    StructField("category_name", StringType(), True),
    StructField("sub_category_id", IntegerType(), True),
    StructField("sub_category_name", StringType(), True),
    StructField("mrp", DoubleType(), True),
    StructField("selling_price", DoubleType(), True),
    StructField("store_id", IntegerType(), True),
    StructField("inventory", IntegerType(), True),
])

ENRICHED_SNAPSHOT_COLUMNS = [field.name for field in ENRICHED_SNAPSHOT_SCHEMA.fields]

CATEGORY_JOIN_KEYS = ["l1_category_id", "l2_category_id"]

DROP_REASONS = ["missing_city", "missing_category", "missing_city_and_category"]


def build_enriched_snapshots(
    raw_events: DataFrame,
    categories: DataFrame,
    city_map: DataFrame
) -> DataFrame:
    """
    Join raw events with city and category mappings.

    Inner joins on `store_id` and on (`l1_category_id`, `l2_category_id`);
    events without both matches are dropped.

    Args:
        raw_events: Bronze scrape stream
        categories: Bronze category mapping
        city_map: Bronze store -> city mapping

    Returns:
        EnrichedSnapshot DataFrame (columns in ENRICHED_SNAPSHOT_COLUMNS order)

    Example:
        >>> silver_df = build_enriched_snapshots(raw_df, categories_df, city_map_df)
    """
    require_columns(raw_events, RAW_EVENT_COLUMNS.keys(), "scraping_stream")
    require_columns(categories, CATEGORY_MAP_COLUMNS.keys(), "categories")
    require_columns(city_map, CITY_MAP_COLUMNS.keys(), "city_map")

    events = drop_metadata_columns(raw_events)

    df = (
        events.alias("b")
        .join(broadcast(drop_metadata_columns(city_map)).alias("m"), on="store_id", how="inner")
        .join(broadcast(drop_metadata_columns(categories)).alias("cat"), on=CATEGORY_JOIN_KEYS, how="inner")
    )

    return df.select(
        col("b.timestamp").alias("timestamp"),
        col("b.brand_id").alias("brand_id"),
        col("b.brand").alias("brand"),
        col("b.image_url").alias("image_url"),
        col("m.city_name").alias("city_name"),
        col("b.sku_id").alias("sku_id"),
        col("b.sku_name").alias("sku_name"),
        col("l1_category_id").alias("category_id"),
        col("cat.l1_category").alias("category_name"),
        col("l2_category_id").alias("sub_category_id"),
        col("cat.l2_category").alias("sub_category_name"),
        col("b.mrp").alias("mrp"),
        col("b.selling_price").alias("selling_price"),
        col("store_id"),
        col("b.inventory").alias("inventory"),
    )


def find_unmapped_events(
    raw_events: DataFrame,
    categories: DataFrame,
    city_map: DataFrame
) -> DataFrame:
    """
    Return the raw events that `build_enriched_snapshots` excludes.

    Adds `drop_reason`: missing_city, missing_category or
    missing_city_and_category.
    """
    events = drop_metadata_columns(raw_events)

    known_stores = (
        drop_metadata_columns(city_map)
        .select("store_id")
        .distinct()
        .withColumn("_has_city", lit(True))
    )
    known_categories = (
        drop_metadata_columns(categories)
        .select(*CATEGORY_JOIN_KEYS)
        .distinct()
        .withColumn("_has_category", lit(True))
    )

    flagged = (
        events
        .join(broadcast(known_stores), on="store_id", how="left")
        .join(broadcast(known_categories), on=CATEGORY_JOIN_KEYS, how="left")
    )

    return (
        flagged
        .filter(col("_has_city").isNull() | col("_has_category").isNull())
        .withColumn(
            "drop_reason",
            when(col("_has_city").isNull() & col("_has_category").isNull(), lit("missing_city_and_category"))
            .when(col("_has_city").isNull(), lit("missing_city"))
            .otherwise(lit("missing_category"))
        )
        .select(*RAW_EVENT_COLUMNS.keys(), "drop_reason")
    )


def report_unmapped_events(
    raw_events: DataFrame,
    categories: DataFrame,
    city_map: DataFrame
) -> Dict[str, int]:
    """
    Count events dropped by the silver join, per reason.

    Returns:
        Dictionary with `total_events`, `dropped_events` and one count per
        drop reason
    """
    unmapped = find_unmapped_events(raw_events, categories, city_map)

    counts = {reason: 0 for reason in DROP_REASONS}
    for row in unmapped.groupBy("drop_reason").count().collect():
        counts[row["drop_reason"]] = row["count"]

    total_events = raw_events.count()
    dropped = sum(counts.values())

    report = {"total_events": total_events, "dropped_events": dropped, **counts}

    status = "✅" if dropped == 0 else "⚠️"
    pct = dropped / total_events * 100 if total_events else 0
    print(f"{status} Unmapped scrape events: {dropped:,}/{total_events:,} ({pct:.1f}%)")
    for reason in DROP_REASONS:
        if counts[reason]:
            print(f"   {reason}: {counts[reason]:,}")

    return report
