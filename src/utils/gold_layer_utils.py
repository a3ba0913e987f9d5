"""
Gold Layer Utility Functions
============================

Derived metrics for gold_blinkit_city_insights: estimated units sold from
inventory snapshots, daily city/SKU aggregation, weighted on-shelf
availability, price modes, and the final left-joined insight table.

Every stage is a pure DataFrame -> DataFrame function so it can be tested
and materialized independently.
"""

from typing import List

from pyspark.sql import DataFrame, Window
from pyspark.sql.functions import (
    col, lit, when, coalesce, floor, to_date,
    sum as spark_sum, avg, count, countDistinct, min_by,
    round as spark_round, row_number, lead
)
from pyspark.sql.types import DoubleType, LongType

from src.utils.data_quality import require_columns
from src.utils.pipeline_config import BUSINESS_CONFIG, CITY_INSIGHTS_GRAIN
from src.utils.silver_layer_utils import ENRICHED_SNAPSHOT_COLUMNS


SNAPSHOT_PARTITION = ["store_id", "sku_id"]

DESCRIPTIVE_COLUMNS = [
    "sku_name", "brand_id", "brand", "image_url",
    "category_id", "category_name", "sub_category_id", "sub_category_name",
]

CITY_INSIGHTS_COLUMNS = [
    "date", "brand_id", "brand", "image_url", "city_name",
    "sku_id", "sku_name", "category_id", "category_name",
    "sub_category_id", "sub_category_name",
    "est_qty_sold", "est_sales_sp", "est_sales_mrp", "inventory",
    "listed_ds_count", "ds_count", "wt_osa_ls", "wt_osa",
    "mrp_mode", "selling_price_mode", "discount",
]


# ============================================================================
# SOLD QUANTITY ESTIMATION
# ============================================================================

def estimate_sold_quantity(
    enriched_df: DataFrame,
    lookback_rows: int = BUSINESS_CONFIG["restock_lookback_rows"],
    keep_intermediate: bool = False
) -> DataFrame:
    """
    Infer units sold between consecutive snapshots of each store × SKU.

    Per (store_id, sku_id) timeline ordered by timestamp:
    - next_inventory: inventory of the following snapshot (null for the last)
    - sold_qty: inventory - next_inventory when inventory did not rise
    - avg_prev_3_sales: mean sold_qty over the previous `lookback_rows`
      snapshots (current row excluded, nulls ignored)

    est_qty_sold:
    - drop  -> inventory - next_inventory (observed sales)
    - rise  -> floor(avg_prev_3_sales), 0 without history (restock hides sales)
    - equal -> 0
    - last snapshot -> 0

    Args:
        enriched_df: EnrichedSnapshot DataFrame
        lookback_rows: Trailing window size for restock imputation
        keep_intermediate: Keep sold_qty and avg_prev_3_sales for inspection

    Returns:
        SoldQuantityRecord DataFrame (input columns + next_inventory, est_qty_sold)

    Example:
        >>> sold_df = estimate_sold_quantity(silver_category_data)
    """
    require_columns(enriched_df, SNAPSHOT_PARTITION + ["timestamp", "inventory"], "enriched_snapshots")

    window_timeline = Window.partitionBy(*SNAPSHOT_PARTITION).orderBy("timestamp")
    window_history = window_timeline.rowsBetween(-lookback_rows, -1)

    df_with_lead = enriched_df.withColumn(
        "next_inventory", lead("inventory").over(window_timeline)
    )

    # Depletion observed between this snapshot and the next (0 when flat)
    df_with_sold = df_with_lead.withColumn(
        "sold_qty",
        when(
            col("next_inventory").isNotNull() & (col("next_inventory") <= col("inventory")),
            col("inventory") - col("next_inventory")
        )
    )

    df_with_avg = df_with_sold.withColumn(
        "avg_prev_3_sales", avg("sold_qty").over(window_history)
    )

    df_estimated = df_with_avg.withColumn(
        "est_qty_sold",
        when(
            col("next_inventory").isNotNull() & (col("next_inventory") < col("inventory")),
            col("inventory") - col("next_inventory")
        )
        .when(
            col("next_inventory").isNotNull() & (col("next_inventory") > col("inventory")),
            coalesce(floor(col("avg_prev_3_sales")), lit(0))
        )
        .otherwise(lit(0))
        .cast(LongType())
    )

    if keep_intermediate:
        return df_estimated
    return df_estimated.drop("sold_qty", "avg_prev_3_sales")


# ============================================================================
# DAILY AGGREGATION
# ============================================================================

def aggregate_daily_sku_summary(
    sold_df: DataFrame,
    discount_precision: int = BUSINESS_CONFIG["discount_precision"]
) -> DataFrame:
    """
    Roll SoldQuantityRecords up to (date, city_name, sku_id).

    Descriptive attributes take the value of the earliest snapshot of the
    group. Sales values treat a missing price as 0; discount averages
    (mrp - selling_price) / mrp over rows with a non-zero mrp.

    Args:
        sold_df: Output of estimate_sold_quantity
        discount_precision: Decimal places for discount

    Returns:
        DailySkuSummary DataFrame
    """
    require_columns(
        sold_df,
        ["timestamp", "city_name", "sku_id", "mrp", "selling_price", "inventory", "est_qty_sold"]
        + DESCRIPTIVE_COLUMNS,
        "sold_quantity"
    )

    has_mrp = col("mrp").isNotNull() & (col("mrp") != 0)

    return (
        sold_df
        .withColumn("date", to_date(col("timestamp")))
        .groupBy("date", "city_name", "sku_id")
        .agg(
            *[min_by(col(c), col("timestamp")).alias(c) for c in DESCRIPTIVE_COLUMNS],
            spark_round(
                avg(when(has_mrp, (col("mrp") - col("selling_price")) / col("mrp"))),
                discount_precision
            ).alias("discount"),
            spark_sum("inventory").alias("inventory"),
            spark_sum("est_qty_sold").alias("est_qty_sold"),
            spark_sum(col("est_qty_sold") * coalesce(col("mrp"), lit(0.0))).alias("est_sales_mrp"),
            spark_sum(col("est_qty_sold") * coalesce(col("selling_price"), lit(0.0))).alias("est_sales_sp"),
        )
    )


# ============================================================================
# ON-SHELF AVAILABILITY
# ============================================================================

def calculate_sku_availability(enriched_df: DataFrame) -> DataFrame:
    """
    Count in-stock and listed stores per SKU over the whole batch.

    Returns:
        DataFrame: sku_id, stores_in_stock, total_listed_stores_per_sku
    """
    require_columns(enriched_df, ["sku_id", "store_id", "inventory"], "enriched_snapshots")

    return (
        enriched_df
        .groupBy("sku_id")
        .agg(
            countDistinct(when(col("inventory") > 0, col("store_id"))).alias("stores_in_stock"),
            countDistinct("store_id").alias("total_listed_stores_per_sku"),
        )
    )


def calculate_dark_store_coverage(raw_events: DataFrame) -> DataFrame:
    """
    Count distinct dark stores that ever scraped each SKU.

    Uses the raw (pre-mapping) events, so stores without a city mapping
    are still counted.

    Returns:
        DataFrame: sku_id, total_listed_dark_stores
    """
    require_columns(raw_events, ["sku_id", "store_id"], "scraping_stream")

    return (
        raw_events
        .groupBy("sku_id")
        .agg(countDistinct("store_id").alias("total_listed_dark_stores"))
    )


def calculate_total_dark_stores(raw_events: DataFrame) -> DataFrame:
    """Single-row DataFrame with the fleet size across all SKUs."""
    require_columns(raw_events, ["store_id"], "scraping_stream")
    return raw_events.agg(countDistinct("store_id").alias("total_dark_stores"))


def _safe_pct(numerator, denominator, scale: float):
    return (
        when(coalesce(denominator, lit(0)) == 0, lit(0.0))
        .otherwise(numerator.cast(DoubleType()) / denominator.cast(DoubleType()) * scale)
    )


def calculate_weighted_osa_ls(
    availability_df: DataFrame,
    scale: float = BUSINESS_CONFIG["osa_scale"]
) -> DataFrame:
    """
    OSA relative to the SKU's own listed footprint.

    wt_osa_ls = stores_in_stock / total_listed_stores_per_sku × 100 (0 if no listing)

    Returns:
        DataFrame: sku_id, wt_osa_ls
    """
    return availability_df.select(
        col("sku_id"),
        _safe_pct(col("stores_in_stock"), col("total_listed_stores_per_sku"), scale).alias("wt_osa_ls"),
    )


def calculate_weighted_osa(
    availability_df: DataFrame,
    raw_events: DataFrame,
    scale: float = BUSINESS_CONFIG["osa_scale"]
) -> DataFrame:
    """
    OSA relative to the whole dark-store fleet.

    wt_osa = stores_in_stock / total_dark_stores × 100 (0 if the fleet is empty)

    Returns:
        DataFrame: sku_id, stores_in_stock, total_dark_stores, wt_osa
    """
    total_stores = calculate_total_dark_stores(raw_events)

    return (
        availability_df
        .crossJoin(total_stores)
        .select(
            col("sku_id"),
            col("stores_in_stock"),
            col("total_dark_stores"),
            _safe_pct(col("stores_in_stock"), col("total_dark_stores"), scale).alias("wt_osa"),
        )
    )


# ============================================================================
# PRICE MODES
# ============================================================================

def resolve_mode(enriched_df: DataFrame, value_col: str, alias: str) -> DataFrame:
    """
    Most frequent non-null value of `value_col` per SKU.

    Ties resolve to the smallest value, so the result does not depend on
    input order.

    Returns:
        DataFrame: sku_id, <alias>
    """
    require_columns(enriched_df, ["sku_id", value_col], "enriched_snapshots")

    window_rank = Window.partitionBy("sku_id").orderBy(col("cnt").desc(), col(value_col).asc())

    return (
        enriched_df
        # A missing price is never reported as the mode, even when most frequent
        .filter(col(value_col).isNotNull())
        .groupBy("sku_id", value_col)
        .agg(count("*").alias("cnt"))
        .withColumn("rn", row_number().over(window_rank))
        .filter(col("rn") == 1)
        .select(col("sku_id"), col(value_col).alias(alias))
    )


def resolve_price_modes(enriched_df: DataFrame) -> DataFrame:
    """
    MRP and selling price modes per SKU.

    Returns:
        DataFrame: sku_id, mrp_mode, selling_price_mode
    """
    mrp_mode = resolve_mode(enriched_df, "mrp", "mrp_mode")
    sp_mode = resolve_mode(enriched_df, "selling_price", "selling_price_mode")

    return mrp_mode.join(sp_mode, on="sku_id", how="full_outer")


# ============================================================================
# CITY INSIGHTS ASSEMBLY
# ============================================================================

def assemble_city_insights(
    summary_df: DataFrame,
    availability_df: DataFrame,
    osa_ls_df: DataFrame,
    osa_df: DataFrame,
    dark_stores_df: DataFrame,
    modes_df: DataFrame
) -> DataFrame:
    """
    Left-join per-SKU lookups onto the daily summary.

    Every summary row is kept exactly once; SKUs missing from a lookup get
    nulls for its columns.

    Returns:
        CityInsight DataFrame (columns in CITY_INSIGHTS_COLUMNS order)
    """
    lookups = [
        availability_df.select(
            "sku_id", col("total_listed_stores_per_sku").alias("listed_ds_count")
        ),
        osa_ls_df.select("sku_id", "wt_osa_ls"),
        osa_df.select("sku_id", "wt_osa"),
        dark_stores_df.select("sku_id", col("total_listed_dark_stores").alias("ds_count")),
        modes_df.select("sku_id", "mrp_mode", "selling_price_mode"),
    ]

    df = summary_df
    for lookup in lookups:
        df = df.join(lookup.dropDuplicates(["sku_id"]), on="sku_id", how="left")

    return df.select(*CITY_INSIGHTS_COLUMNS)


def build_city_insights(enriched_df: DataFrame, raw_events: DataFrame) -> DataFrame:
    """
    Run all gold stages: sold quantity -> daily summary, availability,
    OSA, price modes -> city insights.

    Args:
        enriched_df: silver_all_blinkit_category_data
        raw_events: bronze scrape stream (for dark-store counts)

    Returns:
        gold_blinkit_city_insights DataFrame

    Example:
        >>> insights = build_city_insights(silver_df, bronze_stream_df)
    """
    require_columns(enriched_df, ENRICHED_SNAPSHOT_COLUMNS, "enriched_snapshots")

    sold_df = estimate_sold_quantity(enriched_df)
    summary_df = aggregate_daily_sku_summary(sold_df)

    availability_df = calculate_sku_availability(enriched_df)
    osa_ls_df = calculate_weighted_osa_ls(availability_df)
    osa_df = calculate_weighted_osa(availability_df, raw_events)
    dark_stores_df = calculate_dark_store_coverage(raw_events)
    modes_df = resolve_price_modes(enriched_df)

    return assemble_city_insights(
        summary_df, availability_df, osa_ls_df, osa_df, dark_stores_df, modes_df
    )


# ============================================================================
# VALIDATION & QUALITY CHECKS
# ============================================================================

def validate_grain_uniqueness(
    df: DataFrame,
    key_columns: List[str] = CITY_INSIGHTS_GRAIN,
    table_name: str = "gold_blinkit_city_insights"
) -> bool:
    """
    Validate one row per grain key.

    Example:
        >>> assert validate_grain_uniqueness(insights_df)
    """
    total_rows = df.count()
    unique_keys = df.select(*key_columns).distinct().count()

    is_valid = total_rows == unique_keys
    status = "✅ PASS" if is_valid else "❌ FAIL"
    print(f"{status}: {table_name} - {unique_keys}/{total_rows} unique {tuple(key_columns)} keys")

    return is_valid


def validate_non_negative(df: DataFrame, column: str, table_name: str) -> bool:
    """
    Validate that a quantity column never goes below zero.

    Example:
        >>> assert validate_non_negative(sold_df, "est_qty_sold", "sold_quantity")
    """
    negatives = df.filter(col(column) < 0).count()

    is_valid = negatives == 0
    status = "✅ PASS" if is_valid else "❌ FAIL"
    print(f"{status}: {table_name} - {negatives} rows with negative {column}")

    return is_valid


def validate_osa_bounds(df: DataFrame, table_name: str = "gold_blinkit_city_insights") -> bool:
    """
    Validate 0 <= wt_osa <= wt_osa_ls <= 100 for every row with both ratios.
    """
    scale = BUSINESS_CONFIG["osa_scale"]
    tolerance = 1e-9

    violations = (
        df
        .filter(col("wt_osa").isNotNull() & col("wt_osa_ls").isNotNull())
        .filter(
            (col("wt_osa") < 0)
            | (col("wt_osa_ls") > scale + tolerance)
            | (col("wt_osa") > col("wt_osa_ls") + tolerance)
        )
        .count()
    )

    is_valid = violations == 0
    status = "✅ PASS" if is_valid else "❌ FAIL"
    print(f"{status}: {table_name} - {violations} rows outside 0 <= wt_osa <= wt_osa_ls <= {scale:.0f}")

    return is_valid


def validate_sum_consistency(
    summary_df: DataFrame,
    detail_df: DataFrame,
    metric: str,
    table_name: str,
    tolerance_pct: float = BUSINESS_CONFIG["sum_tolerance_pct"]
) -> bool:
    """
    Validate that an aggregated metric matches the sum over its detail rows.

    Example:
        >>> assert validate_sum_consistency(
        ...     insights_df, sold_df, "est_qty_sold", "city insights vs sold quantity"
        ... )
    """
    summary_sum = summary_df.agg(spark_sum(metric)).collect()[0][0] or 0
    detail_sum = detail_df.agg(spark_sum(metric)).collect()[0][0] or 0

    if detail_sum == 0:
        is_valid = summary_sum == 0
    else:
        variance_pct = abs(summary_sum - detail_sum) / abs(detail_sum) * 100
        is_valid = variance_pct < tolerance_pct

    status = "✅ PASS" if is_valid else "❌ FAIL"
    print(f"{status}: {table_name} - {metric} summary {summary_sum:.2f} vs detail {detail_sum:.2f}")

    return is_valid


def count_price_inversions(df: DataFrame) -> int:
    """Rows where estimated sales at selling price exceed sales at MRP."""
    return df.filter(
        (col("est_sales_sp") - col("est_sales_mrp")) > 1e-9
    ).count()
