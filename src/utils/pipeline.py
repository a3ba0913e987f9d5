"""
City Insights Pipeline Runner
=============================

End-to-end batch run: bronze CSV sources -> silver enriched snapshots ->
gold city insights -> validation -> single overwrite publish.

Each run recomputes the full output from the full input.
"""

import os
from datetime import datetime
from typing import Dict, Optional, Tuple

from pyspark.sql import DataFrame, SparkSession

from src.utils.bronze_layer_utils import read_category_map, read_city_map, read_raw_events
from src.utils.gold_layer_utils import (
    build_city_insights,
    count_price_inversions,
    estimate_sold_quantity,
    validate_grain_uniqueness,
    validate_non_negative,
    validate_osa_bounds,
    validate_sum_consistency,
)
from src.utils.pipeline_config import SOURCE_FILES
from src.utils.silver_layer_utils import build_enriched_snapshots, report_unmapped_events
from src.utils.spark_helpers import write_table


def resolve_source_paths(raw_dir: str) -> Dict[str, str]:
    """
    Map each source key to its CSV path under the raw landing directory.

    Example:
        >>> resolve_source_paths("/Volumes/workspace/default/blinkit_raw")["city_map"]
        '/Volumes/workspace/default/blinkit_raw/blinkit_city_map.csv'
    """
    return {key: os.path.join(raw_dir, file_name) for key, file_name in SOURCE_FILES.items()}


def load_sources(spark: SparkSession, source_paths: Dict[str, str]) -> Dict[str, DataFrame]:
    """Read the three bronze sources."""
    return {
        "scraping_stream": read_raw_events(spark, source_paths["scraping_stream"]),
        "categories": read_category_map(spark, source_paths["categories"]),
        "city_map": read_city_map(spark, source_paths["city_map"]),
    }


def validate_city_insights(insights_df: DataFrame, enriched_df: DataFrame) -> Dict[str, bool]:
    """
    Run the gold checks on a freshly built insights table.

    Returns:
        Check name -> passed
    """
    print("=" * 60)
    print("GOLD_BLINKIT_CITY_INSIGHTS VALIDATION")
    print("=" * 60)

    sold_df = estimate_sold_quantity(enriched_df)

    results = {
        "grain_unique": validate_grain_uniqueness(insights_df),
        "est_qty_sold_non_negative": validate_non_negative(
            insights_df, "est_qty_sold", "gold_blinkit_city_insights"
        ),
        "osa_bounds": validate_osa_bounds(insights_df),
        "est_qty_sold_sum": validate_sum_consistency(
            insights_df, sold_df, "est_qty_sold", "city insights vs sold quantity"
        ),
        "inventory_sum": validate_sum_consistency(
            insights_df, enriched_df, "inventory", "city insights vs silver inventory"
        ),
    }

    inversions = count_price_inversions(insights_df)
    if inversions:
        print(f"⚠️ {inversions} rows with est_sales_sp > est_sales_mrp (selling price above MRP)")

    print("=" * 60)
    return results


def run_city_insights_pipeline(
    spark: SparkSession,
    source_paths: Dict[str, str],
    output: Optional[str] = None,
    fmt: str = "delta",
    stop_on_error: bool = True
) -> Tuple[DataFrame, Dict]:
    """
    Build gold_blinkit_city_insights from the raw sources.

    Args:
        spark: SparkSession
        source_paths: Keys scraping_stream, categories, city_map -> CSV path
        output: Path or table name to publish to; nothing is written if None
        fmt: Storage format for the published table
        stop_on_error: Raise instead of publishing when a check fails

    Returns:
        (city insights DataFrame, run summary)

    Raises:
        RuntimeError: If a validation check fails and stop_on_error is set
    """
    started_at = datetime.now()
    print(f"🏪 City Insights Pipeline started at {started_at:%Y-%m-%d %H:%M:%S}")

    sources = load_sources(spark, source_paths)
    print("✓ Bronze sources loaded")

    unmapped_report = report_unmapped_events(
        sources["scraping_stream"], sources["categories"], sources["city_map"]
    )

    enriched_df = build_enriched_snapshots(
        sources["scraping_stream"], sources["categories"], sources["city_map"]
    ).cache()
    print("✓ Silver enriched snapshots built")

    insights_df = build_city_insights(enriched_df, sources["scraping_stream"]).cache()
    print("✓ Gold city insights computed")

    try:
        checks = validate_city_insights(insights_df, enriched_df)
    finally:
        # Only the published insights stay cached
        enriched_df.unpersist()

    failed = [name for name, passed in checks.items() if not passed]

    if failed and stop_on_error:
        raise RuntimeError(f"City insights validation failed: {failed}")

    if output:
        write_table(insights_df, output, fmt=fmt)

    summary = {
        "started_at": started_at,
        "finished_at": datetime.now(),
        "unmapped_events": unmapped_report,
        "checks": checks,
        "failed_checks": failed,
        "output": output,
    }

    status = "✅" if not failed else "❌"
    print(f"{status} City Insights Pipeline finished ({len(failed)} failed checks)")

    return insights_df, summary


def main(argv=None):
    """Command-line entry point for local or spark-submit runs."""
    import argparse

    from src.utils.spark_helpers import get_spark_session

    parser = argparse.ArgumentParser(description="Build gold_blinkit_city_insights from raw CSV sources")
    parser.add_argument("raw_dir", help="Directory holding the three source CSVs")
    parser.add_argument(
        "output", help="Output path, or a dotted catalog table name (schema.table or catalog.schema.table)"
    )
    parser.add_argument("--format", default="delta", choices=["delta", "parquet"],
                        help="parquet publishes to paths only")
    parser.add_argument("--master", default=None, help="Spark master, e.g. local[*]")
    parser.add_argument("--no-stop-on-error", action="store_true", help="Publish even if checks fail")
    args = parser.parse_args(argv)

    spark = get_spark_session(master=args.master, enable_delta=args.format == "delta")
    _, summary = run_city_insights_pipeline(
        spark,
        resolve_source_paths(args.raw_dir),
        output=args.output,
        fmt=args.format,
        stop_on_error=not args.no_stop_on_error,
    )
    return 1 if summary["failed_checks"] else 0


if __name__ == "__main__":
    raise SystemExit(main())
