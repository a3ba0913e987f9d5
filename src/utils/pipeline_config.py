"""
Pipeline Configuration
======================

Central table names, source locations and business assumptions for the
City Insights medallion pipeline (bronze -> silver -> gold).

Notebooks override CATALOG / SCHEMA / source paths through widgets; local
runs use the defaults below.
"""

from typing import Dict

# Unity Catalog
CATALOG = "workspace"
SCHEMA = "default"


def qualified_tables(names: Dict[str, str], catalog: str = CATALOG, schema: str = SCHEMA) -> Dict[str, str]:
    """
    Prefix short table names with catalog and schema.

    Example:
        >>> qualified_tables({"city_insights": "gold_city_insights"}, "main", "blinkit")
        {'city_insights': 'main.blinkit.gold_city_insights'}
    """
    return {key: f"{catalog}.{schema}.{table}" for key, table in names.items()}


# -----------------------------------------------------------------------------
# BRONZE LAYER (RAW SOURCES)
# -----------------------------------------------------------------------------
BRONZE_TABLE_NAMES = {
    "scraping_stream": "bronze_all_blinkit_category_scraping_stream",
    "categories": "bronze_blinkit_categories",
    "city_map": "bronze_blinkit_city_map",
}

# Source CSV file names, relative to the raw landing directory
SOURCE_FILES = {
    "scraping_stream": "all_blinkit_category_scraping_stream.csv",
    "categories": "blinkit_categories.csv",
    "city_map": "blinkit_city_map.csv",
}

# -----------------------------------------------------------------------------
# SILVER LAYER
# -----------------------------------------------------------------------------
SILVER_TABLE_NAMES = {
    "category_data": "silver_all_blinkit_category_data",
    "unmapped_events": "silver_unmapped_scrape_events",
}

# -----------------------------------------------------------------------------
# GOLD LAYER (OUTPUT)
# -----------------------------------------------------------------------------
GOLD_TABLE_NAMES = {
    "city_insights": "gold_blinkit_city_insights",
}


# -----------------------------------------------------------------------------
# BUSINESS CONFIGURATION
# -----------------------------------------------------------------------------
BUSINESS_CONFIG = {
    # Snapshots preceding a restock used to impute its sales
    "restock_lookback_rows": 3,

    # Decimal places kept for the discount ratio
    "discount_precision": 4,

    # OSA ratios are expressed as percentages
    "osa_scale": 100.0,

    # Relative tolerance for KPI vs detail sum checks (percent)
    "sum_tolerance_pct": 0.01,
}

# Output grain of gold_blinkit_city_insights
CITY_INSIGHTS_GRAIN = ["date", "city_name", "sku_id"]
