# Databricks notebook source
# MAGIC %md
# MAGIC # Silver Layer - Category Data Enrichment
# MAGIC
# MAGIC **Purpose:** Build `silver_all_blinkit_category_data`: every scrape event joined with its store's city and its l1/l2 category names.
# MAGIC
# MAGIC **Project:** Blinkit City Insights
# MAGIC
# MAGIC ---
# MAGIC
# MAGIC ## Design Decisions
# MAGIC
# MAGIC **Inner joins:** events are kept only when the store has a city mapping **and** the (l1, l2) category pair has a category mapping. Unmapped events are not recovered.
# MAGIC
# MAGIC **Drop reporting:** excluded events are written to `silver_unmapped_scrape_events` with a `drop_reason` so mapping gaps are visible.
# MAGIC
# MAGIC **Renames:** `l1_* -> category_*`, `l2_* -> sub_category_*`.

# COMMAND ----------

# MAGIC %md
# MAGIC ## 1. Configuration

# COMMAND ----------

import os
import sys

try:
    dbutils.widgets.text("repo_root", os.path.abspath(".."), "Repository root")
    dbutils.widgets.text("catalog", "workspace", "Catalog")
    dbutils.widgets.text("schema", "default", "Schema")
except NameError:
    pass


def get_widget(name, default):
    try:
        return dbutils.widgets.get(name)
    except NameError:
        return default


sys.path.insert(0, get_widget("repo_root", os.path.abspath("..")))

from src.utils.data_quality import log_data_quality
from src.utils.pipeline_config import BRONZE_TABLE_NAMES, SILVER_TABLE_NAMES, qualified_tables
from src.utils.silver_layer_utils import (
    build_enriched_snapshots, find_unmapped_events, report_unmapped_events
)
from src.utils.spark_helpers import read_table, write_table

CATALOG = get_widget("catalog", "workspace")
SCHEMA = get_widget("schema", "default")
BRONZE_TABLES = qualified_tables(BRONZE_TABLE_NAMES, CATALOG, SCHEMA)
SILVER_TABLES = qualified_tables(SILVER_TABLE_NAMES, CATALOG, SCHEMA)

print(f"🔧 Silver enrichment -> {SILVER_TABLES['category_data']}")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 2. Load Bronze

# COMMAND ----------

df_stream = read_table(spark, BRONZE_TABLES["scraping_stream"])
df_categories = read_table(spark, BRONZE_TABLES["categories"])
df_city_map = read_table(spark, BRONZE_TABLES["city_map"])

print("✓ Bronze tables loaded")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 3. Unmapped Events (Data Quality Signal)

# COMMAND ----------

unmapped_report = report_unmapped_events(df_stream, df_categories, df_city_map)

write_table(
    find_unmapped_events(df_stream, df_categories, df_city_map),
    SILVER_TABLES["unmapped_events"]
)

# COMMAND ----------

# MAGIC %md
# MAGIC ## 4. Enriched Snapshots

# COMMAND ----------

df_silver = build_enriched_snapshots(df_stream, df_categories, df_city_map)

log_data_quality(
    df_silver, SILVER_TABLES["category_data"],
    ["timestamp", "store_id", "sku_id", "inventory", "mrp", "selling_price"]
)

write_table(df_silver, SILVER_TABLES["category_data"])
