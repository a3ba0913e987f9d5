# Databricks notebook source
# MAGIC %md
# MAGIC # Gold: Blinkit City Insights
# MAGIC
# MAGIC **Purpose:** Derive estimated sales, on-shelf availability and price statistics per date × city × SKU from inventory snapshots.
# MAGIC
# MAGIC **Project:** Blinkit City Insights
# MAGIC
# MAGIC ---
# MAGIC
# MAGIC ## Design Decisions
# MAGIC
# MAGIC **⚠️ IMPORTANT: Sales Estimation Model**
# MAGIC
# MAGIC No transactions are observed, only periodic inventory reads per store × SKU:
# MAGIC
# MAGIC 1. **Drop** between two snapshots = units sold
# MAGIC 2. **Rise** (restock) hides sales -> average observed sales of the previous 3 snapshots, 0 without history
# MAGIC 3. **Flat** or **last snapshot** -> 0
# MAGIC
# MAGIC **Availability:**
# MAGIC ```
# MAGIC wt_osa_ls = stores_in_stock / stores listing the SKU × 100
# MAGIC wt_osa    = stores_in_stock / all dark stores in the raw stream × 100
# MAGIC ```
# MAGIC Zero denominators give 0.
# MAGIC
# MAGIC **Grain:** One row per date × city_name × sku_id
# MAGIC
# MAGIC **Write:** one overwrite of the whole table per run.

# COMMAND ----------

# MAGIC %md
# MAGIC ## 1. Configuration

# COMMAND ----------

import os
import sys

try:
    dbutils.widgets.text("repo_root", os.path.abspath("../.."), "Repository root")
    dbutils.widgets.text("catalog", "workspace", "Catalog")
    dbutils.widgets.text("schema", "default", "Schema")
    dbutils.widgets.dropdown("stop_on_error", "yes", ["yes", "no"], "Stop on Error")
except NameError:
    pass


def get_widget(name, default):
    try:
        return dbutils.widgets.get(name)
    except NameError:
        return default


sys.path.insert(0, get_widget("repo_root", os.path.abspath("../..")))

from src.utils.gold_layer_utils import build_city_insights
from src.utils.pipeline import validate_city_insights
from src.utils.pipeline_config import (
    BRONZE_TABLE_NAMES, SILVER_TABLE_NAMES, GOLD_TABLE_NAMES, BUSINESS_CONFIG, qualified_tables
)
from src.utils.spark_helpers import read_table, write_table

CATALOG = get_widget("catalog", "workspace")
SCHEMA = get_widget("schema", "default")
STOP_ON_ERROR = get_widget("stop_on_error", "yes") == "yes"

BRONZE_STREAM = qualified_tables(BRONZE_TABLE_NAMES, CATALOG, SCHEMA)["scraping_stream"]
SILVER_CATEGORY_DATA = qualified_tables(SILVER_TABLE_NAMES, CATALOG, SCHEMA)["category_data"]
GOLD_CITY_INSIGHTS = qualified_tables(GOLD_TABLE_NAMES, CATALOG, SCHEMA)["city_insights"]

print(f"📦 Processing City Insights")
print(f"   Source: {SILVER_CATEGORY_DATA}, {BRONZE_STREAM}")
print(f"   Target: {GOLD_CITY_INSIGHTS}")
print(f"   ⚠️ Sales are ESTIMATED from inventory deltas "
      f"(restock lookback = {BUSINESS_CONFIG['restock_lookback_rows']} snapshots)")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 2. Build

# COMMAND ----------

df_silver = read_table(spark, SILVER_CATEGORY_DATA).cache()
df_stream = read_table(spark, BRONZE_STREAM)

df_insights = build_city_insights(df_silver, df_stream).cache()

print("✓ City insights computed")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 3. Validate & Write

# COMMAND ----------

checks = validate_city_insights(df_insights, df_silver)
failed = [name for name, passed in checks.items() if not passed]

if failed and STOP_ON_ERROR:
    raise RuntimeError(f"City insights validation failed: {failed}")

write_table(df_insights, GOLD_CITY_INSIGHTS, partition_by=["date"])

# COMMAND ----------

# MAGIC %md
# MAGIC ## 4. Schema Documentation
# MAGIC
# MAGIC | Column | Type | Description |
# MAGIC |--------|------|-------------|
# MAGIC | `date` | DATE | Snapshot date (partition key) |
# MAGIC | `city_name` | STRING | City of the dark store |
# MAGIC | `sku_id` | STRING | SKU |
# MAGIC | `est_qty_sold` | BIGINT | Estimated units sold |
# MAGIC | `est_sales_sp` | DOUBLE | est_qty_sold × selling_price |
# MAGIC | `est_sales_mrp` | DOUBLE | est_qty_sold × mrp |
# MAGIC | `inventory` | BIGINT | Summed inventory of the day's snapshots |
# MAGIC | `listed_ds_count` | BIGINT | Mapped stores that listed the SKU |
# MAGIC | `ds_count` | BIGINT | Raw-stream stores that listed the SKU |
# MAGIC | `wt_osa_ls` | DOUBLE | OSA % over the SKU's own listing |
# MAGIC | `wt_osa` | DOUBLE | OSA % over all dark stores |
# MAGIC | `mrp_mode` | DOUBLE | Most frequent MRP (ties -> lowest) |
# MAGIC | `selling_price_mode` | DOUBLE | Most frequent selling price (ties -> lowest) |
# MAGIC | `discount` | DOUBLE | Avg (mrp - selling_price) / mrp, 4 decimals |
