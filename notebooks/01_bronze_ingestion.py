# Databricks notebook source
# MAGIC %md
# MAGIC # Bronze Layer - Raw Data Ingestion
# MAGIC
# MAGIC **Purpose:** Land the Blinkit category scraping stream and its two reference mappings as typed Delta tables, with lineage metadata and no business logic.
# MAGIC
# MAGIC **Project:** Blinkit City Insights
# MAGIC
# MAGIC ---
# MAGIC
# MAGIC ## Design Decisions
# MAGIC
# MAGIC **Name-based typing:** CSVs are read as strings and cast by column name, so a reordered export (the category file lists names before ids) still lands correctly. Unparseable values become null instead of failing the load.
# MAGIC
# MAGIC **Full overwrite:** every source is a complete snapshot of the batch; each table is replaced in one write.
# MAGIC
# MAGIC **Lineage:** `_metadata_ingestion_timestamp` and `_metadata_source_file` are added to every row and dropped again in Silver.
# MAGIC
# MAGIC | Source file | Target table |
# MAGIC |-------------|--------------|
# MAGIC | `all_blinkit_category_scraping_stream.csv` | `bronze_all_blinkit_category_scraping_stream` |
# MAGIC | `blinkit_categories.csv` | `bronze_blinkit_categories` |
# MAGIC | `blinkit_city_map.csv` | `bronze_blinkit_city_map` |

# COMMAND ----------

# MAGIC %md
# MAGIC ## 1. Configuration

# COMMAND ----------

import os
import sys

try:
    dbutils.widgets.text("repo_root", os.path.abspath(".."), "Repository root")
    dbutils.widgets.text("raw_dir", "/Volumes/workspace/default/blinkit_raw", "Raw landing directory")
    dbutils.widgets.text("catalog", "workspace", "Catalog")
    dbutils.widgets.text("schema", "default", "Schema")
except NameError:
    # Local runs without dbutils
    pass


def get_widget(name, default):
    try:
        return dbutils.widgets.get(name)
    except NameError:
        return default


sys.path.insert(0, get_widget("repo_root", os.path.abspath("..")))

from src.utils.bronze_layer_utils import (
    add_ingestion_metadata, read_category_map, read_city_map, read_raw_events
)
from src.utils.data_quality import log_data_quality
from src.utils.pipeline import resolve_source_paths
from src.utils.pipeline_config import BRONZE_TABLE_NAMES, qualified_tables
from src.utils.spark_helpers import write_table

RAW_DIR = get_widget("raw_dir", "/Volumes/workspace/default/blinkit_raw")
BRONZE_TABLES = qualified_tables(
    BRONZE_TABLE_NAMES, get_widget("catalog", "workspace"), get_widget("schema", "default")
)
SOURCE_PATHS = resolve_source_paths(RAW_DIR)

print(f"📥 Bronze ingestion from {RAW_DIR}")
for key, table in BRONZE_TABLES.items():
    print(f"   {SOURCE_PATHS[key]} -> {table}")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 2. Ingest Sources

# COMMAND ----------

READERS = {
    "scraping_stream": (read_raw_events, ["timestamp", "store_id", "sku_id", "inventory"]),
    "categories": (read_category_map, ["l1_category_id", "l2_category_id"]),
    "city_map": (read_city_map, ["store_id", "city_name"]),
}

for key, (reader, critical_columns) in READERS.items():
    df = add_ingestion_metadata(reader(spark, SOURCE_PATHS[key]), SOURCE_PATHS[key])
    log_data_quality(df, BRONZE_TABLES[key], critical_columns)
    write_table(df, BRONZE_TABLES[key])

# COMMAND ----------

# MAGIC %md
# MAGIC ## 3. Validation

# COMMAND ----------

print("=" * 50)
print("BRONZE INGESTION SUMMARY")
print("=" * 50)
for key, table in BRONZE_TABLES.items():
    history = spark.sql(f"DESCRIBE HISTORY {table} LIMIT 1").first()
    metrics = history["operationMetrics"] or {}
    print(f"✅ {key}: {metrics.get('numOutputRows', 'N/A')} rows ({history['operation']})")
print("=" * 50)
