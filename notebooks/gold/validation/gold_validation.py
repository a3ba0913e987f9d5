# Databricks notebook source
# MAGIC %md
# MAGIC # Gold Layer Validation (Read-Only)
# MAGIC
# MAGIC **Purpose:** Post-execution checks of `gold_blinkit_city_insights` using Delta metadata and lightweight queries.
# MAGIC
# MAGIC **Project:** Blinkit City Insights
# MAGIC
# MAGIC ---
# MAGIC
# MAGIC **This notebook is READ-ONLY.**
# MAGIC
# MAGIC 1. **Metadata Validation** - existence and freshness (Delta History)
# MAGIC 2. **Grain** - one row per date × city × SKU
# MAGIC 3. **Business Rules** - non-negative sales, OSA bounds
# MAGIC 4. **Data Quality Report** - nulls and completeness of key columns

# COMMAND ----------

import os
import sys
from datetime import datetime, timedelta

try:
    dbutils.widgets.text("repo_root", os.path.abspath("../../.."), "Repository root")
    dbutils.widgets.text("catalog", "workspace", "Catalog")
    dbutils.widgets.text("schema", "default", "Schema")
except NameError:
    pass


def get_widget(name, default):
    try:
        return dbutils.widgets.get(name)
    except NameError:
        return default


sys.path.insert(0, get_widget("repo_root", os.path.abspath("../../..")))

from src.utils.data_quality import generate_quality_report
from src.utils.gold_layer_utils import (
    validate_grain_uniqueness, validate_non_negative, validate_osa_bounds
)
from src.utils.pipeline_config import CITY_INSIGHTS_GRAIN, GOLD_TABLE_NAMES, qualified_tables

GOLD_CITY_INSIGHTS = qualified_tables(
    GOLD_TABLE_NAMES, get_widget("catalog", "workspace"), get_widget("schema", "default")
)["city_insights"]

FRESHNESS_THRESHOLD_HOURS = 24

validation_results = []

print("🔍 Gold Layer Validation Started")
print(f"   Table: {GOLD_CITY_INSIGHTS}")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 1. Metadata Validation

# COMMAND ----------


def validate_table_freshness(table_path, threshold_hours):
    """Check table freshness using Delta History."""
    try:
        history = spark.sql(f"DESCRIBE HISTORY {table_path} LIMIT 1").first()
    except Exception as e:
        return {"check": "freshness", "passed": False, "details": str(e)}

    last_update = history["timestamp"]
    is_fresh = last_update > datetime.now() - timedelta(hours=threshold_hours)
    return {
        "check": "freshness",
        "passed": is_fresh,
        "details": f"Last update: {last_update}, Threshold: {threshold_hours}h"
    }


exists = spark.catalog.tableExists(GOLD_CITY_INSIGHTS)
validation_results.append({"check": "exists", "passed": exists, "details": GOLD_CITY_INSIGHTS})

if exists:
    validation_results.append(validate_table_freshness(GOLD_CITY_INSIGHTS, FRESHNESS_THRESHOLD_HOURS))

for result in validation_results:
    status = "✅" if result["passed"] else "❌"
    print(f"{status} {result['check']}: {result['details']}")

# COMMAND ----------

# MAGIC %md
# MAGIC ## 2. Business Rules

# COMMAND ----------

if exists:
    df = spark.read.table(GOLD_CITY_INSIGHTS)

    validation_results.append({"check": "grain", "passed": validate_grain_uniqueness(df), "details": ""})
    validation_results.append({
        "check": "est_qty_sold_non_negative",
        "passed": validate_non_negative(df, "est_qty_sold", GOLD_CITY_INSIGHTS),
        "details": ""
    })
    validation_results.append({"check": "osa_bounds", "passed": validate_osa_bounds(df), "details": ""})

    report = generate_quality_report(
        df, ["est_qty_sold", "wt_osa", "wt_osa_ls", "mrp_mode", "discount"], CITY_INSIGHTS_GRAIN
    )
    print(f"   Rows: {report['total_records']:,}")
    for column, pct in report["completeness"].items():
        print(f"   {column}: {pct:.1f}% complete")

# COMMAND ----------

failed = [r["check"] for r in validation_results if not r["passed"]]

print("=" * 60)
if failed:
    print(f"❌ VALIDATION FAILED: {failed}")
    raise RuntimeError(f"Gold validation failed: {failed}")
print(f"✅ ALL {len(validation_results)} CHECKS PASSED")
print("=" * 60)
