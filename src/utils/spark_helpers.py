"""
Spark Helper Functions

This module contains helper functions for session creation, table I/O and
type casting shared by the bronze, silver and gold layers.
"""

import uuid

from pyspark.sql import SparkSession, DataFrame
from pyspark.sql import functions as F
from typing import Optional, Dict, List


def get_spark_session(
    app_name: str = "Blinkit_City_Insights",
    master: Optional[str] = None,
    enable_delta: bool = True
) -> SparkSession:
    """
    Create or get existing Spark session.

    Args:
        app_name: Name of the Spark application
        master: Spark master URL (e.g. "local[*]"); cluster default if None
        enable_delta: Register the Delta Lake extension and catalog

    Returns:
        SparkSession object
    """
    builder = SparkSession.builder.appName(app_name)

    if master:
        builder = builder.master(master)

    if enable_delta:
        from delta import configure_spark_with_delta_pip

        builder = builder \
            .config("spark.sql.extensions", "io.delta.sql.DeltaSparkSessionExtension") \
            .config("spark.sql.catalog.spark_catalog", "org.apache.spark.sql.delta.catalog.DeltaCatalog")
        builder = configure_spark_with_delta_pip(builder)

    return builder.getOrCreate()


def is_path(target: str) -> bool:
    """
    Catalog table names are dotted (schema.table or catalog.schema.table);
    anything else, including a bare relative name, is a storage path.
    """
    if "/" in target or "\\" in target:
        return True
    return "." not in target


def read_table(spark: SparkSession, target: str, fmt: str = "delta") -> DataFrame:
    """
    Read a table from a storage path or a catalog table name.

    Args:
        spark: SparkSession object
        target: Storage path or catalog.schema.table name
        fmt: Storage format used for paths

    Returns:
        DataFrame
    """
    if is_path(target):
        return spark.read.format(fmt).load(target)
    return spark.read.table(target)


def _hadoop_path(spark: SparkSession, path: str):
    """Hadoop Path and its FileSystem for `path`."""
    jvm_path = spark._jvm.org.apache.hadoop.fs.Path(path)
    return jvm_path, jvm_path.getFileSystem(spark._jsc.hadoopConfiguration())


def _publish_files(writer, spark: SparkSession, target: str) -> None:
    """
    Write to a staging directory next to `target`, then swap it in.

    The previous output stays in place until the new files are complete.
    A failed write removes the staging directory and leaves `target` as it was.
    """
    run_id = uuid.uuid4().hex
    staging = f"{target.rstrip('/')}._staging_{run_id}"
    previous = f"{target.rstrip('/')}._previous_{run_id}"

    staging_path, fs = _hadoop_path(spark, staging)
    target_path, _ = _hadoop_path(spark, target)
    previous_path, _ = _hadoop_path(spark, previous)

    try:
        writer.save(staging)
    except Exception:
        fs.delete(staging_path, True)
        raise

    had_previous = fs.exists(target_path)
    if had_previous and not fs.rename(target_path, previous_path):
        fs.delete(staging_path, True)
        raise OSError(f"Could not move existing output aside: {target}")

    if not fs.rename(staging_path, target_path):
        if had_previous:
            fs.rename(previous_path, target_path)
        fs.delete(staging_path, True)
        raise OSError(f"Could not publish staged output to {target}")

    if had_previous:
        fs.delete(previous_path, True)


def write_table(
    df: DataFrame,
    target: str,
    fmt: str = "delta",
    partition_by: Optional[List[str]] = None
) -> None:
    """
    Publish DataFrame, replacing the whole previous output.

    Delta targets are replaced in one overwrite commit, so readers see either
    the previous version or the new one. Other formats can only be written to
    paths: the batch is staged beside the target and moved into place once
    complete, so a failed write leaves the previous output readable.

    Args:
        df: DataFrame to write
        target: Storage path or catalog.schema.table name
        fmt: Storage format (delta, parquet)
        partition_by: List of columns to partition by

    Raises:
        ValueError: If a non-Delta format targets a catalog table
    """
    writer = df.write.format(fmt).mode("overwrite")

    if fmt == "delta":
        writer = writer.option("overwriteSchema", "true")

    if partition_by:
        writer = writer.partitionBy(*partition_by)

    if fmt == "delta":
        if is_path(target):
            writer.save(target)
        else:
            writer.saveAsTable(target)
    elif is_path(target):
        _publish_files(writer, df.sparkSession, target)
    else:
        raise ValueError(f"Catalog tables are published as delta, got format={fmt} for {target}")

    print(f"✅ Written to {target} (format={fmt}, mode=overwrite)")


def cast_columns(df: DataFrame, column_types: Dict[str, str], safe: bool = False) -> DataFrame:
    """
    Cast multiple columns to specified types.

    Args:
        df: Input DataFrame
        column_types: Dictionary mapping column names to target types
        safe: Use try_cast so unparseable values become null even with ANSI mode on

    Returns:
        DataFrame with casted columns
    """
    for col_name, col_type in column_types.items():
        if safe:
            df = df.withColumn(col_name, F.expr(f"try_cast(`{col_name}` AS {col_type})"))
        else:
            df = df.withColumn(col_name, F.col(col_name).cast(col_type))

    return df
