"""
Data Quality Utility Functions

Column contracts and lightweight quality metrics used between the bronze,
silver and gold layers.
"""

from pyspark.sql import DataFrame
from pyspark.sql import functions as F
from typing import Dict, Iterable, List, Optional


def require_columns(df: DataFrame, columns: Iterable[str], table_name: str) -> None:
    """
    Enforce the column contract of a layer input.

    Args:
        df: Input DataFrame
        columns: Columns the caller relies on
        table_name: Name used in the error message

    Raises:
        ValueError: If any required column is absent
    """
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise ValueError(f"{table_name} is missing required columns: {missing}")


def check_null_values(df: DataFrame, columns: List[str]) -> Dict[str, int]:
    """
    Count nulls per column in a single aggregation.

    Args:
        df: Input DataFrame
        columns: List of column names to check

    Returns:
        Dictionary with column names as keys and null counts as values
    """
    if not columns:
        return {}

    row = df.agg(*[
        F.sum(F.col(c).isNull().cast("int")).alias(c) for c in columns
    ]).first()

    return {c: int(row[c] or 0) for c in columns}


def check_duplicates(df: DataFrame, subset: Optional[List[str]] = None) -> int:
    """
    Count rows beyond the first per key (or per full row if no subset).

    Args:
        df: Input DataFrame
        subset: List of columns forming the key

    Returns:
        Count of duplicate rows
    """
    total_count = df.count()
    distinct_count = df.dropDuplicates(subset=subset).count()
    return total_count - distinct_count


def check_data_completeness(df: DataFrame, columns: Optional[List[str]] = None) -> Dict[str, float]:
    """
    Calculate completeness percentage for each column.

    Args:
        df: Input DataFrame
        columns: Columns to profile (all columns if None)

    Returns:
        Dictionary with column names and completeness percentages
    """
    columns = columns or df.columns
    total_rows = df.count()

    if total_rows == 0:
        return {c: 0.0 for c in columns}

    null_counts = check_null_values(df, columns)
    return {
        c: (total_rows - null_counts[c]) / total_rows * 100
        for c in columns
    }


def generate_quality_report(
    df: DataFrame,
    critical_columns: List[str],
    key_columns: Optional[List[str]] = None
) -> Dict:
    """
    Generate data quality report for a layer table.

    Args:
        df: Input DataFrame
        critical_columns: List of columns critical for quality
        key_columns: Grain of the table, used for the duplicate check

    Returns:
        Dictionary containing quality metrics
    """
    report = {
        "total_records": df.count(),
        "total_columns": len(df.columns),
        "null_counts": check_null_values(df, critical_columns),
        "duplicate_count": check_duplicates(df, key_columns),
        "completeness": check_data_completeness(df, critical_columns),
        "schema": df.schema.json()
    }

    return report


def log_data_quality(df: DataFrame, table_name: str, critical_columns: List[str]) -> Dict[str, int]:
    """
    Print total records and null counts for the critical columns.

    Returns:
        Null counts per critical column
    """
    total_records = df.count()
    null_counts = check_null_values(df, critical_columns)

    print(f"✅ {table_name} Quality Metrics:")
    print(f"   Total: {total_records:,}")
    for column, nulls in null_counts.items():
        pct = nulls / total_records * 100 if total_records else 0
        flag = "⚠️ " if nulls else ""
        print(f"   {flag}Null {column}: {nulls:,} ({pct:.1f}%)")

    return null_counts
