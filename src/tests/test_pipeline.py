"""
End-to-end pipeline test: CSV sources -> published city insights.
"""

import pytest

from src.utils.pipeline import resolve_source_paths, run_city_insights_pipeline
from src.utils.pipeline_config import SOURCE_FILES
from src.utils.spark_helpers import read_table


STREAM_HEADER = (
    "created_at,l1_category_id,l2_category_id,store_id,sku_id,sku_name,"
    "selling_price,mrp,inventory,image_url,brand_id,brand,unit"
)


def stream_line(ts, store_id, sku_id, inventory, selling_price=80.0, mrp=100.0, l1=10, l2=1001):
    return (
        f"{ts},{l1},{l2},{store_id},{sku_id},SKU {sku_id},{selling_price},{mrp},"
        f"{inventory},https://img/{sku_id}.png,101,Amul,500 ml"
    )


@pytest.fixture
def raw_dir(tmp_path):
    """Landing directory with the three source CSVs."""
    stream = [
        stream_line(f"2025-03-0{i + 1} 10:00:00", 1, "A", inv)
        for i, inv in enumerate([10, 4, 4, 20, 15])
    ] + [
        stream_line("2025-03-01 10:00:00", 2, "A", 0),
        stream_line("2025-03-02 10:00:00", 2, "A", 0),
        stream_line("2025-03-01 10:00:00", 9, "A", 6),              # store without city
        stream_line("2025-03-01 10:00:00", 1, "Z", 6, l1=99, l2=1),  # unknown category
    ]

    files = {
        "scraping_stream": [STREAM_HEADER] + stream,
        "categories": ["l1_category,l1_category_id,l2_category,l2_category_id", "Dairy,10,Milk,1001"],
        "city_map": ["store_id,city_name", "1,Mumbai", "2,Mumbai"],
    }
    for key, lines in files.items():
        (tmp_path / SOURCE_FILES[key]).write_text("\n".join(lines) + "\n", encoding="utf-8")

    return tmp_path


@pytest.mark.slow
def test_pipeline_publishes_city_insights(spark_session, raw_dir, tmp_path):
    output = str(tmp_path / "gold" / "city_insights")

    insights_df, summary = run_city_insights_pipeline(
        spark_session, resolve_source_paths(str(raw_dir)), output=output, fmt="parquet"
    )

    assert summary["failed_checks"] == []
    assert summary["unmapped_events"]["dropped_events"] == 2
    assert summary["unmapped_events"]["missing_city"] == 1
    assert summary["unmapped_events"]["missing_category"] == 1

    published = read_table(spark_session, output, fmt="parquet").orderBy("date").collect()

    assert len(published) == insights_df.count() == 5
    assert [r.est_qty_sold for r in published] == [6, 0, 3, 5, 0]
    assert [r.inventory for r in published] == [10, 4, 4, 20, 15]

    first = published[0]
    assert first.city_name == "Mumbai"
    assert first.listed_ds_count == 2
    assert first.ds_count == 3
    assert first.wt_osa_ls == pytest.approx(50.0)
    assert first.wt_osa == pytest.approx(100.0 / 3)
    assert first.discount == pytest.approx(0.2)


@pytest.mark.slow
def test_pipeline_rerun_replaces_output(spark_session, raw_dir, tmp_path):
    output = str(tmp_path / "gold" / "city_insights")
    paths = resolve_source_paths(str(raw_dir))

    run_city_insights_pipeline(spark_session, paths, output=output, fmt="parquet")
    run_city_insights_pipeline(spark_session, paths, output=output, fmt="parquet")

    assert read_table(spark_session, output, fmt="parquet").count() == 5


@pytest.mark.slow
def test_pipeline_releases_intermediate_cache(spark_session, raw_dir):
    spark_session.catalog.clearCache()
    cache_manager = spark_session._jsparkSession.sharedState().cacheManager()

    insights_df, _ = run_city_insights_pipeline(spark_session, resolve_source_paths(str(raw_dir)))

    assert insights_df.is_cached
    insights_df.unpersist()
    assert cache_manager.isEmpty()


def test_resolve_source_paths():
    paths = resolve_source_paths("/landing/blinkit")

    assert set(paths) == set(SOURCE_FILES)
    assert paths["city_map"].endswith("blinkit_city_map.csv")
