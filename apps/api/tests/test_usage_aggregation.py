from datetime import datetime, timezone

from services.usage import (
    bucket_granularity,
    group_scans_by_bucket,
    group_top_questions,
    normalize_period,
    percentage,
    rating_breakdown,
    session_repeat_stats,
    time_of_day_histogram,
    time_of_day_label,
)


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def test_period_defaults_and_unknown_values():
    assert normalize_period(None) == "7d"
    assert normalize_period("") == "7d"
    assert normalize_period("30d") == "30d"
    assert normalize_period("forever") == "all"


def test_granularity_by_period():
    assert bucket_granularity("7d") == "day"
    assert bucket_granularity("30d") == "day"
    assert bucket_granularity("3m") == "week"
    assert bucket_granularity("6m") == "week"
    assert bucket_granularity("1y") == "month"
    assert bucket_granularity("all") == "month"


def test_daily_buckets_for_seven_day_period():
    scans = [
        _utc(2024, 1, 1, 10),
        _utc(2024, 1, 1, 14),
        _utc(2024, 1, 1, 20),
        _utc(2024, 1, 2, 9),
    ]
    assert group_scans_by_bucket(scans, bucket_granularity("7d")) == [
        {"date": "2024-01-01", "count": 3},
        {"date": "2024-01-02", "count": 1},
    ]


def test_weekly_buckets_start_on_sunday():
    # 2024-01-07 is a Sunday; the Saturday before belongs to the prior week.
    scans = [
        _utc(2024, 1, 6, 12),
        _utc(2024, 1, 7, 12),
        _utc(2024, 1, 10, 12),
    ]
    assert group_scans_by_bucket(scans, "week") == [
        {"date": "2023-12-31", "count": 1},
        {"date": "2024-01-07", "count": 2},
    ]


def test_monthly_buckets():
    scans = [_utc(2024, 1, 31, 23), _utc(2024, 2, 1, 0), _utc(2024, 2, 15, 8)]
    assert group_scans_by_bucket(scans, "month") == [
        {"date": "2024-01", "count": 1},
        {"date": "2024-02", "count": 2},
    ]


def test_naive_timestamps_are_treated_as_utc():
    assert group_scans_by_bucket([datetime(2024, 3, 5, 1)], "day") == [{"date": "2024-03-05", "count": 1}]


def test_time_of_day_labels():
    assert time_of_day_label(6) == "6-9"
    assert time_of_day_label(10) == "9-12"
    assert time_of_day_label(20) == "18-21"
    assert time_of_day_label(21) == "21+"
    assert time_of_day_label(23) == "21+"
    assert time_of_day_label(2) == "21+"


def test_time_of_day_histogram_percentages():
    data = time_of_day_histogram([10, 23, 13])
    by_label = {item["label"]: item for item in data}
    assert [item["label"] for item in data] == ["6-9", "9-12", "12-15", "15-18", "18-21", "21+"]
    assert by_label["9-12"]["count"] == 1
    assert by_label["21+"]["count"] == 1
    assert by_label["9-12"]["percentage"] == 33.3
    assert abs(sum(item["percentage"] for item in data) - 100) <= 0.5


def test_empty_histogram_has_zero_percentages():
    assert all(item["percentage"] == 0.0 for item in time_of_day_histogram([]))


def test_repeat_rate_counts_sessions_with_more_than_one_scan():
    stats = session_repeat_stats(["a", "a", "b", "c"])
    assert stats == {"repeat_sessions": 1, "total_sessions": 3, "repeat_rate": 33.3}


def test_percentage_guards_zero_total():
    assert percentage(3, 0) == 0.0
    assert percentage(1, 3) == 33.3


def test_top_questions_group_by_normalized_text():
    rows = [
        ("Why?", 2, "Bookshelf"),
        ("why? ", 3, "Desk"),
        ("Where is screw B?", 4, "Bookshelf"),
    ]
    top = group_top_questions(rows, limit=10)
    assert top[0] == {"question": "Why?", "step": 2, "sku_name": "Bookshelf", "count": 2}
    assert top[1]["count"] == 1


def test_top_questions_respects_limit():
    rows = [(f"question {i}", None, "Desk") for i in range(15)]
    assert len(group_top_questions(rows)) == 10
    assert len(group_top_questions(rows, limit=3)) == 3


def test_rating_breakdown_runs_five_to_one():
    result = rating_breakdown([5, 5, 4, 1])
    assert result["avg"] == 3.8
    assert result["total"] == 4
    assert [item["stars"] for item in result["breakdown"]] == [5, 4, 3, 2, 1]
    assert result["breakdown"][0] == {"stars": 5, "count": 2, "percentage": 50.0}
    assert result["breakdown"][2]["count"] == 0


def test_rating_breakdown_without_ratings():
    result = rating_breakdown([])
    assert result["avg"] is None
    assert result["total"] == 0
