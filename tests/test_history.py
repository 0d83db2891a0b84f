from datetime import datetime, timedelta

from siply.constants import DEFAULT_QUICK_LOG_PRESETS
from siply.services import history
from siply.services.history import DaySummary


NOW = datetime(2024, 5, 10, 14, 20)


def make_history(totals: dict[int, float], goal: float = 2000, good: float = 1600) -> history.History:
    result = {}
    for days_ago, total in totals.items():
        key = (NOW - timedelta(days=days_ago)).strftime("%Y-%m-%d")
        result[key] = DaySummary(date=key, total_ml=total, goal_ml=goal, good_threshold_ml=good)
    return result


def test_update_history_for_log():
    updated = history.update_history_for_log({}, NOW, 250, 2000, 1600)
    entry = updated["2024-05-10"]
    assert entry.total_ml == 250
    assert entry.log_hours[14] == 1
    updated = history.update_history_for_log(updated, NOW, 100, 2000, 1600)
    assert updated["2024-05-10"].total_ml == 350
    assert updated["2024-05-10"].log_hours[14] == 2


def test_update_history_ignores_non_positive_amounts():
    base = make_history({0: 500})
    assert history.update_history_for_log(base, NOW, 0, 2000, 1600) is base
    assert history.update_history_for_log(base, NOW, -100, 2000, 1600) is base


def test_trim_history():
    base = make_history({0: 100, 6: 100, 7: 100, 30: 100})
    trimmed = history.trim_history(base, NOW, retention_days=7)
    assert sorted(trimmed) == ["2024-05-04", "2024-05-10"]


def test_build_date_keys():
    assert history.build_date_keys(NOW, 3) == ["2024-05-08", "2024-05-09", "2024-05-10"]


def test_reset_and_fallback_summary():
    base = make_history({0: 900})
    reset = history.reset_history_for_date(base, "2024-05-10", 2000, 1600)
    assert reset["2024-05-10"].total_ml == 0
    assert base["2024-05-10"].total_ml == 900
    summary = history.get_summary_for_date({}, "2024-05-01", 2500, 2000)
    assert (summary.total_ml, summary.goal_ml, summary.good_threshold_ml) == (0, 2500, 2000)
    assert summary.log_hours == [0] * 24


def test_compute_streak_stats():
    base = make_history({0: 2000, 1: 2100, 2: 1700, 3: 2000, 4: 2000, 5: 2000, 10: 2500})
    stats = history.compute_streak_stats(base, NOW, 2000, 1600, gentle_enabled=True)
    assert stats.current_streak == 2
    assert stats.best_streak == 3
    assert stats.last7_goal_hits == 5
    assert stats.last30_goal_hits == 6
    assert stats.current_good_streak == 6
    assert stats.best_good_streak == 6


def test_streaks_without_gentle_goal():
    stats = history.compute_streak_stats({}, NOW, 2000, 1600, gentle_enabled=False)
    assert stats.current_streak == 0
    assert stats.current_good_streak is None
    assert stats.best_good_streak is None


def test_days_with_zero_goal_do_not_count():
    base = make_history({0: 0}, goal=0, good=0)
    stats = history.compute_streak_stats(base, NOW, 2000, 1600, gentle_enabled=True)
    assert stats.current_streak == 0
    assert stats.current_good_streak == 0


def test_compute_best_hours():
    base = make_history({0: 500, 1: 500, 40: 500})
    base["2024-05-10"].log_hours[9] = 3
    base["2024-05-10"].log_hours[18] = 1
    base["2024-05-09"].log_hours[13] = 2
    base["2024-05-09"].log_hours[18] = 1
    base["2024-03-31"].log_hours[6] = 10
    assert history.compute_best_hours(base, NOW) == [9, 13, 18]


def test_normalize_quick_log_presets():
    assert history.normalize_quick_log_presets([200, "300", 200, -5, "x", 400, 500, 600], DEFAULT_QUICK_LOG_PRESETS) == [
        200,
        300,
        400,
        500,
    ]
    assert history.normalize_quick_log_presets({"presets": [100, 200]}, DEFAULT_QUICK_LOG_PRESETS) == [100, 200]
    assert history.normalize_quick_log_presets([100], DEFAULT_QUICK_LOG_PRESETS) == list(DEFAULT_QUICK_LOG_PRESETS)
    assert history.normalize_quick_log_presets(None, DEFAULT_QUICK_LOG_PRESETS) == list(DEFAULT_QUICK_LOG_PRESETS)


def test_ensure_log_hours_pads_and_cleans():
    hours = history.ensure_log_hours([1, "2", float("inf"), True, 3.0])
    assert hours[:5] == [1, 0, 0, 0, 3]
    assert len(hours) == 24
