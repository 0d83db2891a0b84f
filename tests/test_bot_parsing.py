from datetime import datetime

from siply.bot.keyboards.common import quick_log_keyboard, reminder_keyboard
from siply.bot.routers import hydration
from siply.services.history import DaySummary, StreakStats
from siply.services.hydration import HydrationPlan


def test_parse_ml():
    assert hydration.parse_ml("250") == 250
    assert hydration.parse_ml(" 300ml ") == 300
    assert hydration.parse_ml("0") is None
    assert hydration.parse_ml("-5") is None
    assert hydration.parse_ml("abc") is None
    assert hydration.parse_ml(None) is None
    assert hydration.parse_ml(str(hydration.MAX_LOG_ML + 1)) is None


def test_parse_liters():
    assert hydration.parse_liters("2.5") == 2.5
    assert hydration.parse_liters("2,5") == 2.5
    assert hydration.parse_liters("3l") == 3.0
    assert hydration.parse_liters("0") is None
    assert hydration.parse_liters("nan") is None
    assert hydration.parse_liters("11") is None


def test_parse_switch():
    assert hydration.parse_switch("on") is True
    assert hydration.parse_switch("OFF") is False
    assert hydration.parse_switch("maybe") is None


def test_parse_window():
    assert hydration.parse_window("07:00 23:00") == ("07:00", "23:00")
    assert hydration.parse_window("22:00-06:00") == ("22:00", "06:00")
    assert hydration.parse_window(" 07:00   23:30 ") == ("07:00", "23:30")
    assert hydration.parse_window("07:00 07:00") is None
    assert hydration.parse_window("07:00") is None
    assert hydration.parse_window("24:00 06:00") is None


def test_format_plan():
    plan = HydrationPlan(
        target_ml=2000,
        reminders_per_day=8,
        ml_per_reminder=286,
        sips_per_reminder=19,
        next_reminder_at=datetime(2024, 5, 10, 9, 30),
        target_met=False,
        consumed_ml=0,
    )
    text = hydration.format_plan(plan)
    assert "0 / 2000 ml" in text
    assert "09:30" in text
    assert "~286 ml (19 sips)" in text


def test_format_stats():
    stats = StreakStats(
        current_streak=2,
        best_streak=5,
        last7_goal_hits=4,
        last30_goal_hits=12,
        current_good_streak=None,
        best_good_streak=None,
    )
    text = hydration.format_stats(stats, [9, 13])
    assert "Current streak: 2" in text
    assert "Gentle" not in text
    assert "09:00, 13:00" in text


def test_keyboards():
    markup = quick_log_keyboard([150, 250], last_used_ml=330).as_markup()
    data = [button.callback_data for row in markup.inline_keyboard for button in row]
    assert data == ["drink:150", "drink:250", "drink:done", "drink:330"]
    reminder = reminder_keyboard(250).as_markup()
    assert reminder.inline_keyboard[0][0].callback_data == "remind:250"


def test_format_stats_with_today():
    stats = StreakStats(
        current_streak=0,
        best_streak=1,
        last7_goal_hits=1,
        last30_goal_hits=1,
        current_good_streak=1,
        best_good_streak=3,
    )
    today = DaySummary(date="2024-05-10", total_ml=1200, goal_ml=2000)
    text = hydration.format_stats(stats, [], today)
    assert text.splitlines()[0] == "Today: 1200 / 2000 ml"
    assert "Gentle goal streak: 1, best: 3" in text
