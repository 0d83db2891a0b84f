from siply.services.calculations import (
    HydrationSettings,
    compute_auto_plan,
    compute_sips_per_reminder,
    get_window_minutes,
    liters_to_ml,
)


def make_settings(**overrides) -> HydrationSettings:
    return HydrationSettings(target_liters=2.0, window_start="08:00", window_end="20:00", sip_ml=15).replace(
        **overrides
    )


def test_window_minutes():
    assert get_window_minutes(make_settings(window_start="07:00", window_end="23:00")) == 960
    assert get_window_minutes(make_settings(window_start="23:00", window_end="07:00")) == 480
    assert get_window_minutes(make_settings(window_start="07:00", window_end="07:00")) == 0


def test_window_minutes_treats_invalid_time_as_midnight():
    assert get_window_minutes(make_settings(window_start="bad", window_end="07:00")) == 420


def test_liters_to_ml_rounds():
    assert liters_to_ml(2.0) == 2000
    assert liters_to_ml(0.1) == 100
    assert liters_to_ml(2.5) == 2500


def test_sips_per_reminder():
    assert compute_sips_per_reminder(250, 15) == 17
    assert compute_sips_per_reminder(5, 15) == 1
    assert compute_sips_per_reminder(250, 0) == 1


def test_auto_plan_short_window_gives_single_reminder():
    plan = compute_auto_plan(
        remaining_ml=100,
        window_minutes=30,
        min_interval_minutes=30,
        max_reminders=5,
        desired_reminder_ml=200,
    )
    assert plan is not None
    assert plan.reminders == 1
    assert plan.ml_per_reminder == 100
    assert plan.interval_minutes == 30


def test_auto_plan_prefers_desired_dose():
    plan = compute_auto_plan(2000, 720, 30, 48, 250)
    assert (plan.interval_minutes, plan.reminders, plan.ml_per_reminder) == (90, 8, 250)


def test_auto_plan_respects_cap():
    plan = compute_auto_plan(2000, 720, 30, 4, 250)
    assert (plan.interval_minutes, plan.reminders, plan.ml_per_reminder) == (180, 4, 500)


def test_auto_plan_capacity_forces_more_frequent_reminders():
    # 3000 ml at 250 ml would need 12 reminders, only 6 fit at 30 minutes
    plan = compute_auto_plan(3000, 180, 30, 48, 250)
    assert plan.interval_minutes == 30
    assert plan.reminders == 6
    assert plan.ml_per_reminder == 500


def test_auto_plan_never_below_one_ml():
    plan = compute_auto_plan(1, 600, 30, 48, 250)
    assert plan.reminders == 1
    assert plan.ml_per_reminder == 1


def test_auto_plan_nothing_to_schedule():
    assert compute_auto_plan(0, 600, 30, 48, 250) is None
    assert compute_auto_plan(500, 0, 30, 48, 250) is None
    assert compute_auto_plan(500, 600, 30, 0, 250) is None
