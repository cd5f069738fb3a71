"""Tests for study analytics."""
from datetime import date, timedelta

from study_pilot.dashboard import (
    calc_streak, get_analytics, get_priority_color, get_score_color, week_start,
)
from study_pilot.db import get_connection, init_db
from study_pilot.models import SubjectMark, UserPreferences
from study_pilot.profile import complete_onboarding

TODAY = date(2026, 3, 11)  # a Wednesday


def _insert(db, plan_date, subject="Math", minutes=45, completed=0):
    conn = get_connection(db)
    conn.execute(
        """INSERT INTO study_plans (user_id, plan_date, subject, start_time, end_time, duration_minutes, priority, is_completed)
        VALUES ('u1', ?, ?, '09:00', '09:45', ?, 'high', ?)""",
        (plan_date, subject, minutes, completed),
    )
    conn.commit()
    conn.close()


def test_colors():
    assert get_priority_color("high") == "red"
    assert get_priority_color("medium") == "yellow"
    assert get_priority_color("low") == "green"
    assert get_score_color(85) == "green"
    assert get_score_color(65) == "yellow"
    assert get_score_color(45) == "dark_orange"
    assert get_score_color(10) == "red"


def test_week_starts_on_sunday():
    assert week_start(TODAY) == date(2026, 3, 8)
    assert week_start(date(2026, 3, 8)) == date(2026, 3, 8)
    assert week_start(date(2026, 3, 14)) == date(2026, 3, 8)


def test_streak_counts_back_from_today():
    days = {"2026-03-11", "2026-03-10", "2026-03-09", "2026-03-07"}
    assert calc_streak(days, TODAY) == 3
    assert calc_streak({"2026-03-10"}, TODAY) == 0
    assert calc_streak(set(), TODAY) == 0


def test_analytics_empty(tmp_db):
    init_db(tmp_db)
    stats = get_analytics(tmp_db, "u1", TODAY)
    assert stats["overview"]["totalSessions"] == 0
    assert stats["overview"]["completionRate"] == 0
    assert stats["subjectPerformance"] == []
    assert stats["dailyTrends"] == []


def test_analytics_overview(tmp_db):
    init_db(tmp_db)
    complete_onboarding(
        tmp_db, "u1", [SubjectMark("Math", 40, 100), SubjectMark("Art", 9, 10)], UserPreferences(),
    )
    _insert(tmp_db, "2026-03-06", completed=1)  # last week
    _insert(tmp_db, "2026-03-10", completed=1)
    _insert(tmp_db, "2026-03-11", minutes=30, completed=1)
    _insert(tmp_db, "2026-03-11", subject="Art")

    stats = get_analytics(tmp_db, "u1", TODAY)
    overview = stats["overview"]
    assert overview["totalSessions"] == 4
    assert overview["completedSessions"] == 3
    assert overview["completionRate"] == 75
    assert overview["totalStudyMinutes"] == 165
    assert overview["completedStudyMinutes"] == 120
    assert overview["streak"] == 2
    assert overview["thisWeekCompleted"] == 2
    assert overview["thisWeekMinutes"] == 75

    math, art = stats["subjectPerformance"]
    assert math["subject"] == "Math"
    assert math["percentage"] == 40
    assert math["completedSessions"] == 3
    assert art["studyCompletionRate"] == 0

    assert [d["date"] for d in stats["dailyTrends"]] == ["2026-03-06", "2026-03-10", "2026-03-11"]
    assert stats["dailyTrends"][-1]["completionRate"] == 50


def test_daily_trends_keep_last_fourteen_days(tmp_db):
    init_db(tmp_db)
    for n in range(20):
        _insert(tmp_db, (TODAY - timedelta(days=n)).isoformat())
    trends = get_analytics(tmp_db, "u1", TODAY)["dailyTrends"]
    assert len(trends) == 14
    assert trends[-1]["date"] == TODAY.isoformat()
