"""Study analytics: completion, streaks, and per-subject progress."""
from collections import defaultdict
from datetime import date, timedelta

from study_pilot.db import get_connection

TREND_DAYS = 14


def get_priority_color(priority: str) -> str:
    if priority == "high":
        return "red"
    elif priority == "medium":
        return "yellow"
    return "green"


def get_score_color(percentage: float) -> str:
    if percentage >= 80:
        return "green"
    elif percentage >= 60:
        return "yellow"
    elif percentage >= 40:
        return "dark_orange"
    return "red"


def _rate(part: int, total: int) -> int:
    return round(part / total * 100) if total else 0


def _empty_stats() -> dict:
    return {"total": 0, "completed": 0, "minutes": 0, "completedMinutes": 0}


def _add(stats: dict, session) -> None:
    minutes = session["duration_minutes"] or 0
    stats["total"] += 1
    stats["minutes"] += minutes
    if session["is_completed"]:
        stats["completed"] += 1
        stats["completedMinutes"] += minutes


def calc_streak(completed_dates: set[str], today: date) -> int:
    """Consecutive days, ending today, with at least one completed session."""
    streak = 0
    day = today
    while day.isoformat() in completed_dates:
        streak += 1
        day -= timedelta(days=1)
    return streak


def week_start(today: date) -> date:
    # Weeks start on Sunday
    return today - timedelta(days=(today.weekday() + 1) % 7)


def get_analytics(db_path: str, user_id: str, today: date | None = None) -> dict:
    today = today or date.today()
    conn = get_connection(db_path)
    sessions = conn.execute(
        "SELECT * FROM study_plans WHERE user_id = ? ORDER BY plan_date, start_time",
        (user_id,),
    ).fetchall()
    marks = conn.execute(
        "SELECT subject, marks, max_marks FROM subject_marks WHERE user_id = ? ORDER BY id",
        (user_id,),
    ).fetchall()
    conn.close()

    overall = _empty_stats()
    by_subject: dict[str, dict] = defaultdict(_empty_stats)
    by_day: dict[str, dict] = defaultdict(_empty_stats)
    for s in sessions:
        _add(overall, s)
        _add(by_subject[s["subject"]], s)
        _add(by_day[s["plan_date"]], s)

    subject_performance = []
    for m in marks:
        stats = by_subject.get(m["subject"], _empty_stats())
        subject_performance.append({
            "subject": m["subject"],
            "marks": m["marks"],
            "maxMarks": m["max_marks"],
            "percentage": round(m["marks"] / m["max_marks"] * 100),
            "totalSessions": stats["total"],
            "completedSessions": stats["completed"],
            "studyCompletionRate": _rate(stats["completed"], stats["total"]),
            "totalMinutes": stats["minutes"],
            "completedMinutes": stats["completedMinutes"],
        })

    daily_trends = [
        {"date": day, **stats, "completionRate": _rate(stats["completed"], stats["total"])}
        for day, stats in sorted(by_day.items())
    ][-TREND_DAYS:]

    start = week_start(today).isoformat()
    this_week = [s for s in sessions if s["plan_date"] >= start and s["is_completed"]]
    completed_dates = {s["plan_date"] for s in sessions if s["is_completed"]}

    return {
        "overview": {
            "totalSessions": overall["total"],
            "completedSessions": overall["completed"],
            "completionRate": _rate(overall["completed"], overall["total"]),
            "totalStudyMinutes": overall["minutes"],
            "completedStudyMinutes": overall["completedMinutes"],
            "streak": calc_streak(completed_dates, today),
            "thisWeekCompleted": len(this_week),
            "thisWeekMinutes": sum(s["duration_minutes"] or 0 for s in this_week),
        },
        "subjectPerformance": subject_performance,
        "dailyTrends": daily_trends,
    }
