"""Plan generation and the persisted study sessions it produces."""
import logging
from datetime import date, datetime
from typing import Callable

from study_pilot.allocation import allocate_minutes
from study_pilot.db import get_connection
from study_pilot.drafting import SYSTEM_INSTRUCTION, build_draft_prompt, require_draft
from study_pilot.errors import DraftParseError, NotFoundError, ValidationError
from study_pilot.exams import get_exam_entries
from study_pilot.models import DraftPlan, SubjectAllocation
from study_pilot.profile import get_marks, get_preferences
from study_pilot.weighting import weigh_subjects

logger = logging.getLogger(__name__)

# (prompt, system_instruction) -> raw oracle text
TextFn = Callable[[str, str | None], str]

MAX_PLAN_DAYS = 60


def compute_allocations(db_path: str, user_id: str, start_date: date, hours_per_day: float) -> list[SubjectAllocation]:
    """Minutes per day for each of the user's subjects, weakest first."""
    marks = get_marks(db_path, user_id)
    exams = get_exam_entries(db_path, user_id, from_date=start_date)
    weights = weigh_subjects(marks, exams, start_date)
    return allocate_minutes(weights, hours_per_day)


def _validate_request(days, hours_per_day) -> tuple[int, float]:
    if isinstance(days, bool) or not isinstance(days, int) or not 1 <= days <= MAX_PLAN_DAYS:
        raise ValidationError(f"days must be a whole number between 1 and {MAX_PLAN_DAYS}")
    if isinstance(hours_per_day, bool) or not isinstance(hours_per_day, (int, float)) or not 0 < hours_per_day <= 24:
        raise ValidationError("hoursPerDay must be greater than 0 and at most 24")
    return days, float(hours_per_day)


def generate_plan(
    db_path: str,
    user_id: str,
    draft_fn: TextFn,
    start_date: date | None = None,
    days: int = 7,
    hours_per_day: float = 4,
) -> dict:
    """Allocate time, ask the oracle for a schedule and store it.

    Nothing is written unless the oracle's reply parses into a plan whose
    dates all fall on or after start_date.
    """
    days, hours_per_day = _validate_request(days, hours_per_day)
    start_date = start_date or date.today()
    allocations = compute_allocations(db_path, user_id, start_date, hours_per_day)
    prefs = get_preferences(db_path, user_id)
    prompt = build_draft_prompt(allocations, prefs, hours_per_day, days, start_date)

    logger.info("Drafting %d-day plan for %s from %s (%d subjects)",
                days, user_id, start_date.isoformat(), len(allocations))
    text = draft_fn(prompt, SYSTEM_INSTRUCTION)
    try:
        plan = require_draft(text)
    except DraftParseError as e:
        logger.warning("Rejected draft for %s: %s", user_id, "; ".join(e.issues))
        raise
    early = [d.date.isoformat() for d in plan.days if d.date < start_date]
    if early:
        logger.warning("Rejected draft for %s: dates before start %s", user_id, ", ".join(early))
        raise DraftParseError(
            "Failed to generate study plan: the AI response contained dates before the start date",
            issues=[f"$.plan: date {d} is before {start_date.isoformat()}" for d in early],
        )

    saved = replace_sessions_from(db_path, user_id, start_date, plan)
    return {
        "plan": plan,
        "subject_allocations": allocations,
        "start_date": start_date,
        "sessions_saved": saved,
    }


def replace_sessions_from(db_path: str, user_id: str, start_date: date, plan: DraftPlan) -> int:
    """Swap every stored session dated start_date or later for the drafted ones.

    Completed sessions in that range are dropped too. Runs as one
    transaction; returns the number of sessions inserted.
    """
    now = datetime.now().isoformat()
    conn = get_connection(db_path)
    try:
        removed = conn.execute(
            "DELETE FROM study_plans WHERE user_id = ? AND plan_date >= ?",
            (user_id, start_date.isoformat()),
        ).rowcount
        inserted = 0
        for day in plan.days:
            for s in day.sessions:
                conn.execute(
                    """INSERT INTO study_plans
                    (user_id, plan_date, subject, start_time, end_time, duration_minutes, priority, notes, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (user_id, day.date.isoformat(), s.subject, s.start_time, s.end_time,
                     s.duration, s.priority, s.focus_tip, now, now),
                )
                inserted += 1
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    logger.info("Replaced %d sessions with %d for %s from %s", removed, inserted, user_id, start_date.isoformat())
    return inserted


def session_to_dict(row) -> dict:
    session = dict(row)
    session["is_completed"] = bool(session.get("is_completed"))
    return session


def list_sessions(db_path: str, user_id: str, from_date: date | None = None) -> list[dict]:
    """Stored sessions dated from_date (default today) or later."""
    from_date = from_date or date.today()
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT * FROM study_plans
        WHERE user_id = ? AND plan_date >= ?
        ORDER BY plan_date, start_time""",
        (user_id, from_date.isoformat()),
    ).fetchall()
    conn.close()
    return [session_to_dict(r) for r in rows]


def get_session(db_path: str, user_id: str, session_id: int) -> dict:
    conn = get_connection(db_path)
    row = conn.execute(
        "SELECT * FROM study_plans WHERE id = ? AND user_id = ?", (session_id, user_id)
    ).fetchone()
    conn.close()
    if row is None:
        raise NotFoundError(f"Session {session_id} not found")
    return session_to_dict(row)


def set_session_completed(db_path: str, user_id: str, session_id: int, completed: bool) -> None:
    conn = get_connection(db_path)
    cur = conn.execute(
        "UPDATE study_plans SET is_completed = ?, updated_at = ? WHERE id = ? AND user_id = ?",
        (int(bool(completed)), datetime.now().isoformat(), session_id, user_id),
    )
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Session {session_id} not found")


def delete_session(db_path: str, user_id: str, session_id: int) -> None:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM study_plans WHERE id = ? AND user_id = ?", (session_id, user_id))
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Session {session_id} not found")
