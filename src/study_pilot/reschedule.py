"""Missed sessions and moving them to upcoming days."""
import logging
from datetime import date, datetime, timedelta

from study_pilot.config import MAX_SESSIONS_PER_DAY, RESCHEDULE_HORIZON_DAYS
from study_pilot.db import get_connection
from study_pilot.errors import NotFoundError, SchedulingError, ValidationError
from study_pilot.models import parse_iso_date
from study_pilot.planner import session_to_dict

logger = logging.getLogger(__name__)


def list_missed_sessions(db_path: str, user_id: str, today: date | None = None) -> list[dict]:
    """Incomplete sessions dated before today, most recent day first."""
    today = today or date.today()
    conn = get_connection(db_path)
    rows = conn.execute(
        """SELECT * FROM study_plans
        WHERE user_id = ? AND plan_date < ? AND is_completed = 0
        ORDER BY plan_date DESC, start_time""",
        (user_id, today.isoformat()),
    ).fetchall()
    conn.close()
    return [session_to_dict(r) for r in rows]


def reschedule_session(
    db_path: str,
    user_id: str,
    session_id: int,
    new_date,
    new_start_time: str | None = None,
    new_end_time: str | None = None,
) -> None:
    """Move one session to new_date. Times left as None are kept.

    Only the target date is checked; the day's session count is not.
    """
    if not new_date:
        raise ValidationError("New date is required")
    day = parse_iso_date(new_date, "newDate")
    conn = get_connection(db_path)
    cur = conn.execute(
        """UPDATE study_plans
        SET plan_date = ?, start_time = COALESCE(?, start_time), end_time = COALESCE(?, end_time), updated_at = ?
        WHERE id = ? AND user_id = ?""",
        (day.isoformat(), new_start_time or None, new_end_time or None, datetime.now().isoformat(), session_id, user_id),
    )
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Session {session_id} not found")


def assign_days(
    missed_ids: list[int],
    sessions_per_day: dict[date, int],
    today: date,
    max_per_day: int = MAX_SESSIONS_PER_DAY,
    horizon_days: int = RESCHEDULE_HORIZON_DAYS,
) -> list[tuple[int, date]]:
    """Pick a new date for each missed session, in the order given.

    A single cursor walks forward from today and only moves on when its day
    is full, so earlier missed work lands on earlier days. Days already over
    the cap are skipped, never trimmed. sessions_per_day is updated in place.
    """
    if max_per_day <= 0:
        raise SchedulingError(f"Max sessions per day must be positive, got {max_per_day}")
    last_day = today + timedelta(days=horizon_days)
    cursor = today
    moves = []
    for session_id in missed_ids:
        while sessions_per_day.get(cursor, 0) >= max_per_day:
            cursor += timedelta(days=1)
            if cursor > last_day:
                raise SchedulingError(
                    f"No free day within {horizon_days} days to reschedule session {session_id}"
                )
        sessions_per_day[cursor] = sessions_per_day.get(cursor, 0) + 1
        moves.append((session_id, cursor))
    return moves


def reschedule_missed(
    db_path: str,
    user_id: str,
    today: date | None = None,
    max_per_day: int = MAX_SESSIONS_PER_DAY,
    horizon_days: int = RESCHEDULE_HORIZON_DAYS,
) -> int:
    """Spread every missed session over today and the following days.

    Oldest missed sessions are placed first. Either every session is moved
    or, on error, none is. Returns the number moved.
    """
    today = today or date.today()
    conn = get_connection(db_path)
    try:
        missed = conn.execute(
            """SELECT id FROM study_plans
            WHERE user_id = ? AND plan_date < ? AND is_completed = 0
            ORDER BY plan_date, start_time, id""",
            (user_id, today.isoformat()),
        ).fetchall()
        if not missed:
            return 0
        upcoming = conn.execute(
            """SELECT plan_date, COUNT(*) AS session_count FROM study_plans
            WHERE user_id = ? AND plan_date >= ?
            GROUP BY plan_date""",
            (user_id, today.isoformat()),
        ).fetchall()
        counts = {date.fromisoformat(r["plan_date"]): r["session_count"] for r in upcoming}

        moves = assign_days([r["id"] for r in missed], counts, today, max_per_day, horizon_days)
        now = datetime.now().isoformat()
        conn.executemany(
            "UPDATE study_plans SET plan_date = ?, updated_at = ? WHERE id = ? AND user_id = ?",
            [(day.isoformat(), now, session_id, user_id) for session_id, day in moves],
        )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    logger.info("Rescheduled %d missed sessions for %s (last day %s)",
                len(moves), user_id, moves[-1][1].isoformat())
    return len(moves)
