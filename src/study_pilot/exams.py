"""Exam calendar, logged exam results and per-subject performance trends."""
from datetime import date, datetime

from study_pilot.db import get_connection
from study_pilot.errors import NotFoundError, ValidationError
from study_pilot.models import ExamScheduleEntry, SubjectMark, parse_iso_date
from study_pilot.profile import validate_mark


def add_exam(
    db_path: str,
    user_id: str,
    subject: str,
    exam_date,
    exam_name: str | None = None,
    notes: str | None = None,
) -> dict:
    if not subject or not str(subject).strip() or not exam_date:
        raise ValidationError("Subject and exam date are required")
    day = parse_iso_date(exam_date, "examDate")
    conn = get_connection(db_path)
    exam_id = insert_exam(conn, user_id, str(subject).strip(), day, exam_name, notes)
    conn.commit()
    row = conn.execute("SELECT * FROM exam_schedule WHERE id = ?", (exam_id,)).fetchone()
    conn.close()
    return dict(row)


def insert_exam(conn, user_id: str, subject: str, exam_date: date,
                exam_name: str | None = None, notes: str | None = None) -> int:
    """Insert on an open connection; the caller commits."""
    now = datetime.now().isoformat()
    cur = conn.execute(
        """INSERT INTO exam_schedule (user_id, subject, exam_date, exam_name, notes, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (user_id, subject, exam_date.isoformat(), exam_name or None, notes or None, now, now),
    )
    return cur.lastrowid


def list_exams(db_path: str, user_id: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM exam_schedule WHERE user_id = ? ORDER BY exam_date ASC",
        (user_id,),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def get_exam_entries(db_path: str, user_id: str, from_date: date | None = None) -> list[ExamScheduleEntry]:
    """Exam calendar as domain objects, optionally only exams on/after from_date."""
    query = "SELECT * FROM exam_schedule WHERE user_id = ?"
    params: list = [user_id]
    if from_date is not None:
        query += " AND exam_date >= ?"
        params.append(from_date.isoformat())
    conn = get_connection(db_path)
    rows = conn.execute(query + " ORDER BY exam_date ASC", params).fetchall()
    conn.close()
    return [
        ExamScheduleEntry(
            id=r["id"],
            subject=r["subject"],
            exam_date=date.fromisoformat(r["exam_date"]),
            exam_name=r["exam_name"],
            notes=r["notes"],
        )
        for r in rows
    ]


def update_exam(
    db_path: str,
    user_id: str,
    exam_id: int,
    subject: str | None = None,
    exam_date=None,
    exam_name: str | None = None,
    notes: str | None = None,
) -> None:
    """Partial update: fields left as None keep their stored value."""
    day = parse_iso_date(exam_date, "examDate").isoformat() if exam_date else None
    conn = get_connection(db_path)
    cur = conn.execute(
        """UPDATE exam_schedule
        SET subject = COALESCE(?, subject),
            exam_date = COALESCE(?, exam_date),
            exam_name = COALESCE(?, exam_name),
            notes = COALESCE(?, notes),
            updated_at = ?
        WHERE id = ? AND user_id = ?""",
        (subject or None, day, exam_name or None, notes or None, datetime.now().isoformat(), exam_id, user_id),
    )
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Exam {exam_id} not found")


def delete_exam(db_path: str, user_id: str, exam_id: int) -> None:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM exam_schedule WHERE id = ? AND user_id = ?", (exam_id, user_id))
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Exam {exam_id} not found")


def log_exam_results(
    db_path: str,
    user_id: str,
    exam_name: str,
    exam_date,
    results: list[SubjectMark],
) -> int:
    """Record one exam's results and make them the current marks.

    Only subjects the student already has are updated; results for other
    subjects are kept in the history only. Returns the number of results.
    """
    if not exam_name or not exam_date or not results:
        raise ValidationError("Exam name, date, and results are required")
    day = parse_iso_date(exam_date, "examDate").isoformat()
    for r in results:
        validate_mark(r)
    now = datetime.now().isoformat()
    conn = get_connection(db_path)
    try:
        for r in results:
            conn.execute(
                """INSERT INTO exam_results (user_id, exam_name, exam_date, subject, marks, max_marks, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (user_id, exam_name, day, r.subject, r.marks, r.max_marks, now),
            )
            conn.execute(
                """UPDATE subject_marks SET marks = ?, max_marks = ?, updated_at = ?
                WHERE user_id = ? AND subject = ?""",
                (r.marks, r.max_marks, now, user_id, r.subject),
            )
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    return len(results)


def list_exam_results(db_path: str, user_id: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM exam_results WHERE user_id = ? ORDER BY exam_date DESC, subject",
        (user_id,),
    ).fetchall()
    conn.close()
    return [dict(r) for r in rows]


def delete_exam_result(db_path: str, user_id: str, result_id: int) -> None:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM exam_results WHERE id = ? AND user_id = ?", (result_id, user_id))
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Exam result {result_id} not found")


def _pct(marks: float, max_marks: float) -> int:
    return round(marks / max_marks * 100) if max_marks else 0


def get_performance_trends(db_path: str, user_id: str) -> list[dict]:
    """Score history per subject, starting from the onboarding mark.

    Improvement is the latest percentage minus the onboarding one, in points.
    """
    conn = get_connection(db_path)
    initial = conn.execute(
        """SELECT subject, marks, max_marks, initial_marks, initial_max_marks, created_at
        FROM subject_marks WHERE user_id = ? ORDER BY id""",
        (user_id,),
    ).fetchall()
    results = conn.execute(
        """SELECT subject, exam_name, exam_date, marks, max_marks
        FROM exam_results WHERE user_id = ?
        ORDER BY exam_date ASC, id ASC""",
        (user_id,),
    ).fetchall()
    conn.close()

    trends: dict[str, dict] = {}
    for m in initial:
        first_marks = m["initial_marks"] if m["initial_marks"] is not None else m["marks"]
        first_max = m["initial_max_marks"] if m["initial_max_marks"] is not None else m["max_marks"]
        trends[m["subject"]] = {
            "subject": m["subject"],
            "history": [{
                "examName": "Initial (Onboarding)",
                "date": (m["created_at"] or "")[:10] or "Initial",
                "marks": first_marks,
                "maxMarks": first_max,
                "percentage": _pct(first_marks, first_max),
            }],
            "initialMarks": first_marks,
            "initialMaxMarks": first_max,
            "latestMarks": first_marks,
            "latestMaxMarks": first_max,
            "improvement": 0,
        }
    for r in results:
        trend = trends.setdefault(r["subject"], {
            "subject": r["subject"],
            "history": [],
            "initialMarks": r["marks"],
            "initialMaxMarks": r["max_marks"],
            "latestMarks": r["marks"],
            "latestMaxMarks": r["max_marks"],
            "improvement": 0,
        })
        trend["history"].append({
            "examName": r["exam_name"],
            "date": r["exam_date"],
            "marks": r["marks"],
            "maxMarks": r["max_marks"],
            "percentage": _pct(r["marks"], r["max_marks"]),
        })
        trend["latestMarks"] = r["marks"]
        trend["latestMaxMarks"] = r["max_marks"]

    for trend in trends.values():
        initial_pct = trend["initialMarks"] / trend["initialMaxMarks"] * 100
        latest_pct = trend["latestMarks"] / trend["latestMaxMarks"] * 100
        trend["improvement"] = round(latest_pct - initial_pct)
    return list(trends.values())
