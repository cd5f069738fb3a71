"""Per-user data summary, export and wipe."""
import logging
from datetime import datetime

from study_pilot.db import USER_TABLES, get_connection

logger = logging.getLogger(__name__)


def get_data_summary(db_path: str, user_id: str) -> dict:
    conn = get_connection(db_path)
    profile = conn.execute("SELECT created_at FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()

    def count(table: str) -> int:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE user_id = ?", (user_id,)).fetchone()[0]

    summary = {
        "profile": profile is not None,
        "subjectsCount": count("subject_marks"),
        "studyPlansCount": count("study_plans"),
        "examResultsCount": count("exam_results"),
        "examScheduleCount": count("exam_schedule"),
        "syllabusTopicsCount": count("syllabus_topics"),
        "accountCreated": profile["created_at"] if profile else None,
    }
    conn.close()
    return summary


def export_data(db_path: str, user_id: str) -> dict:
    conn = get_connection(db_path)
    profile = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
    subjects = conn.execute(
        "SELECT subject, marks, max_marks, created_at FROM subject_marks WHERE user_id = ?", (user_id,)
    ).fetchall()
    plans = conn.execute(
        """SELECT plan_date, subject, start_time, end_time, duration_minutes, priority, is_completed, notes, created_at
        FROM study_plans WHERE user_id = ? ORDER BY plan_date, start_time""",
        (user_id,),
    ).fetchall()
    results = conn.execute(
        "SELECT exam_name, exam_date, subject, marks, max_marks, notes, created_at FROM exam_results WHERE user_id = ?",
        (user_id,),
    ).fetchall()
    exams = conn.execute(
        "SELECT subject, exam_date, exam_name, notes FROM exam_schedule WHERE user_id = ? ORDER BY exam_date",
        (user_id,),
    ).fetchall()
    topics = conn.execute(
        "SELECT subject, chapter, topic, priority, is_completed FROM syllabus_topics WHERE user_id = ? ORDER BY subject, chapter, topic",
        (user_id,),
    ).fetchall()
    conn.close()
    return {
        "exportedAt": datetime.now().isoformat(),
        "userId": user_id,
        "profile": None if profile is None else {
            "learningStyle": profile["learning_style"],
            "studyTime": profile["study_time"],
            "sessionLength": profile["session_length"],
            "environment": profile["environment"],
            "motivation": profile["motivation"],
            "createdAt": profile["created_at"],
        },
        "subjects": [dict(r) for r in subjects],
        "studyPlans": [dict(r) for r in plans],
        "examResults": [dict(r) for r in results],
        "examSchedule": [dict(r) for r in exams],
        "syllabusTopics": [dict(r) for r in topics],
    }


def delete_user_data(db_path: str, user_id: str) -> None:
    """Remove every row the user owns, in one transaction."""
    conn = get_connection(db_path)
    try:
        for table in USER_TABLES:
            conn.execute(f"DELETE FROM {table} WHERE user_id = ?", (user_id,))
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    logger.info("Deleted all data for %s", user_id)
