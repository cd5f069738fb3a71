"""Student profile: current subject marks and study preferences."""
from datetime import datetime

from study_pilot.db import get_connection
from study_pilot.errors import ValidationError
from study_pilot.models import SubjectMark, UserPreferences

PREFERENCE_FIELDS = ("learning_style", "study_time", "session_length", "environment", "motivation")


def validate_mark(mark: SubjectMark) -> None:
    if not mark.subject or not mark.subject.strip():
        raise ValidationError("Subject name is required")
    if mark.max_marks <= 0:
        raise ValidationError(f"Max marks for {mark.subject} must be positive")
    if not 0 <= mark.marks <= mark.max_marks:
        raise ValidationError(f"Marks for {mark.subject} must be between 0 and {mark.max_marks:g}")


def parse_marks(raw_marks: list) -> list[SubjectMark]:
    """Build SubjectMarks from request dicts ({subject, marks, maxMarks})."""
    if not isinstance(raw_marks, list):
        raise ValidationError("Marks must be a list")
    marks = []
    seen = set()
    for raw in raw_marks:
        if not isinstance(raw, dict):
            raise ValidationError("Each mark must be an object")
        try:
            mark = SubjectMark(
                subject=str(raw.get("subject") or "").strip(),
                marks=float(raw["marks"]),
                max_marks=float(raw.get("maxMarks", raw.get("max_marks"))),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid mark entry: {raw!r}") from e
        validate_mark(mark)
        if mark.subject.lower() in seen:
            raise ValidationError(f"Duplicate subject: {mark.subject}")
        seen.add(mark.subject.lower())
        marks.append(mark)
    return marks


def _replace_marks(conn, user_id: str, marks: list[SubjectMark]) -> None:
    now = datetime.now().isoformat()
    conn.execute("DELETE FROM subject_marks WHERE user_id = ?", (user_id,))
    for m in marks:
        conn.execute(
            """INSERT INTO subject_marks
            (user_id, subject, marks, max_marks, initial_marks, initial_max_marks, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (user_id, m.subject, m.marks, m.max_marks, m.marks, m.max_marks, now, now),
        )


def _upsert_preferences(conn, user_id: str, prefs: UserPreferences) -> None:
    now = datetime.now().isoformat()
    values = [getattr(prefs, f) for f in PREFERENCE_FIELDS]
    conn.execute(
        """INSERT INTO user_profiles
        (user_id, learning_style, study_time, session_length, environment, motivation, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            learning_style = excluded.learning_style,
            study_time = excluded.study_time,
            session_length = excluded.session_length,
            environment = excluded.environment,
            motivation = excluded.motivation,
            updated_at = excluded.updated_at""",
        (user_id, *values, now, now),
    )


def save_marks(db_path: str, user_id: str, marks: list[SubjectMark]) -> None:
    """Replace every stored mark of the user."""
    for m in marks:
        validate_mark(m)
    conn = get_connection(db_path)
    try:
        _replace_marks(conn, user_id, marks)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def save_preferences(db_path: str, user_id: str, prefs: UserPreferences) -> None:
    conn = get_connection(db_path)
    _upsert_preferences(conn, user_id, prefs)
    conn.commit()
    conn.close()


def complete_onboarding(db_path: str, user_id: str, marks: list[SubjectMark], prefs: UserPreferences) -> None:
    """Store onboarding answers: the profile is upserted, marks are replaced."""
    for m in marks:
        validate_mark(m)
    conn = get_connection(db_path)
    try:
        _upsert_preferences(conn, user_id, prefs)
        _replace_marks(conn, user_id, marks)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def get_marks(db_path: str, user_id: str) -> list[SubjectMark]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT subject, marks, max_marks FROM subject_marks WHERE user_id = ? ORDER BY id",
        (user_id,),
    ).fetchall()
    conn.close()
    return [SubjectMark(subject=r["subject"], marks=r["marks"], max_marks=r["max_marks"]) for r in rows]


def get_preferences(db_path: str, user_id: str) -> UserPreferences:
    profile = get_profile(db_path, user_id)
    if not profile:
        return UserPreferences()
    return UserPreferences(
        learning_style=profile["learning_style"] or "visual",
        study_time=profile["study_time"],
        session_length=profile["session_length"],
        environment=profile["environment"],
        motivation=profile["motivation"],
    )


def get_profile(db_path: str, user_id: str) -> dict | None:
    conn = get_connection(db_path)
    row = conn.execute("SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)).fetchone()
    conn.close()
    return dict(row) if row else None
