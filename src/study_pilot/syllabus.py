"""Syllabus topics per subject, with a completion checkbox."""
from datetime import datetime

from study_pilot.db import get_connection
from study_pilot.drafting import PRIORITIES
from study_pilot.errors import NotFoundError, ValidationError
from study_pilot.models import SyllabusTopic


def make_topic(subject, topic, chapter=None, priority=None) -> SyllabusTopic:
    """Validated SyllabusTopic. Priority defaults to medium."""
    subject = str(subject or "").strip()
    topic = str(topic or "").strip()
    if not subject or not topic:
        raise ValidationError("Subject and topic are required")
    priority = str(priority or "medium").strip().lower()
    if priority not in PRIORITIES:
        raise ValidationError(f"Priority must be one of {', '.join(PRIORITIES)}")
    return SyllabusTopic(subject=subject, topic=topic, chapter=str(chapter).strip() if chapter else None,
                         priority=priority)


def parse_topics(raw_topics: list) -> list[SyllabusTopic]:
    if not isinstance(raw_topics, list):
        raise ValidationError("Topics must be a list")
    topics = []
    for raw in raw_topics:
        if not isinstance(raw, dict):
            raise ValidationError("Each topic must be an object")
        topics.append(make_topic(raw.get("subject"), raw.get("topic"), raw.get("chapter"), raw.get("priority")))
    return topics


def insert_topic(conn, user_id: str, topic: SyllabusTopic) -> int:
    """Insert on an open connection; the caller commits."""
    now = datetime.now().isoformat()
    cur = conn.execute(
        """INSERT INTO syllabus_topics (user_id, subject, topic, chapter, priority, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (user_id, topic.subject, topic.topic, topic.chapter, topic.priority, now, now),
    )
    return cur.lastrowid


def topic_to_dict(row) -> dict:
    topic = dict(row)
    topic["is_completed"] = bool(topic.get("is_completed"))
    return topic


def save_topics(db_path: str, user_id: str, topics: list[SyllabusTopic]) -> int:
    """Replace the user's whole syllabus in one transaction."""
    conn = get_connection(db_path)
    try:
        conn.execute("DELETE FROM syllabus_topics WHERE user_id = ?", (user_id,))
        for t in topics:
            insert_topic(conn, user_id, t)
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    return len(topics)


def add_topic(db_path: str, user_id: str, subject, topic, chapter=None, priority=None) -> dict:
    item = make_topic(subject, topic, chapter, priority)
    conn = get_connection(db_path)
    topic_id = insert_topic(conn, user_id, item)
    conn.commit()
    row = conn.execute("SELECT * FROM syllabus_topics WHERE id = ?", (topic_id,)).fetchone()
    conn.close()
    return topic_to_dict(row)


def list_topics(db_path: str, user_id: str) -> list[dict]:
    conn = get_connection(db_path)
    rows = conn.execute(
        "SELECT * FROM syllabus_topics WHERE user_id = ? ORDER BY subject, chapter, topic",
        (user_id,),
    ).fetchall()
    conn.close()
    return [topic_to_dict(r) for r in rows]


def toggle_topic(db_path: str, user_id: str, topic_id: int) -> None:
    conn = get_connection(db_path)
    cur = conn.execute(
        """UPDATE syllabus_topics
        SET is_completed = CASE WHEN is_completed = 1 THEN 0 ELSE 1 END, updated_at = ?
        WHERE id = ? AND user_id = ?""",
        (datetime.now().isoformat(), topic_id, user_id),
    )
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Topic {topic_id} not found")


def delete_topic(db_path: str, user_id: str, topic_id: int) -> None:
    conn = get_connection(db_path)
    cur = conn.execute("DELETE FROM syllabus_topics WHERE id = ? AND user_id = ?", (topic_id, user_id))
    conn.commit()
    found = cur.rowcount > 0
    conn.close()
    if not found:
        raise NotFoundError(f"Topic {topic_id} not found")
