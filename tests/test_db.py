"""Tests for database initialization and connection management."""
from study_pilot.db import init_db, get_connection


def test_init_db_creates_tables(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    cursor = conn.execute(
        "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name"
    )
    tables = {row[0] for row in cursor.fetchall()}
    expected = {
        "user_profiles", "subject_marks", "exam_schedule",
        "exam_results", "study_plans", "syllabus_topics",
    }
    assert expected.issubset(tables)
    conn.close()


def test_init_db_is_idempotent(tmp_db):
    init_db(tmp_db)
    init_db(tmp_db)  # should not raise
    conn = get_connection(tmp_db)
    cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    assert len(cursor.fetchall()) > 0
    conn.close()


def test_get_connection_returns_row_factory(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute(
        "INSERT INTO subject_marks (user_id, subject, marks, max_marks) VALUES ('u1', 'Math', 40, 100)"
    )
    row = conn.execute("SELECT subject, marks FROM subject_marks WHERE user_id='u1'").fetchone()
    assert row["subject"] == "Math"
    assert row["marks"] == 40
    conn.close()


def test_subject_unique_per_user(tmp_db):
    init_db(tmp_db)
    conn = get_connection(tmp_db)
    conn.execute("INSERT INTO subject_marks (user_id, subject, marks, max_marks) VALUES ('u1', 'Math', 40, 100)")
    conn.execute("INSERT INTO subject_marks (user_id, subject, marks, max_marks) VALUES ('u2', 'Math', 70, 100)")
    conn.commit()
    count = conn.execute("SELECT COUNT(*) FROM subject_marks").fetchone()[0]
    assert count == 2
    conn.close()
