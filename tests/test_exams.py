"""Tests for the exam calendar, exam results and trends."""
from datetime import date

import pytest

from study_pilot.db import init_db
from study_pilot.errors import NotFoundError, ValidationError
from study_pilot.exams import (
    add_exam, delete_exam, delete_exam_result, get_exam_entries,
    get_performance_trends, list_exam_results, list_exams, log_exam_results, update_exam,
)
from study_pilot.models import SubjectMark, UserPreferences
from study_pilot.profile import complete_onboarding, get_marks


def test_add_and_list_exams(tmp_db):
    init_db(tmp_db)
    add_exam(tmp_db, "u1", "Physics", "2026-05-20", "Final")
    exam = add_exam(tmp_db, "u1", "Math", date(2026, 4, 2), notes="Calculator allowed")
    assert exam["exam_date"] == "2026-04-02"
    assert exam["notes"] == "Calculator allowed"
    assert [e["subject"] for e in list_exams(tmp_db, "u1")] == ["Math", "Physics"]
    assert list_exams(tmp_db, "other") == []


def test_add_exam_requires_subject_and_date(tmp_db):
    init_db(tmp_db)
    with pytest.raises(ValidationError):
        add_exam(tmp_db, "u1", "", "2026-04-02")
    with pytest.raises(ValidationError):
        add_exam(tmp_db, "u1", "Math", None)
    with pytest.raises(ValidationError):
        add_exam(tmp_db, "u1", "Math", "02/04/2026")


def test_exam_entries_from_date(tmp_db):
    init_db(tmp_db)
    add_exam(tmp_db, "u1", "Math", "2026-02-01")
    add_exam(tmp_db, "u1", "Math", "2026-04-02")
    entries = get_exam_entries(tmp_db, "u1", from_date=date(2026, 3, 1))
    assert [e.exam_date for e in entries] == [date(2026, 4, 2)]


def test_update_exam_keeps_unspecified_fields(tmp_db):
    init_db(tmp_db)
    exam = add_exam(tmp_db, "u1", "Math", "2026-04-02", "Mock")
    update_exam(tmp_db, "u1", exam["id"], exam_date="2026-04-09")
    updated = list_exams(tmp_db, "u1")[0]
    assert updated["exam_date"] == "2026-04-09"
    assert updated["exam_name"] == "Mock"
    assert updated["subject"] == "Math"


def test_update_and_delete_unknown_exam(tmp_db):
    init_db(tmp_db)
    exam = add_exam(tmp_db, "other", "Math", "2026-04-02")
    with pytest.raises(NotFoundError):
        update_exam(tmp_db, "u1", exam["id"], subject="Art")
    with pytest.raises(NotFoundError):
        delete_exam(tmp_db, "u1", exam["id"])
    delete_exam(tmp_db, "other", exam["id"])
    assert list_exams(tmp_db, "other") == []


def test_log_results_updates_current_marks(tmp_db):
    init_db(tmp_db)
    complete_onboarding(tmp_db, "u1", [SubjectMark("Math", 40, 100)], UserPreferences())
    count = log_exam_results(
        tmp_db, "u1", "Term 1", "2026-03-01",
        [SubjectMark("Math", 65, 100), SubjectMark("Latin", 30, 50)],
    )
    assert count == 2
    # Latin is only kept in the history
    assert get_marks(tmp_db, "u1") == [SubjectMark("Math", 65, 100)]
    assert {r["subject"] for r in list_exam_results(tmp_db, "u1")} == {"Math", "Latin"}


def test_log_results_requires_fields(tmp_db):
    init_db(tmp_db)
    with pytest.raises(ValidationError):
        log_exam_results(tmp_db, "u1", "", "2026-03-01", [SubjectMark("Math", 1, 2)])
    with pytest.raises(ValidationError):
        log_exam_results(tmp_db, "u1", "Term 1", "2026-03-01", [])
    with pytest.raises(ValidationError):
        log_exam_results(tmp_db, "u1", "Term 1", "2026-03-01", [SubjectMark("Math", 3, 2)])


def test_exam_results_ordered_newest_first(tmp_db):
    init_db(tmp_db)
    log_exam_results(tmp_db, "u1", "Mock", "2026-01-10", [SubjectMark("Math", 1, 2)])
    log_exam_results(tmp_db, "u1", "Term", "2026-03-10", [SubjectMark("Physics", 1, 2), SubjectMark("Art", 1, 2)])
    results = list_exam_results(tmp_db, "u1")
    assert [(r["exam_name"], r["subject"]) for r in results] == [
        ("Term", "Art"), ("Term", "Physics"), ("Mock", "Math"),
    ]
    delete_exam_result(tmp_db, "u1", results[0]["id"])
    assert len(list_exam_results(tmp_db, "u1")) == 2
    with pytest.raises(NotFoundError):
        delete_exam_result(tmp_db, "u1", results[0]["id"])


def test_trends_start_from_onboarding(tmp_db):
    init_db(tmp_db)
    complete_onboarding(
        tmp_db, "u1", [SubjectMark("Math", 40, 100), SubjectMark("Art", 8, 10)], UserPreferences(),
    )
    log_exam_results(tmp_db, "u1", "Mock", "2026-02-01", [SubjectMark("Math", 30, 50)])
    log_exam_results(tmp_db, "u1", "Final", "2026-03-01", [SubjectMark("Math", 72, 100)])

    trends = {t["subject"]: t for t in get_performance_trends(tmp_db, "u1")}
    math = trends["Math"]
    assert [h["examName"] for h in math["history"]] == ["Initial (Onboarding)", "Mock", "Final"]
    assert [h["percentage"] for h in math["history"]] == [40, 60, 72]
    assert math["improvement"] == 32
    assert trends["Art"]["improvement"] == 0
    assert len(trends["Art"]["history"]) == 1
