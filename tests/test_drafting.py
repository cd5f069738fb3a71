"""Tests for the drafting prompt and parsing the oracle's reply."""
import json
from datetime import date

import pytest

from study_pilot.allocation import allocate_minutes
from study_pilot.drafting import (
    RULES, build_draft_prompt, extract_json_object, parse_draft,
    preferred_start_time, require_draft, session_length_minutes,
)
from study_pilot.errors import DraftParseError
from study_pilot.models import ExamScheduleEntry, SubjectMark, UserPreferences
from study_pilot.weighting import weigh_subjects

START = date(2026, 3, 2)


def _allocations():
    weights = weigh_subjects(
        [SubjectMark("Math", 40, 100), SubjectMark("Physics", 80, 100)],
        [ExamScheduleEntry(id=1, subject="Math", exam_date=date(2026, 3, 4), exam_name="Midterm")],
        START,
    )
    return allocate_minutes(weights, 4)


def _session(**overrides):
    session = {
        "subject": "Math", "startTime": "09:00", "endTime": "09:45",
        "duration": 45, "priority": "High", "focusTip": "Algebra drills",
    }
    session.update(overrides)
    return session


def _reply(sessions, day="2026-03-02", summary=None):
    data = {"plan": [{"date": day, "sessions": sessions}]}
    if summary is not None:
        data["summary"] = summary
    return json.dumps(data)


def test_preference_maps():
    assert preferred_start_time("morning") == "06:00"
    assert preferred_start_time("evening") == "18:00"
    assert preferred_start_time(None) == "09:00"
    assert session_length_minutes("short") == 25
    assert session_length_minutes("extended") == 90
    assert session_length_minutes("unknown") == 45


def test_prompt_lists_weakest_first_with_allocations():
    prompt = build_draft_prompt(
        _allocations(), UserPreferences(study_time="afternoon", session_length="long"), 4, 7, START,
    )
    assert "Create a 7-day study schedule" in prompt
    assert "- Math: 40/100 (40%) - Priority: medium - EXAM in 2 days - Allocate ~210 min/day" in prompt
    assert "- Physics: 80/100 (80%) - Priority: low - Allocate ~30 min/day" in prompt
    assert prompt.index("- Math:") < prompt.index("- Physics:")
    assert "Math: Exam on 2026-03-04 (Midterm) - 2 days away" in prompt
    assert "Preferred study start time: 14:00" in prompt
    assert "Session length: 60 minutes" in prompt
    assert "Total study hours per day: 4" in prompt
    assert "Start date: 2026-03-02" in prompt
    for rule in RULES:
        assert rule in prompt


def test_prompt_without_exams_has_no_exam_section():
    weights = weigh_subjects([SubjectMark("Art", 70, 100)], [], START)
    prompt = build_draft_prompt(allocate_minutes(weights, 2), UserPreferences(), 2, 3, START)
    assert "UPCOMING EXAMS" not in prompt
    assert "Learning style: visual" in prompt


def test_extract_json_object():
    assert extract_json_object('Sure! {"a": {"b": 1}} Enjoy.') == '{"a": {"b": 1}}'
    assert extract_json_object("no json here") is None
    assert extract_json_object("} backwards {") is None


def test_parse_plan_wrapped_in_prose():
    text = "Here you go:\n" + _reply([_session()], summary={
        "totalHours": 0.75, "focusAreas": ["Math"], "recommendation": "Keep going",
    }) + "\nHappy studying"
    result = parse_draft(text)
    assert result.ok
    plan = result.plan
    assert plan.days[0].date == START
    session = plan.days[0].sessions[0]
    assert session.priority == "high"  # normalised
    assert session.focus_tip == "Algebra drills"
    assert plan.summary.focus_areas == ["Math"]
    assert plan.session_count == 1


def test_missing_summary_is_computed():
    result = parse_draft(_reply([_session(duration=60), _session(duration=30)]))
    assert result.ok
    assert result.plan.summary.total_hours == 1.5
    assert result.plan.summary.recommendation == ""


def test_invalid_json_reported():
    result = parse_draft('{"plan": [ }')
    assert not result.ok
    assert result.issues[0].startswith("$: invalid JSON")


def test_no_json_reported():
    result = parse_draft("I cannot help with that.")
    assert result.issues == ["$: no JSON object found in response"]


def test_empty_plan_rejected():
    result = parse_draft('{"plan": []}')
    assert result.issues == ["$.plan: plan contains no days"]


def test_plan_not_a_list_rejected():
    assert not parse_draft('{"plan": {"date": "2026-03-02"}}').ok


def test_field_errors_are_collected_with_paths():
    text = _reply([
        _session(startTime="9am"),
        _session(duration=-5, priority="urgent"),
        _session(subject=""),
    ], day="March 2nd")
    result = parse_draft(text)
    assert not result.ok
    issues = "\n".join(result.issues)
    assert "$.plan[0].date" in issues
    assert "$.plan[0].sessions[0].startTime" in issues
    assert "$.plan[0].sessions[1].duration" in issues
    assert "$.plan[0].sessions[1].priority" in issues
    assert "$.plan[0].sessions[2].subject" in issues


def test_boolean_duration_rejected():
    result = parse_draft(_reply([_session(duration=True)]))
    assert not result.ok


def test_bad_summary_rejected():
    result = parse_draft(_reply([_session()], summary={"totalHours": "lots"}))
    assert result.issues == ["$.summary.totalHours: expected a number, got 'lots'"]


def test_require_draft_raises_with_issues():
    with pytest.raises(DraftParseError) as exc:
        require_draft("not a plan")
    assert exc.value.issues == ["$: no JSON object found in response"]
    assert exc.value.status_code == 502


@pytest.mark.parametrize("constant", ["NaN", "Infinity", "-Infinity"])
def test_non_finite_duration_reported(constant):
    text = _reply([_session()]).replace('"duration": 45', f'"duration": {constant}')
    result = parse_draft(text)
    assert not result.ok
    assert result.issues[0].startswith("$.plan[0].sessions[0].duration")


@pytest.mark.parametrize("constant", ["NaN", "Infinity"])
def test_non_finite_total_hours_reported(constant):
    text = _reply([_session()], summary={"totalHours": 1}).replace('"totalHours": 1', f'"totalHours": {constant}')
    result = parse_draft(text)
    assert not result.ok
    assert result.issues[0].startswith("$.summary.totalHours")


def test_require_draft_raises_for_non_finite_numbers():
    text = _reply([_session()]).replace('"duration": 45', '"duration": NaN')
    with pytest.raises(DraftParseError):
        require_draft(text)


@pytest.mark.parametrize("value", ["99:99", "24:00", "12:60", "9:5"])
def test_impossible_clock_times_rejected(value):
    result = parse_draft(_reply([_session(startTime=value)]))
    assert result.issues == [f"$.plan[0].sessions[0].startTime: expected HH:MM, got {value!r}"]


@pytest.mark.parametrize("value", ["0:00", "7:05", "09:30", "23:59"])
def test_valid_clock_times_accepted(value):
    assert parse_draft(_reply([_session(startTime=value)])).ok
