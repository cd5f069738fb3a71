"""Tests for the interactive CLI with prompts and console patched."""
import json
from datetime import date

import pytest
from rich.console import Console

from study_pilot import app
from study_pilot.config import Settings
from study_pilot.db import init_db
from study_pilot.models import SubjectMark, UserPreferences
from study_pilot.planner import list_sessions
from study_pilot.profile import complete_onboarding, get_marks, get_preferences
from study_pilot.syllabus import list_topics


@pytest.fixture
def console(monkeypatch):
    recorder = Console(record=True, width=120)
    monkeypatch.setattr(app, "console", recorder)
    return recorder


def _answers(monkeypatch, prompt_cls, answers):
    it = iter(answers)
    monkeypatch.setattr(prompt_cls, "ask", lambda *args, **kwargs: next(it))


def test_onboard_saves_marks_and_preferences(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    _answers(monkeypatch, app.Prompt, ["Math", "Physics", "", "auditory", "evening", "long"])
    _answers(monkeypatch, app.FloatPrompt, [40.0, 100.0, 80.0, 100.0])
    app.cmd_onboard(Settings(db_path=tmp_db), "local")
    assert [m.subject for m in get_marks(tmp_db, "local")] == ["Math", "Physics"]
    assert get_preferences(tmp_db, "local").session_length == "long"
    assert "Saved 2 subjects" in console.export_text()


def test_onboard_with_no_subjects(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    _answers(monkeypatch, app.Prompt, [""])
    app.cmd_onboard(Settings(db_path=tmp_db), "local")
    assert "nothing saved" in console.export_text()


def test_generate_stores_plan(tmp_db, console, monkeypatch, make_draft):
    init_db(tmp_db)
    complete_onboarding(tmp_db, "local", [SubjectMark("Math", 40, 100)], UserPreferences())
    monkeypatch.setattr(
        app, "generate_text",
        lambda prompt, system_instruction, settings: make_draft({"2026-03-02": ["Math"]}),
    )
    _answers(monkeypatch, app.Prompt, ["2026-03-02"])
    _answers(monkeypatch, app.IntPrompt, [1])
    _answers(monkeypatch, app.FloatPrompt, [2.0])
    app.cmd_generate(Settings(db_path=tmp_db), "local")
    assert "Saved 1 sessions" in console.export_text()
    assert len(list_sessions(tmp_db, "local", date(2026, 3, 2))) == 1


def test_dashboard_without_subjects(tmp_db, console):
    init_db(tmp_db)
    app.cmd_dashboard(Settings(db_path=tmp_db), "local")
    text = console.export_text()
    assert "Study Dashboard" in text
    assert "No subjects yet" in text


def test_dashboard_shows_allocation(tmp_db, console):
    init_db(tmp_db)
    complete_onboarding(
        tmp_db, "local", [SubjectMark("Math", 40, 100), SubjectMark("Physics", 80, 100)], UserPreferences(),
    )
    app.cmd_dashboard(Settings(db_path=tmp_db), "local")
    text = console.export_text()
    assert "Math" in text
    assert "180" in text


def test_main_loop_reports_errors_and_quits(tmp_db, console, monkeypatch):
    monkeypatch.setattr(app, "load_settings", lambda: Settings(db_path=tmp_db))
    _answers(monkeypatch, app.Prompt, ["bogus", "plan", "generate", "2026-03-02", "quit"])
    _answers(monkeypatch, app.IntPrompt, [3])
    _answers(monkeypatch, app.FloatPrompt, [2.0])
    app.main()
    text = console.export_text()
    assert "Unknown command" in text
    assert "No upcoming sessions" in text
    assert "No subjects found" in text
    assert "Good luck" in text


def test_prefs_updates_preferences(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    complete_onboarding(tmp_db, "local", [SubjectMark("Math", 40, 100)], UserPreferences(environment="library"))
    _answers(monkeypatch, app.Prompt, ["reading", "afternoon", "short"])
    app.cmd_prefs(Settings(db_path=tmp_db), "local")
    prefs = get_preferences(tmp_db, "local")
    assert (prefs.learning_style, prefs.study_time, prefs.session_length) == ("reading", "afternoon", "short")
    assert prefs.environment == "library"
    assert "Preferences saved" in console.export_text()


def test_topics_add_and_toggle(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    _answers(monkeypatch, app.Prompt, ["add", "Math", "Limits", "", "high"])
    app.cmd_topics(Settings(db_path=tmp_db), "local")
    topic = list_topics(tmp_db, "local")[0]
    assert (topic["topic"], topic["chapter"], topic["priority"]) == ("Limits", None, "high")
    assert "Added Limits" in console.export_text()

    _answers(monkeypatch, app.Prompt, ["toggle"])
    _answers(monkeypatch, app.IntPrompt, [topic["id"]])
    app.cmd_topics(Settings(db_path=tmp_db), "local")
    assert list_topics(tmp_db, "local")[0]["is_completed"] is True


def test_ask_shows_reply_and_added_exam(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    reply = json.dumps({
        "reply": "Good luck on your test!",
        "actions": [{"type": "add_exam", "subject": "Math", "exam_date": "2026-04-02"}],
    })
    monkeypatch.setattr(app, "generate_text", lambda prompt, system_instruction, settings: reply)
    _answers(monkeypatch, app.Prompt, ["Math test on April 2nd"])
    app.cmd_ask(Settings(db_path=tmp_db), "local")
    text = console.export_text()
    assert "Good luck on your test!" in text
    assert "+ Exam: Math on 2026-04-02" in text


def test_quiz_scores_answers(tmp_db, console, monkeypatch):
    init_db(tmp_db)
    questions = [
        {"question": f"Q{n}?", "options": ["a", "b", "c", "d"], "correctIndex": 1} for n in range(3)
    ]
    monkeypatch.setattr(app, "generate_text", lambda prompt, system_instruction, settings: json.dumps(questions))
    _answers(monkeypatch, app.Prompt, ["Math", "Limits"])
    _answers(monkeypatch, app.IntPrompt, [2, 2, 1])
    app.cmd_quiz(Settings(db_path=tmp_db), "local")
    assert "Score: 2/3" in console.export_text()
