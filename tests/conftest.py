import json

import pytest


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_planner.db")
    return db_path


@pytest.fixture
def make_draft():
    """Build oracle reply text: make_draft({"2026-03-02": ["Math", "Physics"]})."""
    def _make(days: dict, prose: bool = True) -> str:
        plan = []
        for day, subjects in days.items():
            sessions = []
            for i, subject in enumerate(subjects):
                hour = 9 + i
                sessions.append({
                    "subject": subject,
                    "startTime": f"{hour:02d}:00",
                    "endTime": f"{hour:02d}:45",
                    "duration": 45,
                    "priority": "high",
                    "focusTip": f"Past papers for {subject}",
                })
            plan.append({"date": day, "sessions": sessions})
        body = json.dumps({
            "plan": plan,
            "summary": {"totalHours": 3, "focusAreas": ["Math"], "recommendation": "Start early"},
        })
        return f"Here is your plan:\n{body}\nGood luck!" if prose else body
    return _make
