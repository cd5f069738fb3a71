"""Build the drafting request for the plan oracle and validate what comes back."""
import json
import math
import re
from datetime import date

from study_pilot.errors import DraftParseError
from study_pilot.models import (
    DraftDay, DraftParseResult, DraftPlan, DraftSession, PlanSummary,
    SubjectAllocation, UserPreferences,
)

SESSION_LENGTHS = {
    "short": 25,
    "medium": 45,
    "long": 60,
    "extended": 90,
}
DEFAULT_SESSION_LENGTH = 45

STUDY_TIME_STARTS = {
    "morning": "06:00",
    "midday": "10:00",
    "afternoon": "14:00",
    "evening": "18:00",
}
DEFAULT_START_TIME = "09:00"

PRIORITIES = ("high", "medium", "low")

SYSTEM_INSTRUCTION = (
    "You are a study planner for secondary and university students. "
    "You turn time allocations and exam dates into realistic daily timetables "
    "and you answer with JSON only."
)

RULES = [
    "CRITICAL: Subjects with lower scores MUST get MORE study time",
    "Include 5-10 min breaks between sessions",
    "Schedule hardest subjects during peak focus times (earlier in the day)",
    "Vary subjects throughout the day to maintain engagement",
    "Include specific focus tips for each session",
]

RESPONSE_FORMAT = """{
  "plan": [
    {
      "date": "YYYY-MM-DD",
      "sessions": [
        {
          "subject": "Subject Name",
          "startTime": "HH:MM",
          "endTime": "HH:MM",
          "duration": 45,
          "priority": "high|medium|low",
          "focusTip": "Brief study tip for this session"
        }
      ]
    }
  ],
  "summary": {
    "totalHours": 28,
    "focusAreas": ["Subject 1", "Subject 2"],
    "recommendation": "Overall study recommendation"
  }
}"""

_TIME_RE = re.compile(r"^([01]?\d|2[0-3]):[0-5]\d$")


def preferred_start_time(study_time: str | None) -> str:
    return STUDY_TIME_STARTS.get(study_time or "", DEFAULT_START_TIME)


def session_length_minutes(session_length: str | None) -> int:
    return SESSION_LENGTHS.get(session_length or "", DEFAULT_SESSION_LENGTH)


def _format_number(value: float) -> str:
    return f"{value:g}"


def _allocation_line(a: SubjectAllocation) -> str:
    line = (
        f"- {a.subject}: {_format_number(a.marks)}/{_format_number(a.max_marks)} "
        f"({a.percentage:.0f}%) - Priority: {a.priority}"
    )
    if a.exam:
        line += f" - EXAM in {a.exam.days_until} days"
    return line + f" - Allocate ~{a.minutes_per_day} min/day"


def _exam_line(a: SubjectAllocation) -> str:
    name = f" ({a.exam.exam_name})" if a.exam.exam_name else ""
    return f"- {a.subject}: Exam on {a.exam.exam_date.isoformat()}{name} - {a.exam.days_until} days away"


def build_draft_prompt(
    allocations: list[SubjectAllocation],
    preferences: UserPreferences,
    hours_per_day: float,
    days: int,
    start_date: date,
) -> str:
    """Instruction payload for the drafting oracle.

    Allocations are listed in the order given, which is weakest first when
    they come from allocate_minutes.
    """
    sections = [
        f"Create a {days}-day study schedule based on these requirements:",
        "STUDENT PERFORMANCE (prioritize weaker subjects and upcoming exams):\n"
        + "\n".join(_allocation_line(a) for a in allocations),
    ]
    exam_lines = [_exam_line(a) for a in allocations if a.exam]
    if exam_lines:
        sections.append(
            "UPCOMING EXAMS (CRITICAL - prioritize these subjects!):\n" + "\n".join(exam_lines)
        )
    sections.append(
        "PREFERENCES:\n"
        f"- Preferred study start time: {preferred_start_time(preferences.study_time)}\n"
        f"- Session length: {session_length_minutes(preferences.session_length)} minutes\n"
        f"- Total study hours per day: {_format_number(hours_per_day)}\n"
        f"- Learning style: {preferences.learning_style or 'visual'}"
    )
    sections.append(
        "RULES:\n" + "\n".join(f"{i}. {rule}" for i, rule in enumerate(RULES, 1))
    )
    sections.append(
        f"Plan exactly {days} consecutive days starting on {start_date.isoformat()}, one entry per date.\n"
        "Return ONLY valid JSON in this exact format:\n" + RESPONSE_FORMAT
    )
    sections.append(f"Start date: {start_date.isoformat()}")
    return "\n\n".join(sections)


def extract_json_object(text: str) -> str | None:
    """Outermost brace-delimited substring, or None."""
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end <= start:
        return None
    return text[start:end + 1]


def _is_number(value) -> bool:
    # json.loads turns NaN and Infinity into floats
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _parse_session(raw, path: str, issues: list[str]) -> DraftSession | None:
    if not isinstance(raw, dict):
        issues.append(f"{path}: expected an object")
        return None
    before = len(issues)
    subject = raw.get("subject")
    if not isinstance(subject, str) or not subject.strip():
        issues.append(f"{path}.subject: missing subject")
    for key in ("startTime", "endTime"):
        value = raw.get(key)
        if not isinstance(value, str) or not _TIME_RE.match(value.strip()):
            issues.append(f"{path}.{key}: expected HH:MM, got {value!r}")
    duration = raw.get("duration")
    if not _is_number(duration) or duration < 0:
        issues.append(f"{path}.duration: expected a non-negative number, got {duration!r}")
    priority = raw.get("priority")
    if not isinstance(priority, str) or priority.strip().lower() not in PRIORITIES:
        issues.append(f"{path}.priority: expected one of {', '.join(PRIORITIES)}, got {priority!r}")
    tip = raw.get("focusTip", "")
    if tip is not None and not isinstance(tip, str):
        issues.append(f"{path}.focusTip: expected text")
    if len(issues) > before:
        return None
    return DraftSession(
        subject=subject.strip(),
        start_time=raw["startTime"].strip(),
        end_time=raw["endTime"].strip(),
        duration=int(round(duration)),
        priority=priority.strip().lower(),
        focus_tip=tip or "",
    )


def _parse_day(raw, path: str, issues: list[str]) -> DraftDay | None:
    if not isinstance(raw, dict):
        issues.append(f"{path}: expected an object")
        return None
    plan_date = None
    raw_date = raw.get("date")
    try:
        plan_date = date.fromisoformat(raw_date)
    except (TypeError, ValueError):
        issues.append(f"{path}.date: expected YYYY-MM-DD, got {raw_date!r}")
    raw_sessions = raw.get("sessions")
    if not isinstance(raw_sessions, list):
        issues.append(f"{path}.sessions: expected a list")
        return None
    sessions = [
        _parse_session(s, f"{path}.sessions[{i}]", issues) for i, s in enumerate(raw_sessions)
    ]
    if plan_date is None or any(s is None for s in sessions):
        return None
    return DraftDay(date=plan_date, sessions=sessions)


def _parse_summary(raw, days: list[DraftDay], issues: list[str]) -> PlanSummary:
    computed_hours = round(sum(s.duration for d in days for s in d.sessions) / 60, 1)
    if raw is None:
        return PlanSummary(total_hours=computed_hours)
    if not isinstance(raw, dict):
        issues.append("$.summary: expected an object")
        return PlanSummary(total_hours=computed_hours)
    total = raw.get("totalHours", computed_hours)
    if not _is_number(total):
        issues.append(f"$.summary.totalHours: expected a number, got {total!r}")
        total = computed_hours
    focus = raw.get("focusAreas", [])
    if not isinstance(focus, list) or not all(isinstance(f, str) for f in focus):
        issues.append("$.summary.focusAreas: expected a list of subject names")
        focus = []
    recommendation = raw.get("recommendation", "")
    if not isinstance(recommendation, str):
        issues.append("$.summary.recommendation: expected text")
        recommendation = ""
    return PlanSummary(total_hours=total, focus_areas=focus, recommendation=recommendation)


def parse_draft(text: str) -> DraftParseResult:
    """Parse and validate the oracle's reply.

    The reply may wrap the JSON object in prose. Every structural problem is
    collected; the plan is only returned when there are none.
    """
    issues: list[str] = []
    snippet = extract_json_object(text or "")
    if snippet is None:
        return DraftParseResult(issues=["$: no JSON object found in response"])
    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        return DraftParseResult(issues=[f"$: invalid JSON ({e.msg} at position {e.pos})"])
    if not isinstance(data, dict):
        return DraftParseResult(issues=["$: expected an object"])

    raw_plan = data.get("plan")
    if not isinstance(raw_plan, list):
        return DraftParseResult(issues=["$.plan: expected a list of days"])
    if not raw_plan:
        return DraftParseResult(issues=["$.plan: plan contains no days"])

    days = [_parse_day(d, f"$.plan[{i}]", issues) for i, d in enumerate(raw_plan)]
    parsed_days = [d for d in days if d is not None]
    summary = _parse_summary(data.get("summary"), parsed_days, issues)
    if issues:
        return DraftParseResult(issues=issues)
    return DraftParseResult(plan=DraftPlan(days=parsed_days, summary=summary))


def require_draft(text: str) -> DraftPlan:
    """parse_draft, raising DraftParseError instead of returning issues."""
    result = parse_draft(text)
    if not result.ok:
        raise DraftParseError("Failed to generate study plan: the AI response was not a valid plan",
                              issues=result.issues)
    return result.plan
