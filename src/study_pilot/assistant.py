"""Study assistant chat: the oracle replies and may add exams or syllabus topics.

The reply is parsed and every action validated before anything is written;
one bad action means no action is applied.
"""
import json
import logging
import re
from dataclasses import dataclass, field
from datetime import date, timedelta

from study_pilot.db import get_connection
from study_pilot.drafting import PRIORITIES, extract_json_object
from study_pilot.errors import DraftParseError, ValidationError
from study_pilot.exams import insert_exam
from study_pilot.models import SyllabusTopic
from study_pilot.planner import TextFn
from study_pilot.profile import get_marks
from study_pilot.syllabus import insert_topic

logger = logging.getLogger(__name__)

DEFAULT_REPLY = "I'm here to help! Ask me anything. 📚"
DEFAULT_SUBJECT = "General"

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_IN_DAYS_RE = re.compile(r"in (\d+) days?")

SYSTEM_TEMPLATE = """You are a friendly and helpful study buddy assistant for students. Your name is "Study Buddy".

Today is {weekday}, {today}.

{subjects}

Analyze the student's message and respond in JSON format with this exact structure:
{{
  "reply": "Your friendly response to the student",
  "actions": [
    {{"type": "add_exam", "subject": "Subject name", "exam_date": "YYYY-MM-DD", "exam_name": "Optional exam name"}},
    {{"type": "add_topic", "subject": "Subject name", "topic": "Topic name", "priority": "high|medium|low"}}
  ]
}}

Rules:
- ALWAYS add an "add_exam" action when the student mentions an upcoming exam, test, quiz, assessment, or final
- For "add_exam": if the subject is not given, use "General" or infer it from context
- For "add_exam": exam_date is REQUIRED in YYYY-MM-DD format; work it out from relative dates ("tomorrow", "this friday", "in 3 days")
- If the student mentions needing to study a topic, add an "add_topic" action
- If no actions are needed, use an empty array for "actions"
- Keep replies encouraging and concise (2-4 sentences)
- If you add an exam, mention it in your reply"""


@dataclass
class ExamAction:
    subject: str
    exam_date: date
    exam_name: str | None = None


@dataclass
class AssistantReply:
    reply: str
    exams: list[ExamAction] = field(default_factory=list)
    topics: list[SyllabusTopic] = field(default_factory=list)


def build_system_instruction(subjects: list[str], today: date) -> str:
    context = f"The student is studying these subjects: {', '.join(subjects)}." if subjects else ""
    return SYSTEM_TEMPLATE.format(
        weekday=today.strftime("%A"), today=today.isoformat(), subjects=context,
    )


def resolve_relative_date(text: str, today: date) -> date:
    """Best guess at the date a message talks about; today when nothing matches.

    Weekday names win over "tomorrow", which wins over "today", then "in N days".
    """
    lower = text.lower()
    for index, name in enumerate(WEEKDAYS):
        if name in lower:
            ahead = index - today.weekday()
            if "next" in lower or ahead < 0:
                ahead += 7
            if ahead == 0 and "today" not in lower:
                ahead = 7
            return today + timedelta(days=ahead)
    if "tomorrow" in lower:
        return today + timedelta(days=1)
    if "today" in lower:
        return today
    m = _IN_DAYS_RE.search(lower)
    if m:
        return today + timedelta(days=int(m.group(1)))
    return today


def _optional_text(raw: dict, key: str, path: str, issues: list[str]) -> str | None:
    value = raw.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        issues.append(f"{path}.{key}: expected text, got {value!r}")
        return None
    return value.strip() or None


def _parse_exam(raw: dict, path: str, message: str, today: date, issues: list[str]) -> ExamAction | None:
    before = len(issues)
    subject = _optional_text(raw, "subject", path, issues) or DEFAULT_SUBJECT
    name = _optional_text(raw, "exam_name", path, issues)
    raw_date = _optional_text(raw, "exam_date", path, issues)
    exam_date = None
    if raw_date and _ISO_DATE_RE.match(raw_date):
        try:
            exam_date = date.fromisoformat(raw_date)
        except ValueError:
            issues.append(f"{path}.exam_date: not a calendar date, got {raw_date!r}")
    elif len(issues) == before:
        # Missing or free-text date: fall back to what the student wrote
        exam_date = resolve_relative_date(message, today)
    if len(issues) > before:
        return None
    return ExamAction(subject=subject, exam_date=exam_date, exam_name=name)


def _parse_topic(raw: dict, path: str, issues: list[str]) -> SyllabusTopic | None:
    before = len(issues)
    subject = _optional_text(raw, "subject", path, issues) or DEFAULT_SUBJECT
    topic = _optional_text(raw, "topic", path, issues)
    if topic is None and len(issues) == before:
        issues.append(f"{path}.topic: missing topic")
    priority = (_optional_text(raw, "priority", path, issues) or "medium").lower()
    if priority not in PRIORITIES:
        issues.append(f"{path}.priority: expected one of {', '.join(PRIORITIES)}, got {priority!r}")
    if len(issues) > before:
        return None
    return SyllabusTopic(subject=subject, topic=topic, priority=priority)


def parse_reply(text: str, message: str, today: date) -> tuple[AssistantReply | None, list[str]]:
    """Parse the oracle's {reply, actions} object. Returns (reply, issues)."""
    snippet = extract_json_object(text or "")
    if snippet is None:
        return None, ["$: no JSON object found in response"]
    try:
        data = json.loads(snippet)
    except json.JSONDecodeError as e:
        return None, [f"$: invalid JSON ({e.msg} at position {e.pos})"]
    if not isinstance(data, dict):
        return None, ["$: expected an object"]

    issues: list[str] = []
    reply = data.get("reply")
    if reply is not None and not isinstance(reply, str):
        issues.append(f"$.reply: expected text, got {reply!r}")
        reply = None
    result = AssistantReply(reply=(reply or "").strip() or DEFAULT_REPLY)

    actions = data.get("actions")
    if actions is None:
        actions = []
    if not isinstance(actions, list):
        issues.append("$.actions: expected a list")
        actions = []
    for i, raw in enumerate(actions):
        path = f"$.actions[{i}]"
        if not isinstance(raw, dict):
            issues.append(f"{path}: expected an object")
            continue
        kind = raw.get("type")
        if kind == "add_exam":
            exam = _parse_exam(raw, path, message, today, issues)
            if exam:
                result.exams.append(exam)
        elif kind == "add_topic":
            topic = _parse_topic(raw, path, issues)
            if topic:
                result.topics.append(topic)
        else:
            issues.append(f"{path}.type: expected add_exam or add_topic, got {kind!r}")
    if issues:
        return None, issues
    return result, []


def apply_actions(db_path: str, user_id: str, parsed: AssistantReply) -> list[dict]:
    """Write every exam and topic in one transaction; returns what was added."""
    applied = []
    conn = get_connection(db_path)
    try:
        for exam in parsed.exams:
            insert_exam(conn, user_id, exam.subject, exam.exam_date, exam.exam_name)
            applied.append({
                "type": "exam_added",
                "details": {"subject": exam.subject, "date": exam.exam_date.isoformat(), "name": exam.exam_name},
            })
        for topic in parsed.topics:
            insert_topic(conn, user_id, topic)
            applied.append({
                "type": "topic_added",
                "details": {"subject": topic.subject, "topic": topic.topic, "priority": topic.priority},
            })
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    return applied


def chat(db_path: str, user_id: str, message: str, text_fn: TextFn, today: date | None = None) -> dict:
    """Answer a student message and apply the actions the oracle asked for."""
    if not isinstance(message, str) or not message.strip():
        raise ValidationError("Message is required")
    today = today or date.today()
    subjects = [m.subject for m in get_marks(db_path, user_id)]
    text = text_fn(message, build_system_instruction(subjects, today))
    parsed, issues = parse_reply(text, message, today)
    if parsed is None:
        logger.warning("Rejected assistant reply for %s: %s", user_id, "; ".join(issues))
        raise DraftParseError("The assistant's answer could not be used. Please try again.", issues=issues)
    applied = apply_actions(db_path, user_id, parsed)
    if applied:
        logger.info("Assistant applied %d actions for %s", len(applied), user_id)
    return {"reply": parsed.reply, "actions": applied}
