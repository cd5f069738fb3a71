"""Multiple-choice quiz questions for a syllabus topic, drafted by the oracle."""
import json
import logging

from study_pilot.errors import DraftParseError, ValidationError
from study_pilot.models import QuizQuestion
from study_pilot.planner import TextFn
from study_pilot.profile import get_marks, get_profile

logger = logging.getLogger(__name__)

QUESTION_COUNT = 5
OPTION_COUNT = 4
MIN_VALID_QUESTIONS = 3


def quiz_difficulty(percentage: float | None) -> str:
    if percentage is None:
        return "medium"
    if percentage >= 80:
        return "challenging"
    elif percentage < 50:
        return "basic"
    return "medium"


def build_quiz_prompt(subject: str, topic: str, chapter: str | None, difficulty: str,
                      learning_style: str | None = None) -> str:
    lines = [
        f"Generate exactly {QUESTION_COUNT} multiple choice quiz questions to test knowledge on the following topic:",
        "",
        f"Subject: {subject}",
        f"Topic: {topic}",
    ]
    if chapter:
        lines.append(f"Chapter: {chapter}")
    lines.append(f"Difficulty Level: {difficulty}")
    if learning_style:
        lines.append(f"Student Learning Style: {learning_style}")
    lines += [
        "",
        "Requirements:",
        f"- Generate exactly {QUESTION_COUNT} questions",
        f"- Each question should have exactly {OPTION_COUNT} options",
        "- Questions should be appropriate for a student studying this topic",
        "- Include a mix of conceptual and application-based questions",
        "- Make questions clear and unambiguous",
        "",
        "Return the response as a JSON array with this exact structure:",
        '[{"question": "The question text here?", "options": ["Option A", "Option B", "Option C", "Option D"], '
        '"correctIndex": 0}]',
        "",
        "Only return the JSON array, no additional text or markdown.",
    ]
    return "\n".join(lines)


def _question(raw) -> QuizQuestion | None:
    if not isinstance(raw, dict):
        return None
    question = raw.get("question")
    options = raw.get("options")
    index = raw.get("correctIndex")
    if not isinstance(question, str) or not question.strip():
        return None
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        return None
    if not all(isinstance(o, str) and o.strip() for o in options):
        return None
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < OPTION_COUNT:
        return None
    return QuizQuestion(question=question.strip(), options=[o.strip() for o in options], correct_index=index)


def parse_quiz(text: str) -> list[QuizQuestion]:
    """Well-formed questions from the oracle's reply, at most QUESTION_COUNT.

    Malformed questions are dropped; fewer than MIN_VALID_QUESTIONS left is
    an error.
    """
    start = (text or "").find("[")
    end = (text or "").rfind("]")
    if start == -1 or end <= start:
        raise DraftParseError("Failed to generate valid quiz questions", issues=["$: no JSON array found in response"])
    try:
        data = json.loads(text[start:end + 1])
    except json.JSONDecodeError as e:
        raise DraftParseError("Failed to generate valid quiz questions",
                              issues=[f"$: invalid JSON ({e.msg} at position {e.pos})"]) from e
    if not isinstance(data, list) or not data:
        raise DraftParseError("Invalid quiz format received", issues=["$: expected a non-empty list"])
    questions = []
    issues = []
    for i, raw in enumerate(data):
        q = _question(raw)
        if q is None:
            issues.append(f"$[{i}]: malformed question")
        else:
            questions.append(q)
    if len(questions) < MIN_VALID_QUESTIONS:
        raise DraftParseError("Not enough valid questions generated", issues=issues)
    if issues:
        logger.info("Dropped %d malformed quiz questions", len(issues))
    return questions[:QUESTION_COUNT]


def generate_quiz(db_path: str, user_id: str, subject, topic, text_fn: TextFn, chapter=None) -> list[QuizQuestion]:
    """Quiz on one topic, pitched by the student's current mark in the subject."""
    subject = str(subject or "").strip()
    topic = str(topic or "").strip()
    if not subject or not topic:
        raise ValidationError("Subject and topic are required")
    mark = next((m for m in get_marks(db_path, user_id) if m.subject == subject), None)
    difficulty = quiz_difficulty(mark.percentage if mark else None)
    profile = get_profile(db_path, user_id)
    prompt = build_quiz_prompt(subject, topic, chapter, difficulty, profile["learning_style"] if profile else None)
    logger.info("Generating %s quiz on %s / %s for %s", difficulty, subject, topic, user_id)
    return parse_quiz(text_fn(prompt, None))
