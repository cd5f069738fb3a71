"""Data classes for the planner domain model."""
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

from study_pilot.errors import ValidationError


@dataclass
class SubjectMark:
    subject: str
    marks: float
    max_marks: float

    @property
    def percentage(self) -> float:
        return self.marks * 100 / self.max_marks


@dataclass
class ExamScheduleEntry:
    id: Optional[int]
    subject: str
    exam_date: date
    exam_name: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class UpcomingExam:
    """Nearest exam of a subject, seen from the plan start date."""
    subject: str
    exam_date: date
    days_until: int
    exam_name: Optional[str] = None


@dataclass
class SubjectWeight:
    subject: str
    marks: float
    max_marks: float
    percentage: float
    base_weakness_score: float
    urgency_boost: int
    weakness_score: float
    exam: Optional[UpcomingExam] = None


@dataclass
class SubjectAllocation:
    subject: str
    marks: float
    max_marks: float
    percentage: float
    base_weakness_score: float
    urgency_boost: int
    weakness_score: float
    minutes_per_day: int
    priority: str
    exam: Optional[UpcomingExam] = None

    def as_dict(self) -> dict:
        return {
            "subject": self.subject,
            "marks": self.marks,
            "maxMarks": self.max_marks,
            "percentage": self.percentage,
            "baseWeaknessScore": self.base_weakness_score,
            "urgencyBoost": self.urgency_boost,
            "weaknessScore": self.weakness_score,
            "minutesPerDay": self.minutes_per_day,
            "priority": self.priority,
            "examInfo": None if self.exam is None else {
                "daysUntil": self.exam.days_until,
                "examDate": self.exam.exam_date.isoformat(),
                "examName": self.exam.exam_name,
            },
        }


@dataclass
class UserPreferences:
    learning_style: str = "visual"
    study_time: Optional[str] = None
    session_length: Optional[str] = None
    environment: Optional[str] = None
    motivation: Optional[str] = None


@dataclass
class SyllabusTopic:
    subject: str
    topic: str
    chapter: Optional[str] = None
    priority: str = "medium"


@dataclass
class QuizQuestion:
    question: str
    options: list[str]
    correct_index: int

    def as_dict(self) -> dict:
        return {"question": self.question, "options": self.options, "correctIndex": self.correct_index}


@dataclass
class DraftSession:
    subject: str
    start_time: str
    end_time: str
    duration: int
    priority: str
    focus_tip: str = ""


@dataclass
class DraftDay:
    date: date
    sessions: list[DraftSession] = field(default_factory=list)


@dataclass
class PlanSummary:
    total_hours: float
    focus_areas: list[str] = field(default_factory=list)
    recommendation: str = ""


@dataclass
class DraftPlan:
    days: list[DraftDay]
    summary: PlanSummary

    @property
    def session_count(self) -> int:
        return sum(len(d.sessions) for d in self.days)

    def as_dict(self) -> dict:
        return {
            "plan": [
                {
                    "date": d.date.isoformat(),
                    "sessions": [
                        {
                            "subject": s.subject,
                            "startTime": s.start_time,
                            "endTime": s.end_time,
                            "duration": s.duration,
                            "priority": s.priority,
                            "focusTip": s.focus_tip,
                        }
                        for s in d.sessions
                    ],
                }
                for d in self.days
            ],
            "summary": {
                "totalHours": self.summary.total_hours,
                "focusAreas": self.summary.focus_areas,
                "recommendation": self.summary.recommendation,
            },
        }


@dataclass
class DraftParseResult:
    """Either a validated plan, or the issues that made parsing fail."""
    plan: Optional[DraftPlan] = None
    issues: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.plan is not None and not self.issues


def parse_iso_date(value, field_name: str = "date") -> date:
    """Parse a YYYY-MM-DD request value, raising ValidationError otherwise."""
    if isinstance(value, date):
        return value
    if not value:
        raise ValidationError(f"{field_name} is required")
    try:
        return date.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError(f"{field_name} must be a YYYY-MM-DD date, got {value!r}") from e
