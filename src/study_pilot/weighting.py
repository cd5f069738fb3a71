"""Performance weighting: how much attention each subject needs."""
import math
from datetime import date

from study_pilot.errors import NoSubjectsError, ValidationError
from study_pilot.models import ExamScheduleEntry, SubjectMark, SubjectWeight, UpcomingExam

# (max days until exam, boost). Step function, checked in order.
URGENCY_STEPS = [
    (3, 80),
    (7, 50),
    (14, 30),
    (21, 15),
]


def get_urgency_boost(days_until: int | None) -> int:
    """Boost added to a subject's weakness score for an approaching exam."""
    if days_until is None:
        return 0
    for max_days, boost in URGENCY_STEPS:
        if days_until <= max_days:
            return boost
    return 0


def days_until(exam_date: date, start_date: date) -> int:
    """Whole days from the plan start to the exam, rounded up."""
    seconds = (exam_date - start_date).total_seconds()
    return math.ceil(seconds / 86400)


def nearest_exams(exams: list[ExamScheduleEntry], start_date: date) -> dict[str, UpcomingExam]:
    """Soonest exam per subject on or after start_date. Past exams are ignored."""
    nearest: dict[str, UpcomingExam] = {}
    for exam in sorted(exams, key=lambda e: e.exam_date):
        if exam.exam_date < start_date:
            continue
        days = days_until(exam.exam_date, start_date)
        current = nearest.get(exam.subject)
        if current is None or days < current.days_until:
            nearest[exam.subject] = UpcomingExam(
                subject=exam.subject,
                exam_date=exam.exam_date,
                days_until=days,
                exam_name=exam.exam_name,
            )
    return nearest


def weigh_subject(mark: SubjectMark, exam: UpcomingExam | None = None) -> SubjectWeight:
    if mark.max_marks <= 0:
        raise ValidationError(f"Max marks for {mark.subject} must be positive")
    percentage = mark.percentage
    base = 100 - percentage
    boost = get_urgency_boost(exam.days_until if exam else None)
    return SubjectWeight(
        subject=mark.subject,
        marks=mark.marks,
        max_marks=mark.max_marks,
        percentage=percentage,
        base_weakness_score=base,
        urgency_boost=boost,
        weakness_score=base + boost,
        exam=exam,
    )


def weigh_subjects(
    marks: list[SubjectMark],
    exams: list[ExamScheduleEntry],
    start_date: date,
) -> list[SubjectWeight]:
    """Weakness score per subject, in the order the marks were given.

    Lower marks mean a higher score; the subject's nearest upcoming exam adds
    a step boost on top. Raises NoSubjectsError when there is nothing to plan.
    """
    if not marks:
        raise NoSubjectsError()
    upcoming = nearest_exams(exams, start_date)
    return [weigh_subject(m, upcoming.get(m.subject)) for m in marks]
