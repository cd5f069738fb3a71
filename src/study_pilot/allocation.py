"""Turn weakness scores into minutes per day."""
import math

from study_pilot.models import SubjectAllocation, SubjectWeight


def get_priority_label(percentage: float) -> str:
    if percentage < 40:
        return "high"
    elif percentage < 60:
        return "medium"
    return "low"


def round_minutes(value: float) -> int:
    # Half up, so 22.5 -> 23 and never banker's rounding
    return int(math.floor(value + 0.5))


def allocate_minutes(weights: list[SubjectWeight], hours_per_day: float) -> list[SubjectAllocation]:
    """Split the daily budget across subjects in proportion to weakness.

    Each share is rounded on its own, so the total may differ from
    hours_per_day * 60 by up to one minute per subject. The result is sorted
    weakest first; ties keep their input order.
    """
    total_minutes = hours_per_day * 60
    total_weakness = sum(w.weakness_score for w in weights)
    allocations = []
    for w in weights:
        if total_weakness > 0:
            ratio = w.weakness_score / total_weakness
        else:
            ratio = 1 / len(weights)
        allocations.append(SubjectAllocation(
            subject=w.subject,
            marks=w.marks,
            max_marks=w.max_marks,
            percentage=w.percentage,
            base_weakness_score=w.base_weakness_score,
            urgency_boost=w.urgency_boost,
            weakness_score=w.weakness_score,
            minutes_per_day=round_minutes(total_minutes * ratio),
            priority=get_priority_label(w.percentage),
            exam=w.exam,
        ))
    allocations.sort(key=lambda a: a.weakness_score, reverse=True)
    return allocations
