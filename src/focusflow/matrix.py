"""
Urgency/importance (Eisenhower) matrix grouping.

Tasks carry urgency and importance scores from 0 to 10; a score of 5 or more
counts as urgent/important.
"""

from enum import Enum
from typing import Dict, Iterable, List

from .models import Task

THRESHOLD = 5


class Quadrant(str, Enum):
    DO = "do"              # urgent and important
    PLAN = "plan"          # important, not urgent
    DELEGATE = "delegate"  # urgent, not important
    DELETE = "delete"      # neither


def classify(task: Task) -> Quadrant:
    urgent = task.urgency >= THRESHOLD
    important = task.importance >= THRESHOLD
    if important:
        return Quadrant.DO if urgent else Quadrant.PLAN
    return Quadrant.DELEGATE if urgent else Quadrant.DELETE


def group_by_quadrant(tasks: Iterable[Task]) -> Dict[Quadrant, List[Task]]:
    """Bucket tasks by quadrant; every quadrant is present, input order kept."""
    groups: Dict[Quadrant, List[Task]] = {quadrant: [] for quadrant in Quadrant}
    for task in tasks:
        groups[classify(task)].append(task)
    return groups
