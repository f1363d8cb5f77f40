from .user import User
from .term import Term, TermStatus
from .course import Course
from .assignment import Assignment, AssignmentStatus
from .user_class_metric import UserClassMetric, MetricType

__all__ = [
    "User",
    "Term",
    "TermStatus",
    "Course",
    "Assignment",
    "AssignmentStatus",
    "UserClassMetric",
    "MetricType",
]
