from sqlalchemy import BigInteger, Float, Integer, String, Text, Enum, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
import enum

from classmetrics.db.base import Base


class AssignmentStatus(str, enum.Enum):
    todo = "todo"
    done = "done"


class Assignment(Base):
    """
    Read-only view of an assignment.

    A grade can be stored three ways; see services/aggregator.py for the
    precedence used when resolving a percentage.
    """

    __tablename__ = "assignments"
    __table_args__ = (
        Index("ix_assignments_user_due", "user_id", "due_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    course_id: Mapped[int] = mapped_column(ForeignKey("courses.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    due_at: Mapped[int] = mapped_column(BigInteger, nullable=False, comment="epoch ms")
    status: Mapped[str] = mapped_column(
        Enum(AssignmentStatus, name="assignment_status_enum"),
        nullable=False,
        default=AssignmentStatus.todo,
    )
    grade: Mapped[float | None] = mapped_column(
        Float, nullable=True, comment="Legacy 0-100 grade",
    )
    points_earned: Mapped[float | None] = mapped_column(Float, nullable=True)
    points_possible: Mapped[float | None] = mapped_column(Float, nullable=True)
    grade_percentage: Mapped[float | None] = mapped_column(Float, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    soft_deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
