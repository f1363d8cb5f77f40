from datetime import datetime
from sqlalchemy import BigInteger, Float, Integer, String, DateTime, func
from sqlalchemy.orm import Mapped, mapped_column

from classmetrics.db.base import Base


class User(Base):
    """
    Student record owned by the planner store.

    classmetrics only writes the GPA / credit aggregates and the usage
    counters; everything else is read-only here.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    auth_subject: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True, index=True,
        comment="Stable subject issued by the identity provider",
    )
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # GPA tracking
    transfer_gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    transfer_credits: Mapped[int | None] = mapped_column(Integer, nullable=True)
    current_gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    institution_gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    predicted_term_gpa: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_credits_earned: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_credits_attempted: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Usage counters
    total_assignments: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_classes_enrolled: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_submissions: Mapped[int | None] = mapped_column(Integer, nullable=True)
    total_terms_created: Mapped[int | None] = mapped_column(Integer, nullable=True)

    soft_deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
