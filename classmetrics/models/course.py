from sqlalchemy import BigInteger, Integer, String, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from classmetrics.db.base import Base


class Course(Base):
    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    term_id: Mapped[int] = mapped_column(ForeignKey("terms.id"), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    code: Mapped[str] = mapped_column(String(64), nullable=False)
    # Weight of the course in GPA blending
    credit_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    instructor: Mapped[str | None] = mapped_column(String(256), nullable=True)
    soft_deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
