from datetime import date
from sqlalchemy import BigInteger, Integer, String, Date, Enum, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
import enum

from classmetrics.db.base import Base


class TermStatus(str, enum.Enum):
    past = "past"
    current = "current"
    future = "future"


class Term(Base):
    __tablename__ = "terms"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        Enum(TermStatus, name="term_status_enum"),
        nullable=False,
        default=TermStatus.current,
    )
    soft_deleted_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
