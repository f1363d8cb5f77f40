"""
Caller identity.

The identity provider sits in front of this service and forwards the
stable subject of the signed-in user in the `X-User-Subject` header.
Routers turn it into an `Identity` and hand it to the service layer;
services never look at request state themselves.

Mutations: require_user()  - identity mandatory, user row mandatory.
           require_term()  - a referenced term must belong to that user.
Queries:   resolve_reader() - falls back to the first live user when no
           identity is present (demo mode, see ALLOW_ANONYMOUS_READS).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header
from sqlalchemy.orm import Session

from classmetrics.core.config import settings
from classmetrics.core.errors import (
    AuthenticationRequiredError,
    TermNotFoundError,
    UserNotFoundError,
)
from classmetrics.models.term import Term
from classmetrics.models.user import User


@dataclass(frozen=True)
class Identity:
    subject: str


def get_identity(
    x_user_subject: Optional[str] = Header(
        default=None,
        description="Subject of the authenticated user, set by the identity provider.",
    ),
) -> Optional[Identity]:
    if x_user_subject is None or not x_user_subject.strip():
        return None
    return Identity(subject=x_user_subject.strip())


def _live_users(db: Session):
    return db.query(User).filter(User.soft_deleted_at.is_(None))


def _user_for_subject(db: Session, identity: Identity) -> Optional[User]:
    return _live_users(db).filter(User.auth_subject == identity.subject).first()


def require_user(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
) -> User:
    """
    Resolve the target user of a mutating call.
    A `user_id` other than the caller's own is treated as not found.
    """
    if identity is None:
        raise AuthenticationRequiredError()
    user = _user_for_subject(db, identity)
    if user is None:
        raise UserNotFoundError()
    if user_id is not None and user_id != user.id:
        raise UserNotFoundError(user_id)
    return user


def require_term(db: Session, user: User, term_id: int) -> Term:
    """A live term owned by `user`; anything else is reported as not found."""
    term = (
        db.query(Term)
        .filter(
            Term.id == term_id,
            Term.user_id == user.id,
            Term.soft_deleted_at.is_(None),
        )
        .first()
    )
    if term is None:
        raise TermNotFoundError(term_id)
    return term


def resolve_reader(
    db: Session,
    identity: Optional[Identity],
    user_id: Optional[int] = None,
) -> Optional[User]:
    """
    Resolve the target user of a query. Returns None when nobody matches,
    so callers can answer with an empty result instead of an error.
    """
    if identity is not None:
        user = _user_for_subject(db, identity)
        if user is None or (user_id is not None and user_id != user.id):
            return None
        return user

    if not settings.ALLOW_ANONYMOUS_READS:
        return None
    if user_id is not None:
        return _live_users(db).filter(User.id == user_id).first()
    return _live_users(db).order_by(User.id).first()
