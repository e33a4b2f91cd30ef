"""Resolve which business areas the caller of a request may read and write.

Resolution never raises: a request whose identity cannot be established
resolves to an empty scope, and every consumer treats an empty scope as
unauthorized.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .auth import read_token, user_id_from_claims
from .database import get_db
from .errors import Unauthorized
from .models_rbac import AreaMember

logger = logging.getLogger(__name__)


@dataclass
class Caller:
    user_id: Optional[int]
    business_areas: list[str] = field(default_factory=list)

    def require(self) -> list[str]:
        if not self.business_areas:
            raise Unauthorized("Unauthorized - No business area access")
        return self.business_areas

    @property
    def primary_area(self) -> str:
        # new records always land in the first area of the scope
        return self.require()[0]

    def owns(self, business_area: Optional[str]) -> bool:
        return business_area in self.business_areas


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("authorization") or ""
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def business_areas_for_user(db: Session, user_id: int) -> list[str]:
    rows = (
        db.query(AreaMember.business_area)
        .filter(AreaMember.user_id == user_id)
        .order_by(AreaMember.business_area.asc())
        .all()
    )
    return [r[0] for r in rows]


def resolve_caller(request: Request, db: Session) -> Caller:
    user_id = user_id_from_claims(read_token(_bearer_token(request)))
    if user_id is None:
        return Caller(user_id=None)

    try:
        areas = business_areas_for_user(db, user_id)
    except SQLAlchemyError:
        logger.exception("Failed to load business areas for user %s", user_id)
        db.rollback()
        return Caller(user_id=user_id)
    return Caller(user_id=user_id, business_areas=areas)


def get_caller(request: Request, db: Session = Depends(get_db)) -> Caller:
    return resolve_caller(request, db)
