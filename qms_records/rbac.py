from fastapi import HTTPException
from sqlalchemy.orm import Session
from .models_rbac import AreaMember


def require_role(db: Session, business_area: str, user_id: int, allowed: set[str]):
    row = (
        db.query(AreaMember)
        .filter(AreaMember.business_area == business_area, AreaMember.user_id == user_id)
        .first()
    )
    if not row:
        raise HTTPException(403, "No access to this business area")
    if row.role not in allowed:
        raise HTTPException(403, "Insufficient role")
    return row.role
