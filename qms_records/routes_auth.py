# qms_records/routes_auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import User, BusinessArea
from .models_rbac import AreaMember
from .rbac import require_role
from .auth import (
    hash_password,
    verify_password,
    create_access_token,
    get_current_user,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Auth"])

ROLES = {"owner", "editor"}


# -----------------------------
# Helpers
# -----------------------------
def _user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "full_name": getattr(u, "full_name", None),
        "email": u.email,
        "created_at": u.created_at.isoformat() if getattr(u, "created_at", None) else None,
    }


def _area_to_dict(a: BusinessArea) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "description": getattr(a, "description", None),
        "created_at": a.created_at.isoformat() if getattr(a, "created_at", None) else None,
    }


def _create_area(db: Session, name: str, description, owner_id: int) -> BusinessArea:
    area = BusinessArea(name=name, description=description)
    db.add(area)
    db.flush()
    # RBAC link: owner
    db.add(AreaMember(business_area=area.name, user_id=owner_id, role="owner"))
    return area


# -----------------------------
# Auth APIs
# -----------------------------
@router.post("/register")
def register(payload: dict, db: Session = Depends(get_db)):
    """
    Body:
    {
      "full_name": "Quality Lead",
      "email": "lead@example.com",
      "password": "Test@123",
      "business_area": "Operations"   (optional)
    }

    Returns:
    { "access_token": "...", "token_type": "bearer" }
    """
    full_name = (payload.get("full_name") or "").strip()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    area_name = (payload.get("business_area") or "").strip()

    if not email or not password:
        raise HTTPException(status_code=400, detail="email and password are required")

    exists = db.query(User).filter(User.email == email).first()
    if exists:
        raise HTTPException(status_code=400, detail="Email already registered")

    if area_name and db.query(BusinessArea).filter(BusinessArea.name == area_name).first():
        raise HTTPException(status_code=400, detail="Business area already exists")

    u = User(
        full_name=full_name,
        email=email,
        password_hash=hash_password(password),
    )
    db.add(u)
    db.flush()

    if area_name:
        _create_area(db, area_name, None, u.id)

    db.commit()
    db.refresh(u)
    logger.info("registered user id=%s area=%s", u.id, area_name or "-")

    token = create_access_token({"sub": str(u.id)})
    return {"access_token": token, "token_type": "bearer"}


@router.post("/login")
def login(payload: dict, db: Session = Depends(get_db)):
    """
    Body:
    {
      "email": "lead@example.com",
      "password": "Test@123"
    }

    Returns:
    { "access_token": "...", "token_type": "bearer" }
    """
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""

    if not email or not password:
        raise HTTPException(status_code=400, detail="email and password are required")

    u = db.query(User).filter(User.email == email).first()
    if not u:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    if not verify_password(password, u.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token({"sub": str(u.id)})
    return {"access_token": token, "token_type": "bearer"}


@router.get("/me")
def me(current_user: User = Depends(get_current_user)):
    return _user_to_dict(current_user)


# -----------------------------
# Business areas
# -----------------------------
@router.get("/business-areas")
def list_business_areas(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Returns business areas the user has access to (RBAC), alphabetically.
    The first one is where new records are created.
    """
    links = db.query(AreaMember).filter(AreaMember.user_id == current_user.id).all()
    if not links:
        return []

    names = [x.business_area for x in links]
    rows = db.query(BusinessArea).filter(BusinessArea.name.in_(names)).order_by(BusinessArea.name.asc()).all()

    # attach role
    role_by_area = {x.business_area: x.role for x in links}
    out = []
    for a in rows:
        item = _area_to_dict(a)
        item["role"] = role_by_area.get(a.name)
        out.append(item)
    return out


@router.post("/business-areas")
def create_business_area(
    payload: dict,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Body:
    { "name": "Operations", "description": "Plant operations" }

    Creates the area and makes current user owner (RBAC).
    """
    name = (payload.get("name") or "").strip()
    description = (payload.get("description") or "").strip() or None

    if not name:
        raise HTTPException(status_code=400, detail="name is required")

    if db.query(BusinessArea).filter(BusinessArea.name == name).first():
        raise HTTPException(status_code=400, detail="Business area already exists")

    area = _create_area(db, name, description, current_user.id)
    db.commit()
    db.refresh(area)

    logger.info("created business area %s owner=%s", name, current_user.id)
    return _area_to_dict(area)


@router.post("/business-areas/{name}/members")
def add_member(
    name: str,
    payload: dict,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """
    Body:
    { "email": "colleague@example.com", "role": "editor" }

    Only an owner of the area can grant access. Granting again updates the role.
    """
    require_role(db, name, current_user.id, {"owner"})

    email = (payload.get("email") or "").strip().lower()
    role = (payload.get("role") or "editor").strip().lower()

    if not email:
        raise HTTPException(status_code=400, detail="email is required")
    if role not in ROLES:
        raise HTTPException(status_code=400, detail="role must be owner or editor")

    user = db.query(User).filter(User.email == email).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    link = (
        db.query(AreaMember)
        .filter(AreaMember.business_area == name, AreaMember.user_id == user.id)
        .first()
    )
    if link is None:
        link = AreaMember(business_area=name, user_id=user.id, role=role)
        db.add(link)
    else:
        link.role = role
    db.commit()

    logger.info("granted %s on %s to user id=%s", role, name, user.id)
    return {"business_area": name, "user_id": user.id, "email": user.email, "role": role}
