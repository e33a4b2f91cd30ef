# qms_records/routes_records.py
from typing import Optional

from fastapi import APIRouter, Depends, Header, Response
from sqlalchemy.orm import Session

from .database import get_db
from .errors import ValidationError
from .modules import RecordModule
from .records import RecordStore
from .scope import Caller, get_caller
from .utils import row_to_dict, to_jsonable


def _record_id(value, label: str) -> int:
    if value is None or value == "":
        raise ValidationError("ID is required")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise ValidationError(f"Invalid {label.lower()} ID")


def _deleted_response(module: RecordModule, row) -> dict:
    return {
        "success": True,
        "message": f"{module.label} successfully deleted",
        "deleted_at": to_jsonable(getattr(row, "deleted_at", None)),
        "deleted_by": getattr(row, "deleted_by", None),
    }


def build_router(module: RecordModule) -> APIRouter:
    router = APIRouter(prefix=f"/api/{module.slug}", tags=[module.label])

    # -----------------------------
    # Collection
    # -----------------------------
    @router.get("")
    def list_records(
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        return [row_to_dict(r) for r in RecordStore(db, module).list(caller)]

    @router.post("", status_code=201)
    def create_record(
        payload: dict,
        response: Response,
        idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        row, created = RecordStore(db, module).create(caller, payload, idempotency_key=idempotency_key)
        if not created:
            response.status_code = 200
        return row_to_dict(row)

    @router.put("")
    def update_record_from_body(
        payload: dict,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        caller.require()
        record_id = _record_id(payload.get("id"), module.label)
        return row_to_dict(RecordStore(db, module).update(caller, record_id, payload))

    @router.delete("")
    def delete_record_by_query(
        id: Optional[str] = None,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        caller.require()
        row = RecordStore(db, module).delete(caller, _record_id(id, module.label))
        return _deleted_response(module, row)

    @router.post("/soft-delete")
    def soft_delete_record(
        payload: dict,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        caller.require()
        row = RecordStore(db, module).soft_delete(caller, _record_id(payload.get("id"), module.label))
        return _deleted_response(module, row)

    # -----------------------------
    # Item
    # -----------------------------
    @router.get("/{record_id}")
    def get_record(
        record_id: int,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        return row_to_dict(RecordStore(db, module).get(caller, record_id))

    @router.put("/{record_id}")
    def update_record(
        record_id: int,
        payload: dict,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        return row_to_dict(RecordStore(db, module).update(caller, record_id, payload))

    @router.delete("/{record_id}")
    def delete_record(
        record_id: int,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        row = RecordStore(db, module).delete(caller, record_id)
        return _deleted_response(module, row)

    @router.get("/{record_id}/history")
    def record_history(
        record_id: int,
        db: Session = Depends(get_db),
        caller: Caller = Depends(get_caller),
    ):
        """Change history of one record, oldest first."""
        row, history = RecordStore(db, module).history(caller, record_id)
        created = next((h for h in history if h.change_type == "created"), None)
        return {
            "creation": {
                "created_at": to_jsonable(row.created_at),
                "snapshot": created.snapshot if created else None,
            },
            "history": [row_to_dict(h) for h in history],
        }

    return router
