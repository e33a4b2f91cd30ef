from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .database import get_db
from .modules import MODULES
from .records import RecordStore
from .scope import Caller, get_caller
from .utils import to_jsonable

router = APIRouter(prefix="/api/audit", tags=["Audit"])


@router.get("/deleted-records")
def deleted_records(
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    """Soft-deleted rows of every module in the caller's scope, newest first."""
    caller.require()

    items = []
    for module in MODULES:
        for row in RecordStore(db, module).deleted(caller):
            items.append(
                {
                    "table": module.slug,
                    "entity_type": module.entity_type,
                    "record_id": row.id,
                    "business_area": row.business_area,
                    "deleted_at": row.deleted_at,
                    "deleted_by": row.deleted_by,
                    "file_name": row.file_name,
                }
            )

    items.sort(key=lambda x: x["deleted_at"], reverse=True)
    for item in items:
        item["deleted_at"] = to_jsonable(item["deleted_at"])
    return {"success": True, "count": len(items), "data": items}
