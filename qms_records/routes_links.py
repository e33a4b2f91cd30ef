import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .database import get_db
from .errors import Forbidden, NotFound, StoreError, ValidationError
from .models_records import BusinessDocument, ProcessDocumentLink
from .modules import BUSINESS_PROCESSES
from .records import RecordStore
from .scope import Caller, get_caller
from .utils import row_to_dict, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Process Documents"])


# =====================================
# Helpers
# =====================================
def _process(db: Session, caller: Caller, process_id: int):
    try:
        return RecordStore(db, BUSINESS_PROCESSES).get(caller, process_id)
    except NotFound:
        raise NotFound("Business process not found")


def _active_documents(db: Session, areas: list[str]):
    return db.query(BusinessDocument).filter(
        BusinessDocument.business_area.in_(areas),
        BusinessDocument.deleted_at.is_(None),
    )


def _document_ids(value) -> list[int]:
    if not isinstance(value, list) or not value:
        raise ValidationError("Document IDs array is required")
    ids = []
    for v in value:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValidationError("Invalid document ID")
        ids.append(v)
    return list(dict.fromkeys(ids))


# =====================================
# Linked documents of a process
# =====================================
@router.get("/api/business-processes/{process_id}/documents")
def list_linked_documents(
    process_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    caller.require()
    _process(db, caller, process_id)

    rows = (
        db.query(ProcessDocumentLink, BusinessDocument)
        .join(BusinessDocument, BusinessDocument.id == ProcessDocumentLink.business_document_id)
        .filter(
            ProcessDocumentLink.business_process_id == process_id,
            BusinessDocument.deleted_at.is_(None),
        )
        .order_by(ProcessDocumentLink.created_at.desc(), ProcessDocumentLink.id.desc())
        .all()
    )
    data = [{**row_to_dict(link), "document": row_to_dict(doc)} for link, doc in rows]
    return {"success": True, "data": data}


@router.post("/api/business-processes/{process_id}/documents")
def link_documents(
    process_id: int,
    payload: dict,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    areas = caller.require()
    ids = _document_ids(payload.get("document_ids"))
    _process(db, caller, process_id)

    found = {d.id for d in _active_documents(db, areas).filter(BusinessDocument.id.in_(ids)).all()}
    if len(found) != len(ids):
        raise NotFound("One or more documents not found or access denied")

    existing = {
        r[0]
        for r in db.query(ProcessDocumentLink.business_document_id)
        .filter(ProcessDocumentLink.business_process_id == process_id)
        .all()
    }
    now = utcnow()
    new_ids = [i for i in ids if i not in existing]
    try:
        for doc_id in new_ids:
            db.add(
                ProcessDocumentLink(
                    business_process_id=process_id,
                    business_document_id=doc_id,
                    created_by=caller.user_id,
                    created_at=now,
                )
            )
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.error("Failed to link documents to process %s: %s", process_id, e)
        raise StoreError("Failed to link documents")

    logger.info("linked %d document(s) to process %s", len(new_ids), process_id)
    return {
        "success": True,
        "message": f"{len(new_ids)} document(s) linked successfully",
        "linked_count": len(new_ids),
    }


@router.delete("/api/business-processes/{process_id}/documents")
def unlink_document(
    process_id: int,
    document_id: Optional[str] = Query(default=None, alias="documentId"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    caller.require()
    if not document_id:
        raise ValidationError("Document ID is required")
    if not document_id.strip().isdigit():
        raise ValidationError("Invalid document ID")
    _process(db, caller, process_id)

    link = (
        db.query(ProcessDocumentLink)
        .filter(
            ProcessDocumentLink.business_process_id == process_id,
            ProcessDocumentLink.business_document_id == int(document_id),
        )
        .first()
    )
    if link is None:
        raise NotFound("Document link not found")

    db.delete(link)
    db.commit()
    return {"success": True, "message": "Document unlinked successfully"}


# =====================================
# Documents that can be linked
# =====================================
@router.get("/api/business-documents/available")
def available_documents(
    business_area: Optional[str] = Query(default=None, alias="businessArea"),
    document_type: Optional[str] = Query(default=None, alias="documentType"),
    search: Optional[str] = None,
    exclude_process_id: Optional[int] = Query(default=None, alias="excludeProcessId"),
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
):
    areas = caller.require()
    if business_area:
        if not caller.owns(business_area):
            raise Forbidden("No access to this business area")
        areas = [business_area]

    q = _active_documents(db, areas)
    if document_type:
        q = q.filter(BusinessDocument.document_type == document_type)
    if search:
        q = q.filter(BusinessDocument.document_name.ilike(f"%{search.strip()}%"))
    if exclude_process_id is not None:
        linked = [
            r[0]
            for r in db.query(ProcessDocumentLink.business_document_id)
            .filter(ProcessDocumentLink.business_process_id == exclude_process_id)
            .all()
        ]
        if linked:
            q = q.filter(BusinessDocument.id.notin_(linked))

    documents = [row_to_dict(d) for d in q.order_by(BusinessDocument.document_name.asc()).all()]
    grouped: dict[str, list] = {}
    for doc in documents:
        grouped.setdefault(doc["document_type"] or "Other", []).append(doc)

    return {
        "success": True,
        "data": {"documents": documents, "grouped_documents": grouped, "total_count": len(documents)},
    }
