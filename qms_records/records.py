"""Scoped CRUD engine shared by every record module.

A row is visible to a caller only while ``deleted_at`` is null and its
business area is in the caller's scope. Rows outside the scope are reported
as missing, never as forbidden, so their existence does not leak across
business areas. Creates, updates and soft deletes write their history row in
the same transaction as the change itself.
"""
import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import audit
from .errors import Conflict, Forbidden, NotFound, StoreError, ValidationError
from .models_audit import IdempotencyRecord
from .modules import RecordModule
from .scope import Caller
from .utils import fingerprint, is_blank, utcnow

logger = logging.getLogger(__name__)

BATCH_SIZE = 500


def describe_validation_error(exc: PydanticValidationError) -> str:
    err = exc.errors()[0]
    loc = ".".join(str(p) for p in err.get("loc", ())) or "body"
    return f"Invalid {loc}: {err.get('msg', 'invalid value')}"


class RecordStore:
    def __init__(self, db: Session, module: RecordModule):
        self.db = db
        self.module = module
        self.model = module.model

    # -----------------------------
    # Reads
    # -----------------------------
    def _active(self, areas: list[str]):
        return self.db.query(self.model).filter(
            self.model.business_area.in_(areas),
            self.model.deleted_at.is_(None),
        )

    def list(self, caller: Caller) -> list:
        areas = caller.require()
        q = self._active(areas).order_by(self.model.created_at.desc(), self.model.id.desc())
        return list(q.yield_per(BATCH_SIZE))

    def get(self, caller: Caller, record_id: int):
        areas = caller.require()
        row = self._active(areas).filter(self.model.id == record_id).first()
        if row is None:
            raise NotFound(f"{self.module.label} not found")
        return row

    def deleted(self, caller: Caller) -> list:
        areas = caller.require()
        return (
            self.db.query(self.model)
            .filter(self.model.business_area.in_(areas), self.model.deleted_at.isnot(None))
            .order_by(self.model.deleted_at.desc())
            .all()
        )

    def history(self, caller: Caller, record_id: int):
        row = self.get(caller, record_id)
        return row, audit.history_for(self.db, self.module.entity_type, row.id)

    # -----------------------------
    # Validation
    # -----------------------------
    def validate(self, payload) -> dict:
        if not isinstance(payload, dict):
            raise ValidationError("Request body must be a JSON object")
        try:
            data = self.module.schema.model_validate(payload)
        except PydanticValidationError as e:
            raise ValidationError(describe_validation_error(e))

        fields = data.model_dump(exclude_unset=True)
        missing = [f for f in self.module.required if is_blank(fields.get(f))]
        if missing:
            verb = "is" if len(missing) == 1 else "are"
            raise ValidationError(f"{' and '.join(missing)} {verb} required")
        return fields

    # -----------------------------
    # Writes
    # -----------------------------
    def _record(self, row, change_type: str, caller: Caller):
        return audit.record_history(
            self.db,
            entity_type=self.module.entity_type,
            entity_id=row.id,
            business_area=row.business_area,
            change_type=change_type,
            snapshot=audit.take_snapshot(row, self.module.snapshot),
            changed_by=caller.user_id,
        )

    def _fail(self, action: str, exc: Exception):
        self.db.rollback()
        logger.error("Failed to %s %s: %s", action, self.module.entity_type, exc, exc_info=exc)
        return StoreError(f"Failed to {action} {self.module.label.lower()}")

    def _replay(self, caller: Caller, business_area: str, key: str, payload: dict):
        rec = (
            self.db.query(IdempotencyRecord)
            .filter(
                IdempotencyRecord.entity_type == self.module.entity_type,
                IdempotencyRecord.business_area == business_area,
                IdempotencyRecord.key == key,
            )
            .first()
        )
        if rec is None:
            return None
        if rec.fingerprint != fingerprint(payload):
            raise Conflict("Idempotency-Key was already used with a different payload")

        # the row may have moved to another area of the caller since it was created
        row = self._active(caller.require()).filter(self.model.id == rec.entity_id).first()
        if row is None:
            raise NotFound(f"{self.module.label} not found")
        return row

    def create(self, caller: Caller, payload: dict, idempotency_key: str | None = None):
        """Insert a row into the caller's primary area.

        Returns ``(row, created)``; ``created`` is False when an earlier
        request with the same idempotency key is replayed.
        """
        business_area = caller.primary_area
        fields = self.validate(payload)
        fields.pop("business_area", None)

        if idempotency_key:
            existing = self._replay(caller, business_area, idempotency_key, payload)
            if existing is not None:
                return existing, False

        now = utcnow()
        row = self.model(**fields, business_area=business_area, created_at=now, updated_at=now)
        if self.module.derive:
            self.module.derive(row)

        try:
            self.db.add(row)
            self.db.flush()
            self._record(row, "created", caller)
            if idempotency_key:
                self.db.add(
                    IdempotencyRecord(
                        entity_type=self.module.entity_type,
                        business_area=business_area,
                        key=idempotency_key,
                        fingerprint=fingerprint(payload),
                        entity_id=row.id,
                        created_at=now,
                    )
                )
            self.db.commit()
        except IntegrityError as e:
            err = self._fail("create", e)
            # a concurrent request with the same key won the race
            if idempotency_key:
                existing = self._replay(caller, business_area, idempotency_key, payload)
                if existing is not None:
                    return existing, False
            raise err
        except Exception as e:
            raise self._fail("create", e)

        self.db.refresh(row)
        logger.info("created %s id=%s area=%s", self.module.entity_type, row.id, business_area)
        return row, True

    def update(self, caller: Caller, record_id: int, payload: dict):
        caller.require()
        fields = self.validate(payload)
        row = self.get(caller, record_id)

        target_area = fields.pop("business_area", None)
        if target_area is not None and target_area != row.business_area:
            if not caller.owns(target_area):
                raise Forbidden("Cannot move record to a business area you do not have access to")
            fields["business_area"] = target_area

        try:
            for k, v in fields.items():
                setattr(row, k, v)
            if self.module.derive:
                self.module.derive(row)
            row.updated_at = utcnow()
            self.db.flush()
            self._record(row, "updated", caller)
            self.db.commit()
        except Exception as e:
            raise self._fail("update", e)

        self.db.refresh(row)
        logger.info("updated %s id=%s area=%s", self.module.entity_type, row.id, row.business_area)
        return row

    def delete(self, caller: Caller, record_id: int):
        if self.module.deletion == "hard":
            return self.hard_delete(caller, record_id)
        return self.soft_delete(caller, record_id)

    def soft_delete(self, caller: Caller, record_id: int):
        row = self.get(caller, record_id)
        try:
            row.deleted_at = utcnow()
            row.deleted_by = caller.user_id
            self.db.flush()
            self._record(row, "deleted", caller)
            self.db.commit()
        except Exception as e:
            raise self._fail("delete", e)

        self.db.refresh(row)
        logger.info("soft-deleted %s id=%s area=%s", self.module.entity_type, row.id, row.business_area)
        return row

    def hard_delete(self, caller: Caller, record_id: int):
        row = self.get(caller, record_id)
        try:
            self.db.delete(row)
            self.db.commit()
        except Exception as e:
            raise self._fail("delete", e)

        logger.info("deleted %s id=%s permanently", self.module.entity_type, record_id)
        return row
