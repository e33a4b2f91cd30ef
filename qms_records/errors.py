from __future__ import annotations


class RecordError(Exception):
    http_status = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthorized(RecordError):
    http_status = 401


class ValidationError(RecordError):
    http_status = 400


class Forbidden(RecordError):
    http_status = 403


class NotFound(RecordError):
    http_status = 404


class Conflict(RecordError):
    http_status = 409


class StoreError(RecordError):
    http_status = 500
