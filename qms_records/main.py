# qms_records/main.py
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from .config import CORS_ORIGINS, LOG_LEVEL
from .database import Base, engine
from .errors import RecordError

# Models must be imported before create_all
from . import models, models_rbac, models_audit, models_records  # noqa: F401

from .modules import MODULES
from .routes_auth import router as auth_router
from .routes_records import build_router
from .routes_progress import router as progress_router
from .routes_audit import router as audit_router
from .routes_links import router as links_router
from .routes_reports import router as reports_router, summary_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# =========================
# App
# =========================
app = FastAPI(title="QMS Records Backend", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =========================
# Error bodies: {"error": "..."}
# =========================
@app.exception_handler(RecordError)
async def record_error_handler(request: Request, exc: RecordError):
    return JSONResponse(status_code=exc.http_status, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    err = (exc.errors() or [{}])[0]
    loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body"
    return JSONResponse(status_code=400, content={"error": f"Invalid {loc}: {err.get('msg', 'invalid value')}"})


@app.exception_handler(SQLAlchemyError)
async def db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Unhandled database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


app.include_router(auth_router)
app.include_router(progress_router)
# /api/business-documents/available must win over /api/business-documents/{record_id}
app.include_router(links_router)
for module in MODULES:
    app.include_router(build_router(module))
app.include_router(audit_router)
app.include_router(reports_router)
app.include_router(summary_router)


# Create tables
Base.metadata.create_all(bind=engine)


@app.get("/")
def root():
    return {"status": "ok", "message": "Backend running"}
