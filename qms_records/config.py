from pathlib import Path
import json
import os
from dotenv import load_dotenv

# Load .env from project root (one level above /qms_records)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

DATABASE_URL = os.getenv("DATABASE_URL", "")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL not set. Put it in project_root/.env")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:3000,http://127.0.0.1:3000").split(",")
    if o.strip()
]

# Contribution of each report section to the overall health score.
DEFAULT_HEALTH_WEIGHTS = {
    "quality_objectives": 0.25,
    "process_management": 0.20,
    "compliance": 0.20,
    "risk_management": 0.15,
    "operational_excellence": 0.15,
    "resource_management": 0.03,
    "customer_focus": 0.02,
}


def load_health_weights() -> dict[str, float]:
    raw = os.getenv("QMS_HEALTH_WEIGHTS", "").strip()
    if not raw:
        return dict(DEFAULT_HEALTH_WEIGHTS)

    try:
        override = json.loads(raw)
    except ValueError:
        raise RuntimeError("QMS_HEALTH_WEIGHTS must be a JSON object")
    if not isinstance(override, dict):
        raise RuntimeError("QMS_HEALTH_WEIGHTS must be a JSON object")

    unknown = set(override) - set(DEFAULT_HEALTH_WEIGHTS)
    if unknown:
        raise RuntimeError(f"Unknown health weight keys: {', '.join(sorted(unknown))}")

    weights = dict(DEFAULT_HEALTH_WEIGHTS)
    for k, v in override.items():
        try:
            weights[k] = float(v)
        except (TypeError, ValueError):
            raise RuntimeError(f"Health weight {k} must be a number")
    return weights


HEALTH_WEIGHTS = load_health_weights()
