from __future__ import annotations

import json
from typing import Optional

from src.evidence.config import settings


def load_service_account_info() -> Optional[dict]:
    """Parse GOOGLE_CLOUD_SERVICE_ACCOUNT_JSON, or return None to fall back to
    application default credentials."""

    raw = settings.google_cloud_service_account_json
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise RuntimeError("GOOGLE_CLOUD_SERVICE_ACCOUNT_JSON is not valid JSON") from exc
