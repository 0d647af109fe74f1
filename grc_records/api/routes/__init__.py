from __future__ import annotations

from grc_records.api.routes.health import router as health_router
from grc_records.api.routes.mitre import router as mitre_router

__all__ = ["health_router", "mitre_router"]
