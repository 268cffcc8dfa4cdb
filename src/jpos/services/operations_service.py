from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from jpos.domain.errors import StoreUnavailableError
from jpos.domain.models import utc_now_iso

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthReport:
    status: str
    store_integrity: str
    pending_sales: int
    db_size_bytes: int
    generated_at: str

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "storeIntegrity": self.store_integrity,
            "pendingSales": self.pending_sales,
            "dbSizeBytes": self.db_size_bytes,
            "timestamp": self.generated_at,
        }


class OperationsService:
    def __init__(self, repo, db_path: Path | str, outbox=None):
        self.repo = repo
        self.db_path = Path(db_path)
        self.outbox = outbox

    def run_health_check(self) -> HealthReport:
        try:
            integrity = self.repo.integrity_check()
        except StoreUnavailableError as e:
            log.error("health_store_unavailable error=%s", e)
            integrity = "unavailable"
        pending = self.outbox.count() if self.outbox is not None else 0
        size = self.db_path.stat().st_size if self.db_path.exists() else 0
        status = "ok" if integrity == "ok" else "degraded"
        return HealthReport(
            status=status,
            store_integrity=integrity,
            pending_sales=pending,
            db_size_bytes=size,
            generated_at=utc_now_iso(),
        )
