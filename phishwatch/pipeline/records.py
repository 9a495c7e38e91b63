"""Maps check results and alerts onto append-only records."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from ..analyzer.models import CompositeResult
from ..constants import ThreatLevel
from ..storage.database import Database, RecordType

logger = logging.getLogger(__name__)

STATUS_CHECKED = "Checked"
STATUS_ALERT = "Alert Triggered"
STATUS_REMOVED = "Removed from Watchlist"


def alert_type_for(level: ThreatLevel) -> str:
    if level == ThreatLevel.CRITICAL:
        return "Critical"
    if level == ThreatLevel.WARNING:
        return "Warning"
    return "Check"


class CheckRecorder:
    """Record sink in front of the database.

    A failed write is logged and swallowed: persistence never blocks or
    rolls back the result handed to the caller.
    """

    def __init__(self, database: Optional[Database]):
        self.database = database
        self.failures = 0

    async def _write(self, domain: str, **fields) -> Optional[int]:
        if self.database is None:
            return None
        try:
            return await self.database.add_record(domain=domain, **fields)
        except Exception as e:
            self.failures += 1
            logger.warning("Failed to persist %s record for %s: %s", fields.get("record_type"), domain, e)
            return None

    async def record_check(self, result: CompositeResult, metadata: Optional[dict] = None) -> Optional[int]:
        return await self._write(
            result.domain,
            record_type=RecordType.CHECK,
            alert_type=alert_type_for(result.threat_level),
            status=STATUS_CHECKED,
            is_active=result.reachable,
            composite_score=result.composite_score,
            scores=result.scores.to_dict() if result.scores else None,
            threat_level=result.threat_level.value,
            is_filtered=result.is_filtered,
            screenshot_ref=result.screenshot_ref,
            metadata={"detected_at": result.checked_at.isoformat(), **(metadata or {})},
            timestamp=result.checked_at,
        )

    async def record_alert(self, alert) -> Optional[int]:
        result = alert.result
        return await self._write(
            alert.domain,
            record_type=RecordType.ALERT,
            alert_type=alert_type_for(result.threat_level),
            status=STATUS_ALERT,
            is_active=True,
            composite_score=result.composite_score,
            scores=result.scores.to_dict() if result.scores else None,
            threat_level=result.threat_level.value,
            is_filtered=result.is_filtered,
            screenshot_ref=result.screenshot_ref,
            metadata={"detected_at": alert.detected_at.isoformat(), "alert_id": alert.id},
            timestamp=alert.detected_at,
        )

    async def record_removal(self, domain: str) -> Optional[int]:
        now = datetime.now(timezone.utc)
        return await self._write(
            domain,
            record_type=RecordType.INFO,
            alert_type="Info",
            status=STATUS_REMOVED,
            is_active=False,
            metadata={"removed_at": now.isoformat()},
            timestamp=now,
        )
