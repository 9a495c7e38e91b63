"""Periodic watchlist scanning with edge-triggered alerts."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Optional

from ..analyzer.models import CompositeResult
from ..errors import BaselineMissingError
from ..storage.database import Database
from .checker import DomainChecker
from .records import CheckRecorder
from .watchlist import Alert, Watchlist, WatchlistEntry, should_alert

logger = logging.getLogger(__name__)

AlertCallback = Callable[[Alert], Awaitable[None]]


class WatchlistMonitor:
    """Owns the watchlist and live alerts and runs the scan loop.

    Domains are checked one at a time in list order. Stopping never cancels
    an in-flight check; the loop exits before the next domain or cycle.
    """

    def __init__(
        self,
        *,
        checker: DomainChecker,
        recorder: Optional[CheckRecorder] = None,
        database: Optional[Database] = None,
        interval: float = 8.0,
        on_alert: Optional[AlertCallback] = None,
    ):
        self.checker = checker
        self.recorder = recorder
        self.database = database
        self.interval = interval
        self.on_alert = on_alert

        self.watchlist = Watchlist()
        self.alerts: list[Alert] = []
        self.last_scan_at: Optional[datetime] = None
        self.last_snapshot: list[dict] = []
        self.cycles_completed = 0
        self.progress_completed = 0
        self.progress_total = 0
        self.scanning = False

        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._cycle_lock = asyncio.Lock()
        self._stop_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # Lifecycle

    def start(self) -> bool:
        """Start periodic scanning. Returns False when already running."""
        if self.is_running:
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._run())
        logger.info("Monitoring started (%s domains, every %ss)", len(self.watchlist), self.interval)
        return True

    async def stop(self) -> None:
        """Stop scanning after the in-flight domain finishes. Idempotent."""
        async with self._stop_lock:
            task = self._task
            if task is None:
                return
            self._stop_event.set()
            try:
                await task
            except asyncio.CancelledError:
                pass
            self._task = None
            self._stop_event = asyncio.Event()
            logger.info("Monitoring stopped")

    async def _run(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.run_cycle()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.error("Watchlist scan cycle failed: %s", exc)
            if self._stop_event.is_set():
                break
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                continue

    # Scanning

    async def run_cycle(self) -> list[Alert]:
        """Check every watchlist domain once; returns alerts fired this cycle."""
        async with self._cycle_lock:
            domains = self.watchlist.domains()
            fired: list[Alert] = []
            self.scanning = True
            self.progress_completed = 0
            self.progress_total = len(domains)
            if domains:
                logger.info("Scanning %s watchlist domains", len(domains))
            try:
                for domain in domains:
                    if self._stop_event.is_set():
                        logger.info("Stop requested; ending scan cycle early")
                        break
                    if domain not in self.watchlist:
                        self.progress_completed += 1
                        continue
                    try:
                        result = await self.checker.check(domain)
                    except BaselineMissingError as exc:
                        logger.error("Skipping scan cycle, no baseline: %s", exc)
                        break
                    except asyncio.CancelledError:
                        raise
                    except Exception as exc:
                        logger.error("Check failed for %s: %s", domain, exc)
                        self.progress_completed += 1
                        continue

                    alert = await self._apply_result(domain, result)
                    if alert is not None:
                        fired.append(alert)
                    self.progress_completed += 1
            finally:
                self.scanning = False

            self.cycles_completed += 1
            self.last_scan_at = datetime.now(timezone.utc)
            self.last_snapshot = self.watchlist.snapshot()
            return fired

    async def _apply_result(self, domain: str, result: CompositeResult) -> Optional[Alert]:
        entry = self.watchlist.get(domain)
        if entry is None:
            # Removed while its check was in flight.
            logger.debug("Discarding result for removed domain %s", domain)
            return None

        previous_active = entry.apply(result)
        if previous_active != entry.is_active:
            logger.info("%s is now %s", domain, entry.state)
        await self._persist_entry(entry)

        if not should_alert(previous_active, result):
            return None

        alert = Alert(domain=entry.domain, result=result)
        self.alerts.insert(0, alert)
        logger.warning(
            "ALERT: %s became active with %s%% similarity (%s)",
            alert.domain,
            result.composite_score,
            result.threat_level.value,
        )
        if self.recorder is not None:
            await self.recorder.record_alert(alert)
        if self.on_alert is not None:
            try:
                await self.on_alert(alert)
            except Exception as exc:
                logger.warning("Alert callback failed for %s: %s", alert.domain, exc)
        return alert

    # Watchlist management

    async def _persist_entry(self, entry: WatchlistEntry) -> None:
        if self.database is None:
            return
        try:
            await self.database.upsert_watchlist_entry(entry.to_dict(), self.watchlist.position(entry.domain))
        except Exception as exc:
            logger.warning("Failed to persist watchlist entry %s: %s", entry.domain, exc)

    async def add_domain(self, domain: str, source: str = "manual") -> tuple[WatchlistEntry, bool]:
        """Add a domain (raises ValueError when empty); existing entries are returned unchanged."""
        entry, created = self.watchlist.add(domain, source=source)
        if created:
            logger.info("Added %s to watchlist (%s)", entry.domain, source)
            await self._persist_entry(entry)
        return entry, created

    async def add_domains(self, domains: Iterable[str], source: str = "manual") -> list[WatchlistEntry]:
        added = []
        for domain in domains:
            try:
                entry, created = await self.add_domain(domain, source=source)
            except ValueError:
                continue
            if created:
                added.append(entry)
        return added

    async def remove_domain(self, domain: str) -> bool:
        """Remove an entry and its live alerts. Past alert records are kept."""
        entry = self.watchlist.remove(domain)
        if entry is None:
            return False
        self.alerts = [alert for alert in self.alerts if alert.domain != entry.domain]
        logger.info("Removed %s from watchlist", entry.domain)
        if self.database is not None:
            try:
                await self.database.delete_watchlist_entry(entry.domain)
                await self.database.set_watchlist_positions(self.watchlist.domains())
            except Exception as exc:
                logger.warning("Failed to delete watchlist entry %s: %s", entry.domain, exc)
        if self.recorder is not None:
            await self.recorder.record_removal(entry.domain)
        return True

    def dismiss_alert(self, alert_id: str) -> bool:
        before = len(self.alerts)
        self.alerts = [alert for alert in self.alerts if alert.id != alert_id]
        return len(self.alerts) != before

    async def restore(self) -> int:
        """Reload persisted watchlist entries."""
        if self.database is None:
            return 0
        rows = await self.database.get_watchlist()
        for row in rows:
            try:
                self.watchlist.restore(WatchlistEntry.from_dict(row))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping unreadable watchlist row %r: %s", row.get("domain"), exc)
        if rows:
            logger.info("Restored %s watchlist domains", len(self.watchlist))
        return len(self.watchlist)

    def status(self) -> dict:
        return {
            "running": self.is_running,
            "scanning": self.scanning,
            "interval_seconds": self.interval,
            "progress": {"completed": self.progress_completed, "total": self.progress_total},
            "cycles_completed": self.cycles_completed,
            "last_scan_at": self.last_scan_at.isoformat() if self.last_scan_at else None,
            "watchlist_size": len(self.watchlist),
            "live_alerts": len(self.alerts),
        }
