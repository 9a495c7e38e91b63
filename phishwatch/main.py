"""Main entry point for the PhishWatch detection and monitoring service."""

import asyncio
import logging
import os
import signal
import sys
from datetime import datetime, timedelta, timezone

from .analyzer.baseline import BaselineManager
from .analyzer.browser import BrowserCapture
from .analyzer.detector import PhishingDetector
from .analyzer.false_positive import FalsePositiveFilter
from .analyzer.scoring import ThreatThresholds
from .config import Config, load_config, validate_config
from .dashboard.api import DashboardServer
from .discovery.predictor import DomainPredictor
from .errors import BaselineMissingError
from .monitoring.health import HealthServer
from .pipeline.checker import DomainChecker
from .pipeline.monitor import WatchlistMonitor
from .pipeline.records import CheckRecorder
from .storage import BaselineStore, Database, ScreenshotStore

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )


class PhishWatchApp:
    """Wires the baseline, checker, monitor and HTTP surfaces together."""

    def __init__(self, config: Config):
        self.config = config
        self._started_at = datetime.now(timezone.utc)
        self._stop_event = asyncio.Event()
        self._stop_lock = asyncio.Lock()
        self._stopped = False

        self.database = Database(config.database_path)
        self.screenshots = ScreenshotStore(config.screenshots_dir)
        self.baseline_store = BaselineStore(config.baseline_dir)
        self.browser = BrowserCapture(headless=config.headless)
        self.recorder = CheckRecorder(self.database)

        self.baseline = BaselineManager(
            domain=config.legitimate_domain,
            capturer=self.browser,
            store=self.baseline_store,
            refresh_interval=timedelta(minutes=config.baseline_refresh_minutes),
            timeout=config.baseline_timeout,
        )
        self.detector = PhishingDetector(
            false_positive_filter=FalsePositiveFilter(
                config.whitelist,
                content_categories=config.content_categories,
                contextual_phrases=config.contextual_phrases,
                min_contextual_matches=config.min_contextual_matches,
                pattern_limits=config.pattern_limits,
                override_confidence=config.override_confidence,
            ),
            weights=config.signal_weights,
            thresholds=ThreatThresholds.from_mapping(config.threat_thresholds),
        )
        self.checker = DomainChecker(
            baseline=self.baseline,
            capturer=self.browser,
            detector=self.detector,
            screenshots=self.screenshots,
            recorder=self.recorder,
            timeout=config.candidate_timeout,
        )
        self.monitor = WatchlistMonitor(
            checker=self.checker,
            recorder=self.recorder,
            database=self.database,
            interval=config.monitor_interval_seconds,
        )
        self.predictor = DomainPredictor(config.brand_name, config.legitimate_domain)
        self.dashboard = DashboardServer(
            config=config,
            baseline=self.baseline,
            checker=self.checker,
            monitor=self.monitor,
            predictor=self.predictor,
            database=self.database,
            screenshots=self.screenshots,
        )
        self.health_server = HealthServer(
            host=config.health_host,
            port=config.health_port,
            status_provider=self._health_snapshot,
            enabled=config.health_enabled,
        )

    def _health_snapshot(self) -> dict:
        """Provide a lightweight status dict for health endpoints."""
        uptime = (datetime.now(timezone.utc) - self._started_at).total_seconds()
        age = self.baseline.age()
        status = self.monitor.status()
        return {
            "status": "ok" if not self._stopped else "stopped",
            "uptime_seconds": round(uptime, 1),
            "baseline_loaded": self.baseline.current() is not None,
            "baseline_age_seconds": round(age.total_seconds(), 1) if age is not None else -1,
            "monitoring": status["running"],
            "watchlist_size": status["watchlist_size"],
            "live_alerts": status["live_alerts"],
            "scan_cycles": status["cycles_completed"],
            "record_failures": self.recorder.failures,
        }

    async def start(self):
        """Start all components and block until stop() is requested."""
        logger.info("Starting PhishWatch for %s...", self.config.legitimate_domain)

        await self.database.connect()
        logger.info("Database connected")

        await self.monitor.restore()

        await self.browser.start()
        try:
            await self.baseline.ensure_fresh()
        except BaselineMissingError as exc:
            # Checks answer 503 until a manual refresh succeeds.
            logger.error("Starting without a baseline: %s", exc)

        await self.health_server.start()
        await self.dashboard.start()

        if self.config.monitor_autostart:
            self.monitor.start()

        logger.info("PhishWatch running")
        await self._stop_event.wait()

    async def stop(self):
        """Stop all components. Safe to call more than once."""
        async with self._stop_lock:
            if self._stopped:
                return
            self._stopped = True
            logger.info("Stopping PhishWatch...")
            await self.monitor.stop()
            await self.dashboard.stop()
            await self.health_server.stop()
            await self.browser.stop()
            await self.database.close()
            self._stop_event.set()
            logger.info("PhishWatch stopped")


async def run_app():
    """Run the PhishWatch service."""
    config = load_config()

    validation_errors = validate_config(config)
    if validation_errors:
        for err in validation_errors:
            logger.error(err)
        sys.exit(1)

    app = PhishWatchApp(config)

    # Handle shutdown signals
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.create_task(app.stop()))

    try:
        await app.start()
    except KeyboardInterrupt:
        pass
    finally:
        await app.stop()


def main():
    """Entry point."""
    configure_logging()
    asyncio.run(run_app())


if __name__ == "__main__":
    main()
