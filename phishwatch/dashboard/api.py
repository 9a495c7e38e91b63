"""HTTP query surface for the detection engine."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from aiohttp import web

from ..analyzer.baseline import BaselineManager
from ..config import Config
from ..discovery.predictor import DomainPredictor
from ..errors import BaselineMissingError, CaptureError
from ..pipeline.checker import DomainChecker
from ..pipeline.monitor import WatchlistMonitor
from ..storage.database import Database
from ..storage.evidence import ScreenshotStore
from ..utils.domains import canonicalize_domain

logger = logging.getLogger(__name__)

MAX_HISTORY_LIMIT = 1000


def _coerce_int(value, default: int, *, min_value: int = 1, max_value: int | None = None) -> int:
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    parsed = max(min_value, parsed)
    if max_value is not None:
        parsed = min(max_value, parsed)
    return parsed


async def _read_json(request: web.Request) -> Optional[dict]:
    try:
        data = await request.json()
    except Exception:
        return None
    return data if isinstance(data, dict) else None


@web.middleware
async def cors_middleware(request: web.Request, handler):
    if request.method == "OPTIONS":
        response = web.Response(status=204)
    else:
        response = await handler(request)
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type"
    return response


class DashboardServer:
    """aiohttp application exposing checks, watchlist, alerts and history."""

    def __init__(
        self,
        *,
        config: Config,
        baseline: BaselineManager,
        checker: DomainChecker,
        monitor: WatchlistMonitor,
        predictor: DomainPredictor,
        database: Database,
        screenshots: ScreenshotStore,
    ):
        self.config = config
        self.baseline = baseline
        self.checker = checker
        self.monitor = monitor
        self.predictor = predictor
        self.database = database
        self.screenshots = screenshots
        self._app = self.build_app()
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    @property
    def app(self) -> web.Application:
        return self._app

    def build_app(self) -> web.Application:
        app = web.Application(middlewares=[cors_middleware])
        app.router.add_get("/api/health", self._health)
        app.router.add_get("/api/config", self._config)
        app.router.add_post("/api/refresh-baseline", self._refresh_baseline)
        app.router.add_post("/api/check-domain", self._check_domain)
        app.router.add_get("/api/watchlist", self._watchlist)
        app.router.add_post("/api/watchlist", self._watchlist_add)
        app.router.add_delete("/api/watchlist/{domain}", self._watchlist_remove)
        app.router.add_get("/api/monitor", self._monitor_status)
        app.router.add_post("/api/monitor/start", self._monitor_start)
        app.router.add_post("/api/monitor/stop", self._monitor_stop)
        app.router.add_get("/api/alerts", self._alerts)
        app.router.add_post("/api/alerts/{alert_id}/dismiss", self._alert_dismiss)
        app.router.add_post("/api/predict", self._predict)
        app.router.add_get("/api/historical", self._historical)
        app.router.add_get("/api/screenshot/{name}", self._screenshot)
        return app

    async def start(self) -> None:
        if self._runner:
            return
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host=self.config.api_host, port=int(self.config.api_port))
        await self._site.start()
        logger.info("Dashboard API listening on http://%s:%s", self.config.api_host, self.config.api_port)

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
        self._runner = None
        self._site = None

    # Status

    async def _health(self, request: web.Request) -> web.Response:
        last_update = self.baseline.last_update
        return web.json_response(
            {
                "status": "ok",
                "baseline_loaded": self.baseline.current() is not None,
                "last_update": last_update.isoformat() if last_update else None,
                "monitoring": self.monitor.is_running,
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        )

    async def _config(self, request: web.Request) -> web.Response:
        snapshot = self.baseline.current()
        age = self.baseline.age()
        payload = self.config.to_public_dict()
        payload.update(
            {
                "baseline_loaded": snapshot is not None,
                "baseline_captured_at": snapshot.captured_at.isoformat() if snapshot else None,
                "baseline_age_minutes": int(age.total_seconds() // 60) if age is not None else None,
                "baseline_keywords": list(snapshot.keywords) if snapshot else [],
                "baseline_phash": snapshot.screenshot_phash if snapshot else None,
                "baseline_error": self.baseline.last_error,
            }
        )
        return web.json_response(payload)

    # Baseline and checks

    async def _refresh_baseline(self, request: web.Request) -> web.Response:
        try:
            snapshot = await self.baseline.refresh()
        except CaptureError as exc:
            return web.json_response({"error": f"Baseline refresh failed: {exc}"}, status=500)
        return web.json_response(
            {
                "status": "ok",
                "captured_at": snapshot.captured_at.isoformat(),
                "text_hash": snapshot.text_hash,
                "dom_hash": snapshot.dom_hash,
            }
        )

    async def _check_domain(self, request: web.Request) -> web.Response:
        data = await _read_json(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON payload"}, status=400)
        target = str(data.get("domain") or "").strip()
        if not target:
            return web.json_response({"error": "domain is required"}, status=400)
        domain = canonicalize_domain(target)
        if not domain:
            return web.json_response({"error": "Invalid domain/URL"}, status=400)

        try:
            result = await self.checker.check(domain)
        except BaselineMissingError as exc:
            return web.json_response({"error": str(exc)}, status=503)
        return web.json_response(result.to_dict())

    # Watchlist

    async def _watchlist(self, request: web.Request) -> web.Response:
        return web.json_response(
            {
                "watchlist": self.monitor.watchlist.snapshot(),
                "last_scan_at": self.monitor.last_scan_at.isoformat() if self.monitor.last_scan_at else None,
                "last_scan": self.monitor.last_snapshot,
            }
        )

    async def _watchlist_add(self, request: web.Request) -> web.Response:
        data = await _read_json(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON payload"}, status=400)
        source = str(data.get("source") or "manual").strip().lower() or "manual"
        raw_domains = data.get("domains")
        if raw_domains is None:
            raw_domains = [data.get("domain")]
        if not isinstance(raw_domains, list):
            return web.json_response({"error": "domains must be a list"}, status=400)

        domains = [canonicalize_domain(str(d or "")) for d in raw_domains]
        domains = [d for d in domains if d]
        if not domains:
            return web.json_response({"error": "domain is required"}, status=400)

        added = await self.monitor.add_domains(domains, source=source)
        return web.json_response(
            {"added": [entry.to_dict() for entry in added], "watchlist_size": len(self.monitor.watchlist)},
            status=201 if added else 200,
        )

    async def _watchlist_remove(self, request: web.Request) -> web.Response:
        domain = canonicalize_domain(request.match_info.get("domain", ""))
        if not domain or not await self.monitor.remove_domain(domain):
            raise web.HTTPNotFound(text="Domain not on watchlist")
        return web.json_response({"status": "removed", "domain": domain})

    # Monitor

    async def _monitor_status(self, request: web.Request) -> web.Response:
        return web.json_response(self.monitor.status())

    async def _monitor_start(self, request: web.Request) -> web.Response:
        started = self.monitor.start()
        return web.json_response({"started": started, **self.monitor.status()})

    async def _monitor_stop(self, request: web.Request) -> web.Response:
        await self.monitor.stop()
        return web.json_response(self.monitor.status())

    # Alerts

    async def _alerts(self, request: web.Request) -> web.Response:
        return web.json_response({"alerts": [alert.to_dict() for alert in self.monitor.alerts]})

    async def _alert_dismiss(self, request: web.Request) -> web.Response:
        alert_id = request.match_info.get("alert_id", "")
        if not self.monitor.dismiss_alert(alert_id):
            raise web.HTTPNotFound(text="Alert not found")
        return web.json_response({"status": "dismissed", "id": alert_id})

    # Prediction

    async def _predict(self, request: web.Request) -> web.Response:
        data = await _read_json(request)
        if data is None:
            return web.json_response({"error": "Invalid JSON payload"}, status=400)
        seeds = data.get("seeds") or []
        if isinstance(seeds, str):
            seeds = seeds.splitlines()
        if not isinstance(seeds, list):
            return web.json_response({"error": "seeds must be a list"}, status=400)

        predictions = self.predictor.predict([str(s) for s in seeds])
        added = []
        if data.get("add_to_watchlist") and predictions:
            added = await self.monitor.add_domains([p.domain for p in predictions], source="prediction")
        return web.json_response(
            {
                "predictions": [p.to_dict() for p in predictions],
                "added": [entry.domain for entry in added],
            }
        )

    # History and evidence

    async def _historical(self, request: web.Request) -> web.Response:
        domain = canonicalize_domain(request.query.get("domain", "")) or None
        limit = _coerce_int(request.query.get("limit"), 100, max_value=MAX_HISTORY_LIMIT)
        records = await self.database.get_history(domain=domain, limit=limit)
        totals = await self.database.count_records()
        return web.json_response({"records": records, "count": len(records), "totals": totals})

    async def _screenshot(self, request: web.Request) -> web.StreamResponse:
        path = self.screenshots.resolve(request.match_info.get("name", ""))
        if path is None:
            raise web.HTTPNotFound(text="Screenshot not found")
        return web.FileResponse(path)
