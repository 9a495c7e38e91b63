"""Tests for the dashboard HTTP API."""

from __future__ import annotations

import pytest
from aiohttp.test_utils import TestClient, TestServer
from PIL import Image

from phishwatch.analyzer.baseline import BaselineManager
from phishwatch.analyzer.detector import PhishingDetector
from phishwatch.analyzer.false_positive import FalsePositiveFilter
from phishwatch.analyzer.models import DomNode, FormDescriptor, FormField, PageCapture
from phishwatch.config import Config
from phishwatch.dashboard.api import DashboardServer
from phishwatch.discovery.predictor import DomainPredictor
from phishwatch.errors import CaptureError
from phishwatch.pipeline.checker import DomainChecker
from phishwatch.pipeline.monitor import WatchlistMonitor
from phishwatch.pipeline.records import CheckRecorder
from phishwatch.storage.database import Database
from phishwatch.storage.evidence import BaselineStore, ScreenshotStore

SITE_TEXT = "Welcome to ComBank Digital. Sign in to online banking."


class DummyCapturer:
    """Every reachable host renders the legitimate login page."""

    def __init__(self):
        self.errors: dict[str, Exception] = {}

    async def capture(self, target, timeout, screenshot_path):
        if target in self.errors:
            raise self.errors[target]
        Image.new("RGB", (96, 64), (0, 70, 140)).save(screenshot_path)
        return PageCapture(
            domain=target,
            text=SITE_TEXT,
            dom_tree=DomNode(tag="BODY", children=(DomNode(tag="FORM", id="login"),)),
            forms=(FormDescriptor(fields=(FormField(type="password", name="pwd"),)),),
            keywords=("combank", "online banking"),
            screenshot_ref=str(screenshot_path),
        )


@pytest.fixture
def capturer():
    return DummyCapturer()


@pytest.fixture
async def database(tmp_path):
    db = Database(tmp_path / "phishwatch.db")
    await db.connect()
    yield db
    await db.close()


@pytest.fixture
def dashboard_server(tmp_path, capturer, database):
    config = Config(
        data_dir=tmp_path / "data",
        screenshots_dir=tmp_path / "data" / "screenshots",
        baseline_dir=tmp_path / "data" / "baseline",
        config_dir=tmp_path / "config",
    )
    screenshots = ScreenshotStore(config.screenshots_dir)
    recorder = CheckRecorder(database)
    baseline = BaselineManager(
        domain=config.legitimate_domain,
        capturer=capturer,
        store=BaselineStore(config.baseline_dir),
    )
    checker = DomainChecker(
        baseline=baseline,
        capturer=capturer,
        detector=PhishingDetector(false_positive_filter=FalsePositiveFilter(config.whitelist)),
        screenshots=screenshots,
        recorder=recorder,
    )
    monitor = WatchlistMonitor(checker=checker, recorder=recorder, database=database, interval=0.01)
    return DashboardServer(
        config=config,
        baseline=baseline,
        checker=checker,
        monitor=monitor,
        predictor=DomainPredictor(config.brand_name, config.legitimate_domain),
        database=database,
        screenshots=screenshots,
    )


async def test_health_and_config(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.get("/api/health")
        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "ok"
        assert data["baseline_loaded"] is False
        assert data["last_update"] is None

        resp = await client.get("/api/config")
        data = await resp.json()
        assert data["legitimate_domain"] == "combankdigital.com"
        assert data["signal_weights"]["visual"] == 0.3
        assert data["baseline_age_minutes"] is None


async def test_refresh_baseline(dashboard_server, capturer):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/refresh-baseline")
        assert resp.status == 200
        assert len((await resp.json())["text_hash"]) == 64

        resp = await client.get("/api/config")
        data = await resp.json()
        assert data["baseline_loaded"] is True
        assert data["baseline_age_minutes"] == 0
        assert data["baseline_phash"]

        capturer.errors["combankdigital.com"] = CaptureError("combankdigital.com", "offline")
        resp = await client.post("/api/refresh-baseline")
        assert resp.status == 500
        assert "offline" in (await resp.json())["error"]


async def test_check_domain_validation(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/check-domain", data="not json")
        assert resp.status == 400

        resp = await client.post("/api/check-domain", json={"domain": "  "})
        assert resp.status == 400

        resp = await client.post("/api/check-domain", json=["combank.xyz"])
        assert resp.status == 400


async def test_check_domain_without_baseline(dashboard_server, capturer):
    capturer.errors["combankdigital.com"] = CaptureError("combankdigital.com", "offline")
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/check-domain", json={"domain": "combank-login.xyz"})
        assert resp.status == 503


async def test_check_domain_records_history(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/check-domain", json={"domain": "https://www.combank-login.xyz/signin"})
        assert resp.status == 200
        result = await resp.json()
        assert result["domain"] == "combank-login.xyz"
        assert result["reachable"] is True
        assert result["threat_level"] == "critical"
        assert result["composite_score"] == 100

        resp = await client.get(f"/api/screenshot/{result['screenshot_ref']}")
        assert resp.status == 200
        assert resp.headers["Content-Type"] == "image/png"

        resp = await client.get("/api/historical", params={"domain": "combank-login.xyz"})
        history = await resp.json()
        assert history["count"] == 1
        assert history["records"][0]["threat_level"] == "critical"
        assert history["records"][0]["screenshot_ref"] == result["screenshot_ref"]


async def test_unreachable_domain(dashboard_server, capturer):
    capturer.errors["gone.example"] = CaptureError("gone.example", "net::ERR_NAME_NOT_RESOLVED")
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/check-domain", json={"domain": "gone.example"})
        result = await resp.json()
        assert result["reachable"] is False
        assert result["composite_score"] == 0
        assert result["threat_level"] == "safe"


async def test_historical_limit(dashboard_server, database):
    for i in range(5):
        await database.add_record(domain=f"site{i}.example")
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.get("/api/historical", params={"limit": "2"})
        data = await resp.json()
        assert data["count"] == 2
        assert [r["domain"] for r in data["records"]] == ["site4.example", "site3.example"]
        assert data["totals"] == {"check": 5}

        resp = await client.get("/api/historical", params={"limit": "bogus"})
        assert (await resp.json())["count"] == 5


async def test_screenshot_not_found(dashboard_server, tmp_path):
    (tmp_path / "secret.png").write_bytes(b"x")
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.get("/api/screenshot/missing.png")
        assert resp.status == 404
        resp = await client.get("/api/screenshot/..")
        assert resp.status == 404


async def test_watchlist_add_list_remove(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/watchlist", json={"domain": "https://Clone.xyz/login"})
        assert resp.status == 201
        assert (await resp.json())["added"][0]["domain"] == "clone.xyz"

        resp = await client.post("/api/watchlist", json={"domains": ["clone.xyz", "other.xyz", ""]})
        assert resp.status == 201
        data = await resp.json()
        assert [e["domain"] for e in data["added"]] == ["other.xyz"]
        assert data["watchlist_size"] == 2

        resp = await client.post("/api/watchlist", json={"domain": "clone.xyz"})
        assert resp.status == 200

        resp = await client.post("/api/watchlist", json={"domain": ""})
        assert resp.status == 400

        resp = await client.get("/api/watchlist")
        entries = (await resp.json())["watchlist"]
        assert [e["domain"] for e in entries] == ["clone.xyz", "other.xyz"]
        assert entries[0]["state"] == "never_checked"

        resp = await client.delete("/api/watchlist/clone.xyz")
        assert resp.status == 200
        resp = await client.delete("/api/watchlist/clone.xyz")
        assert resp.status == 404


async def test_alerts_and_dismiss(dashboard_server):
    monitor = dashboard_server.monitor
    async with TestClient(TestServer(dashboard_server._app)) as client:
        await client.post("/api/watchlist", json={"domain": "clone.xyz"})
        await monitor.run_cycle()

        resp = await client.get("/api/alerts")
        alerts = (await resp.json())["alerts"]
        assert len(alerts) == 1
        assert alerts[0]["domain"] == "clone.xyz"
        assert alerts[0]["threat_level"] == "critical"

        resp = await client.post(f"/api/alerts/{alerts[0]['id']}/dismiss")
        assert resp.status == 200
        resp = await client.post(f"/api/alerts/{alerts[0]['id']}/dismiss")
        assert resp.status == 404

        resp = await client.get("/api/monitor")
        status = await resp.json()
        assert status["cycles_completed"] == 1
        assert status["live_alerts"] == 0


async def test_monitor_start_stop(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/monitor/start")
        assert (await resp.json())["started"] is True
        resp = await client.post("/api/monitor/start")
        assert (await resp.json())["started"] is False

        resp = await client.post("/api/monitor/stop")
        assert (await resp.json())["running"] is False
        resp = await client.post("/api/monitor/stop")
        assert resp.status == 200


async def test_predict(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.post("/api/predict", json={"seeds": []})
        assert (await resp.json())["predictions"] == []

        resp = await client.post(
            "/api/predict",
            json={"seeds": "combank-secure-login.xyz\nwallet-combank.com", "add_to_watchlist": True},
        )
        data = await resp.json()
        assert 0 < len(data["predictions"]) <= 25
        assert data["added"] == [p["domain"] for p in data["predictions"]]
        assert len(dashboard_server.monitor.watchlist) == len(data["predictions"])
        assert dashboard_server.monitor.watchlist.get(data["added"][0]).source == "prediction"

        resp = await client.post("/api/predict", json={"seeds": 5})
        assert resp.status == 400


async def test_cors_preflight(dashboard_server):
    async with TestClient(TestServer(dashboard_server._app)) as client:
        resp = await client.options("/api/check-domain")
        assert resp.status == 204
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


async def test_watchlist_serves_last_scan_snapshot(dashboard_server):
    monitor = dashboard_server.monitor
    async with TestClient(TestServer(dashboard_server._app)) as client:
        await client.post("/api/watchlist", json={"domain": "clone.xyz"})
        data = await (await client.get("/api/watchlist")).json()
        assert data["last_scan"] == []
        assert data["last_scan_at"] is None

        await monitor.run_cycle()
        await client.post("/api/watchlist", json={"domain": "later.xyz"})

        data = await (await client.get("/api/watchlist")).json()
        assert [e["domain"] for e in data["watchlist"]] == ["clone.xyz", "later.xyz"]
        assert [e["domain"] for e in data["last_scan"]] == ["clone.xyz"]
        assert data["last_scan"][0]["state"] == "active"
        assert data["last_scan_at"] is not None
