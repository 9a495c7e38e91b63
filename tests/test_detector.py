"""Tests for the detection pipeline."""

from datetime import datetime, timezone

import pytest

from phishwatch.analyzer import detector as detector_module
from phishwatch.analyzer.detector import PhishingDetector
from phishwatch.analyzer.false_positive import FalsePositiveFilter
from phishwatch.analyzer.models import (
    BaselineSnapshot,
    DomNode,
    FormDescriptor,
    FormField,
    PageCapture,
)
from phishwatch.constants import ThreatLevel

PAGE_TEXT = "Welcome to ComBank Digital. Sign in to online banking."
DOM = DomNode(
    tag="BODY",
    children=(DomNode(tag="HEADER", classes=("top",)), DomNode(tag="FORM", id="login")),
)
FORMS = (
    FormDescriptor(
        fields=(FormField(type="text", name="user"), FormField(type="password", name="pass")),
        action="/login",
    ),
)


def make_baseline() -> BaselineSnapshot:
    return BaselineSnapshot(
        domain="combankdigital.com",
        captured_at=datetime.now(timezone.utc),
        text=PAGE_TEXT,
        dom_tree=DOM,
        forms=FORMS,
        keywords=("combank", "online banking"),
        screenshot_ref=None,
        text_hash="t",
        dom_hash="d",
    )


def make_capture(domain="combank-login.xyz", text=PAGE_TEXT, **kwargs) -> PageCapture:
    return PageCapture(domain=domain, text=text, dom_tree=DOM, forms=FORMS, **kwargs)


@pytest.fixture
def detector():
    return PhishingDetector(false_positive_filter=FalsePositiveFilter(whitelist=["combankdigital.com"]))


def test_clone_without_screenshot_is_warning(detector):
    result = detector.detect("combank-login.xyz", make_baseline(), make_capture())

    assert result.reachable
    assert result.scores.to_dict() == {"visual": 0, "text": 100, "dom": 100, "keywords": 100, "forms": 100}
    # 0.25 + 0.20 + 0.15 + 0.10 of 100
    assert result.composite_score == 70
    assert result.threat_level == ThreatLevel.WARNING
    assert not result.is_filtered


def test_unreachable_capture(detector):
    capture = PageCapture(domain="gone.example", reachable=False)
    result = detector.detect("gone.example", make_baseline(), capture)

    assert not result.reachable
    assert result.composite_score == 0
    assert result.threat_level == ThreatLevel.SAFE
    assert result.scores is None


def test_whitelisted_domain_is_legitimate(detector):
    result = detector.detect("combankdigital.com", make_baseline(), make_capture(domain="combankdigital.com"))

    assert result.threat_level == ThreatLevel.LEGITIMATE
    assert result.is_filtered
    assert result.composite_score == 70
    assert [hit.type for hit in result.filters] == ["whitelist"]


def test_review_page_is_filtered(detector):
    text = PAGE_TEXT + " Customer review and rating. Share your feedback."
    result = detector.detect("bankreviews.example", make_baseline(), make_capture(text=text))

    assert result.is_filtered
    assert result.threat_level == ThreatLevel.LEGITIMATE


def test_failing_signal_scores_zero(detector, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise RuntimeError("tokenizer exploded")

    monkeypatch.setattr(detector_module, "text_similarity", boom)
    result = detector.detect("combank-login.xyz", make_baseline(), make_capture())

    assert result.scores.text == 0
    assert result.scores.dom == 100
    assert result.composite_score == 45
    assert result.threat_level == ThreatLevel.SAFE
    assert "Signal 'text' failed" in caplog.text


def test_screenshot_ref_reported_as_basename(detector, tmp_path):
    capture = make_capture(screenshot_ref=str(tmp_path / "combank-login.xyz_1.png"))
    result = detector.detect("combank-login.xyz", make_baseline(), capture)
    assert result.screenshot_ref == "combank-login.xyz_1.png"
    assert result.to_dict()["threat_level"] == "warning"
