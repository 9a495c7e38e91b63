"""Tests for content normalization and hashing."""

from phishwatch.analyzer.capture import capture_from_payload
from phishwatch.analyzer.models import DomNode
from phishwatch.analyzer.normalization import (
    dedupe_keywords,
    dom_hash,
    hash_content,
    normalize_dom,
    redact_volatile,
)


class TestRedactVolatile:
    def test_dates_and_times(self):
        assert redact_volatile("Updated 2024-05-01 at 12:30:45") == "Updated DATE at TIME"

    def test_long_numbers_become_timestamp(self):
        assert redact_volatile("ts=1700000000000 ok") == "ts=TIMESTAMP ok"

    def test_short_numbers_kept(self):
        assert redact_volatile("Call 0112 345 678") == "Call 0112 345 678"

    def test_long_hex_case_insensitive(self):
        token = "A1B2C3D4E5F6A7B8C9D0E1F2A3B4C5D6"
        assert redact_volatile(f"session {token}") == "session HASH"

    def test_none_is_empty(self):
        assert redact_volatile(None) == ""

    def test_hash_stable_across_volatile_changes(self):
        first = redact_volatile("Welcome back. Server time 10:00:00, build 2024-01-01")
        second = redact_volatile("Welcome back. Server time 23:59:59, build 2025-12-31")
        assert hash_content(first) == hash_content(second)


class TestDomNormalization:
    def test_ids_and_classes_redacted(self):
        node = DomNode(
            tag="DIV",
            classes=("card", "c-" + "f" * 32),
            id="node-1700000000000",
            children=(DomNode(tag="SPAN", id="2024-01-01"),),
        )
        normalized = normalize_dom(node)
        assert normalized.classes == ("card", "c-HASH")
        assert normalized.id == "node-TIMESTAMP"
        assert normalized.children[0].id == "DATE"

    def test_dom_hash_ignores_volatile_ids(self):
        a = normalize_dom(DomNode(tag="BODY", id="x-1700000000000"))
        b = normalize_dom(DomNode(tag="BODY", id="x-1800000000000"))
        assert dom_hash(a) == dom_hash(b)

    def test_dom_hash_distinguishes_structure(self):
        assert dom_hash(DomNode(tag="BODY")) != dom_hash(DomNode(tag="MAIN"))


def test_dedupe_keywords_preserves_order():
    assert dedupe_keywords(["Bank", " bank ", "Login", "", "login"]) == ("bank", "login")


class TestCaptureFromPayload:
    def test_builds_normalized_capture(self):
        payload = {
            "text": "Welcome 2024-01-01",
            "keywords": ["ComBank", "combank", "Digital Banking"],
            "forms": [
                {
                    "fields": [{"type": "password", "name": "pwd", "id": "", "placeholder": ""}],
                    "action": "https://x/login",
                }
            ],
            "domStructure": {
                "tag": "BODY",
                "classes": [],
                "id": "",
                "children": [{"tag": "DIV", "classes": ["a"], "id": ""}],
            },
        }
        capture = capture_from_payload("example.com", payload, screenshot_ref="/tmp/x.png")

        assert capture.text == "Welcome DATE"
        assert capture.keywords == ("combank", "digital banking")
        assert capture.forms[0].fields[0].type == "password"
        assert capture.dom_tree.children[0].classes == ("a",)
        assert capture.reachable

    def test_dom_caps_applied(self):
        def chain(depth):
            node = {"tag": f"L{depth}", "classes": [], "id": ""}
            if depth < 9:
                node["children"] = [chain(depth + 1)]
            return node

        wide = {"tag": "BODY", "children": [{"tag": "P"} for _ in range(25)]}
        deep_capture = capture_from_payload("a.com", {"domStructure": chain(0)})
        wide_capture = capture_from_payload("a.com", {"domStructure": wide})

        depth = 0
        node = deep_capture.dom_tree
        while node.children:
            node = node.children[0]
            depth += 1
        assert depth == 5
        assert len(wide_capture.dom_tree.children) == 10

    def test_empty_payload_is_empty_capture(self):
        assert capture_from_payload("a.com", {}).is_empty
