"""Configuration management for PhishWatch."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .analyzer.false_positive import (
    DEFAULT_CONTENT_CATEGORIES,
    DEFAULT_CONTEXTUAL_PHRASES,
    OVERRIDE_CONFIDENCE,
    ContentCategory,
    ScorePatternLimits,
)
from .constants import DEFAULT_SIGNAL_WEIGHTS, DEFAULT_THREAT_THRESHOLDS, DEFAULT_WHITELIST

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Config:
    """Application configuration loaded from environment."""

    # Protected brand
    legitimate_domain: str = "combankdigital.com"
    brand_name: str = "combank"

    # Baseline and capture
    baseline_refresh_minutes: int = 60
    baseline_timeout: float = 30.0
    candidate_timeout: float = 15.0
    headless: bool = True

    # Monitoring
    monitor_interval_seconds: float = 8.0
    monitor_autostart: bool = False

    # Dashboard API
    api_host: str = "127.0.0.1"
    api_port: int = 5000
    health_host: str = "0.0.0.0"
    health_port: int = 8081
    health_enabled: bool = True

    # Paths
    data_dir: Path = field(default_factory=lambda: Path("./data"))
    screenshots_dir: Path = field(default_factory=lambda: Path("./data/screenshots"))
    baseline_dir: Path = field(default_factory=lambda: Path("./data/baseline"))
    config_dir: Path = field(default_factory=lambda: Path("./config"))

    # Scoring (override via config/heuristics.yaml)
    signal_weights: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SIGNAL_WEIGHTS))
    threat_thresholds: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_THREAT_THRESHOLDS))

    # False-positive filter (override via config/heuristics.yaml)
    whitelist: list[str] = field(default_factory=lambda: list(DEFAULT_WHITELIST))
    content_categories: list[ContentCategory] = field(
        default_factory=lambda: list(DEFAULT_CONTENT_CATEGORIES)
    )
    contextual_phrases: list[str] = field(default_factory=lambda: list(DEFAULT_CONTEXTUAL_PHRASES))
    min_contextual_matches: int = 2
    pattern_limits: ScorePatternLimits = field(default_factory=ScorePatternLimits)
    override_confidence: float = OVERRIDE_CONFIDENCE

    def __post_init__(self):
        """Ensure paths exist and load lists."""
        self.data_dir = Path(self.data_dir)
        self.screenshots_dir = Path(self.screenshots_dir)
        self.baseline_dir = Path(self.baseline_dir)
        self.config_dir = Path(self.config_dir)

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)
        self.baseline_dir.mkdir(parents=True, exist_ok=True)

        self._load_lists()

    @property
    def database_path(self) -> Path:
        return self.data_dir / "phishwatch.db"

    def _load_lists(self):
        """Extend the whitelist from config/whitelist.txt."""
        whitelist_path = self.config_dir / "whitelist.txt"
        if whitelist_path.exists():
            for item in sorted(self._load_list_file(whitelist_path)):
                if item not in self.whitelist:
                    self.whitelist.append(item)

    @staticmethod
    def _load_list_file(path: Path) -> set[str]:
        """Load a list file, ignoring comments and empty lines."""
        items = set()
        with open(path) as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#"):
                    items.add(line.lower())
        return items

    def to_public_dict(self) -> dict:
        """Settings safe to expose over the API."""
        return {
            "legitimate_domain": self.legitimate_domain,
            "brand_name": self.brand_name,
            "baseline_refresh_minutes": self.baseline_refresh_minutes,
            "baseline_timeout": self.baseline_timeout,
            "candidate_timeout": self.candidate_timeout,
            "monitor_interval_seconds": self.monitor_interval_seconds,
            "signal_weights": dict(self.signal_weights),
            "threat_thresholds": dict(self.threat_thresholds),
            "whitelist": list(self.whitelist),
        }


def _load_heuristics(config_dir: Path) -> dict:
    """Load heuristic overrides from config/heuristics.yaml (optional)."""
    path = Path(config_dir or ".") / "heuristics.yaml"
    if not path.exists():
        return {}

    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        logger.warning("Failed to parse heuristics.yaml: %s", exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring heuristics.yaml: expected a mapping at top level")
        return {}

    def _coerce_numbers(raw, default: dict, cast):
        if not isinstance(raw, dict):
            return dict(default)
        merged = dict(default)
        for key, value in raw.items():
            if key not in default:
                logger.warning("Unknown heuristics key %r ignored", key)
                continue
            try:
                merged[key] = cast(value)
            except (TypeError, ValueError):
                logger.warning("Invalid value for %r in heuristics.yaml: %r", key, value)
        return merged

    def _coerce_categories(raw):
        if not isinstance(raw, list):
            return list(DEFAULT_CONTENT_CATEGORIES)
        # An explicit empty list disables the content-type rule
        categories: list[ContentCategory] = []
        for cat in raw:
            if not isinstance(cat, dict):
                logger.warning("Ignoring malformed content category in heuristics.yaml: %r", cat)
                continue
            name = str(cat.get("name") or "").strip()
            keywords = tuple(str(k).strip().lower() for k in (cat.get("keywords") or []) if str(k).strip())
            if not name or not keywords:
                logger.warning("Ignoring content category without name or keywords: %r", cat)
                continue
            try:
                threshold = int(cat.get("threshold", 2))
            except (TypeError, ValueError):
                threshold = 2
            categories.append(ContentCategory(name, keywords, threshold))
        return categories

    def _coerce_pattern(raw):
        defaults = ScorePatternLimits()
        if not isinstance(raw, dict):
            return defaults
        try:
            return ScorePatternLimits(
                max_forms=int(raw.get("max_forms", defaults.max_forms)),
                min_text=int(raw.get("min_text", defaults.min_text)),
                max_visual=int(raw.get("max_visual", defaults.max_visual)),
                confidence=float(raw.get("confidence", defaults.confidence)),
            )
        except (TypeError, ValueError):
            logger.warning("Invalid pattern limits in heuristics.yaml; using defaults")
            return defaults

    scoring_cfg = data.get("scoring") or {}
    fp_cfg = data.get("false_positive") or {}

    phrases = fp_cfg.get("contextual_phrases")
    result = {
        "signal_weights": _coerce_numbers(scoring_cfg.get("weights"), DEFAULT_SIGNAL_WEIGHTS, float),
        "threat_thresholds": _coerce_numbers(scoring_cfg.get("thresholds"), DEFAULT_THREAT_THRESHOLDS, int),
        "content_categories": _coerce_categories(fp_cfg.get("content_categories")),
        "contextual_phrases": (
            [str(p).strip().lower() for p in phrases if str(p).strip()]
            if isinstance(phrases, list)
            else list(DEFAULT_CONTEXTUAL_PHRASES)
        ),
        "pattern_limits": _coerce_pattern(fp_cfg.get("pattern")),
    }
    for key, cast in (("min_contextual_matches", int), ("override_confidence", float)):
        if key in fp_cfg:
            try:
                result[key] = cast(fp_cfg[key])
            except (TypeError, ValueError):
                logger.warning("Invalid value for %r in heuristics.yaml: %r", key, fp_cfg[key])
    return result


def load_config() -> Config:
    """Load configuration from environment variables."""
    load_dotenv()

    config_dir = Path(os.getenv("CONFIG_DIR", "./config"))
    data_dir = Path(os.getenv("DATA_DIR", "./data"))
    heuristics = _load_heuristics(config_dir)

    return Config(
        legitimate_domain=os.getenv("LEGITIMATE_DOMAIN", "combankdigital.com").strip().lower(),
        brand_name=os.getenv("BRAND_NAME", "combank").strip().lower(),
        baseline_refresh_minutes=int(os.getenv("BASELINE_REFRESH_MINUTES", "60")),
        baseline_timeout=float(os.getenv("BASELINE_TIMEOUT", "30")),
        candidate_timeout=float(os.getenv("CANDIDATE_TIMEOUT", "15")),
        headless=_env_bool("HEADLESS", "true"),
        monitor_interval_seconds=float(os.getenv("MONITOR_INTERVAL_SECONDS", "8")),
        monitor_autostart=_env_bool("MONITOR_AUTOSTART", "false"),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=int(os.getenv("API_PORT", "5000")),
        health_host=os.getenv("HEALTH_HOST", "0.0.0.0"),
        health_port=int(os.getenv("HEALTH_PORT", "8081")),
        health_enabled=_env_bool("HEALTH_ENABLED", "true"),
        data_dir=data_dir,
        screenshots_dir=Path(os.getenv("SCREENSHOTS_DIR", str(data_dir / "screenshots"))),
        baseline_dir=Path(os.getenv("BASELINE_DIR", str(data_dir / "baseline"))),
        config_dir=config_dir,
        **heuristics,
    )


def validate_config(config: Config) -> list[str]:
    """Validate configuration and return list of error messages."""
    errors: list[str] = []
    if not (config.legitimate_domain or "").strip():
        errors.append("LEGITIMATE_DOMAIN is required")
    if not (config.brand_name or "").strip():
        errors.append("BRAND_NAME is required")

    weights = config.signal_weights
    missing = set(DEFAULT_SIGNAL_WEIGHTS) - set(weights)
    if missing:
        errors.append(f"Signal weights missing: {', '.join(sorted(missing))}")
    elif abs(sum(weights.values()) - 1.0) > 1e-6:
        errors.append(f"Signal weights must sum to 1.0 (got {sum(weights.values()):.3f})")
    if any(w < 0 for w in weights.values()):
        errors.append("Signal weights must be non-negative")

    t = config.threat_thresholds
    if not (100 >= t["critical"] > t["warning"] > t["suspicious"] >= 0):
        errors.append("Threat thresholds must satisfy 100 >= critical > warning > suspicious >= 0")

    if config.baseline_timeout <= 0 or config.candidate_timeout <= 0:
        errors.append("Capture timeouts must be positive")
    elif config.candidate_timeout > config.baseline_timeout:
        errors.append("CANDIDATE_TIMEOUT must not exceed BASELINE_TIMEOUT")
    if config.baseline_refresh_minutes <= 0:
        errors.append("BASELINE_REFRESH_MINUTES must be positive")
    if config.monitor_interval_seconds <= 0:
        errors.append("MONITOR_INTERVAL_SECONDS must be positive")

    return errors
