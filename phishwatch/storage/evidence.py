"""Screenshot and baseline file storage for PhishWatch."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..analyzer.models import BaselineSnapshot
from ..errors import PersistenceError
from ..utils.files import safe_filename_component, write_text_atomic

logger = logging.getLogger(__name__)


def _file_timestamp(moment: Optional[datetime] = None) -> str:
    moment = moment or datetime.now(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-%f")


class ScreenshotStore:
    """Manages candidate screenshots under a single directory."""

    def __init__(self, screenshots_dir: Path):
        self.screenshots_dir = Path(screenshots_dir)
        self.screenshots_dir.mkdir(parents=True, exist_ok=True)

    def new_path(self, domain: str, moment: Optional[datetime] = None) -> Path:
        """Fresh screenshot path for a capture of ``domain``."""
        safe_domain = safe_filename_component(domain, max_length=120)
        return self.screenshots_dir / f"{safe_domain}_{_file_timestamp(moment)}.png"

    def resolve(self, name: str) -> Optional[Path]:
        """Map a screenshot reference to a file inside the store, or None.

        Only bare file names are accepted; anything that would escape the
        directory resolves to None.
        """
        raw = (name or "").strip()
        if not raw or Path(raw).name != raw or raw in {".", ".."}:
            return None
        path = (self.screenshots_dir / raw).resolve()
        root = self.screenshots_dir.resolve()
        if path.parent != root or not path.is_file():
            return None
        return path


class BaselineStore:
    """Persists the current baseline snapshot as JSON beside its screenshot."""

    SNAPSHOT_FILE = "baseline.json"

    def __init__(self, baseline_dir: Path):
        self.baseline_dir = Path(baseline_dir)
        self.baseline_dir.mkdir(parents=True, exist_ok=True)

    @property
    def snapshot_path(self) -> Path:
        return self.baseline_dir / self.SNAPSHOT_FILE

    def new_screenshot_path(self, moment: Optional[datetime] = None) -> Path:
        return self.baseline_dir / f"baseline_{_file_timestamp(moment)}.png"

    def save(self, snapshot: BaselineSnapshot) -> Path:
        """Write the snapshot atomically and prune superseded screenshots."""
        try:
            write_text_atomic(self.snapshot_path, json.dumps(snapshot.to_dict(), indent=2))
        except OSError as e:
            raise PersistenceError(f"Failed to write baseline snapshot: {e}") from e
        self._prune_screenshots(keep=snapshot.screenshot_ref)
        return self.snapshot_path

    def load(self) -> Optional[BaselineSnapshot]:
        path = self.snapshot_path
        if not path.exists():
            return None
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            return BaselineSnapshot.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable baseline snapshot %s: %s", path, e)
            return None

    def _prune_screenshots(self, keep: Optional[str], retain: int = 2) -> int:
        """Delete old baseline screenshots.

        The newest ``retain`` files survive so a scan still holding the
        previous snapshot can read its image.
        """
        keep_name = Path(keep).name if keep else None
        newest_first = sorted(self.baseline_dir.glob("baseline_*.png"), key=lambda p: p.name, reverse=True)
        removed = 0
        for path in newest_first[retain:]:
            if path.name == keep_name:
                continue
            try:
                path.unlink()
                removed += 1
            except OSError:
                continue
        return removed
