"""Local copy of the last calendar that was synced or imported.

Stores decoded text (UTF-8) so that reopening works offline and without
another login.
"""

from pathlib import Path

from trainex_sync.encoding import decode_calendar_bytes
from trainex_sync.logging import get_logger

log = get_logger(__name__)


class IcsCache:
    """``<data_dir>/cache/latest.ics``."""

    def __init__(self, data_dir: str | Path) -> None:
        self.path = Path(data_dir) / "cache" / "latest.ics"

    def write(self, ics_text: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_bytes(ics_text.encode("utf-8"))
        log.info("ics_cache_written", path=str(self.path), chars=len(ics_text))

    def load(self) -> str | None:
        """Cached calendar text, or None if nothing was cached yet."""
        if not self.path.exists():
            log.debug("ics_cache_miss", path=str(self.path))
            return None
        return self.path.read_bytes().decode("utf-8")

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            log.info("ics_cache_cleared", path=str(self.path))
        else:
            log.debug("ics_cache_clear_skipped", reason="file_not_found")


def import_ics_file(path: str | Path) -> str:
    """Read a local .ics file and decode it like a synced export."""
    return decode_calendar_bytes(Path(path).read_bytes())
