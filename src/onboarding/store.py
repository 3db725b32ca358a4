"""
Settings store - the key/value persistence collaborator.

Every answer is stored as a string. Codecs below define the string forms:
- dates:    "yyyy-MM-dd HH:mm:ss zzz" in UTC, e.g. "1990-05-17 00:00:00 GMT"
- integers: decimal strings
- booleans: "true" / "false"

The store is always passed in explicitly; nothing in the core reaches for a
global settings object.
"""

import json
import logging
import os
import re
import tempfile
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Awaitable, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


# =============================================================================
# Store Interfaces
# =============================================================================


@runtime_checkable
class SettingsStore(Protocol):
    """Synchronous, local key/value store."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class AsyncSettingsStore(Protocol):
    """Slower or remote store. Writes must be awaited before moving on."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> Awaitable[None]: ...

    def remove(self, key: str) -> Awaitable[None]: ...


class InMemorySettingsStore:
    """Dict-backed store. Used by tests and by the web host per session."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


class JsonFileSettingsStore:
    """
    Flat JSON object on disk.

    The whole file is rewritten on every set/remove via a temp file + rename,
    so an interrupted write never leaves a half-written settings file behind.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._data: dict[str, str] = self._read()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Settings file {self.path} unreadable, starting empty: {e}")
            return {}
        if not isinstance(raw, dict):
            logger.warning(f"Settings file {self.path} is not a JSON object, starting empty")
            return {}
        return {str(k): str(v) for k, v in raw.items() if v is not None}

    def _write(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".settings-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._write()

    def snapshot(self) -> dict[str, str]:
        return dict(self._data)


# =============================================================================
# Value Codecs
# =============================================================================

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
_DATE_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}) (GMT|UTC)$")


def format_date(value: date | datetime) -> str:
    """Render a date as "yyyy-MM-dd HH:mm:ss zzz" in UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        dt = value.replace(tzinfo=None)
    else:
        dt = datetime(value.year, value.month, value.day)
    return f"{dt.strftime(DATE_FORMAT)} GMT"


def parse_date(raw: str) -> datetime:
    """Parse the stored date form back into an aware UTC datetime."""
    match = _DATE_PATTERN.match(raw.strip())
    if not match:
        raise ValueError(f"expected 'yyyy-MM-dd HH:mm:ss zzz', got {raw!r}")
    return datetime.strptime(match.group(1), DATE_FORMAT).replace(tzinfo=timezone.utc)


def format_int(value: int) -> str:
    return str(int(value))


def parse_int(raw: str) -> int:
    return int(raw.strip())


def format_bool(value: bool) -> str:
    return "true" if value else "false"


def parse_bool(raw: str) -> bool:
    lowered = raw.strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no", ""):
        return False
    raise ValueError(f"not a boolean: {raw!r}")
