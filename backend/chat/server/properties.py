"""Java-style ``server.properties`` files as a pydantic-settings source."""

from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from pydantic_settings import PydanticBaseSettingsSource

if TYPE_CHECKING:
    from pydantic.fields import FieldInfo
    from pydantic_settings import BaseSettings

logger = structlog.get_logger()

PROPERTIES_FILE_ENV = "CHAT_PROPERTIES_FILE"
DEFAULT_PROPERTIES_FILE = "server.properties"

_COMMENT_PREFIXES = ("#", "!")
_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _split_key_value(line: str) -> tuple[str, str]:
    """Split at the first unescaped '=', ':' or whitespace."""
    escaped = False
    for i, ch in enumerate(line):
        if escaped:
            escaped = False
            continue
        if ch == "\\":
            escaped = True
            continue
        if ch in "=:":
            return line[:i], line[i + 1 :].lstrip()
        if ch.isspace():
            rest = line[i:].lstrip()
            if rest[:1] in ("=", ":"):
                rest = rest[1:].lstrip()
            return line[:i], rest
    return line, ""


def _unescape(value: str) -> str:
    out: list[str] = []
    chars = iter(value)
    for ch in chars:
        if ch != "\\":
            out.append(ch)
            continue
        nxt = next(chars, "")
        out.append(_ESCAPES.get(nxt, nxt))
    return "".join(out)


def parse_properties(text: str) -> dict[str, str]:
    """Parse the subset of the .properties format the server config uses.

    Supports comments, '=', ':' and whitespace separators, backslash line
    continuations and the common escapes. Later keys win.
    """
    result: dict[str, str] = {}
    logical = ""
    for raw_line in text.splitlines():
        line = raw_line.lstrip()
        if not logical and (not line or line.startswith(_COMMENT_PREFIXES)):
            continue
        # an odd number of trailing backslashes continues the line
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            logical += line[:-1]
            continue
        logical += line
        key, value = _split_key_value(logical)
        result[_unescape(key)] = _unescape(value)
        logical = ""
    if logical:
        key, value = _split_key_value(logical)
        result[_unescape(key)] = _unescape(value)
    return result


def property_key_to_field(key: str) -> str:
    """Map 'ssl.keypassword' or 'read-timeout-seconds' to a settings field name."""
    return key.strip().lower().replace(".", "_").replace("-", "_")


def resolve_properties_path() -> Path | None:
    """Path from CHAT_PROPERTIES_FILE, else ./server.properties. Empty disables the file."""
    value = os.environ.get(PROPERTIES_FILE_ENV, DEFAULT_PROPERTIES_FILE)
    if not value:
        return None
    return Path(value)


class PropertiesSettingsSource(PydanticBaseSettingsSource):
    """Read settings fields from a .properties file. A missing file contributes nothing."""

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None) -> None:
        super().__init__(settings_cls)
        self._path = path
        self._values = self._load()

    def _load(self) -> dict[str, str]:
        if self._path is None or not self._path.is_file():
            return {}
        properties = parse_properties(self._path.read_text(encoding="utf-8"))
        fields = self.settings_cls.model_fields
        values: dict[str, str] = {}
        for key, value in properties.items():
            field_name = property_key_to_field(key)
            if field_name in fields:
                values[field_name] = value
            else:
                logger.warning("unknown key in properties file", key=key, path=str(self._path))
        return values

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:  # noqa: ARG002
        return self._values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        return dict(self._values)
