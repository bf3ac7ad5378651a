from __future__ import annotations

from dataclasses import dataclass
from functools import total_ordering
from urllib.parse import unquote

from storedemo.errors import InvalidPath

DELIMITER = "/"


def _check_segment(raw: str, segment: str) -> None:
    if not segment:
        raise InvalidPath(f"Path {raw!r} contains an empty segment", {"path": raw})
    if segment in {".", ".."}:
        raise InvalidPath(f"Path {raw!r} contains relative segment {segment!r}", {"path": raw})
    for ch in segment:
        if ch in "\\/" or ord(ch) < 0x20 or ord(ch) == 0x7F:
            raise InvalidPath(f"Path {raw!r} contains illegal character {ch!r}", {"path": raw})


@total_ordering
@dataclass(frozen=True)
class Location:
    """
    Normalized, backend-agnostic object key.

    A location is a tuple of non-empty segments. Local paths and cloud keys
    map onto the same shape: ``/data/a.bin`` and ``data/a.bin/`` both parse to
    ``("data", "a.bin")``.
    """

    parts: tuple[str, ...] = ()

    @classmethod
    def parse(cls, raw: str) -> Location:
        stripped = raw.strip(DELIMITER)
        if not stripped:
            return cls()
        segments = stripped.split(DELIMITER)
        for segment in segments:
            _check_segment(raw, segment)
        return cls(tuple(segments))

    @classmethod
    def from_key(cls, key: str) -> Location:
        """Parse a listed object key that must round-trip back to itself."""
        location = cls.parse(key)
        if str(location) != key:
            raise InvalidPath(f"Key {key!r} does not address a single object", {"path": key})
        return location

    @classmethod
    def from_url_path(cls, url_path: str) -> Location:
        return cls.parse(unquote(url_path))

    @property
    def is_root(self) -> bool:
        return not self.parts

    @property
    def name(self) -> str:
        return self.parts[-1] if self.parts else ""

    def child(self, name: str) -> Location:
        _check_segment(name, name)
        return Location(self.parts + (name,))

    def is_prefix_of(self, other: Location) -> bool:
        """True when ``other`` lives strictly below this location."""
        n = len(self.parts)
        return len(other.parts) > n and other.parts[:n] == self.parts

    def __str__(self) -> str:
        return DELIMITER.join(self.parts)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Location):
            return NotImplemented
        return self.parts < other.parts
