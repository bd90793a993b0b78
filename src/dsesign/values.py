"""Ordered multi-map for query options and form-encoded payloads."""

from typing import Dict, Iterator, List, Mapping, Optional, Union
from urllib.parse import urlencode


class Values:
    """Maps a key to an ordered list of string values.

    Keys keep their insertion order for iteration, but ``encode`` always
    sorts them so the resulting query string is deterministic.
    """

    def __init__(
        self, initial: Optional[Mapping[str, Union[str, List[str]]]] = None
    ):
        self._data: Dict[str, List[str]] = {}
        if initial:
            for key, value in initial.items():
                if isinstance(value, str):
                    self._data[key] = [value]
                else:
                    self._data[key] = [str(v) for v in value]

    def add(self, key: str, value: str) -> None:
        """Append value to the list for key."""
        self._data.setdefault(key, []).append(str(value))

    def set(self, key: str, value: str) -> None:
        """Replace any existing values for key."""
        self._data[key] = [str(value)]

    def get(self, key: str) -> str:
        """Return the first value for key, or an empty string."""
        values = self._data.get(key)
        return values[0] if values else ""

    def get_all(self, key: str) -> List[str]:
        return list(self._data.get(key, []))

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def copy(self) -> "Values":
        return Values({k: list(v) for k, v in self._data.items()})

    def encode(self) -> str:
        """Encode as ``application/x-www-form-urlencoded`` sorted by key."""
        pairs = [
            (key, value)
            for key in sorted(self._data)
            for value in self._data[key]
        ]
        return urlencode(pairs)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Values):
            return NotImplemented
        return self._data == other._data

    def __repr__(self) -> str:
        return f"Values({self._data!r})"
