"""The rendering context: resolved variable values in declaration order."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any


class Context(Mapping):
    """Append-only mapping from variable name to typed value.

    Only the resolver inserts; renderers and the cleanup engine read it as a
    plain mapping.  Re-inserting a name is a bug, not an update.
    """

    def __init__(self) -> None:
        self._values: dict[str, bool | int | str] = {}

    def insert(self, name: str, value: bool | int | str) -> None:
        if name in self._values:
            raise KeyError(f"`{name}` is already set in the context")
        self._values[name] = value

    def __getitem__(self, name: str) -> bool | int | str:
        return self._values[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Context({self._values!r})"

    def as_dict(self) -> dict[str, Any]:
        """Return a copy suitable for handing to the template engine."""
        return dict(self._values)
