"""Layered views over package parts: a package-backed overlay and staging layers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from .opc import Package


class Overlay(ABC):
    """A readable and writable view of package parts."""

    @abstractmethod
    def get(self, path: str) -> bytes:
        """Return the content of a part."""

    @abstractmethod
    def set(self, path: str, content: bytes) -> None:
        """Replace the content of a part."""

    @abstractmethod
    def has(self, path: str) -> bool:
        """Whether the part exists in this view."""

    @abstractmethod
    def list_entries(self) -> list[str]:
        """Names of all parts in this view."""

    def has_baseline(self, path: str) -> bool:
        """Whether the part existed originally; defaults to ``has``."""
        return self.has(path)


class PackageOverlay(Overlay):
    """An overlay that writes through to a package and remembers its original parts."""

    def __init__(self, pkg: Package) -> None:
        if pkg is None:
            raise ValueError("package is None")
        self._pkg = pkg
        self._baseline = frozenset(pkg.list_parts())

    def get(self, path: str) -> bytes:
        return self._pkg.read_part(path)

    def set(self, path: str, content: bytes) -> None:
        self._pkg.write_part(path, content)

    def has(self, path: str) -> bool:
        return path in self._baseline or path in self._pkg.list_parts()

    def list_entries(self) -> list[str]:
        return self._pkg.list_parts()

    def has_baseline(self, path: str) -> bool:
        return path in self._baseline


class StagingOverlay(Overlay):
    """Collects changes on top of a parent overlay until committed or discarded."""

    def __init__(self, parent: Overlay) -> None:
        self._parent = parent
        self._staged: dict[str, bytes] = {}

    def get(self, path: str) -> bytes:
        if path in self._staged:
            return self._staged[path]
        return self._parent.get(path)

    def set(self, path: str, content: bytes) -> None:
        self._staged[path] = bytes(content)

    def has(self, path: str) -> bool:
        return path in self._staged or self._parent.has(path)

    def list_entries(self) -> list[str]:
        return self._parent.list_entries()

    def list_touched(self) -> list[str]:
        """Sorted names of the staged parts."""
        return sorted(self._staged)

    def commit(self) -> None:
        """Write staged parts to the parent.

        Every staged part must already exist in the parent's baseline; if one
        does not, nothing is written and LookupError is raised.
        """
        if not self._staged:
            return
        paths = self.list_touched()
        for path in paths:
            if not self._parent.has_baseline(path):
                raise LookupError(
                    f"commit staged part {path!r}: part does not exist in baseline"
                )
        for path in paths:
            self._parent.set(path, self._staged[path])
        self._staged = {}

    def discard(self) -> None:
        """Drop all staged changes."""
        self._staged = {}

    def nested(self) -> StagingOverlay:
        """A new staging layer on top of this one."""
        return StagingOverlay(self)