"""Read and rewrite OOXML zip packages with an in-memory overlay of changed parts."""

from __future__ import annotations

import io
import os
import tempfile
import zipfile


class OoxmlError(Exception):
    """Base error for package operations."""


class OpenFailedError(OoxmlError):
    """The package could not be opened."""


class PartNotFoundError(OoxmlError):
    """The requested part does not exist in the package."""


class SaveFailedError(OoxmlError):
    """The package could not be saved."""


_SUPPORTED_METHODS = (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED)


def _clone_info(info: zipfile.ZipInfo) -> zipfile.ZipInfo:
    clone = zipfile.ZipInfo(info.filename, info.date_time)
    clone.compress_type = info.compress_type
    clone.external_attr = info.external_attr
    clone.create_system = info.create_system
    clone.comment = info.comment
    return clone


class Package:
    """An OOXML package held in memory, with parts that can be replaced or added."""

    def __init__(self, data: bytes, source: str = "<memory>") -> None:
        try:
            self._zip = zipfile.ZipFile(io.BytesIO(data))
        except (zipfile.BadZipFile, OSError, ValueError) as exc:
            raise OpenFailedError(f"open failed: {source}: {exc}") from exc
        self._infos = self._zip.infolist()
        self._index = {info.filename: info for info in self._infos}
        self._overlay: dict[str, bytes] = {}

    def list_parts(self) -> list[str]:
        """Names of all parts: archive order first, then new parts sorted."""
        names = [info.filename for info in self._infos]
        extras = sorted(name for name in self._overlay if name not in self._index)
        return names + extras

    def read_part(self, name: str) -> bytes:
        """Return the current content of a part."""
        if name in self._overlay:
            return self._overlay[name]
        info = self._index.get(name)
        if info is None:
            raise PartNotFoundError(f"part not found: {name}")
        try:
            return self._zip.read(info)
        except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as exc:
            raise OoxmlError(f"read part {name!r}: {exc}") from exc

    def write_part(self, name: str, data: bytes) -> None:
        """Replace or add a part; takes effect on read and on save."""
        self._overlay[name] = bytes(data)

    def save(self, path: str | os.PathLike[str]) -> None:
        """Write the package atomically to ``path``, replacing any existing file."""
        path = os.fspath(path)
        directory = os.path.dirname(path) or "."
        base = os.path.basename(path)
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=base + ".tmp-", dir=directory)
        except OSError as exc:
            raise SaveFailedError(f"save failed: {path}: {exc}") from exc

        try:
            with os.fdopen(fd, "wb") as handle:
                with zipfile.ZipFile(handle, "w") as writer:
                    self._write_entries(writer)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except SaveFailedError:
            self._remove_quietly(tmp_name)
            raise
        except (OSError, zipfile.BadZipFile, RuntimeError, NotImplementedError) as exc:
            self._remove_quietly(tmp_name)
            raise SaveFailedError(f"save failed: {path}: {exc}") from exc

    def _write_entries(self, writer: zipfile.ZipFile) -> None:
        for info in self._infos:
            name = info.filename
            if name in self._overlay and not info.is_dir():
                if info.compress_type not in _SUPPORTED_METHODS:
                    raise SaveFailedError(
                        f"save failed: write part {name!r}: "
                        f"unsupported compression method: {info.compress_type}"
                    )
                writer.writestr(_clone_info(info), self._overlay[name])
            elif info.is_dir():
                clone = _clone_info(info)
                clone.compress_type = zipfile.ZIP_STORED
                writer.writestr(clone, b"")
            else:
                try:
                    data = self._zip.read(info)
                except (zipfile.BadZipFile, OSError, RuntimeError, NotImplementedError) as exc:
                    raise SaveFailedError(f"save failed: copy part {name!r}: {exc}") from exc
                writer.writestr(_clone_info(info), data)

        for name in sorted(self._overlay):
            if name in self._index:
                continue
            info = zipfile.ZipInfo(name)
            if name.endswith("/"):
                info.compress_type = zipfile.ZIP_STORED
                writer.writestr(info, b"")
            else:
                info.compress_type = zipfile.ZIP_DEFLATED
                writer.writestr(info, self._overlay[name])

    @staticmethod
    def _remove_quietly(name: str) -> None:
        try:
            os.remove(name)
        except OSError:
            pass


def open_file(path: str | os.PathLike[str]) -> Package:
    """Open a package from disk."""
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise OpenFailedError(f"open failed: {os.fspath(path)}: {exc}") from exc
    return Package(data, source=os.fspath(path))