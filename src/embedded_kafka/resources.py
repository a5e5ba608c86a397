"""Locating property resources on disk or inside installed packages."""

from __future__ import annotations

from dataclasses import dataclass
from importlib import resources
from importlib.resources.abc import Traversable
from pathlib import Path
from typing import TextIO

FILE_PREFIX = "file:"
PACKAGE_PREFIX = "package:"


@dataclass(frozen=True)
class Resource:
    """A readable text resource and a human-readable descriptor for errors."""

    target: Path | Traversable | None
    description: str

    def exists(self) -> bool:
        return self.target is not None and self.target.is_file()

    def open(self) -> TextIO:
        if self.target is None:
            msg = f"{self.description} does not exist"
            raise FileNotFoundError(msg)
        return self.target.open("r", encoding="utf-8")  # type: ignore[return-value]

    def __str__(self) -> str:
        return self.description


class ResourceLoader:
    """Resolves resource locations.

    Supported forms:

    - ``file:/abs/or/relative/path``
    - ``package:dotted.package/relative/path`` for files shipped in a package
    - a bare path, relative to *base_dir* (the working directory by default)
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self._base_dir = Path(base_dir) if base_dir is not None else None

    def get_resource(self, location: str) -> Resource:
        if location.startswith(PACKAGE_PREFIX):
            return self._package_resource(location[len(PACKAGE_PREFIX) :])
        if location.startswith(FILE_PREFIX):
            location = location[len(FILE_PREFIX) :]
            # file:///abs/path
            if location.startswith("//"):
                location = location[2:]
        path = Path(location).expanduser()
        if not path.is_absolute() and self._base_dir is not None:
            path = self._base_dir / path
        path = path.absolute()
        return Resource(path, f"file [{path}]")

    @staticmethod
    def _package_resource(spec: str) -> Resource:
        package, _, relative = spec.partition("/")
        description = f"package resource [{package}/{relative}]"
        try:
            root = resources.files(package)
        except (ModuleNotFoundError, ValueError):
            return Resource(None, description)
        target: Traversable = root
        for part in Path(relative).parts:
            target = target.joinpath(part)
        return Resource(target, description)
