"""Local file blob store for running without Supabase."""

from dataclasses import dataclass
from pathlib import Path

from meal_parser.services.records import BlobStore


@dataclass
class FileBlobStore(BlobStore):
    """Stores each blob as ``<key>.json`` under a directory."""

    directory: Path

    def read(self, key: str) -> str | None:
        """Return the blob stored under a key."""
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, data: str) -> None:
        """Write the blob through a temporary file and swap it in."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp_path = path.with_suffix(".json.tmp")
        tmp_path.write_text(data, encoding="utf-8")
        tmp_path.replace(path)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"
