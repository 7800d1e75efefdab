"""
Blob storage for raw fetched content.

Each object is written as a file under the root directory with a
`<name>.meta.json` sidecar holding its content type and metadata.
"""

import json
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Union


class LocalBlobStore:
    def __init__(self, root: Path):
        self.root = Path(root)

    def _path_for(self, key: str) -> Path:
        parts = PurePosixPath(key).parts
        if not parts or any(p in ("..", "/") for p in parts):
            raise ValueError(f"Invalid blob key: {key!r}")
        return self.root.joinpath(*parts)

    def put(
        self,
        key: str,
        body: Union[bytes, str],
        content_type: str = "application/octet-stream",
        metadata: Optional[Dict[str, str]] = None,
    ) -> Path:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = body.encode("utf-8") if isinstance(body, str) else body
        path.write_bytes(data)

        sidecar = path.with_name(path.name + ".meta.json")
        with sidecar.open("w", encoding="utf-8") as f:
            json.dump({"content_type": content_type, "metadata": metadata or {}}, f, indent=2)
        return path

    def get(self, key: str) -> Optional[bytes]:
        path = self._path_for(key)
        if not path.exists():
            return None
        return path.read_bytes()

    def head(self, key: str) -> Optional[Dict]:
        """Return the stored content type and metadata, or None."""
        path = self._path_for(key)
        sidecar = path.with_name(path.name + ".meta.json")
        if not sidecar.exists():
            return None
        with sidecar.open("r", encoding="utf-8") as f:
            return json.load(f)
