"""In-memory package artifacts."""

from dataclasses import dataclass
from pathlib import Path

from lscpkg.errors import StagingError


@dataclass(frozen=True)
class Artifact:
    """Bytes produced by a successful external tool run."""
    kind: str            # 'key' | 'rpm' | 'deb' | 'exe'
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def write(self, path: Path) -> None:
        path.write_bytes(self.data)


def read_artifact(path: Path, kind: str) -> Artifact:
    """Read the file a tool wrote into memory."""
    try:
        return Artifact(kind=kind, data=path.read_bytes())
    except OSError as e:
        raise StagingError(f"Cannot read {kind} output {path}: {e}") from e
