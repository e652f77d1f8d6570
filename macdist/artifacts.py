import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Artifact:
    path: Path
    name: str


@dataclass(frozen=True)
class ArchiveSpec:
    """Format, compression and classifier of one distributable file."""

    format: str
    compression: str = "normal"
    classifier: Optional[str] = None

    def file_name(self, app_name: str, version: str) -> str:
        suffix = f"-{self.classifier}" if self.classifier else ""
        return f"{app_name}-{version}{suffix}.{self.format}"


class ArtifactReporter:
    """Collects produced artifacts and forwards each one to the listeners."""

    def __init__(self, listeners: List[Callable[[Artifact], None]] = None):
        self.artifacts: List[Artifact] = []
        self._listeners = list(listeners or [])

    def add_listener(self, listener: Callable[[Artifact], None]):
        self._listeners.append(listener)

    def report(self, path: Path, name: str) -> Artifact:
        artifact = Artifact(Path(path), name)
        self.artifacts.append(artifact)
        log.info("Artifact: %s", artifact.path)
        for listener in self._listeners:
            listener(artifact)
        return artifact
