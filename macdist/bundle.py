"""Bundle builder adapter: lays out an unsigned .app per arch and variant."""

import asyncio
import logging
import shutil
from pathlib import Path

from .errors import PackagingError
from .variants import BuildVariant

log = logging.getLogger(__name__)

# The bundle's own stale signature; nested code keeps its signatures
SKIP = {"_CodeSignature", "CodeResources"}


class BundleBuilder:
    """Interface for the step that produces a runnable, unsigned .app."""

    async def build(self, app_out_dir: Path, arch: str, variant: BuildVariant) -> Path:
        raise NotImplementedError


class PrebuiltBundleBuilder(BundleBuilder):
    """Copies an already-built .app into the variant's output directory."""

    def __init__(self, source: Path, app_name: str):
        self.source = Path(source)
        self.app_name = app_name

    async def build(self, app_out_dir: Path, arch: str, variant: BuildVariant) -> Path:
        if not self.source.is_dir():
            raise PackagingError(f"App bundle not found: {self.source}")
        bundle_path = app_out_dir / f"{self.app_name}.app"
        log.info("Bundle (%s, %s): %s", variant.platform, arch, bundle_path)
        await asyncio.to_thread(self._copy, bundle_path)
        return bundle_path

    def _copy(self, bundle_path: Path):
        # Clean previous build
        if bundle_path.exists():
            shutil.rmtree(bundle_path)
        bundle_path.parent.mkdir(parents=True, exist_ok=True)
        contents = self.source / "Contents"

        def ignore(directory, names):
            if Path(directory) == contents:
                return [n for n in names if n in SKIP]
            return [n for n in names if n == ".DS_Store"]

        shutil.copytree(self.source, bundle_path, symlinks=True, ignore=ignore)
