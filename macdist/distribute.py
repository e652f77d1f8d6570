"""Distributable formats: disk image and archives of a signed bundle."""

import asyncio
import json
import logging
import os
import subprocess
from pathlib import Path
from typing import List

from . import dmg, util
from .artifacts import ArchiveSpec, Artifact, ArtifactReporter
from .config import PackagerOptions
from .errors import PackagingError
from .targets import DEFAULT, TargetSet, ZIP

log = logging.getLogger(__name__)

# Squirrel.Mac looks for the -mac classifier on the update archive
DEFAULT_CLASSIFIER = "mac"
ARCHIVE_CLASSIFIER = "osx"


def deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge `override` onto `base` and return a new dict.

    Where both sides hold a dict under the same key the two are merged;
    otherwise the override's value wins (lists and scalars are replaced
    whole). Neither input is modified.
    """
    result = {key: _copy(value) for key, value in base.items()}
    for key, value in (override or {}).items():
        current = result.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = _copy(value)
    return result


def _copy(value):
    if isinstance(value, dict):
        return deep_merge(value, {})
    if isinstance(value, list):
        return [_copy(v) for v in value]
    return value


def seven_zip_path() -> str:
    return os.environ.get("MACDIST_7ZA") or "7za"


class Distributor:
    def __init__(self, options: PackagerOptions, reporter: ArtifactReporter):
        self.options = options
        self.reporter = reporter

    # ─── Disk image ──────────────────────────────────────────────────────────

    def _resolve(self, value):
        path = Path(value)
        return path if path.is_absolute() else self.options.project_dir / path

    def compute_dmg_specification(self, app_out_dir: Path) -> dict:
        resources = self.options.build_resources_dir
        user = self.options.dmg or {}
        specification = deep_merge({
            "title": self.options.app_name,
            "icon": str(resources / "icon.icns"),
            "icon-size": 80,
            "window": {"size": {"width": 540, "height": 380}},
            "contents": [
                {"x": 410, "y": 220, "type": "link", "path": "/Applications"},
                {"x": 130, "y": 220, "type": "file"},
            ],
        }, user)

        if "background" not in user:
            background = resources / "background.png"
            if background.is_file():
                specification["background"] = str(background)
        elif specification["background"]:
            specification["background"] = str(self._resolve(specification["background"]))

        if specification.get("icon"):
            specification["icon"] = str(self._resolve(specification["icon"]))
        bundle = app_out_dir / f"{self.options.app_name}.app"
        for entry in specification["contents"]:
            if entry.get("type") == "file":
                entry["path"] = str(self._resolve(entry["path"])) if entry.get("path") else str(bundle)
        specification["compression"] = "NONE" if self.options.compression == "store" else "UDBZ"
        return specification

    async def create_dmg(self, app_out_dir: Path) -> Artifact:
        spec = ArchiveSpec("dmg", self.options.compression)
        artifact_path = app_out_dir / spec.file_name(self.options.app_name, self.options.version)
        log.info("Creating DMG")
        specification = self.compute_dmg_specification(app_out_dir)
        if log.isEnabledFor(logging.DEBUG):
            log.debug("dmg: %s", json.dumps(specification, indent=2))
        try:
            await dmg.write_disk_image(specification, artifact_path, specification["compression"])
        except (subprocess.CalledProcessError, OSError) as e:
            raise PackagingError(f"Cannot create {artifact_path.name}: {getattr(e, 'stderr', None) or e}") from e
        return self.reporter.report(artifact_path, spec.file_name(self.options.name, self.options.version))

    # ─── Archives ────────────────────────────────────────────────────────────

    def archive_spec(self, target: str) -> ArchiveSpec:
        if target == DEFAULT:
            return ArchiveSpec(ZIP, self.options.compression, DEFAULT_CLASSIFIER)
        return ArchiveSpec(target, self.options.compression, ARCHIVE_CLASSIFIER)

    def archive_command(self, spec: ArchiveSpec, result_name: str) -> list:
        args = [seven_zip_path(), "a", "-bb" + ("3" if log.isEnabledFor(logging.DEBUG) else "0"), "-bd"]
        store_only = spec.compression == "store"
        if spec.format == ZIP or store_only:
            args.append("-mm=" + ("Copy" if store_only else "Deflate"))
        if spec.compression == "maximum":
            args += ["-mfb=258", "-mpass=15"]
        args += [result_name, f"{self.options.app_name}.app"]
        return args

    async def archive_app(self, app_out_dir: Path, spec: ArchiveSpec) -> Artifact:
        log.info("Creating macOS %s", spec.format)
        result_name = spec.file_name(self.options.app_name, self.options.version)
        result_path = app_out_dir / result_name
        # 7za adds to an existing archive instead of replacing it
        result_path.unlink(missing_ok=True)
        try:
            await util.run(self.archive_command(spec, result_name), cwd=app_out_dir)
        except (subprocess.CalledProcessError, OSError) as e:
            raise PackagingError(f"Cannot create {result_name}: {e}") from e
        return self.reporter.report(result_path, spec.file_name(self.options.name, self.options.version))

    # ─── Fan-out ─────────────────────────────────────────────────────────────

    async def distribute(self, app_out_dir: Path, targets: TargetSet) -> List[Artifact]:
        """Produce every requested format concurrently; the first failure wins."""
        jobs = []
        if targets.needs_disk_image:
            jobs.append(self.create_dmg(app_out_dir))
        for target in targets.archive_targets():
            jobs.append(self.archive_app(app_out_dir, self.archive_spec(target)))
        return list(await asyncio.gather(*jobs))
