"""Packaging session: per-arch store/direct branches over shared credentials."""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List

from .artifacts import Artifact, ArtifactReporter
from .bundle import BundleBuilder, PrebuiltBundleBuilder
from .codesign import CleanupRegistry, CredentialManager
from .config import PackagerOptions
from .distribute import Distributor
from .signer import Signer
from .targets import resolve_targets
from .variants import BuildVariant

log = logging.getLogger(__name__)


class MacPackager:
    def __init__(self, options: PackagerOptions, cleanup: CleanupRegistry,
                 builder: BundleBuilder = None, reporter: ArtifactReporter = None):
        self.options = options
        # Fails before any I/O on an unknown target
        self.targets = resolve_targets(options.target)
        self.reporter = reporter or ArtifactReporter()
        if builder is None:
            source = options.app_path or options.out_dir / f"{options.app_name}.app"
            builder = PrebuiltBundleBuilder(source, options.app_name)
        self.builder = builder
        self.credentials = CredentialManager(options.signing, cleanup)
        self.signer = Signer(options, self.credentials, self.reporter)
        self.distributor = Distributor(options, self.reporter)

    def app_out_dir(self, variant: BuildVariant, arch: str) -> Path:
        return self.options.out_dir / variant.app_out_dir_name(self.options.app_name, arch)

    async def pack(self, arch: str):
        branches = []
        if self.targets.needs_direct:
            branches.append(self._pack_direct(arch))
        if self.targets.needs_store:
            branches.append(self._pack_store(arch))
        # Both branches run to the end before the session may tear down the keychain
        for result in await asyncio.gather(*branches, return_exceptions=True):
            if isinstance(result, BaseException):
                raise result

    async def _pack_direct(self, arch: str):
        app_out_dir = self.app_out_dir(BuildVariant.DIRECT, arch)
        await self.builder.build(app_out_dir, arch, BuildVariant.DIRECT)
        await self.signer.sign(app_out_dir, BuildVariant.DIRECT)
        await self.distributor.distribute(app_out_dir, self.targets)

    async def _pack_store(self, arch: str):
        app_out_dir = self.app_out_dir(BuildVariant.STORE, arch)
        await self.builder.build(app_out_dir, arch, BuildVariant.STORE)
        await self.signer.sign(app_out_dir, BuildVariant.STORE)


async def package(options: PackagerOptions, archs: Iterable[str] = ("x64",),
                  builder: BundleBuilder = None,
                  reporter: ArtifactReporter = None) -> List[Artifact]:
    """Run one packaging session and return the reported artifacts.

    The session's cleanup registry is closed on the way out, so a temporary
    keychain is deleted whether packaging succeeded or not.
    """
    reporter = reporter or ArtifactReporter()
    async with CleanupRegistry() as cleanup:
        packager = MacPackager(options, cleanup, builder, reporter)
        for arch in archs:
            await packager.pack(arch)
    return reporter.artifacts
