"""Code signing for the store (mas) and direct (darwin) variants."""

import logging
import subprocess
from pathlib import Path

from . import util
from .artifacts import ArchiveSpec, ArtifactReporter
from .codesign import CredentialContext, CredentialManager
from .config import PackagerOptions
from .errors import MissingInstallerIdentityError, SigningError
from .variants import BuildVariant

log = logging.getLogger(__name__)

# option key -> codesign flag; anything else passes through as --<key>
_FLAGS = {
    "identity": "--sign",
    "keychain": "--keychain",
    "entitlements": "--entitlements",
    "requirements": "--requirements",
}
_CONSUMED = {"platform", "hardened-runtime", "timestamp"}


def codesign_command(bundle_path: Path, options: dict, variant: BuildVariant) -> list:
    """Translate merged sign options into a codesign argv."""
    cmd = ["codesign", "--force", "--deep"]
    for key, value in options.items():
        if key in _CONSUMED or value is None or value is False:
            continue
        flag = _FLAGS.get(key, f"--{key}")
        cmd.append(flag)
        if value is not True:
            cmd.append(str(value))
    if options.get("hardened-runtime", variant is BuildVariant.DIRECT):
        cmd += ["--options", "runtime"]
    timestamp = options.get("timestamp", True)
    cmd.append("--timestamp" if timestamp is True else f"--timestamp={timestamp or 'none'}")
    cmd.append(str(bundle_path))
    return cmd


class Signer:
    def __init__(self, options: PackagerOptions, credentials: CredentialManager,
                 reporter: ArtifactReporter):
        self.options = options
        self.credentials = credentials
        self.reporter = reporter

    async def _identities(self) -> CredentialContext:
        info = await self.credentials.resolve()
        signing = self.options.signing
        return CredentialContext(
            name=info.name or signing.identity,
            installer_name=info.installer_name or signing.installer_identity,
            keychain_name=info.keychain_name,
        )

    def _default_entitlements(self, variant: BuildVariant):
        path = self.options.build_resources_dir / variant.entitlements_file
        return path if path.is_file() else None

    def sign_options(self, info: CredentialContext, variant: BuildVariant) -> dict:
        base = {"platform": variant.platform}
        if info.keychain_name is not None:
            base["keychain"] = info.keychain_name
        merged = {"identity": info.name, **self.options.osx_sign, **base}
        entitlements = merged.get("entitlements")
        if entitlements:
            path = Path(entitlements)
            merged["entitlements"] = path if path.is_absolute() else self.options.project_dir / path
        elif "entitlements" in merged:
            # explicitly disabled
            merged["entitlements"] = None
        else:
            merged["entitlements"] = self._default_entitlements(variant)
        return merged

    async def sign(self, app_out_dir: Path, variant: BuildVariant):
        info = await self._identities()

        if variant.signing_required:
            if info.installer_name is None:
                raise MissingInstallerIdentityError()
            if info.name is None:
                raise SigningError("Signing is required for mas builds but CSC_LINK or CSC_NAME are not specified")
        elif info.name is None:
            log.warning("WARNING: App is not signed: CSC_LINK or CSC_NAME are not specified")
            return

        bundle_path = app_out_dir / f"{self.options.app_name}.app"
        options = self.sign_options(info, variant)
        log.info("Signing app (%s, %s)", variant.platform, info.name)
        try:
            await util.run(codesign_command(bundle_path, options, variant), capture=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise SigningError(f"codesign failed for {bundle_path}: {getattr(e, 'stderr', None) or e}") from e

        if variant.produces_installer:
            await self.flat(bundle_path, app_out_dir, info)

    async def flat(self, bundle_path: Path, app_out_dir: Path, info: CredentialContext):
        """Wrap the signed bundle into an installer package signed with the installer identity."""
        spec = ArchiveSpec("pkg")
        pkg = app_out_dir / spec.file_name(self.options.app_name, self.options.version)
        cmd = ["productbuild", "--component", str(bundle_path), "/Applications",
               "--sign", info.installer_name]
        if info.keychain_name is not None:
            cmd += ["--keychain", info.keychain_name]
        cmd.append(str(pkg))
        log.info("Creating installer package %s", pkg.name)
        try:
            await util.run(cmd, capture=True)
        except (subprocess.CalledProcessError, OSError) as e:
            raise SigningError(f"productbuild failed for {pkg}: {getattr(e, 'stderr', None) or e}") from e
        self.reporter.report(pkg, spec.file_name(self.options.name, self.options.version))
