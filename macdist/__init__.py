"""macdist — sign and package macOS apps into DMG, zip, 7z and Mac App Store packages."""

from .artifacts import ArchiveSpec, Artifact, ArtifactReporter
from .codesign import CleanupRegistry, CredentialContext, CredentialManager
from .config import PackagerOptions, SigningOptions, load_options
from .distribute import Distributor, deep_merge
from .errors import (
    ConfigError,
    CredentialSetupError,
    InvalidTargetError,
    MacDistError,
    MissingInstallerIdentityError,
    PackagingError,
    SigningError,
)
from .packager import MacPackager, package
from .signer import Signer
from .targets import TargetSet, resolve_targets
from .variants import BuildVariant

__version__ = "0.1.0"
