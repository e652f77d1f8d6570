"""Error taxonomy for the packaging pipeline."""


class MacDistError(Exception):
    """Base class for every error raised by macdist."""


class ConfigError(MacDistError):
    """Project or build configuration is missing or malformed."""


class InvalidTargetError(MacDistError, ValueError):
    def __init__(self, target):
        super().__init__(f"Unknown target: {target}")
        self.target = target


class CredentialSetupError(MacDistError):
    """Temporary keychain could not be created or certificates not imported."""


class SigningError(MacDistError):
    """codesign or productbuild failed, or a mandatory identity is missing."""


class MissingInstallerIdentityError(MacDistError):
    def __init__(self):
        super().__init__(
            "Signing is required for mas builds but CSC_INSTALLER_LINK or "
            "CSC_INSTALLER_NAME are not specified")


class PackagingError(MacDistError):
    """Disk image or archive construction failed."""
