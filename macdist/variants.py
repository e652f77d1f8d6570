from enum import Enum


class BuildVariant(Enum):
    """The two packaging branches and the naming/signing rules each one follows."""

    STORE = ("mas", True, True, "entitlements.mas.plist")
    DIRECT = ("darwin", False, False, "entitlements.mac.plist")

    def __init__(self, platform, signing_required, produces_installer, entitlements_file):
        self.platform = platform
        self.signing_required = signing_required
        self.produces_installer = produces_installer
        self.entitlements_file = entitlements_file

    def app_out_dir_name(self, app_name: str, arch: str) -> str:
        return f"{app_name}-{self.platform}-{arch}"
