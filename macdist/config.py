"""Project configuration: macdist.config.json (app metadata) + macdist.build.yaml."""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError

log = logging.getLogger(__name__)

CONFIG_NAMES = ["macdist.config.json", "macdist.json"]
BUILD_YAML_NAMES = ["macdist.build.yaml", "macdist.build.yml"]
COMPRESSION_LEVELS = ("store", "normal", "maximum")


@dataclass(frozen=True)
class SigningOptions:
    csc_link: Optional[str] = None
    csc_key_password: Optional[str] = None
    csc_installer_link: Optional[str] = None
    csc_installer_key_password: Optional[str] = None
    csa_link: Optional[str] = None
    identity: Optional[str] = None
    installer_identity: Optional[str] = None

    @property
    def has_certificate(self) -> bool:
        return self.csc_link is not None and self.csc_key_password is not None


@dataclass
class PackagerOptions:
    project_dir: Path
    name: str
    product_name: str
    version: str
    app_path: Optional[Path] = None
    out_dir: Path = None
    build_resources_dir: Path = None
    target: object = None
    compression: str = "normal"
    signing: SigningOptions = field(default_factory=SigningOptions)
    osx_sign: dict = field(default_factory=dict)
    dmg: Optional[dict] = None

    def __post_init__(self):
        if self.compression not in COMPRESSION_LEVELS:
            raise ConfigError(
                f"Unknown compression: {self.compression} "
                f"(expected one of {', '.join(COMPRESSION_LEVELS)})")
        if self.out_dir is None:
            self.out_dir = self.project_dir / "dist"
        if self.build_resources_dir is None:
            self.build_resources_dir = self.project_dir / "build"

    @property
    def app_name(self) -> str:
        """Bundle name on disk (<app_name>.app)."""
        return self.product_name


# ─── Loading ─────────────────────────────────────────────────────────────────

def load_app_config(project_dir: Path) -> dict:
    """Load macdist.config.json (or macdist.json fallback) with JSONC support."""
    for name in CONFIG_NAMES:
        path = project_dir / name
        if path.exists():
            text = path.read_text()
            # Strip single-line comments (// ...) for JSONC support
            text = re.sub(r'^\s*//.*$', '', text, flags=re.MULTILINE)
            try:
                config = json.loads(text)
            except json.JSONDecodeError as e:
                raise ConfigError(f"{path.name}: {e}") from e
            log.info("Config: %s", path.name)
            return config
    raise ConfigError(f"No macdist.config.json or macdist.json found in {project_dir}")


def load_build_yaml(project_dir: Path) -> dict:
    """Load macdist.build.yaml. Returns empty dict if absent."""
    for name in BUILD_YAML_NAMES:
        path = project_dir / name
        if path.exists():
            try:
                data = yaml.safe_load(path.read_text()) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"{path.name}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{path.name}: expected a mapping at top level")
            return data
    return {}


def _resolve_path(project_dir: Path, value) -> Optional[Path]:
    if value is None:
        return None
    p = Path(os.path.expanduser(str(value)))
    return p if p.is_absolute() else project_dir / p


def _pick(build_cfg: dict, key: str, env: dict, env_key: str = None):
    value = build_cfg.get(key)
    if value is None and env_key:
        value = env.get(env_key) or None
    return value


def load_options(project_dir: Path, overrides: dict = None, env=None) -> PackagerOptions:
    """Resolve packager options (CLI overrides > build yaml > config build section > env)."""
    env = os.environ if env is None else env
    overrides = {k: v for k, v in (overrides or {}).items() if v is not None}

    config = load_app_config(project_dir)
    build_cfg = dict(config.get("build") or {})
    build_cfg.update(load_build_yaml(project_dir))
    build_cfg.update(overrides)

    name = config.get("name")
    if not name:
        raise ConfigError("Config is missing required field: name")

    signing = SigningOptions(
        csc_link=_pick(build_cfg, "cscLink", env, "CSC_LINK"),
        csc_key_password=_pick(build_cfg, "cscKeyPassword", env, "CSC_KEY_PASSWORD"),
        csc_installer_link=_pick(build_cfg, "cscInstallerLink", env, "CSC_INSTALLER_LINK"),
        csc_installer_key_password=_pick(
            build_cfg, "cscInstallerKeyPassword", env, "CSC_INSTALLER_KEY_PASSWORD"),
        csa_link=_pick(build_cfg, "csaLink", env, "CSA_LINK"),
        identity=_pick(build_cfg, "identity", env, "CSC_NAME"),
        installer_identity=_pick(build_cfg, "installerIdentity", env, "CSC_INSTALLER_NAME"),
    )

    osx_sign = build_cfg.get("osxSign") or {}
    dmg = build_cfg.get("dmg")
    if not isinstance(osx_sign, dict):
        raise ConfigError("build.osxSign must be a mapping")
    if dmg is not None and not isinstance(dmg, dict):
        raise ConfigError("build.dmg must be a mapping")
    contents = (dmg or {}).get("contents", [])
    if not isinstance(contents, list) or not all(isinstance(e, dict) for e in contents):
        raise ConfigError("build.dmg.contents must be a list of mappings")

    return PackagerOptions(
        project_dir=project_dir,
        name=name,
        product_name=config.get("productName") or name,
        version=str(config.get("version", "1.0.0")),
        app_path=_resolve_path(project_dir, build_cfg.get("app")),
        out_dir=_resolve_path(project_dir, build_cfg.get("outDir", "dist")),
        build_resources_dir=_resolve_path(project_dir, build_cfg.get("buildResources", "build")),
        target=build_cfg.get("target"),
        compression=build_cfg.get("compression", "normal"),
        signing=signing,
        osx_sign=osx_sign,
        dmg=dmg,
    )
