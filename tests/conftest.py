import asyncio
import json
import subprocess
from pathlib import Path

import pytest

from macdist import util
from macdist.config import PackagerOptions, SigningOptions

APP_IDENTITY = "Developer ID Application: Acme Corp (TEAM123456)"
INSTALLER_IDENTITY = "3rd Party Mac Developer Installer: Acme Corp (TEAM123456)"


class FakeTools:
    """Stands in for util.run: records argv and creates what the real tool would."""

    def __init__(self):
        self.calls = []
        self.failures = {}
        self.stderr = {}
        self.identities = [APP_IDENTITY, INSTALLER_IDENTITY]

    def fail(self, tool, subcommand=None, returncode=1, stderr=None):
        self.failures[(tool, subcommand)] = returncode
        self.stderr[(tool, subcommand)] = f"{tool} failed" if stderr is None else stderr

    def _failure(self, tool, args):
        sub = args[1] if len(args) > 1 else None
        key = (tool, sub) if (tool, sub) in self.failures else (tool, None)
        return self.failures.get(key, 0), self.stderr.get(key, "")

    async def run(self, cmd, cwd=None, check=True, capture=False, redact=()):
        args = [str(c) for c in cmd]
        self.calls.append((args, cwd))
        # let concurrent callers interleave like real processes would
        await asyncio.sleep(0)
        tool = Path(args[0]).name
        returncode, stderr = self._failure(tool, args)
        stdout = ""
        if returncode == 0:
            stdout = self._effects(tool, args, cwd)
        if check and returncode != 0:
            shown = [util.MASK if a in redact else a for a in args]
            raise subprocess.CalledProcessError(returncode, shown, stdout, stderr)
        return subprocess.CompletedProcess(args, returncode, stdout, "")

    def _effects(self, tool, args, cwd):
        if tool == "7za":
            (Path(cwd) / args[-2]).write_bytes(b"7z-archive")
        elif tool == "hdiutil" and args[1] == "attach":
            return "/dev/disk4          \tGUID_partition_scheme\t\n/dev/disk4s1\tApple_HFS\t/Volumes/Acme\n"
        elif tool == "hdiutil" and args[1] == "convert":
            Path(args[args.index("-o") + 1]).write_bytes(b"disk-image")
        elif tool == "productbuild":
            Path(args[-1]).write_bytes(b"installer")
        elif tool == "security" and args[1] == "find-identity":
            lines = [f'  {i + 1}) {"AB" * 20} "{name}"' for i, name in enumerate(self.identities)]
            lines.append(f"     {len(self.identities)} valid identities found")
            return "\n".join(lines) + "\n"
        return ""

    def commands(self, tool, subcommand=None):
        return [args for args, _ in self.calls
                if Path(args[0]).name == tool and (subcommand is None or args[1] == subcommand)]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for name in ("CSC_LINK", "CSC_KEY_PASSWORD", "CSC_INSTALLER_LINK",
                 "CSC_INSTALLER_KEY_PASSWORD", "CSA_LINK", "CSC_NAME",
                 "CSC_INSTALLER_NAME", "MACDIST_7ZA"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def tools(monkeypatch):
    fake = FakeTools()
    monkeypatch.setattr(util, "run", fake.run)
    return fake


@pytest.fixture
def project(tmp_path):
    (tmp_path / "macdist.config.json").write_text(json.dumps({
        "name": "acme",
        "productName": "Acme",
        "version": "1.2.0",
    }))
    app = tmp_path / "prebuilt" / "Acme.app"
    (app / "Contents" / "MacOS").mkdir(parents=True)
    (app / "Contents" / "MacOS" / "Acme").write_text("binary")
    (app / "Contents" / "_CodeSignature").mkdir()
    (app / "Contents" / "_CodeSignature" / "CodeResources").write_text("stale")
    (tmp_path / "build").mkdir()
    return tmp_path


@pytest.fixture
def make_options(project):
    def make(**kwargs):
        kwargs.setdefault("signing", SigningOptions())
        return PackagerOptions(
            project_dir=project,
            name="acme",
            product_name="Acme",
            version="1.2.0",
            app_path=project / "prebuilt" / "Acme.app",
            **kwargs,
        )
    return make


@pytest.fixture
def certificate(project):
    cert = project / "cert.p12"
    cert.write_bytes(b"pkcs12")
    return cert
