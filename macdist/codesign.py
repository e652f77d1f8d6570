"""Signing credentials: temporary keychain lifecycle for one packaging session."""

import asyncio
import logging
import os
import re
import secrets
import subprocess
import tempfile
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

from . import util
from .config import SigningOptions
from .errors import CredentialSetupError

log = logging.getLogger(__name__)

_IDENTITY_LINE = re.compile(r'^\s*\d+\)\s+([0-9A-Fa-f]{40})\s+"(.+)"\s*$')


@dataclass(frozen=True)
class CredentialContext:
    name: Optional[str] = None
    installer_name: Optional[str] = None
    keychain_name: Optional[str] = None


class CleanupRegistry:
    """Append-only list of async teardown actions, run once at session end.

    Actions run in reverse registration order. A failing action is logged and
    the remaining ones still run.
    """

    def __init__(self):
        self._tasks: List[Callable[[], Awaitable]] = []
        self._closed = False

    def add(self, task: Callable[[], Awaitable]):
        if self._closed:
            raise RuntimeError("cleanup registry is already closed")
        self._tasks.append(task)

    def __len__(self):
        return len(self._tasks)

    async def close(self):
        if self._closed:
            return
        self._closed = True
        for task in reversed(self._tasks):
            try:
                await task()
            except Exception as e:
                log.warning("WARNING: cleanup task failed: %s", e)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False


# ─── Keychain ────────────────────────────────────────────────────────────────

def generate_keychain_name() -> str:
    return f"csc-{secrets.token_hex(8)}.keychain"


async def delete_keychain(keychain_name: str):
    try:
        await util.run(["security", "delete-keychain", keychain_name], capture=True)
    except (subprocess.CalledProcessError, OSError) as e:
        log.warning("WARNING: Cannot delete keychain %s: %s", keychain_name, e)


async def _fetch_certificate(link: str) -> tuple:
    """Return (local path, is_temporary) for a certificate link."""
    if link.startswith("https://"):
        fd, tmp = tempfile.mkstemp(prefix="csc-", suffix=".p12")
        os.close(fd)
        log.debug("Downloading certificate %s", link)
        try:
            await asyncio.to_thread(urllib.request.urlretrieve, link, tmp)
        except BaseException:
            os.unlink(tmp)
            raise
        return Path(tmp), True
    if link.startswith("file://"):
        link = link[len("file://"):]
    path = Path(os.path.expanduser(link))
    if not path.is_file():
        raise FileNotFoundError(f"Certificate not found: {path}")
    return path, False


def parse_identities(output: str) -> List[str]:
    """Extract identity names from `security find-identity -v` output."""
    names = []
    for line in output.splitlines():
        m = _IDENTITY_LINE.match(line)
        if m and m.group(2) not in names:
            names.append(m.group(2))
    return names


async def create_keychain(keychain_name: str, signing: SigningOptions) -> CredentialContext:
    """Create and unlock a keychain, import the certificates, read identities back."""
    links = []
    if signing.csa_link:
        links.append((signing.csa_link, None))
    links.append((signing.csc_link, signing.csc_key_password))
    if signing.csc_installer_link and signing.csc_installer_key_password:
        links.append((signing.csc_installer_link, signing.csc_installer_key_password))

    password = secrets.token_hex(8)
    fetched = []
    try:
        for link, _ in links:
            fetched.append(await _fetch_certificate(link))

        for args in (["create-keychain", "-p", password, keychain_name],
                     ["unlock-keychain", "-p", password, keychain_name],
                     ["set-keychain-settings", "-t", "3600", "-u", keychain_name]):
            await util.run(["security", *args], capture=True, redact={password})

        for (path, _), (_, key_password) in zip(fetched, links):
            cmd = ["security", "import", str(path), "-k", keychain_name,
                   "-T", "/usr/bin/codesign", "-T", "/usr/bin/productbuild"]
            if key_password is not None:
                cmd += ["-P", key_password]
            await util.run(cmd, capture=True, redact={key_password})

        result = await util.run(["security", "find-identity", "-v", keychain_name], capture=True)
    finally:
        for path, temporary in fetched:
            if temporary:
                path.unlink(missing_ok=True)

    identities = parse_identities(result.stdout)
    installer = next((n for n in identities if "Installer" in n), None)
    app = next((n for n in identities if "Installer" not in n), None)
    if app is None:
        raise CredentialSetupError(f"No signing identity found in imported certificate ({keychain_name})")
    return CredentialContext(name=app, installer_name=installer, keychain_name=keychain_name)


def _failure_detail(error) -> str:
    """Describe a failed setup step by tool subcommand and stderr, never by argv."""
    if isinstance(error, subprocess.CalledProcessError):
        step = " ".join(str(a) for a in error.cmd[:2])
        stderr = (error.stderr or "").strip()
        return f"{step} exited with {error.returncode}" + (f": {stderr}" if stderr else "")
    return str(error)


# ─── Session credentials ─────────────────────────────────────────────────────

class CredentialManager:
    """Resolves the CredentialContext once per session and shares the result."""

    def __init__(self, signing: SigningOptions, cleanup: CleanupRegistry):
        self.signing = signing
        self.cleanup = cleanup
        self._task: Optional[asyncio.Future] = None

    def resolve(self) -> Awaitable[CredentialContext]:
        if self._task is None:
            self._task = asyncio.ensure_future(self._resolve())
        return self._task

    async def _resolve(self) -> CredentialContext:
        if not self.signing.has_certificate:
            return CredentialContext()

        keychain_name = generate_keychain_name()
        self.cleanup.add(lambda: delete_keychain(keychain_name))
        log.info("Creating keychain %s", keychain_name)
        try:
            return await create_keychain(keychain_name, self.signing)
        except CredentialSetupError:
            raise
        except (subprocess.CalledProcessError, OSError) as e:
            raise CredentialSetupError(f"Cannot set up keychain {keychain_name}: {_failure_detail(e)}") from e
