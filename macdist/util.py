import asyncio
import logging
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

MASK = "****"


async def run(cmd, cwd=None, check=True, capture=False, redact=()) -> subprocess.CompletedProcess:
    """Run an external tool without blocking the event loop.

    Raises subprocess.CalledProcessError on a non-zero exit when `check` is set.
    With `capture`, stdout/stderr are returned as text; otherwise stdout is
    discarded and stderr goes to the console. Arguments equal to a value in
    `redact` are masked in the log line and in the raised error.
    """
    args = [str(c) for c in cmd]
    shown = [MASK if a in redact else a for a in args]
    log.debug("$ %s", " ".join(shown))
    proc = await asyncio.create_subprocess_exec(
        *args,
        cwd=str(cwd) if cwd is not None else None,
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE if capture or log.isEnabledFor(logging.DEBUG) else subprocess.DEVNULL,
        stderr=subprocess.PIPE if capture else None,
    )
    out, err = await proc.communicate()
    stdout = out.decode(errors="replace") if out is not None else ""
    stderr = err.decode(errors="replace") if err is not None else ""
    if stdout and not capture:
        log.debug(stdout.rstrip())
    if check and proc.returncode != 0:
        raise subprocess.CalledProcessError(proc.returncode, shown, stdout, stderr)
    return subprocess.CompletedProcess(shown, proc.returncode, stdout, stderr)
