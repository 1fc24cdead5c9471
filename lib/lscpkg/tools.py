"""Run external packaging tools."""

import logging
import shutil
import subprocess
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from lscpkg.config import Settings
from lscpkg.errors import ToolError

logger = logging.getLogger(__name__)

REDACTED = '********'


def redact(text: str, secrets: Iterable[str]) -> str:
    """Replace every secret occurring in text with asterisks."""
    for secret in secrets:
        if secret:
            text = text.replace(secret, REDACTED)
    return text


def resolve_creator(name: str, settings: Settings) -> str:
    """Locate a package creator script.

    Bare names are looked up in settings.data_dir first, then on PATH.
    Anything containing a path separator is used as given.
    """
    if '/' in name:
        return name
    candidate = settings.data_dir / name
    if candidate.exists():
        return str(candidate)
    return shutil.which(name) or str(candidate)


def run_tool(argv: Sequence, cwd: Optional[Path] = None,
             secrets: Iterable[str] = (),
             timeout: Optional[float] = None) -> subprocess.CompletedProcess:
    """Run a tool as an argument vector and insist on a clean exit.

    Args:
        argv: Program and arguments (never passed through a shell)
        cwd: Working directory for the tool
        secrets: Values to mask in logs and error details
        timeout: Seconds to wait, or None to wait until the tool exits

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        ToolError: spawn failure, timeout, termination by signal or non-zero exit
    """
    secrets = [s for s in secrets if s]
    args: List[str] = [str(a) for a in argv]
    shown = [redact(a, secrets) for a in args]
    program = Path(args[0]).name

    logger.debug("Spawning in %s: %s", cwd or '.', ' '.join(shown))
    try:
        result = subprocess.run(
            args,
            cwd=cwd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise ToolError(f"{program} did not finish within {timeout} seconds", shown) from e
    except OSError as e:
        raise ToolError(f"{program} cannot be spawned: {e}", shown) from e

    stdout = redact(result.stdout or '', secrets)
    stderr = redact(result.stderr or '', secrets)

    if result.returncode != 0:
        if result.returncode < 0:
            message = f"{program} terminated by signal {-result.returncode}"
        else:
            message = f"{program} failed with exit status {result.returncode}"
        logger.debug("%s: stdout: %s", program, stdout)
        logger.debug("%s: stderr: %s", program, stderr)
        raise ToolError(message, shown, result.returncode, stdout, stderr)

    return result
