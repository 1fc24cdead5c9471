"""Scoped staging directories for one external tool invocation."""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from lscpkg.config import Settings
from lscpkg.errors import CleanupError, StagingError

logger = logging.getLogger(__name__)


@contextmanager
def staging_dir(prefix: str, settings: Optional[Settings] = None) -> Iterator[Path]:
    """Create a private, uniquely named directory and remove it on exit.

    The directory is created with mkdtemp (mode 0700) under
    settings.tmp_dir, or the system temp dir when that is unset.

    If removal fails after the body raised, the failure is logged and the
    body's exception propagates. If removal fails after the body succeeded,
    CleanupError is raised.

    Example:
        >>> with staging_dir('lsc_rpm_') as work:
        ...     (work / 'key.pub').write_text(public_key)
    """
    settings = settings or Settings()
    base = settings.tmp_dir
    try:
        if base is not None:
            base.mkdir(parents=True, exist_ok=True)
        path = Path(tempfile.mkdtemp(prefix=prefix, dir=base))
    except OSError as e:
        raise StagingError(f"Cannot create staging directory under {base or tempfile.gettempdir()}: {e}") from e

    logger.debug("Staging directory: %s", path)
    try:
        yield path
    except BaseException:
        _remove(path, strict=False)
        raise
    _remove(path, strict=True)


def _remove(path: Path, strict: bool) -> None:
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove staging directory %s: %s", path, e)
        if strict:
            raise CleanupError(f"Failed to remove staging directory {path}: {e}", path) from e
