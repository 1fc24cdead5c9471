"""RPM and DEB packages that create a user and authorize its public key."""

import logging
import shutil
from typing import List, Optional

from lscpkg.artifact import Artifact, read_artifact
from lscpkg.config import Settings
from lscpkg.errors import CleanupError, InvalidInputError, StagingError
from lscpkg.staging import staging_dir
from lscpkg.tools import resolve_creator, run_tool

logger = logging.getLogger(__name__)


def _check_username(username: str) -> None:
    if not username:
        raise InvalidInputError("username must be set")
    if '/' in username or username in ('.', '..'):
        raise InvalidInputError(f"username {username!r} is not a valid file name")


def _build_package(kind: str, creator: str, username: str, public_key: str,
                   extra_args: List[str], settings: Settings) -> Artifact:
    """Stage the key, run a creator script and read back the package.

    The key is written to one staging directory, copied as <username>.pub
    into a second one that the creator script works in, and the package
    lands in a third.
    """
    _check_username(username)
    if not public_key:
        raise InvalidInputError("public key must be set")

    artifact = None
    try:
        with staging_dir('lsc_pubkey_', settings) as key_dir, \
                staging_dir(f'lsc_{kind}_', settings) as out_dir, \
                staging_dir(f'lsc_{kind}_build_', settings) as build_dir:
            key_path = key_dir / 'key.pub'
            try:
                key_path.write_text(public_key)
            except OSError as e:
                raise StagingError(f"Cannot write public key to {key_path}: {e}") from e

            staged_key = build_dir / f'{username}.pub'
            try:
                shutil.copyfile(key_path, staged_key)
            except OSError as e:
                raise StagingError(f"Failed to copy key file {key_path} to {staged_key}: {e}") from e

            package_path = out_dir / f'p.{kind}'
            logger.debug("Attempting %s build, output %s", kind.upper(), package_path)
            run_tool(
                [resolve_creator(creator, settings), username, staged_key,
                 build_dir, package_path, *extra_args],
                cwd=build_dir,
                timeout=settings.tool_timeout,
            )
            artifact = read_artifact(package_path, kind)
    except CleanupError as e:
        e.artifact = artifact
        raise
    return artifact


def create_rpm(username: str, public_key: str,
               settings: Optional[Settings] = None) -> Artifact:
    """Build an RPM that creates `username` and installs `public_key` for it.

    Raises:
        InvalidInputError, StagingError, ToolError, CleanupError
    """
    settings = settings or Settings()
    return _build_package('rpm', settings.rpm_creator, username, public_key,
                          [], settings)


def create_deb(username: str, public_key: str, maintainer: str,
               settings: Optional[Settings] = None) -> Artifact:
    """Build a DEB that creates `username` and installs `public_key` for it.

    Args:
        maintainer: Maintainer e-mail address written into the package
    """
    settings = settings or Settings()
    if not maintainer:
        raise InvalidInputError("maintainer must be set")
    return _build_package('deb', settings.deb_creator, username, public_key,
                          [maintainer], settings)
