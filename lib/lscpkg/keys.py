"""SSH key generation for local security check accounts."""

import logging
from pathlib import Path
from typing import Optional

from lscpkg.artifact import Artifact, read_artifact
from lscpkg.config import Settings
from lscpkg.errors import CleanupError, InvalidInputError, StagingError
from lscpkg.staging import staging_dir
from lscpkg.tools import run_tool

logger = logging.getLogger(__name__)

MIN_PASSPHRASE_LENGTH = 5


def create_ssh_key(comment: str, passphrase: str, key_path: Path,
                   settings: Optional[Settings] = None) -> None:
    """Generate an SSH keypair protected by a passphrase.

    Args:
        comment: Key comment, must not be empty
        passphrase: Must be longer than 4 characters
        key_path: Path where private key will be saved (public key gets .pub suffix)
        settings: Tool locations; defaults apply when None

    Raises:
        InvalidInputError: bad comment or passphrase (nothing is spawned)
        StagingError: parent directory cannot be created
        ToolError: ssh-keygen failed
    """
    settings = settings or Settings()

    if not comment:
        raise InvalidInputError("comment must be set")
    if passphrase is None or len(passphrase) < MIN_PASSPHRASE_LENGTH:
        raise InvalidInputError(
            f"passphrase must be longer than {MIN_PASSPHRASE_LENGTH - 1} characters"
        )

    try:
        key_path.parent.mkdir(mode=0o755, parents=True, exist_ok=True)
    except OSError as e:
        raise StagingError(f"Failed to access {key_path.parent}: {e}") from e

    logger.debug("Generating %s key at %s", settings.key_type, key_path)
    run_tool([
        settings.ssh_keygen,
        '-q',
        '-t', settings.key_type,
        '-f', key_path,
        '-C', comment,
        '-N', passphrase,
    ], secrets=[passphrase], timeout=settings.tool_timeout)


def create_lsc_keys(password: str, settings: Optional[Settings] = None) -> Artifact:
    """Generate a private key for a local security check account.

    The key is produced in a private staging directory which is removed
    before returning.

    Returns:
        Artifact holding the private key file contents
    """
    settings = settings or Settings()
    artifact = None
    try:
        with staging_dir('lsc_key_', settings) as key_dir:
            key_path = key_dir / 'key'
            create_ssh_key(settings.key_comment, password, key_path, settings)
            artifact = read_artifact(key_path, 'key')
    except CleanupError as e:
        e.artifact = artifact
        raise
    return artifact


def public_key_for(private_key: bytes, passphrase: str,
                   settings: Optional[Settings] = None) -> str:
    """Derive the OpenSSH public key line from a private key.

    Returns:
        Public key content as string
    """
    settings = settings or Settings()
    with staging_dir('lsc_key_', settings) as key_dir:
        key_path = key_dir / 'key'
        try:
            key_path.touch(mode=0o600)
            key_path.write_bytes(private_key)
        except OSError as e:
            raise StagingError(f"Cannot write private key to {key_path}: {e}") from e
        result = run_tool(
            [settings.ssh_keygen, '-y', '-f', key_path, '-P', passphrase],
            secrets=[passphrase],
            timeout=settings.tool_timeout,
        )
    return result.stdout.strip()
