#!/usr/bin/env python3
"""lscpkg CLI - Local security check credential packages."""

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click

from lscpkg.artifact import Artifact
from lscpkg.config import Settings
from lscpkg.errors import CleanupError, LscError, ToolError
from lscpkg.keys import create_lsc_keys, public_key_for
from lscpkg.nsis import create_exe, render_nsis_script
from lscpkg.packages import create_deb, create_rpm


def _fail(error: LscError) -> None:
    """Report an lscpkg error and exit 1."""
    click.secho(f"❌ Error: {error}", fg='red', err=True)
    if isinstance(error, ToolError) and error.stderr:
        click.echo(error.stderr.rstrip(), err=True)
    if isinstance(error, CleanupError):
        click.echo(f"   Remove {error.path} manually; no output was written.", err=True)
    sys.exit(1)


def _save(artifact: Artifact, output: Path) -> None:
    artifact.write(output)
    click.echo(f"✓ {artifact.kind.upper()} written to {output} ({artifact.size} bytes)")


def _write_private(artifact: Artifact, output: Path) -> None:
    """Write key material readable by the owner only, even over an existing file."""
    fd = os.open(output, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, 'wb') as f:
        os.fchmod(f.fileno(), 0o600)
        f.write(artifact.data)


def _read_public_key(pubkey_file: Path) -> str:
    public_key = pubkey_file.read_text().strip()
    if not public_key:
        click.secho(f"❌ Error: {pubkey_file} is empty", fg='red', err=True)
        sys.exit(1)
    return public_key + '\n'


@click.group()
@click.version_option(package_name='lscpkg')
@click.option('--config', 'config_file', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Settings file (default ~/.config/lscpkg/lscpkg.yml)')
@click.option('--verbose', '-v', is_flag=True, help='Log tool invocations')
@click.pass_context
def main(ctx, config_file: Optional[Path], verbose: bool):
    """Build credential packages for local security check accounts."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    try:
        ctx.obj = Settings.load(config_file)
    except (OSError, ValueError) as e:
        click.secho(f"❌ Invalid configuration: {e}", fg='red', err=True)
        sys.exit(1)


@main.command()
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              required=True, help='Where to write the private key')
@click.password_option(help='Passphrase protecting the key (more than 4 characters)')
@click.pass_obj
def keys(settings: Settings, output: Path, password: str) -> None:
    """Generate an SSH key pair for a scan account."""
    try:
        artifact = create_lsc_keys(password, settings)
        public_key = public_key_for(artifact.data, password, settings)
    except LscError as e:
        _fail(e)

    _write_private(artifact, output)
    click.echo(f"✓ Private key written to {output} ({artifact.size} bytes)")
    pub_path = Path(f"{output}.pub")
    pub_path.write_text(public_key + '\n')
    click.echo(f"✓ Public key written to {pub_path}")


@main.command()
@click.argument('username')
@click.argument('pubkey_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              required=True, help='Where to write the RPM')
@click.pass_obj
def rpm(settings: Settings, username: str, pubkey_file: Path, output: Path) -> None:
    """Build an RPM that creates USERNAME and authorizes PUBKEY_FILE."""
    public_key = _read_public_key(pubkey_file)
    try:
        artifact = create_rpm(username, public_key, settings)
    except LscError as e:
        _fail(e)
    _save(artifact, output)


@main.command()
@click.argument('username')
@click.argument('pubkey_file', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--maintainer', '-m', required=True, help='Maintainer e-mail address')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              required=True, help='Where to write the DEB')
@click.pass_obj
def deb(settings: Settings, username: str, pubkey_file: Path, maintainer: str,
        output: Path) -> None:
    """Build a DEB that creates USERNAME and authorizes PUBKEY_FILE."""
    public_key = _read_public_key(pubkey_file)
    try:
        artifact = create_deb(username, public_key, maintainer, settings)
    except LscError as e:
        _fail(e)
    _save(artifact, output)


@main.command()
@click.argument('username')
@click.option('--output', '-o', type=click.Path(dir_okay=False, path_type=Path),
              required=True, help='Where to write the installer')
@click.password_option(help='Password of the Windows account')
@click.pass_obj
def exe(settings: Settings, username: str, output: Path, password: str) -> None:
    """Build a Windows installer that creates USERNAME as an administrator."""
    try:
        artifact = create_exe(username, password, settings)
    except LscError as e:
        _fail(e)
    _save(artifact, output)


@main.command('nsis-script')
@click.argument('username')
@click.option('--package-name', '-p', default='lsc_user.exe', show_default=True,
              help='Installer file name written into the script')
@click.password_option(help='Password of the Windows account')
def nsis_script(username: str, package_name: str, password: str) -> None:
    """Print the NSIS script without compiling it."""
    click.echo(render_nsis_script(package_name, username, password), nl=False)


if __name__ == '__main__':
    main()
