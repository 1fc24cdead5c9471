import shutil
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from unittest.mock import patch

import pytest

from lscpkg.config import Settings
from lscpkg.errors import CleanupError, InvalidInputError, StagingError, ToolError
from lscpkg.packages import create_deb, create_rpm

PUBLIC_KEY = 'ssh-rsa AAAAB3NzaC1yc2E alice@example\n'

# Stand-in for the creator scripts. Arguments:
#   username, staged public key, staging dir, destination [, maintainer]
FAKE_CREATOR = """#!/bin/sh
[ -f "$2" ] || exit 2
[ "$(basename "$2")" = "$1.pub" ] || exit 3
[ "$(dirname "$2")" = "$3" ] || exit 4
[ "$(pwd -P)" = "$(cd "$3" && pwd -P)" ] || exit 5
{ printf '%s|%s|' "$1" "$5"; cat "$2"; } > "$4"
"""


def _write_tool(path: Path, body: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body)
    path.chmod(0o755)


@pytest.fixture
def settings(tmp_path):
    """Settings with both creator scripts installed in a private data dir."""
    data_dir = tmp_path / 'share'
    _write_tool(data_dir / 'gvm-lsc-rpm-creator.sh', FAKE_CREATOR)
    _write_tool(data_dir / 'gvm-lsc-deb-creator.sh', FAKE_CREATOR)
    return Settings(tmp_dir=tmp_path / 'staging', data_dir=data_dir)


def _leftovers(settings):
    return list(settings.tmp_dir.iterdir()) if settings.tmp_dir.exists() else []


def test_create_rpm(settings):
    """RPM bytes are exactly what the creator wrote."""
    artifact = create_rpm('alice', PUBLIC_KEY, settings)

    assert artifact.kind == 'rpm'
    assert artifact.data == b'alice||' + PUBLIC_KEY.encode()
    assert artifact.size == len(artifact.data)
    assert _leftovers(settings) == []


def test_create_deb_passes_maintainer(settings):
    artifact = create_deb('alice', PUBLIC_KEY, 'ops@example.com', settings)

    assert artifact.kind == 'deb'
    assert artifact.data == b'alice|ops@example.com|' + PUBLIC_KEY.encode()
    assert _leftovers(settings) == []


def test_creator_command_line(settings):
    """The creator runs in the build directory with positional arguments."""
    with patch('lscpkg.packages.run_tool') as mock_run:
        with pytest.raises(StagingError):
            # Mocked creator writes nothing, so reading the package fails.
            create_deb('bob', PUBLIC_KEY, 'ops@example.com', settings)

    argv = mock_run.call_args[0][0]
    build_dir = mock_run.call_args[1]['cwd']
    assert argv[0] == str(settings.data_dir / 'gvm-lsc-deb-creator.sh')
    assert argv[1] == 'bob'
    assert argv[2] == build_dir / 'bob.pub'
    assert argv[3] == build_dir
    assert argv[4].name == 'p.deb'
    assert argv[5] == 'ops@example.com'
    assert build_dir.name.startswith('lsc_deb_build_')
    assert _leftovers(settings) == []


def test_creator_failure_returns_nothing(tmp_path):
    """Non-zero exit raises ToolError and still removes staging directories."""
    data_dir = tmp_path / 'share'
    _write_tool(data_dir / 'gvm-lsc-rpm-creator.sh',
                '#!/bin/sh\ntouch "$4"\necho "rpmbuild failed" >&2\nexit 1\n')
    settings = Settings(tmp_dir=tmp_path / 'staging', data_dir=data_dir)

    with pytest.raises(ToolError) as exc_info:
        create_rpm('alice', PUBLIC_KEY, settings)

    assert exc_info.value.returncode == 1
    assert 'rpmbuild failed' in exc_info.value.stderr
    assert _leftovers(settings) == []


def test_creator_missing(tmp_path):
    settings = Settings(tmp_dir=tmp_path / 'staging', data_dir=tmp_path / 'empty')

    with pytest.raises(ToolError, match='cannot be spawned'):
        create_deb('alice', PUBLIC_KEY, 'ops@example.com', settings)

    assert _leftovers(settings) == []


def test_creator_writes_no_package(tmp_path):
    """A zero exit without output is a read failure, not an empty package."""
    data_dir = tmp_path / 'share'
    _write_tool(data_dir / 'gvm-lsc-rpm-creator.sh', '#!/bin/sh\nexit 0\n')
    settings = Settings(tmp_dir=tmp_path / 'staging', data_dir=data_dir)

    with pytest.raises(StagingError, match='Cannot read rpm'):
        create_rpm('alice', PUBLIC_KEY, settings)

    assert _leftovers(settings) == []


@pytest.mark.parametrize('username', ['', '../etc', 'a/b', '.', '..'])
def test_invalid_username_rejected_before_io(settings, username):
    with patch('lscpkg.packages.run_tool') as mock_run:
        with pytest.raises(InvalidInputError):
            create_rpm(username, PUBLIC_KEY, settings)

    mock_run.assert_not_called()
    assert _leftovers(settings) == []


def test_empty_public_key_rejected(settings):
    with pytest.raises(InvalidInputError, match='public key'):
        create_rpm('alice', '', settings)


def test_empty_maintainer_rejected(settings):
    with pytest.raises(InvalidInputError, match='maintainer'):
        create_deb('alice', PUBLIC_KEY, '', settings)


def test_cleanup_failure_carries_artifact(settings):
    """If the output directory survives, CleanupError still hands over the package."""
    real_rmtree = shutil.rmtree

    def flaky_rmtree(path, *args, **kwargs):
        name = Path(path).name
        if name.startswith('lsc_rpm_') and not name.startswith('lsc_rpm_build_'):
            raise PermissionError('denied')
        return real_rmtree(path, *args, **kwargs)

    with patch('lscpkg.staging.shutil.rmtree', side_effect=flaky_rmtree):
        with pytest.raises(CleanupError) as exc_info:
            create_rpm('alice', PUBLIC_KEY, settings)

    error = exc_info.value
    assert error.artifact is not None
    assert error.artifact.data == b'alice||' + PUBLIC_KEY.encode()
    assert [p.name for p in _leftovers(settings)] == [error.path.name]


def test_build_dir_cleanup_failure_carries_artifact(settings):
    """A surviving build directory still hands over the finished package."""
    real_rmtree = shutil.rmtree

    def flaky_rmtree(path, *args, **kwargs):
        if Path(path).name.startswith('lsc_deb_build_'):
            raise PermissionError('denied')
        return real_rmtree(path, *args, **kwargs)

    with patch('lscpkg.staging.shutil.rmtree', side_effect=flaky_rmtree):
        with pytest.raises(CleanupError) as exc_info:
            create_deb('alice', PUBLIC_KEY, 'ops@example.com', settings)

    error = exc_info.value
    assert error.path.name.startswith('lsc_deb_build_')
    assert error.artifact.data == b'alice|ops@example.com|' + PUBLIC_KEY.encode()
    assert [p.name for p in _leftovers(settings)] == [error.path.name]


def test_concurrent_builds_do_not_interfere(settings):
    """Parallel calls each get their own staging and their own package."""
    users = [f'user{i}' for i in range(8)]

    def build(user):
        return create_deb(user, f'ssh-rsa KEY{user}\n', f'{user}@example.com', settings)

    with ThreadPoolExecutor(max_workers=4) as pool:
        artifacts = list(pool.map(build, users))

    for user, artifact in zip(users, artifacts):
        assert artifact.data == f'{user}|{user}@example.com|ssh-rsa KEY{user}\n'.encode()
    assert _leftovers(settings) == []
