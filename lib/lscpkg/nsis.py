"""Windows installers that create a local administrator account."""

import logging
from pathlib import Path
from typing import Optional

from lscpkg.artifact import Artifact, read_artifact
from lscpkg.config import Settings
from lscpkg.errors import CleanupError, InvalidInputError, StagingError
from lscpkg.staging import staging_dir
from lscpkg.tools import run_tool

logger = logging.getLogger(__name__)

# cmd metacharacters, the NSIS variable marker and the NSIS string delimiter.
UNSAFE_CHARACTERS = frozenset('&|<>^%$"')

# makensis reads this verbatim; the $\" and %temp% escapes must stay as they are.
NSIS_TEMPLATE = r'''#Installer filename
outfile {package_name}

# Set desktop as install directory
installDir $DESKTOP

# Put some text
BrandingText "GVM Local Security Checks User"

#
# Default (installer) section.
#
section

# Define output path
setOutPath $INSTDIR

# Uninstaller name
writeUninstaller $INSTDIR\openvas_lsc_remove_{user_name}.exe

# Create Thomas Rotters GetAdminGroupName.vb script
ExecWait "cmd /C Echo Set objWMIService = GetObject($\"winmgmts:\\.\root\cimv2$\") > $\"%temp%\GetAdminGroupName.vbs$\" "
ExecWait "cmd /C Echo Set colAccounts = objWMIService.ExecQuery ($\"Select * From Win32_Group Where SID = 'S-1-5-32-544'$\")  >> $\"%temp%\GetAdminGroupName.vbs$\""
ExecWait "cmd /C Echo For Each objAccount in colAccounts >> $\"%temp%\GetAdminGroupName.vbs$\""
ExecWait "cmd /C Echo Wscript.Echo objAccount.Name >> $\"%temp%\GetAdminGroupName.vbs$\""
ExecWait "cmd /C Echo Next >> $\"%temp%\GetAdminGroupName.vbs$\""
ExecWait "cmd /C cscript //nologo $\"%temp%\GetAdminGroupName.vbs$\" > $\"%temp%\AdminGroupName.txt$\""

# Create batch script that installs the user
ExecWait "cmd /C Echo Set /P AdminGroupName= ^<$\"%temp%\AdminGroupName.txt$\" > $\"%temp%\AddUser.bat$\""{trailing_space}
ExecWait "cmd /C Echo net user {user_name} {password} /add /active:yes >> $\"%temp%\AddUser.bat$\""
ExecWait "cmd /C Echo net localgroup %AdminGroupName% %COMPUTERNAME%\{user_name} /add >> $\"%temp%\AddUser.bat$\""

# Execute AddUser script
ExecWait "cmd /C $\"%temp%\AddUser.bat$\""

# Remove temporary files for localized admin group names
ExecWait "del $\"%temp%\AdminGroupName.txt$\""
ExecWait "del $\"%temp%\GetAdminGroupName.vbs$\""

ExecWait "del $\"%temp%\AddUser.bat$\""

# Display message that everything seems to be fine
messageBox MB_OK "A user has been added. An uninstaller is placed on your Desktop."

# Default (install) section end
sectionEnd

#
# Uninstaller section.
#
section "Uninstall"

# Run cmd to remove user
ExecWait "net user {user_name} /delete"

# Unistaller should remove itself (from desktop/installdir)

# Display message that everything seems to be fine
messageBox MB_OK "A user has been removed. You can now safely remove the uninstaller from your Desktop."

# Uninstaller section end
sectionEnd

'''


def render_nsis_script(package_name: str, user_name: str, password: str) -> str:
    """Return the NSIS installer script for a user account.

    The installer looks up the localized name of the Administrators group
    (SID S-1-5-32-544) with a generated VBScript, creates the user with the
    given password, adds it to that group and writes an uninstaller that
    deletes the user again.

    Example:
        >>> script = render_nsis_script('out.exe', 'alice', 'Secr3t!')
        >>> script.splitlines()[1]
        'outfile out.exe'
    """
    return NSIS_TEMPLATE.format(
        package_name=package_name,
        user_name=user_name,
        password=password,
        # Kept out of the template so editors cannot strip it.
        trailing_space=' ',
    )


def write_nsis_script(script_path: Path, package_name: str, user_name: str,
                      password: str) -> None:
    """Write the installer script to script_path."""
    script = render_nsis_script(package_name, user_name, password)
    try:
        with open(script_path, 'w', encoding='utf-8', newline='\n') as f:
            f.write(script)
    except OSError as e:
        raise StagingError(f"Failed to create NSIS script {script_path}: {e}") from e


def _check_field(name: str, value: str) -> None:
    """Reject values that cmd or NSIS would interpret.

    Both fields are pasted unquoted into `cmd /C Echo net user ...` lines
    inside NSIS strings.
    """
    if not value:
        raise InvalidInputError(f"{name} must be set")
    if any(c.isspace() for c in value):
        raise InvalidInputError(f"{name} must not contain whitespace")
    bad = sorted(set(value) & UNSAFE_CHARACTERS)
    if bad:
        raise InvalidInputError(f"{name} must not contain {' '.join(bad)}")


def create_exe(user_name: str, password: str,
               settings: Optional[Settings] = None) -> Artifact:
    """Compile a Windows installer that creates `user_name` with `password`.

    makensis runs in the staging directory holding the script.

    Raises:
        InvalidInputError, StagingError, ToolError, CleanupError
    """
    settings = settings or Settings()
    _check_field('user name', user_name)
    _check_field('password', password)

    artifact = None
    try:
        with staging_dir('lsc_exe_', settings) as exe_dir:
            script_path = exe_dir / 'p.nsis'
            exe_path = exe_dir / 'p.exe'
            write_nsis_script(script_path, str(exe_path), user_name, password)

            logger.debug("Executing makensis")
            run_tool(
                [settings.makensis, script_path],
                cwd=exe_dir,
                secrets=[password],
                timeout=settings.tool_timeout,
            )
            artifact = read_artifact(exe_path, 'exe')
    except CleanupError as e:
        e.artifact = artifact
        raise
    return artifact
