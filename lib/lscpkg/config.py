"""Parse lscpkg.yml tool configuration."""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_DATA_DIR = Path('/usr/share/gvm')


@dataclass
class Settings:
    """Where staging happens and which external tools are run."""
    tmp_dir: Optional[Path] = None
    data_dir: Path = DEFAULT_DATA_DIR
    ssh_keygen: str = 'ssh-keygen'
    key_type: str = 'rsa'
    key_comment: str = 'Key generated by GVM'
    rpm_creator: str = 'gvm-lsc-rpm-creator.sh'
    deb_creator: str = 'gvm-lsc-deb-creator.sh'
    makensis: str = 'makensis'
    tool_timeout: Optional[float] = None

    def __post_init__(self):
        if self.tmp_dir is not None:
            self.tmp_dir = Path(self.tmp_dir).expanduser()
        self.data_dir = Path(self.data_dir).expanduser()
        if self.tool_timeout is not None:
            self.tool_timeout = float(self.tool_timeout)
            if self.tool_timeout <= 0:
                raise ValueError("tool_timeout must be a positive number of seconds")

    @staticmethod
    def default_path() -> Path:
        return Path.home() / '.config' / 'lscpkg' / 'lscpkg.yml'

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> 'Settings':
        """Load settings from YAML. Returns defaults if the file is not present."""
        config_file = config_file or cls.default_path()
        if not config_file.exists():
            return cls()

        with open(config_file, encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ValueError(f"{config_file} must contain a mapping")

        known = {f.name for f in fields(cls)}
        unknown = set(data.keys()) - known
        if unknown:
            raise ValueError(f"Unknown lscpkg.yml field(s): {', '.join(sorted(unknown))}")

        return cls(**data)
