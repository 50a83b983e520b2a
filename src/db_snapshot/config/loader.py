"""Load db.toml profiles into validated configuration models."""

import tomllib
from pathlib import Path

from pydantic import ValidationError

from db_snapshot.config.models import BackupSettings, ConnectionConfig, SnapshotConfig
from db_snapshot.errors import ConfigError

DEFAULT_CONFIG_PATH = Path("db.toml")


def load_db_config(config_path: Path | None = None) -> SnapshotConfig:
    """Load database configuration from TOML file.

    Args:
        config_path: Path to db.toml (default: ./db.toml)

    Returns:
        SnapshotConfig with all profiles and backup settings

    Raises:
        ConfigError: If the file doesn't exist, is not valid TOML, or a
            profile fails validation
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH

    if not config_path.exists():
        raise ConfigError(
            f"Database config not found: {config_path}\n"
            f"Create a db.toml with a [profiles.<name>] section per database."
        )

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    # Parse profiles
    profiles = {}
    for name, profile_data in data.get("profiles", {}).items():
        try:
            profiles[name] = ConnectionConfig(**profile_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid profile '{name}' in {config_path}:\n{e}") from e

    try:
        backup = BackupSettings(**data.get("backup", {}))
    except ValidationError as e:
        raise ConfigError(f"Invalid [backup] section in {config_path}:\n{e}") from e

    return SnapshotConfig(profiles=profiles, backup=backup)


def get_profile(config: SnapshotConfig, name: str) -> ConnectionConfig:
    """Look up a profile by name.

    Raises:
        ConfigError: If no profile with that name exists
    """
    try:
        return config.profiles[name]
    except KeyError:
        available = ", ".join(sorted(config.profiles)) or "(none)"
        raise ConfigError(
            f"Profile '{name}' not found. Available: {available}"
        ) from None
