"""
Configuration for the wrapper.

Settings come from environment variables (a .env file is loaded first), then
from the persisted JSON config file, then from built-in defaults. The config
file holds ``port``, ``server_jar_path`` and ``max_memory_buffer_size``.
All wrapper data is stored in ~/.mc-wrapper/ unless MC_WRAPPER_DATA_DIR says
otherwise.
"""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

DEFAULT_PORT = 6969
DEFAULT_JAR_PATH = "server.jar"
DEFAULT_MAX_MEMORY_MB = 1024


def _env_int(name: str):
    value = os.environ.get(name)
    return int(value) if value else None


def load_config_file(path: Path) -> dict:
    """Read the persisted config file. A missing file yields an empty dict."""
    if not path.exists():
        return {}
    try:
        with open(path) as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid config file {path}: expected a JSON object")
    return data


@dataclass
class Config:
    """Wrapper configuration."""

    # Paths
    data_dir: Path = Path(os.environ.get("MC_WRAPPER_DATA_DIR", Path.home() / ".mc-wrapper"))
    config_file: Path = None
    db_path: Path = None
    wrapper_log: Path = None

    # Logging
    log_max_bytes: int = int(os.environ.get("LOG_MAX_BYTES", str(10 * 1024 * 1024)))  # 10MB
    log_backup_count: int = int(os.environ.get("LOG_BACKUP_COUNT", "5"))

    # API server
    host: str = os.environ.get("MC_WRAPPER_HOST", "0.0.0.0")
    port: int = _env_int("MC_WRAPPER_PORT")

    # Minecraft server
    java_path: str = os.environ.get("JAVA_PATH", "java")
    server_jar_path: Path = os.environ.get("SERVER_JAR_PATH")
    max_memory_buffer_size: int = _env_int("MAX_MEMORY_BUFFER_SIZE")  # MB
    world_dir: Path = os.environ.get("WORLD_DIR")

    # Operator console on the wrapper's stdin
    console_enabled: bool = os.environ.get("CONSOLE_ENABLED", "true").lower() == "true"

    # Number of world archives to keep, 0 keeps all
    backup_keep: int = int(os.environ.get("BACKUP_KEEP", "0"))

    def __post_init__(self):
        """Fill unset values from the config file and derive paths."""
        self.data_dir = Path(self.data_dir)
        if self.config_file is None:
            self.config_file = Path(
                os.environ.get("MC_WRAPPER_CONFIG_FILE", self.data_dir / "config.json")
            )
        self.db_path = self.data_dir / "mcwrapper.db"
        self.wrapper_log = self.data_dir / "mcwrapper.log"

        self.data_dir.mkdir(parents=True, exist_ok=True)

        persisted = load_config_file(Path(self.config_file))
        if self.port is None:
            self.port = int(persisted.get("port", DEFAULT_PORT))
        if self.server_jar_path is None:
            self.server_jar_path = persisted.get("server_jar_path", DEFAULT_JAR_PATH)
        if self.max_memory_buffer_size is None:
            self.max_memory_buffer_size = int(
                persisted.get("max_memory_buffer_size", DEFAULT_MAX_MEMORY_MB)
            )

        self.server_jar_path = Path(self.server_jar_path).expanduser()
        if self.world_dir is None:
            self.world_dir = self.server_jar_path.parent / "world"
        self.world_dir = Path(self.world_dir).expanduser()

    def persisted_settings(self) -> dict:
        """The subset of settings stored in the config file."""
        return {
            "port": self.port,
            "server_jar_path": str(self.server_jar_path),
            "max_memory_buffer_size": self.max_memory_buffer_size,
        }

    def save(self):
        """Write the persisted settings back to the config file."""
        with open(self.config_file, "w") as f:
            json.dump(self.persisted_settings(), f, indent=2)


config = Config()
