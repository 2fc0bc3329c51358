"""Configuration store with XDG paths, atomic writes, and env overrides.

This module handles all persistent state for docksync:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.docksync/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Config file** -- a single :class:`~docksync.models.AppConfig` JSON
  file holding the GitHub token, registry names and proxy setting.
* **Precedence resolution** -- :func:`resolve_config` layers
  ``DOCKSYNC_*`` environment variables over the stored file.

The config file contains a token, so writes go through
:func:`_atomic_write`, which creates the temp file with ``0o600``
permissions before renaming it into place.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from docksync.exceptions import ConfigError
from docksync.models import AppConfig

_APP_NAME = "docksync"
_CONFIG_FILENAME = "config.json"

ENV_TOKEN = "DOCKSYNC_TOKEN"
ENV_PROXY = "DOCKSYNC_PROXY"
ENV_REGISTRY = "DOCKSYNC_REGISTRY"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/docksync/`` (default ``~/.config/docksync/``).
    On macOS/Windows: ``~/.docksync/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory used for crash logs, creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/docksync/`` (default ``~/.local/share/docksync/``).
    On macOS/Windows: ``~/.docksync/logs/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "logs"
    path.mkdir(parents=True, exist_ok=True)
    return path


def config_path() -> Path:
    """Path to the config file."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Permissions are
    restricted to the owner before any content is written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Load / save ---


def load_config() -> AppConfig:
    """Load the stored configuration.

    Returns:
        The deserialised :class:`~docksync.models.AppConfig`. If the file
        does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = config_path()
    if not path.is_file():
        return AppConfig()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return AppConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_config(config: AppConfig) -> None:
    """Persist the configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(config_path(), json.dumps(data, indent=2) + "\n")


def resolve_config() -> AppConfig:
    """Load the stored config and apply environment overrides.

    Precedence (high to low):
        1. ``DOCKSYNC_TOKEN``, ``DOCKSYNC_PROXY``, ``DOCKSYNC_REGISTRY``
        2. ``~/.config/docksync/config.json``
        3. Defaults

    The returned object is meant for reading; saving it would persist the
    environment values. Commands that modify settings use
    :func:`load_config` instead.
    """
    config = load_config()

    env_token = os.environ.get(ENV_TOKEN)
    if env_token:
        config.github_token = env_token
    env_proxy = os.environ.get(ENV_PROXY)
    if env_proxy:
        config.proxy = env_proxy
    env_registry = os.environ.get(ENV_REGISTRY)
    if env_registry:
        config.default_registry = env_registry

    return config
