"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for browsekit:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.browsekit/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- A single :class:`~browsekit.models.GlobalConfig`
  JSON file storing cache TTLs, the page size and the ranking constants.
* **Precedence resolution** -- :func:`resolve_config` layers environment
  variables over the config file over the model defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from browsekit.exceptions import ConfigError
from browsekit.models import GlobalConfig

_APP_NAME = "browsekit"
_CONFIG_FILENAME = "config.json"

ENV_PAGE_SIZE = "BROWSEKIT_PAGE_SIZE"
ENV_CACHE_TTL = "BROWSEKIT_CACHE_TTL"
ENV_DATA_DIR = "BROWSEKIT_DATA_DIR"


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

    On Linux/BSD: ``$XDG_CONFIG_HOME/browsekit/`` (default ``~/.config/browsekit/``).
    On macOS/Windows: ``~/.browsekit/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (durable store, crash logs), creating it if necessary.

    ``$BROWSEKIT_DATA_DIR`` wins when set.  Otherwise, on Linux/BSD:
    ``$XDG_DATA_HOME/browsekit/`` (default ``~/.local/share/browsekit/``);
    on macOS/Windows: ``~/.browsekit/data/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    override = os.environ.get(ENV_DATA_DIR, "")
    if override:
        path = Path(override).expanduser()
    elif _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On any failure the temp file is cleaned up and the error re-raised.
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
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
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


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~browsekit.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def _env_number(name: str, cast: type) -> Optional[float]:
    """Read a numeric environment variable, raising ConfigError on garbage."""
    raw = os.environ.get(name, "").strip()
    if not raw:
        return None
    try:
        value = cast(raw)
    except ValueError as exc:
        raise ConfigError(f"Environment variable {name} must be a number, got: {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"Environment variable {name} must be positive, got: {raw!r}")
    return value


def resolve_config() -> GlobalConfig:
    """Resolve config with full precedence chain.

    Precedence (high to low):
        1. Environment variables (``BROWSEKIT_PAGE_SIZE``,
           ``BROWSEKIT_CACHE_TTL``)
        2. User config (``~/.config/browsekit/config.json``)
        3. Defaults

    ``BROWSEKIT_DATA_DIR`` is honoured separately by :func:`get_data_dir`.

    Returns:
        The effective :class:`~browsekit.models.GlobalConfig`.

    Raises:
        ConfigError: If the config file or an environment override is invalid.
    """
    config = load_global_config()

    page_size = _env_number(ENV_PAGE_SIZE, int)
    if page_size is not None:
        config.pagination.page_size = int(page_size)

    default_ttl = _env_number(ENV_CACHE_TTL, float)
    if default_ttl is not None:
        config.cache.default_ttl_seconds = default_ttl

    return config
