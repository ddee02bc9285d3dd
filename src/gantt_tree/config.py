"""Load optional project configuration from `.gantt/config.yaml`."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from .io_utils import _load_data_with_error

STATE_DIR_NAME = ".gantt"
CONFIG_FILE = "config.yaml"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
PORT_ENV_VAR = "APP_PORT"

VALID_BACKENDS = {"memory", "file"}


def load_config(project_dir: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional config file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    project_dir = project_dir.resolve()
    path = project_dir / STATE_DIR_NAME / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return {}, err
    return data, None


def _get_nested(config: Mapping[str, Any], *keys: str) -> Any:
    cur: Any = config
    for key in keys:
        if not isinstance(cur, Mapping):
            return None
        cur = cur.get(key)
    return cur


def _section(config: Mapping[str, Any], name: str) -> dict[str, Any]:
    raw = _get_nested(config, name)
    return dict(raw) if isinstance(raw, Mapping) else {}


def get_server_config(
    config: Mapping[str, Any],
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Extract the server block, applying defaults and the `APP_PORT` override.

    Args:
        config: Project configuration dictionary.
        environ: Environment mapping (defaults to `os.environ`).

    Returns:
        A mapping with `host`, `port` and `cors` keys.
    """
    environ = os.environ if environ is None else environ
    raw = _section(config, "server")
    port: Any = environ.get(PORT_ENV_VAR) or raw.get("port") or DEFAULT_PORT
    try:
        port = int(port)
    except (TypeError, ValueError):
        port = DEFAULT_PORT
    return {
        "host": str(raw.get("host") or DEFAULT_HOST),
        "port": port,
        "cors": bool(raw.get("cors", True)),
    }


def get_storage_config(config: Mapping[str, Any], project_dir: Path) -> dict[str, Any]:
    """Extract the storage block.

    Args:
        config: Project configuration dictionary.
        project_dir: Project root, used to resolve a relative `seed_dir`.

    Returns:
        A mapping with `backend` (`memory` or `file`) and `seed_dir` (Path or None).
    """
    raw = _section(config, "storage")
    backend = raw.get("backend")
    if backend not in VALID_BACKENDS:
        backend = "memory"
    seed_dir = raw.get("seed_dir")
    seed_path: Path | None = None
    if isinstance(seed_dir, str) and seed_dir:
        seed_path = Path(seed_dir)
        if not seed_path.is_absolute():
            seed_path = project_dir / seed_path
    return {"backend": backend, "seed_dir": seed_path}


def get_log_level(config: Mapping[str, Any]) -> str:
    raw = _get_nested(config, "logging", "level")
    if isinstance(raw, str) and raw:
        return raw.upper()
    return "INFO"
