from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Dict


DEFAULT_CONFIG_PATH = Path("config.toml")
CONFIG_SECTION = "queuecache"


def load_raw_config(path: str | Path | None = None) -> Dict[str, Any]:
    """
    Load the TOML config file (``config.toml`` in the working directory by default).

    A missing file yields an empty dict so every setting falls back to its
    environment variable or default. An explicitly requested path that does not
    exist is an error.
    """
    target = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    if not target.is_file():
        if path is not None:
            raise FileNotFoundError(f"Config file not found: {target}")
        return {}

    with target.open("rb") as handle:
        return tomllib.load(handle)


def section(config: Dict[str, Any] | None, name: str) -> Dict[str, Any]:
    """Return ``[queuecache.<name>]`` from a raw config, or an empty dict."""
    return (config or {}).get(CONFIG_SECTION, {}).get(name, {})


__all__ = ["load_raw_config", "section", "DEFAULT_CONFIG_PATH", "CONFIG_SECTION"]
