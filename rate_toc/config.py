# ===============================================
# Configuration loading (packaged YAML defaults + user overrides)
# ===============================================
from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml


DEFAULTS_PATH = Path(__file__).resolve().parent / "defaults.yaml"

_REQUIRED_KEYS = {
    "target",
    "q",
    "R",
    "half_sample",
    "random_state",
    "grid_tolerance",
    "zero_threshold",
}


def _read_yaml(path: Path) -> dict:
    with open(path, "r", encoding="utf-8") as fh:
        content = yaml.safe_load(fh)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise TypeError(f"Config file must contain a mapping at top level: {path}")
    return content


def load_config(path: Optional[str | Path] = None) -> dict:
    """
    Load the packaged defaults, optionally overridden by a user YAML file.
    Parameters
    ----------
    path : str | Path, optional
        user YAML file; keys present there replace the packaged defaults.
    Returns
    -------
    dict
        merged configuration with every key of `defaults.yaml`.
    """
    try:
        config = _read_yaml(DEFAULTS_PATH)

        if path is not None:
            if not isinstance(path, (str, Path)):
                raise TypeError("`path` must be a path string or Path object.")
            if not str(path).strip():
                raise ValueError("`path` cannot be empty or whitespace-only.")
            user_path = Path(path)
            if not user_path.exists():
                raise FileNotFoundError(f"Config file not found: {path}")

            overrides = _read_yaml(user_path)
            unknown = set(overrides) - _REQUIRED_KEYS
            if unknown:
                raise KeyError(f"Unknown config keys: {sorted(unknown)}")
            config.update(overrides)

        missing = _REQUIRED_KEYS - set(config)
        assert not missing, f"Config is missing keys: {sorted(missing)}"

        return config

    except Exception as exc:
        raise RuntimeError(f"load_config failed: {exc}") from exc


def get_setting(config: Any, key: str) -> Any:
    """Read `key` from a dict-like config, or an attribute-like one (config.key)."""
    if config is None:
        raise ValueError("`config` must not be None.")

    if isinstance(config, dict):
        if key not in config:
            raise KeyError(f"config['{key}'] must exist.")
        return config[key]

    if hasattr(config, key):
        return getattr(config, key)

    raise KeyError(f"config must provide `{key}` (or dict equivalent).")
