"""Configuration loading.

- Packaged defaults live in ``default_config.yaml`` next to this module.
- A project file (or a directory containing ``config.yaml``) overrides them key
  by key.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

__all__ = [
    "load_config",
    "split_parameters",
]

_DEFAULT_CFG_PATH = Path(__file__).parent / "default_config.yaml"


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as fh:
            return yaml.safe_load(fh) or {}
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Failed to parse YAML config: {path}\n{exc}") from exc


def _merge_dict(dst: Dict[str, Any], src: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge (src overwrites dst)."""
    for k, v in src.items():
        if isinstance(v, dict) and isinstance(dst.get(k), dict):
            dst[k] = _merge_dict(dst[k], v)
        else:
            dst[k] = v
    return dst


def load_config(path: Optional[Path | str] = None) -> Dict[str, Any]:
    """Return merged config dict (default <- project).

    Parameters
    ----------
    path : Path | str | None
        Project YAML file, or a directory holding ``config.yaml``. Missing
        files fall back to the defaults.
    """
    cfg = _read_yaml(_DEFAULT_CFG_PATH)
    if path is None:
        return cfg

    project_yaml = Path(path).expanduser()
    if project_yaml.is_dir():
        project_yaml = project_yaml / "config.yaml"
    if project_yaml.exists():
        cfg = _merge_dict(cfg, _read_yaml(project_yaml))
        cfg.setdefault("_paths", {})["config_file"] = str(project_yaml)
    return cfg


def split_parameters(cfg: Dict[str, Any]) -> tuple[list[int], list[int]]:
    """Return (overlap, target_size) as integer lists."""
    splitting = cfg.get("splitting", {})
    overlap = [int(v) for v in splitting.get("overlap", [])]
    target_size = [int(v) for v in splitting.get("target_size", [])]
    if len(overlap) != len(target_size):
        raise ValueError(
            f"splitting.overlap ({len(overlap)}) and splitting.target_size "
            f"({len(target_size)}) differ in length"
        )
    return overlap, target_size
