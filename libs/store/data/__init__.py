"""Bundled YAML data: keyword table, answer templates and sample records."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

import yaml

DATA_DIR = Path(__file__).resolve().parent


def load_yaml(name: str, base_dir: Path | None = None) -> Dict[str, Any]:
    """Read ``<name>.yaml``; missing files and non-mapping documents yield ``{}``."""

    path = (base_dir or DATA_DIR) / f"{name}.yaml"
    if not path.exists():
        return {}
    with path.open("r", encoding="utf-8") as fh:
        data = yaml.safe_load(fh) or {}
    if not isinstance(data, dict):
        return {}
    return data


__all__ = ["DATA_DIR", "load_yaml"]
