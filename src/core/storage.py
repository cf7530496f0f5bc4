"""
JSON file store for synced sheet data.
"""

import json
from pathlib import Path
from typing import Any


def write_json(path: Path, payload: Any) -> None:
    """Write payload as indented JSON, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def read_json(path: Path, default: Any = None) -> Any:
    """
    Read a JSON file, returning default when it does not exist.

    Sheet exports are sometimes saved with a UTF-8 BOM, which is stripped.
    """
    if not path.exists():
        return default
    content = path.read_text(encoding="utf-8")
    return json.loads(content.lstrip("\ufeff"))
