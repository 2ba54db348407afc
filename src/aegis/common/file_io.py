"""File I/O helpers."""
import json
from pathlib import Path
from typing import Any


def read_json(path: Path) -> Any:
    """Read a JSON file.

    Raises:
        FileNotFoundError: file does not exist
        json.JSONDecodeError: malformed JSON
    """
    return json.loads(path.read_text(encoding="utf-8"))


def canonical_json(obj: Any) -> str:
    """Deterministic compact JSON (sorted keys) used for hashing."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
