"""
JSON file cache for data that is expensive to re-fetch between runs.
"""

import json
from pathlib import Path
from typing import Any, Union

from .exceptions import CacheError
from .utils import get_logger, safe_json_dump

logger = get_logger(__name__)


def save_to_file(data: Any, path: Union[str, Path]) -> None:
    """
    Write data to a JSON file, creating parent directories as needed.

    Raises:
        CacheError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(safe_json_dump(data), encoding="utf-8")
    except OSError as e:
        raise CacheError(f"Failed to write cache file {path}: {e}", path=str(path)) from e
    logger.debug(f"Saved cache to {path}")


def load_from_file(path: Union[str, Path]) -> Any:
    """
    Read JSON data written by save_to_file.

    Raises:
        CacheError: If the file is missing, unreadable or not valid JSON
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise CacheError(f"Failed to open cache file {path}: {e}", path=str(path)) from e
    except json.JSONDecodeError as e:
        raise CacheError(f"Failed to parse cache file {path}: {e}", path=str(path)) from e
