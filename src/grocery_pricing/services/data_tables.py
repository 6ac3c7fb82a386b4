"""Loading of the JSON tables shipped under ``data/``."""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Tuple

from ..exceptions import RuleTableError

logger = logging.getLogger(__name__)

DATA_DIR = Path(__file__).parent.parent / "data"


def read_data_table(path: Path) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Read a JSON table and split its ``_meta`` block from the entries.

    Keys starting with an underscore are metadata and are not returned
    as entries.

    Raises:
        RuleTableError: if the file is missing or is not a JSON object.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise RuleTableError(f"Data table not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise RuleTableError(f"Could not read data table {path}: {e}") from e

    if not isinstance(data, dict):
        raise RuleTableError(f"Data table {path} must hold a JSON object")

    meta = data.get("_meta") or {}
    entries = {k: v for k, v in data.items() if not k.startswith("_")}
    logger.debug(f"Read {len(entries)} sections from {path.name} (version {meta.get('version', '?')})")
    return meta, entries
