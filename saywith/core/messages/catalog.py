"""Template catalog loading."""

import json
from pathlib import Path

from .models import Template


def load_template_catalog(path: str | Path) -> list[Template]:
    """
    Load the read-only template catalog from a JSON file.

    The file holds a list of {"value": ..., "label": ...} objects. Entries keep
    file order.
    """
    with open(path, "r", encoding="utf-8") as f:
        entries = json.load(f)

    if not isinstance(entries, list):
        raise ValueError(f"Template catalog must be a JSON list: {path}")

    return [Template(value=str(entry["value"]), label=str(entry["label"])) for entry in entries]
