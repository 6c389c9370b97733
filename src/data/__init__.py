"""Load lexicon/configuration JSON files from this directory."""

import json
from pathlib import Path

_DIR = Path(__file__).parent


def load_data(name: str, path: str | None = None):
    """
    Load a data file by name (without extension).

    `path` overrides the bundled file, so a deployment can extend the lexicon
    without touching code.
    """
    source = Path(path) if path else _DIR / f"{name}.json"
    return json.loads(source.read_text(encoding="utf-8"))
