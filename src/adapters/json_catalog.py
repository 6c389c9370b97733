"""
Place catalog loaded from a JSON array file.

Each record: {"id", "label", "aliases": [...], "type", "room_number",
"villa_number", "tower", "floor", "parent", "active"}.  Only "label" is
required.  Loaded once at startup; a missing or malformed file is fatal.
"""

import json
import logging

from src.domain.places import CatalogError, PlaceCatalog

log = logging.getLogger(__name__)


def load_catalog(path: str) -> PlaceCatalog:
    try:
        with open(path, encoding="utf-8") as f:
            records = json.load(f)
    except FileNotFoundError as exc:
        raise CatalogError(f"place catalog not found: {path}") from exc
    except json.JSONDecodeError as exc:
        raise CatalogError(f"place catalog {path} is not valid JSON: {exc}") from exc

    catalog = PlaceCatalog.from_records(records)
    log.info("Loaded %d places from %s", len(catalog), path)
    return catalog


def catalog_loader(path: str):
    """Zero-arg loader for PlaceResolver's best-effort reload."""
    return lambda: load_catalog(path)
