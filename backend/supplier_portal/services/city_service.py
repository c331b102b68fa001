# Overview: Static city reference lookup; resolves Sienge city ids from city name and state.

"""
City Reference Lookup

The registration form only captures city name and state (UF). Sienge needs
its own numeric city id, which comes from a static export of the ERP's city
table (CITIES_DATASET_PATH). Records look like:

    {"id": 4205, "name": "Jaraguá do Sul", "state": {"code": "SC", "name": "Santa Catarina"}}

The file may also wrap the list as {"results": [...]}.
"""

from __future__ import annotations

import json
import unicodedata
from functools import lru_cache

from flask import current_app


def normalize(text: str | None) -> str:
    decomposed = unicodedata.normalize("NFD", text or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).strip().lower()


@lru_cache(maxsize=4)
def load_cities(path: str) -> tuple[dict, ...]:
    with open(path, encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("results", [])
    return tuple(item for item in data if isinstance(item, dict) and item.get("id") is not None)


def _state_matches(city: dict, uf: str) -> bool:
    state = city.get("state") or {}
    if isinstance(state, str):
        return normalize(state) == uf
    return uf in (normalize(state.get("code")), normalize(state.get("name")))


def find_city_id(cities, city_name: str | None, state: str | None) -> int | None:
    """
    Match by exact name first, then prefix, then substring, always within
    the same state. Returns None when nothing matches.
    """
    name = normalize(city_name)
    uf = normalize(state)
    if not name or not uf:
        return None

    in_state = [c for c in cities if _state_matches(c, uf)]
    for matches in (
        lambda n: n == name,
        lambda n: n.startswith(name),
        lambda n: name in n,
    ):
        for city in in_state:
            if matches(normalize(city.get("name"))):
                return int(city["id"])
    return None


def resolve_city_id(city_name: str | None, state: str | None) -> int | None:
    """Lookup against the configured dataset; None when unset or unreadable."""
    path = current_app.config.get("CITIES_DATASET_PATH")
    if not path:
        return None
    try:
        cities = load_cities(path)
    except (OSError, ValueError):
        current_app.logger.warning("City dataset unreadable at %s", path)
        return None
    return find_city_id(cities, city_name, state)


def with_resolved_city(address: dict) -> dict:
    """Copy of address with city_id filled in when it can be resolved."""
    if not address or address.get("city_id"):
        return address
    city_id = resolve_city_id(address.get("city"), address.get("state"))
    if city_id is None:
        return address
    return {**address, "city_id": city_id}
