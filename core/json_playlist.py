from __future__ import annotations

import json
from typing import Iterable, List, Optional

from .models import UNCATEGORIZED, Category, Channel, PlaylistItem, make_id, strip_bom

# Playlists JSON (tableau d'entrées) et document catalogue {"categories": [...]}.

# Alias acceptés par champ logique, dans l'ordre de priorité.
FIELD_ALIASES = {
    "name": ("name", "title"),
    "url": ("url", "stream"),
    "category": ("category", "group"),
    "logo": ("logo", "icon"),
}


def _pick(entry: dict, field: str) -> str:
    for key in FIELD_ALIASES[field]:
        value = entry.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def parse_json(text: str) -> List[PlaylistItem]:
    """JSON malformé ou racine non-tableau -> liste vide, jamais d'exception."""
    try:
        data = json.loads(strip_bom(text))
    except (ValueError, TypeError):
        return []
    if not isinstance(data, list):
        return []

    out: List[PlaylistItem] = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        out.append(PlaylistItem(
            name=_pick(entry, "name"),
            url=_pick(entry, "url"),
            category=_pick(entry, "category"),
            logo=_pick(entry, "logo") or None,
        ))
    return out


def to_json(categories: Iterable[Category]) -> str:
    """Une entrée par chaîne, première URL seulement (projection avec perte)."""
    items = []
    for cat in categories:
        for ch in cat.channels:
            item = {"name": ch.name, "url": ch.urls[0], "category": cat.name}
            if ch.logo:
                item["logo"] = ch.logo
            items.append(item)
    return json.dumps(items, indent=2, ensure_ascii=False)


def _category_from_dict(data: dict, order: int) -> Optional[Category]:
    if not isinstance(data, dict):
        return None
    name = str(data.get("name") or "").strip() or UNCATEGORIZED
    channels = []
    for raw in data.get("channels") or []:
        ch = Channel.from_dict(raw, category=name)
        if ch is not None:
            channels.append(ch)
    sort_order = data.get("sortOrder")
    return Category(
        id=str(data.get("id") or make_id(name)),
        name=name,
        channels=tuple(channels),
        sort_order=sort_order if isinstance(sort_order, int) else order,
        description=data.get("description") or None,
        icon=data.get("icon") or None,
    )


def parse_catalog_document(text: str) -> List[Category]:
    """
    Document source du catalogue : {"categories": [{id, name, channels: [...]}]}.
    Les entrées invalides sont ignorées ; un document illisible lève ValueError
    (c'est au cache de décider du repli).
    """
    data = json.loads(strip_bom(text))
    if not isinstance(data, dict) or not isinstance(data.get("categories"), list):
        raise ValueError("document catalogue sans tableau 'categories'")

    out: List[Category] = []
    for raw in data["categories"]:
        cat = _category_from_dict(raw, len(out))
        if cat is not None:
            out.append(cat)
    out.sort(key=lambda c: c.sort_order)
    return out


def dump_catalog_document(categories: Iterable[Category]) -> str:
    return json.dumps({"categories": [c.to_dict() for c in categories]}, indent=2, ensure_ascii=False)
