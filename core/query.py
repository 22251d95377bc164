from __future__ import annotations

import math
from typing import Optional

from .models import QUALITY_FHD, QUALITY_HD, QUALITY_SD, CatalogSnapshot, Channel, name_sort_key

# Requêtes en lecture seule sur un snapshot : listes, pagination, tri, recherche, stats.

SORT_NAME = "name"
SORT_CATEGORY = "category"
SORT_QUALITY = "quality"

_QUALITY_RANK = {QUALITY_FHD: 3, QUALITY_HD: 2, QUALITY_SD: 1}


def list_categories(snapshot: CatalogSnapshot) -> list[dict]:
    return [cat.to_dict(with_channels=False) for cat in snapshot.categories]


def _sorted(channels: list[Channel], sort: str) -> list[Channel]:
    if sort == SORT_NAME:
        return sorted(channels, key=lambda c: name_sort_key(c.name))
    if sort == SORT_CATEGORY:
        return sorted(channels, key=lambda c: name_sort_key(c.category))
    if sort == SORT_QUALITY:
        return sorted(channels, key=lambda c: -_QUALITY_RANK.get(c.quality, 0))
    return channels


def list_channels(
    snapshot: CatalogSnapshot,
    category_id: Optional[str] = None,
    page: int = 1,
    limit: int = 50,
    sort: str = SORT_NAME,
) -> dict:
    """
    Chaînes d'une catégorie (ou de tout le catalogue), triées puis paginées.
    Une catégorie inconnue donne une liste vide, pas une erreur.
    """
    page = max(1, int(page))
    limit = max(1, int(limit))
    if category_id:
        channels = []
        for cat in snapshot.categories:
            if cat.id == category_id:
                channels = list(cat.channels)
                break
    else:
        channels = list(snapshot.iter_channels())

    channels = _sorted(channels, sort)
    start = (page - 1) * limit
    return {
        "channels": [c.to_dict() for c in channels[start:start + limit]],
        "pagination": {
            "page": page,
            "limit": limit,
            "total": len(channels),
            "pages": math.ceil(len(channels) / limit),
        },
    }


def _matches(ch: Channel, q: str) -> bool:
    if q in ch.name.lower() or q in ch.category.lower():
        return True
    if ch.description and q in ch.description.lower():
        return True
    return any(q in t.lower() for t in ch.tags)


def search_channels(snapshot: CatalogSnapshot, query: str, category: Optional[str] = None, limit: int = 20) -> dict:
    q = (query or "").strip().lower()
    if not q:
        return {"channels": [], "categories": [], "totalCount": 0}

    matched = [
        ch for ch in snapshot.iter_channels()
        if (not category or ch.category == category) and _matches(ch, q)
    ]
    cats: list[str] = []
    for ch in matched:
        if ch.category not in cats:
            cats.append(ch.category)
    return {
        "channels": [c.to_dict() for c in matched[: max(0, int(limit))]],
        "categories": cats,
        "totalCount": len(matched),
    }


def find_channel(snapshot: CatalogSnapshot, channel_id: str) -> Optional[Channel]:
    for ch in snapshot.iter_channels():
        if ch.id == channel_id:
            return ch
    return None


def catalog_stats(snapshot: CatalogSnapshot) -> dict:
    top = sorted(
        ({"category": c.name, "count": len(c.channels)} for c in snapshot.categories),
        key=lambda d: d["count"],
        reverse=True,
    )
    return {
        "totalChannels": snapshot.channel_count,
        "totalCategories": len(snapshot.categories),
        "topCategories": top[:5],
    }
