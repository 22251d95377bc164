from __future__ import annotations

import json
from typing import Iterable, List

from .detect import detect_quality, detect_stream_format
from .genre_txt import CHANNEL_GLYPH, GENRE_MARKER, parse_delimited_catalog
from .json_playlist import parse_catalog_document, parse_json
from .m3u import EXTINF_PREFIX, parse_m3u
from .models import BOM, Category, Channel, PlaylistItem, channel_id_for, make_id, strip_bom

# Point d'entrée commun : détection du format d'une playlist puis matérialisation en catégories.

FORMAT_AUTO = "auto"
FORMAT_M3U = "m3u"
FORMAT_TXT = "txt"
FORMAT_JSON = "json"
FORMAT_CATALOG = "catalog"
PLAYLIST_FORMATS = (FORMAT_M3U, FORMAT_TXT, FORMAT_JSON, FORMAT_CATALOG)

DEFAULT_GROUP = "Uncategorized"


def group_items(items: Iterable[PlaylistItem]) -> List[Category]:
    """
    Regroupe des PlaylistItem par catégorie (ordre de première apparition).
    Un nom répété dans une catégorie ajoute son URL comme source de repli.
    """
    buckets: dict[str, list[Channel]] = {}
    index: dict[str, dict[str, int]] = {}

    for item in items:
        name = (item.name or "").strip()
        url = (item.url or "").strip()
        if not name or not url:
            continue
        group = (item.category or "").strip() or DEFAULT_GROUP
        channels = buckets.setdefault(group, [])
        by_name = index.setdefault(group, {})

        if name in by_name:
            pos = by_name[name]
            channels[pos] = channels[pos].with_url(url)
            continue
        by_name[name] = len(channels)
        channels.append(Channel(
            id=channel_id_for(group, name),
            name=name,
            urls=(url,),
            category=group,
            format=detect_stream_format(url),
            quality=detect_quality(name),
            logo=item.logo or None,
        ))

    return [
        Category(id=make_id(group), name=group, channels=tuple(channels), sort_order=order)
        for order, (group, channels) in enumerate(buckets.items())
    ]


def detect_playlist_format(text: str, hint: str = FORMAT_AUTO) -> str:
    hint = (hint or FORMAT_AUTO).strip().lower()
    if hint == "m3u8":
        hint = FORMAT_M3U
    if hint in PLAYLIST_FORMATS:
        return hint

    stripped = (text or "").lstrip(BOM + " \t\r\n")
    if stripped.startswith("{") or stripped.startswith("["):
        try:
            data = json.loads(stripped)
        except ValueError:
            data = None
        if isinstance(data, dict) and "categories" in data:
            return FORMAT_CATALOG
        if isinstance(data, list):
            return FORMAT_JSON
    if stripped.startswith("#EXTM3U") or EXTINF_PREFIX in stripped:
        return FORMAT_M3U
    if GENRE_MARKER in stripped or CHANNEL_GLYPH in stripped:
        return FORMAT_TXT
    return FORMAT_M3U


def parse_any(text: str, hint: str = FORMAT_AUTO) -> List[Category]:
    """Parse n'importe lequel des formats supportés vers le modèle canonique."""
    text = strip_bom(text)
    fmt = detect_playlist_format(text, hint)
    if fmt == FORMAT_CATALOG:
        return parse_catalog_document(text)
    if fmt == FORMAT_TXT:
        return parse_delimited_catalog(text)
    if fmt == FORMAT_JSON:
        return group_items(parse_json(text))
    return group_items(parse_m3u(text))
