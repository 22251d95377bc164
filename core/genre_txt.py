from __future__ import annotations

from typing import List

from .detect import detect_quality, detect_stream_format
from .models import UNCATEGORIZED, Category, Channel, channel_id_for, make_id, name_sort_key, strip_bom

# Format texte bilingue "Catégorie,#genre#" / "...→Chaîne,URL" (listes de chaînes chinoises).

GENRE_MARKER = ",#genre#"
CHANNEL_GLYPH = "→"


def parse_delimited_catalog(text: str) -> List[Category]:
    """
    Une ligne `<Nom>,#genre#` ouvre une catégorie (bucket "未分类" avant le premier marqueur).
    Une ligne chaîne doit contenir `→` ; après ce glyphe, la première virgule sépare le nom de l'URL.
    Même nom dans la même catégorie -> l'URL est ajoutée à la chaîne existante (sans doublon).
    Catégories dans l'ordre d'apparition, vides retirées, chaînes triées par nom.
    """
    lines = [l.strip() for l in strip_bom(text).splitlines() if l.strip()]
    buckets: dict[str, list[Channel]] = {}
    index: dict[str, dict[str, int]] = {}
    current = UNCATEGORIZED

    for line in lines:
        if line.endswith(GENRE_MARKER):
            current = line[: -len(GENRE_MARKER)].strip() or UNCATEGORIZED
            buckets.setdefault(current, [])
            index.setdefault(current, {})
            continue

        if line.startswith("#"):
            continue

        pos = line.find(CHANNEL_GLYPH)
        if pos == -1:
            continue
        after = line[pos + len(CHANNEL_GLYPH):]
        if "," not in after:
            continue
        name, url = after.split(",", 1)
        name, url = name.strip(), url.strip()
        if not name or not url:
            continue

        channels = buckets.setdefault(current, [])
        by_name = index.setdefault(current, {})
        if name in by_name:
            pos_ch = by_name[name]
            channels[pos_ch] = channels[pos_ch].with_url(url)
            continue

        by_name[name] = len(channels)
        channels.append(Channel(
            id=channel_id_for(current, name),
            name=name,
            urls=(url,),
            category=current,
            format=detect_stream_format(url),
            quality=detect_quality(name),
            language="zh-CN",
            country="CN",
        ))

    out: List[Category] = []
    for cat_name, channels in buckets.items():
        if not channels:
            continue
        out.append(Category(
            id=make_id(cat_name),
            name=cat_name,
            channels=tuple(sorted(channels, key=lambda c: name_sort_key(c.name))),
            sort_order=len(out),
        ))
    return out
