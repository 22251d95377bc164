from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List

from .models import Category, PlaylistItem, strip_bom

# Parsing/écriture minimalistes pour les playlists M3U (EXTINF + URL, ou lignes "Nom,URL").

ATTR_RE = re.compile(r'(\w[\w\-]*)="([^"]*)"')
EXTINF_PREFIX = "#EXTINF:"


def parse_extinf(extinf: str) -> dict:
    """Extrait nom + attributs connus (groupe, logo) depuis une ligne #EXTINF."""
    payload = extinf[len(EXTINF_PREFIX):] if extinf.startswith(EXTINF_PREFIX) else extinf
    attrs = dict(ATTR_RE.findall(payload))
    # Le titre est ce qui suit la DERNIÈRE virgule du payload.
    name = payload.rsplit(",", 1)[1].strip() if "," in payload else ""
    return {"name": name, "group": attrs.get("group-title", ""), "logo": attrs.get("tvg-logo", "")}


def parse_m3u(text: str) -> List[PlaylistItem]:
    """
    Convertit le texte M3U en PlaylistItem, dans l'ordre du fichier.
    Les lignes `#...` entre `#EXTINF` et l'URL (EXTVLCOPT, etc.) sont ignorées ;
    une ligne non reconnue est sautée sans faire échouer le document.
    """
    lines = [l.strip() for l in strip_bom(text).splitlines() if l.strip()]
    out: List[PlaylistItem] = []
    i = 0
    while i < len(lines):
        line = lines[i]
        if line.startswith(EXTINF_PREFIX):
            j = i + 1
            while j < len(lines) and lines[j].startswith("#") and not lines[j].startswith(EXTINF_PREFIX):
                j += 1

            if j < len(lines) and not lines[j].startswith("#"):
                meta = parse_extinf(line)
                out.append(PlaylistItem(
                    name=meta["name"],
                    url=lines[j],
                    category=meta["group"],
                    logo=meta["logo"] or None,
                ))
                j += 1
            i = j
            continue

        if not line.startswith("#") and ",http" in line:
            name, url = line.split(",", 1)
            name, url = name.strip(), url.strip()
            if name and url:
                out.append(PlaylistItem(name=name, url=url))
        i += 1
    return out


def to_m3u(categories: Iterable[Category]) -> str:
    """
    Sérialise le catalogue en M3U. Seule la première URL de chaque chaîne est écrite :
    la projection est volontairement avec perte (les URLs de repli disparaissent).
    """
    parts = ["#EXTM3U\n\n"]
    for cat in categories:
        for ch in cat.channels:
            logo = f' tvg-logo="{ch.logo}"' if ch.logo else ""
            parts.append(f'#EXTINF:-1 tvg-name="{ch.name}"{logo} group-title="{cat.name}",{ch.name}\n')
            parts.append(f"{ch.urls[0]}\n\n")
    return "".join(parts)


def write_m3u(categories: Iterable[Category], path: Path):
    """Écrit une playlist M3U minimale à partir d'une liste de Category."""
    with path.open("w", encoding="utf-8") as f:
        f.write(to_m3u(categories))
