from __future__ import annotations

import locale
import re
import time
from dataclasses import dataclass, field, replace
from typing import Iterator, Optional

# Structures de données partagées entre parseurs, cache, API et lecteur.

FORMAT_HLS = "HLS"
FORMAT_DASH = "DASH"
FORMAT_FLV = "FLV"
FORMAT_RTMP = "RTMP"
STREAM_FORMATS = (FORMAT_HLS, FORMAT_DASH, FORMAT_FLV, FORMAT_RTMP)

QUALITY_SD = "SD"
QUALITY_HD = "HD"
QUALITY_FHD = "FHD"
QUALITIES = (QUALITY_SD, QUALITY_HD, QUALITY_FHD)

UNCATEGORIZED = "未分类"

# Lettres/chiffres ASCII, idéogrammes CJK de base et tiret ; tout le reste devient "-".
_ID_RE = re.compile(r"[^a-zA-Z0-9\u4e00-\u9fa5-]")
_NAME_JUNK_RE = re.compile(r"[^\w\s\u4e00-\u9fa5-]")
_SPACES_RE = re.compile(r"\s+")


def make_id(text: str) -> str:
    return _ID_RE.sub("-", text or "")


def channel_id_for(category: str, name: str) -> str:
    return make_id(f"{category}-{name}")


def normalize_channel_name(name: str) -> str:
    """Espaces compactés, ponctuation retirée (lettres, chiffres, CJK et tirets conservés)."""
    name = _SPACES_RE.sub(" ", (name or "").strip())
    return _NAME_JUNK_RE.sub("", name).strip()


def generate_channel_id(name: str, category: str) -> str:
    """Identifiant lisible en minuscules, ex: ("CCTV 1 HD", "央视") -> "央视-cctv-1-hd"."""
    clean_name = normalize_channel_name(name)
    clean_category = re.sub(r"[^a-zA-Z0-9\u4e00-\u9fa5-]", "", category or "")
    return _SPACES_RE.sub("-", f"{clean_category}-{clean_name}").lower()


def name_sort_key(name: str) -> str:
    # Collation de la locale courante (identité sous la locale "C").
    try:
        return locale.strxfrm((name or "").casefold())
    except Exception:
        return (name or "").casefold()


BOM = "\ufeff"


def strip_bom(text: str) -> str:
    """Retire une marque d'ordre d'octets UTF-8 en tête (fichiers enregistrés sous Windows)."""
    text = text or ""
    return text[1:] if text.startswith(BOM) else text


def unique_urls(urls) -> tuple[str, ...]:
    """Supprime les vides et doublons en gardant l'ordre (= ordre de repli)."""
    out: list[str] = []
    for u in urls or ():
        u = (u or "").strip() if isinstance(u, str) else ""
        if u and u not in out:
            out.append(u)
    return tuple(out)


@dataclass(frozen=True)
class PlaylistItem:
    """Entrée brute issue d'un parseur M3U/JSON, avant regroupement en chaînes."""
    name: str
    url: str
    category: str = ""
    logo: Optional[str] = None


@dataclass(frozen=True)
class Channel:
    id: str
    name: str
    urls: tuple[str, ...]
    category: str
    format: str = FORMAT_HLS
    quality: str = QUALITY_SD
    is_active: bool = True
    language: Optional[str] = None
    country: Optional[str] = None
    logo: Optional[str] = None
    description: Optional[str] = None
    tags: tuple[str, ...] = ()

    def __post_init__(self):
        if not self.urls:
            raise ValueError(f"Channel {self.name!r} sans URL")

    @property
    def primary_url(self) -> str:
        return self.urls[0]

    def with_url(self, url: str) -> "Channel":
        """Nouvelle chaîne avec `url` ajoutée en fin de liste (sans doublon)."""
        if url in self.urls:
            return self
        return replace(self, urls=self.urls + (url,))

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "urls": list(self.urls),
            "category": self.category,
            "format": self.format,
            "quality": self.quality,
            "isActive": self.is_active,
        }
        for key, value in (
            ("language", self.language),
            ("country", self.country),
            ("logo", self.logo),
            ("description", self.description),
        ):
            if value:
                data[key] = value
        if self.tags:
            data["tags"] = list(self.tags)
        return data

    @classmethod
    def from_dict(cls, data: dict, category: str = "") -> Optional["Channel"]:
        """Construit une chaîne depuis le document catalogue ; None si aucune URL exploitable."""
        from .detect import detect_quality, detect_stream_format

        if not isinstance(data, dict):
            return None
        name = str(data.get("name") or "").strip()
        raw_urls = data.get("urls")
        if raw_urls is None and data.get("url"):
            raw_urls = [data.get("url")]
        urls = unique_urls(raw_urls if isinstance(raw_urls, list) else [])
        if not name or not urls:
            return None

        cat = str(data.get("category") or category or UNCATEGORIZED)
        fmt = data.get("format") if data.get("format") in STREAM_FORMATS else detect_stream_format(urls[0])
        quality = data.get("quality") if data.get("quality") in QUALITIES else detect_quality(name)
        tags = data.get("tags") if isinstance(data.get("tags"), list) else []
        return cls(
            id=str(data.get("id") or channel_id_for(cat, name)),
            name=name,
            urls=urls,
            category=cat,
            format=fmt,
            quality=quality,
            is_active=bool(data.get("isActive", True)),
            language=data.get("language") or None,
            country=data.get("country") or None,
            logo=data.get("logo") or None,
            description=data.get("description") or None,
            tags=tuple(str(t) for t in tags),
        )


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    channels: tuple[Channel, ...] = ()
    sort_order: int = 0
    description: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self, with_channels: bool = True) -> dict:
        data = {"id": self.id, "name": self.name, "sortOrder": self.sort_order}
        if self.description:
            data["description"] = self.description
        if self.icon:
            data["icon"] = self.icon
        if with_channels:
            data["channels"] = [c.to_dict() for c in self.channels]
        else:
            data["channelCount"] = len(self.channels)
        return data


@dataclass(frozen=True)
class CatalogSnapshot:
    """Catalogue publié par le cache ; remplacé en bloc au rechargement, jamais modifié."""
    categories: tuple[Category, ...] = ()
    loaded_at: float = field(default_factory=time.time)

    @classmethod
    def empty(cls) -> "CatalogSnapshot":
        return cls(categories=(), loaded_at=0.0)

    @property
    def channel_count(self) -> int:
        return sum(len(c.channels) for c in self.categories)

    def iter_channels(self) -> Iterator[Channel]:
        for cat in self.categories:
            yield from cat.channels
