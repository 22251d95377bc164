from __future__ import annotations

from .models import FORMAT_DASH, FORMAT_FLV, FORMAT_HLS, FORMAT_RTMP, QUALITY_FHD, QUALITY_HD, QUALITY_SD

# Heuristiques purement textuelles (aucun appel réseau) : protocole d'après l'URL, qualité d'après le nom.

FHD_KEYWORDS = ("fhd", "1080p", "全高清")
HD_KEYWORDS = ("hd", "高清")

_ADAPTIVE_MARKERS = (".m3u8", "hls", ".mpd", "dash")


def detect_stream_format(url: str) -> str:
    """
    Ordre des tests: m3u8/hls -> HLS, mpd/dash -> DASH, .flv -> FLV, rtmp:// -> RTMP.
    Sans indice, on suppose HLS (le cas le plus courant en live).
    """
    u = (url or "").lower()
    if ".m3u8" in u or "hls" in u:
        return FORMAT_HLS
    if ".mpd" in u or "dash" in u:
        return FORMAT_DASH
    if ".flv" in u:
        return FORMAT_FLV
    if u.startswith("rtmp://"):
        return FORMAT_RTMP
    return FORMAT_HLS


def detect_quality(name: str) -> str:
    n = (name or "").lower()
    # FHD d'abord : "fhd" contient "hd".
    if any(k in n for k in FHD_KEYWORDS):
        return QUALITY_FHD
    if any(k in n for k in HD_KEYWORDS):
        return QUALITY_HD
    return QUALITY_SD


def is_adaptive_manifest(url: str) -> bool:
    """Vrai seulement si l'URL porte un marqueur explicite HLS/DASH (pas le HLS par défaut)."""
    u = (url or "").lower()
    return any(m in u for m in _ADAPTIVE_MARKERS)


def height_label(height) -> str:
    try:
        h = int(height or 0)
    except (TypeError, ValueError):
        return ""
    return f"{h}p" if h > 0 else ""
