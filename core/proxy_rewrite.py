from __future__ import annotations

from urllib.parse import urlsplit

# Réécriture d'URL de flux vers le tunnel même-origine (contenu mixte / CORS).

SECURE_PREFIX = "/proxy"
PLAIN_PREFIX = "/httpproxy"


def _norm_protocol(protocol: str) -> str:
    return (protocol or "").strip().lower().rstrip(":")


def rewrite_stream_url(
    page_protocol: str,
    url: str,
    secure_prefix: str = SECURE_PREFIX,
    plain_prefix: str = PLAIN_PREFIX,
) -> str:
    """
    Page http + flux https -> {secure_prefix}/{host}{path}{?query}
    Page https + flux http -> {plain_prefix}/{host}{path}{?query}
    Sinon (ou URL illisible) -> URL inchangée.
    """
    page = _norm_protocol(page_protocol)
    raw = (url or "").strip()
    lower = raw.lower()

    if page == "http" and lower.startswith("https://"):
        prefix = secure_prefix
    elif page == "https" and lower.startswith("http://"):
        prefix = plain_prefix
    else:
        return url

    try:
        parts = urlsplit(raw)
        host = parts.netloc
    except ValueError:
        return url
    if not host:
        return url

    query = f"?{parts.query}" if parts.query else ""
    return f"{prefix.rstrip('/')}/{host}{parts.path}{query}"


class ProxyRewriter:
    """
    Lie le protocole de la page et les préfixes de tunnel pour le contrôleur de lecture.
    Avec `origin` (ex: "http://127.0.0.1:9005"), les chemins réécrits deviennent absolus,
    ce dont VLC/QMediaPlayer ont besoin hors navigateur.
    """

    def __init__(
        self,
        page_protocol: str,
        secure_prefix: str = SECURE_PREFIX,
        plain_prefix: str = PLAIN_PREFIX,
        origin: str = "",
    ):
        self.page_protocol = page_protocol
        self.secure_prefix = secure_prefix
        self.plain_prefix = plain_prefix
        self.origin = (origin or "").rstrip("/")

    @classmethod
    def for_origin(cls, origin: str, secure_prefix: str = SECURE_PREFIX, plain_prefix: str = PLAIN_PREFIX):
        scheme = urlsplit(origin).scheme or "http"
        return cls(scheme, secure_prefix, plain_prefix, origin=origin)

    def rewrite(self, url: str) -> str:
        out = rewrite_stream_url(self.page_protocol, url, self.secure_prefix, self.plain_prefix)
        if self.origin and out != url:
            return self.origin + out
        return out
