from __future__ import annotations

import requests
import urllib3
from flask import Blueprint, Response, request, stream_with_context

from core.logs import LogFn, resolve_log

# Passerelle de tunnel : {prefix}/{host}/{path}?{query} -> {scheme}://{host}/{path}?{query}, flux relayé tel quel.

CHUNK_SIZE = 64 * 1024
DEFAULT_TIMEOUT = (10, 30)  # connexion, lecture

FORWARD_REQUEST_HEADERS = ("range", "accept", "user-agent")
COPY_RESPONSE_HEADERS = (
    "content-type",
    "content-encoding",
    "content-length",
    "content-range",
    "accept-ranges",
    "cache-control",
    "last-modified",
    "etag",
)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Accept, User-Agent",
    "Access-Control-Expose-Headers": "Content-Range, Content-Length, Accept-Ranges",
}

PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Range, Accept, User-Agent",
    "Access-Control-Max-Age": "86400",
}


def build_upstream_url(scheme: str, rest: str, query: str = "") -> tuple[str, str] | None:
    """Retourne (url, origin) ou None si le segment hôte manque."""
    host, _, path = (rest or "").partition("/")
    if not host:
        return None
    origin = f"{scheme}://{host}"
    url = f"{origin}/{path}"
    if query:
        url += f"?{query}"
    return url, origin


def _text_response(body: str, status: int) -> Response:
    return Response(body, status=status, mimetype="text/plain", headers=CORS_HEADERS)


def create_gateway(prefix: str, scheme: str, timeout=DEFAULT_TIMEOUT, log: LogFn | None = None) -> Blueprint:
    """
    Blueprint Flask pour un type de tunnel. Le schéma amont est fixé par le préfixe :
    "/proxy" -> https, "/httpproxy" -> http (voir core.proxy_rewrite).
    """
    log = resolve_log(log)
    bp = Blueprint(f"gateway_{scheme}", __name__, url_prefix=prefix.rstrip("/"))

    # "/proxy" et "/proxy/" arrivent tous deux ici (pas de redirection 308).
    @bp.route("/", defaults={"rest": ""}, methods=["GET", "HEAD", "OPTIONS"], strict_slashes=False)
    @bp.route("/<path:rest>", methods=["GET", "HEAD", "OPTIONS"])
    def tunnel(rest: str):
        if request.method == "OPTIONS":
            return Response(status=200, headers=PREFLIGHT_HEADERS)

        query = request.query_string.decode("utf-8", errors="replace")
        target = build_upstream_url(scheme, rest, query)
        if target is None:
            return _text_response("Missing path", 400)
        url, origin = target

        fwd = {}
        for key in FORWARD_REQUEST_HEADERS:
            value = request.headers.get(key)
            if value:
                fwd[key] = value
        fwd["Origin"] = origin
        fwd["Referer"] = origin
        # Octets relayés sans décompression : l'amont ne doit pas compresser.
        fwd["Accept-Encoding"] = "identity"

        try:
            upstream = requests.request(
                request.method,
                url,
                headers=fwd,
                stream=True,
                timeout=timeout,
                allow_redirects=True,
            )
        except requests.exceptions.RequestException as e:
            log(f"Proxy: {url} KO ({type(e).__name__})", "WARNING")
            return _text_response("Proxy error: upstream unreachable", 500)

        if not upstream.ok:
            status, reason = upstream.status_code, upstream.reason or ""
            upstream.close()
            log(f"Proxy: {url} -> {status}", "WARNING")
            return _text_response(f"Proxy error: {status} {reason}".rstrip(), status)

        headers = dict(CORS_HEADERS)
        for key in COPY_RESPONSE_HEADERS:
            value = upstream.headers.get(key)
            if value:
                headers[key] = value

        if request.method == "HEAD":
            upstream.close()
            return Response(status=upstream.status_code, headers=headers)

        def generate():
            try:
                # Octets bruts : pas de décompression, Content-Length et Content-Encoding restent exacts.
                for chunk in upstream.raw.stream(CHUNK_SIZE, decode_content=False):
                    if chunk:
                        yield chunk
            except (requests.exceptions.RequestException, urllib3.exceptions.HTTPError, OSError) as e:
                log(f"Proxy: flux interrompu {url} ({type(e).__name__})", "WARNING")
            finally:
                upstream.close()

        return Response(stream_with_context(generate()), status=upstream.status_code, headers=headers)

    return bp
