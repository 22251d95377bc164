from __future__ import annotations

from typing import Callable

import requests
from flask import Blueprint, Response, jsonify, request

from core.catalog_cache import CatalogCache
from core.config import AppConfig
from core.json_playlist import to_json
from core.logs import LogFn, resolve_log
from core.m3u import to_m3u
from core.playlist import parse_any
from core import query
from workers.probe_worker import inspect_source, validate_channel_url

# API catalogue consommée par l'UI : catégories, chaînes paginées, recherche, fiche chaîne, rafraîchissement.


def _int_arg(name: str, default: int) -> int:
    try:
        return int(request.args.get(name) or default)
    except ValueError:
        return default


def create_live_api(
    cache_getter: Callable[[], CatalogCache],
    cfg: AppConfig,
    log: LogFn | None = None,
) -> Blueprint:
    log = resolve_log(log)
    bp = Blueprint("live_api", __name__, url_prefix="/api/live")

    @bp.errorhandler(Exception)
    def _on_error(e):
        log(f"API live: erreur inattendue ({type(e).__name__}: {e})", "ERROR")
        return jsonify({"error": "Failed to process request"}), 500

    @bp.route("", methods=["GET"])
    def live_get():
        snapshot = cache_getter().get()
        action = request.args.get("action")

        if action == "categories":
            return jsonify({"categories": query.list_categories(snapshot)})

        if action == "channels":
            return jsonify(query.list_channels(
                snapshot,
                category_id=request.args.get("category"),
                page=_int_arg("page", 1),
                limit=_int_arg("limit", 50),
                sort=request.args.get("sort") or query.SORT_NAME,
            ))

        if action == "search":
            return jsonify(query.search_channels(
                snapshot,
                request.args.get("q") or "",
                category=request.args.get("category"),
                limit=_int_arg("limit", 20),
            ))

        if action == "channel":
            channel_id = request.args.get("id")
            if not channel_id:
                return jsonify({"error": "Channel ID required"}), 400
            ch = query.find_channel(snapshot, channel_id)
            if ch is None:
                return jsonify({"error": "Channel not found"}), 404
            return jsonify({"channel": ch.to_dict()})

        return jsonify({
            "categories": [c.to_dict() for c in snapshot.categories],
            "stats": query.catalog_stats(snapshot),
        })

    @bp.route("", methods=["POST"])
    def live_post():
        action = request.args.get("action")

        if action == "validate":
            body = request.get_json(silent=True) or {}
            url = body.get("url") if isinstance(body, dict) else None
            if not url:
                return jsonify({"error": "URL required"}), 400
            return jsonify({"valid": validate_channel_url(url, cfg.validate_timeout_s)})

        if action == "refresh":
            snapshot = cache_getter().refresh()
            log("Catalogue: rafraîchissement forcé.")
            return jsonify({
                "success": True,
                "message": "Channels refreshed",
                "stats": {"categories": len(snapshot.categories), "channels": snapshot.channel_count},
            })

        return jsonify({"error": "Invalid action"}), 400

    @bp.route("/sources", methods=["GET"])
    def sources_validate():
        url = request.args.get("url")
        if not url:
            return jsonify({"error": "URL required"}), 400
        return jsonify(inspect_source(url, cfg.validate_timeout_s))

    @bp.route("/sources", methods=["POST"])
    def sources_preview():
        if request.args.get("action") != "preview":
            return jsonify({"error": "Invalid action"}), 400
        body = request.get_json(silent=True) or {}
        url = body.get("url") if isinstance(body, dict) else None
        if not url:
            return jsonify({"error": "URL required"}), 400

        try:
            r = requests.get(url, timeout=cfg.proxy_timeout, headers={"User-Agent": "Mozilla/5.0"})
            r.raise_for_status()
        except requests.exceptions.RequestException as e:
            return jsonify({"error": "Failed to fetch source", "details": str(e)}), 502

        r.encoding = r.encoding or "utf-8"
        try:
            categories = parse_any(r.text, body.get("format") or "auto")
        except ValueError as e:
            return jsonify({"error": "Unreadable playlist", "details": str(e)}), 422
        return jsonify({
            "channelCount": sum(len(c.channels) for c in categories),
            "categories": [c.name for c in categories],
        })

    @bp.route("/export.m3u", methods=["GET"])
    def export_m3u():
        snapshot = cache_getter().get()
        return Response(to_m3u(snapshot.categories), mimetype="audio/mpegurl", headers={
            "Content-Disposition": 'attachment; filename="live.m3u"'
        })

    @bp.route("/export.json", methods=["GET"])
    def export_json():
        snapshot = cache_getter().get()
        return Response(to_json(snapshot.categories), mimetype="application/json")

    return bp
