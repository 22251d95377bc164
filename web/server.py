from __future__ import annotations

from typing import Optional

from flask import Flask, jsonify

from core.catalog_cache import CatalogCache, load_source_text
from core.config import AppConfig, load_config
from core.logs import LogFn, resolve_log

from web.gateway import create_gateway
from web.live_api import create_live_api

# Application Flask : API catalogue + deux tunnels (https via /proxy, http via /httpproxy).


def create_app(
    cfg: Optional[AppConfig] = None,
    cache: Optional[CatalogCache] = None,
    log: LogFn | None = None,
) -> Flask:
    cfg = cfg or load_config()
    log = resolve_log(log)

    if cache is None:
        source = cfg.catalog_source
        cache = CatalogCache.configure(
            lambda: load_source_text(source, timeout=cfg.proxy_read_timeout_s),
            ttl_s=cfg.cache_ttl_s,
            log=log,
        )

    app = Flask(__name__)
    app.json.sort_keys = False
    app.json.ensure_ascii = False
    app.config["LIVETV"] = cfg

    app.register_blueprint(create_live_api(lambda: cache, cfg, log=log))
    app.register_blueprint(create_gateway(cfg.secure_prefix, "https", timeout=cfg.proxy_timeout, log=log))
    app.register_blueprint(create_gateway(cfg.plain_prefix, "http", timeout=cfg.proxy_timeout, log=log))

    @app.route("/")
    def index():
        return jsonify({"status": "running", "catalog": cfg.catalog_source})

    return app


def run_server(cfg: Optional[AppConfig] = None, log: LogFn | None = None):
    cfg = cfg or load_config()
    log = resolve_log(log)
    app = create_app(cfg, log=log)
    log(f"API running on {cfg.host}:{cfg.port}")
    app.run(host=cfg.host, port=cfg.port, debug=False, threaded=True)
