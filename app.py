from __future__ import annotations

import argparse
import sys
from dataclasses import replace
from pathlib import Path

from core.catalog_cache import CatalogCache, load_source_text
from core.config import AppConfig, load_config
from core.detect import detect_quality, detect_stream_format
from core.json_playlist import dump_catalog_document, to_json
from core.logs import default_log, setup_logging
from core.m3u import to_m3u
from core.models import Channel, channel_id_for, unique_urls
from core.playlist import PLAYLIST_FORMATS, parse_any
from core import query

# Point d'entrée : `serve` (API + tunnels), `play` (lecteur Qt avec bascule de sources), `convert` (playlists).

MAX_AUTO_RETRIES_PER_SOURCE = 2
RETRY_DELAY_MS = 1500


def _resolve_channel(targets: list[str], cfg: AppConfig) -> Channel:
    """Une ou plusieurs URLs -> chaîne ad hoc ; sinon un id de chaîne du catalogue."""
    if all("://" in t for t in targets):
        urls = unique_urls(targets)
        name = "Lecture directe"
        return Channel(
            id=channel_id_for("direct", name),
            name=name,
            urls=urls,
            category="direct",
            format=detect_stream_format(urls[0]),
            quality=detect_quality(name),
        )

    cache = CatalogCache.configure(lambda: load_source_text(cfg.catalog_source), ttl_s=cfg.cache_ttl_s)
    ch = query.find_channel(cache.get(), targets[0])
    if ch is None:
        raise SystemExit(f"Chaîne introuvable: {targets[0]}")
    return ch


def _order_by_liveness(channel: Channel, cfg: AppConfig) -> Channel:
    """Sonde toutes les sources (bornée par validate_timeout_s) ; les vivantes passent en tête."""
    from workers.probe_worker import ProbeWorker

    worker = ProbeWorker(channel.urls, timeout_s=cfg.validate_timeout_s)
    worker.progress.connect(lambda idx, status: default_log(f"Source {idx + 1}: {status}"))
    worker.run()
    default_log(f"Sondage: {len(worker.alive_indices())}/{len(channel.urls)} source(s) OK")
    return replace(channel, urls=tuple(worker.ranked_urls()))


def cmd_serve(args, cfg: AppConfig) -> int:
    from web.server import run_server

    if args.port:
        cfg.port = args.port
    if args.catalog:
        cfg.catalog_source = args.catalog
    run_server(cfg)
    return 0


def cmd_convert(args, cfg: AppConfig) -> int:
    text = Path(args.input).read_text(encoding="utf-8-sig")
    categories = parse_any(text, args.source_format)
    if args.to == "m3u":
        out = to_m3u(categories)
    elif args.to == "json":
        out = to_json(categories)
    else:
        out = dump_catalog_document(categories)

    if args.out:
        Path(args.out).write_text(out, encoding="utf-8")
        default_log(f"Conversion: {sum(len(c.channels) for c in categories)} chaînes -> {args.out}")
    else:
        sys.stdout.write(out)
    return 0


def cmd_play(args, cfg: AppConfig) -> int:
    from PySide6 import QtCore, QtMultimedia, QtMultimediaWidgets, QtWidgets

    from core.proxy_rewrite import ProxyRewriter
    from player.engine import PlaybackEngineAdapter, default_engine_factory
    from player.fallback import PlaybackState, SourceFallbackController

    channel = _resolve_channel(args.target, cfg)
    if args.probe and len(channel.urls) > 1:
        channel = _order_by_liveness(channel, cfg)

    app = QtWidgets.QApplication(sys.argv[:1])
    video = QtMultimediaWidgets.QVideoWidget()
    video.setAttribute(QtCore.Qt.WidgetAttribute.WA_NativeWindow, True)
    video.setWindowTitle(channel.name)
    video.resize(960, 540)

    media = QtMultimedia.QMediaPlayer()
    audio = QtMultimedia.QAudioOutput()
    media.setAudioOutput(audio)
    media.setVideoOutput(video)

    factory = None if args.native else default_engine_factory(cfg.vlc_args)
    adapter = PlaybackEngineAdapter(media, engine_factory=factory)
    rewriter = None
    if args.origin:
        rewriter = ProxyRewriter.for_origin(args.origin, cfg.secure_prefix, cfg.plain_prefix)
    controller = SourceFallbackController(adapter, rewriter)

    # Bascule automatique bornée : l'utilisateur n'a pas de bouton "réessayer" ici.
    budget = {"left": MAX_AUTO_RETRIES_PER_SOURCE * len(channel.urls)}

    def on_state(state):
        video.setWindowTitle(f"{channel.name} [{state.value}]")
        if state == PlaybackState.ERROR and budget["left"] > 0:
            budget["left"] -= 1
            QtCore.QTimer.singleShot(RETRY_DELAY_MS, controller.retry)

    controller.state_changed.connect(on_state)
    controller.error_changed.connect(lambda msg: msg and default_log(msg, "WARNING"))
    controller.quality_changed.connect(lambda label: default_log(f"Qualité: {label}"))

    app.aboutToQuit.connect(controller.close)
    video.show()
    controller.play(channel)
    return app.exec()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="livetv", description="Catalogue de chaînes live + lecture avec repli de sources")
    ap.add_argument("--config", default="", help="Fichier de configuration JSON (défaut: data/config.json)")
    ap.add_argument("--log-level", default="INFO")
    sub = ap.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("serve", help="API catalogue + tunnels /proxy et /httpproxy")
    sp.add_argument("--port", type=int, default=0)
    sp.add_argument("--catalog", default="", help="Chemin ou URL de la source du catalogue")
    sp.set_defaults(func=cmd_serve)

    pp = sub.add_parser("play", help="Lire une chaîne (id du catalogue) ou une liste d'URLs candidates")
    pp.add_argument("target", nargs="+")
    pp.add_argument("--origin", default="", help='Origine du serveur de tunnel, ex: "http://127.0.0.1:9005"')
    pp.add_argument("--native", action="store_true", help="Ne pas utiliser libVLC")
    pp.add_argument("--probe", action="store_true", help="Tester les sources avant lecture et commencer par les vivantes")
    pp.set_defaults(func=cmd_play)

    cp = sub.add_parser("convert", help="Convertir une playlist (m3u/txt/json/catalog)")
    cp.add_argument("input")
    cp.add_argument("--from", dest="source_format", default="auto", choices=("auto",) + PLAYLIST_FORMATS)
    cp.add_argument("--to", default="m3u", choices=("m3u", "json", "catalog"))
    cp.add_argument("--out", default="")
    cp.set_defaults(func=cmd_convert)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level)
    cfg = load_config(args.config or None)
    return args.func(args, cfg)


if __name__ == "__main__":
    import multiprocessing as mp

    mp.freeze_support()
    sys.exit(main())
