from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path

# Configuration applicative : valeurs par défaut, surchargées par data/config.json puis LIVETV_*.

DEFAULT_CONFIG_PATH = Path("data/config.json")
ENV_PREFIX = "LIVETV_"


@dataclass
class AppConfig:
    catalog_source: str = "live.json"
    cache_ttl_s: int = 300
    validate_timeout_s: float = 5.0
    proxy_connect_timeout_s: float = 10.0
    proxy_read_timeout_s: float = 30.0
    secure_prefix: str = "/proxy"
    plain_prefix: str = "/httpproxy"
    host: str = "0.0.0.0"
    port: int = 9005
    vlc_args: list[str] = field(default_factory=lambda: ["--quiet"])

    @property
    def proxy_timeout(self) -> tuple[float, float]:
        return (self.proxy_connect_timeout_s, self.proxy_read_timeout_s)

    def to_dict(self) -> dict:
        return asdict(self)


def _env_int(name: str, default: int) -> int:
    v = (os.environ.get(name) or "").strip()
    if not v:
        return default
    try:
        return int(v)
    except Exception:
        return default


def _env_float(name: str, default: float) -> float:
    v = (os.environ.get(name) or "").strip()
    if not v:
        return default
    try:
        return float(v)
    except Exception:
        return default


def _load_file(path: Path) -> dict:
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except Exception:
        return {}
    return {}


def _coerce(current, value):
    # Le type de la valeur par défaut fait foi ; une valeur invalide garde le défaut.
    try:
        if isinstance(current, bool):
            return bool(value)
        if isinstance(current, int):
            return int(value)
        if isinstance(current, float):
            return float(value)
        if isinstance(current, list):
            return [str(v) for v in value] if isinstance(value, list) else current
        return str(value)
    except Exception:
        return current


def load_config(path: str | Path | None = None) -> AppConfig:
    """
    Construit la configuration : défauts -> fichier JSON -> variables d'environnement.
    Un fichier absent ou illisible n'est pas une erreur (on garde les défauts).
    """
    cfg = AppConfig()
    cfg_path = Path(path) if path else Path(os.environ.get(ENV_PREFIX + "CONFIG") or DEFAULT_CONFIG_PATH)

    known = {f.name for f in fields(AppConfig)}
    for key, value in _load_file(cfg_path).items():
        if key in known:
            setattr(cfg, key, _coerce(getattr(cfg, key), value))

    for name in ("catalog_source", "secure_prefix", "plain_prefix", "host"):
        v = (os.environ.get(ENV_PREFIX + name.upper()) or "").strip()
        if v:
            setattr(cfg, name, v)
    cfg.cache_ttl_s = _env_int(ENV_PREFIX + "CACHE_TTL_S", cfg.cache_ttl_s)
    cfg.port = _env_int(ENV_PREFIX + "PORT", cfg.port)
    cfg.validate_timeout_s = _env_float(ENV_PREFIX + "VALIDATE_TIMEOUT_S", cfg.validate_timeout_s)
    cfg.proxy_connect_timeout_s = _env_float(ENV_PREFIX + "PROXY_CONNECT_TIMEOUT_S", cfg.proxy_connect_timeout_s)
    cfg.proxy_read_timeout_s = _env_float(ENV_PREFIX + "PROXY_READ_TIMEOUT_S", cfg.proxy_read_timeout_s)
    return cfg
