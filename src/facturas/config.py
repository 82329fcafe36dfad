"""
Configuración de la aplicación:
- Lee config/settings.ini ([database] url, [logging] level).
- Las variables de entorno DATABASE_URL y FACTURAS_LOG_LEVEL tienen prioridad.
- configure_logging(): formato básico de logging (una sola vez).
"""

from __future__ import annotations

import configparser
import logging
import os
from pathlib import Path
from typing import Optional

CONFIG_PATH = Path("config/settings.ini")

DEFAULT_DATABASE_URL = "sqlite:///app_data/facturas.db"
DEFAULT_LOG_LEVEL = "INFO"

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_logging_configured = False


def read_config(path: Optional[Path] = None) -> configparser.ConfigParser:
    """Lee settings.ini; si no existe, devuelve los valores por defecto."""
    cfg = configparser.ConfigParser()
    p = Path(path) if path is not None else CONFIG_PATH
    if p.exists():
        cfg.read(p, encoding="utf-8")
    if not cfg.has_section("database"):
        cfg["database"] = {"url": DEFAULT_DATABASE_URL}
    if not cfg.has_section("logging"):
        cfg["logging"] = {"level": DEFAULT_LOG_LEVEL}
    return cfg


def database_url() -> str:
    """URL de la BD: env DATABASE_URL > settings.ini > SQLite local."""
    env_url = os.getenv("DATABASE_URL", "").strip()
    if env_url:
        return env_url
    cfg = read_config()
    return cfg.get("database", "url", fallback=DEFAULT_DATABASE_URL)


def log_level() -> str:
    env_level = os.getenv("FACTURAS_LOG_LEVEL", "").strip()
    if env_level:
        return env_level.upper()
    cfg = read_config()
    return cfg.get("logging", "level", fallback=DEFAULT_LOG_LEVEL).strip().upper()


def configure_logging(level: Optional[str] = None) -> None:
    """Configura el logging raíz con un formato simple (idempotente)."""
    global _logging_configured
    if _logging_configured:
        return
    logging.basicConfig(level=(level or log_level()), format=LOG_FORMAT)
    _logging_configured = True
