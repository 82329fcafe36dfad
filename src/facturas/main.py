from __future__ import annotations

import argparse

import uvicorn

from facturas.config import configure_logging
from facturas.data.database import dispose_engine, init_db


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="API de facturas de proveedor")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true")
    args = parser.parse_args(argv)

    configure_logging()
    # Inicializa DB (crea tablas ORM si faltan)
    init_db()
    try:
        uvicorn.run("facturas.api.main:app", host=args.host, port=args.port, reload=args.reload)
    finally:
        dispose_engine()


if __name__ == "__main__":
    main()
