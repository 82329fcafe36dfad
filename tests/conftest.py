"""
Fixtures de prueba:
- Crea una BD SQLite temporal en un directorio tmp.
- Reescribe config/settings.ini para apuntar a esa BD.
- Inicializa/limpia el engine entre tests.
"""

from __future__ import annotations

import pytest

from facturas import config
from facturas.data import database as db


@pytest.fixture(scope="session")
def tmp_project_dir(tmp_path_factory):
    # Carpeta temporal estilo proyecto
    p = tmp_path_factory.mktemp("facturas_app_tests")
    (p / "config").mkdir(exist_ok=True)
    return p


@pytest.fixture(autouse=True)
def isolated_db(tmp_project_dir, monkeypatch):
    """
    BD aislada por test:
    - Escribe un settings.ini apuntando a facturas_test.db en tmp.
    - Monkeypatch a config.CONFIG_PATH (y sin DATABASE_URL del entorno).
    - Reinicia engine/sesión antes y después.
    """
    cfg_path = tmp_project_dir / "config" / "settings.ini"
    dbfile = tmp_project_dir / "facturas_test.db"
    cfg_path.write_text(
        f"[database]\nurl = sqlite:///{dbfile.as_posix()}\n",
        encoding="utf-8",
    )

    monkeypatch.setattr(config, "CONFIG_PATH", cfg_path, raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    # Asegurar estado limpio
    db.dispose_engine()
    db.init_db()

    yield

    # Limpieza
    db.dispose_engine()
    if dbfile.exists():
        dbfile.unlink()


@pytest.fixture()
def session():
    """Entrega la sesión SQLAlchemy (scoped_session proxied)."""
    return db.get_session()
