from __future__ import annotations

from facturas import config


def test_settings_ini_is_used(tmp_path, monkeypatch):
    ini = tmp_path / "settings.ini"
    ini.write_text("[database]\nurl = sqlite:///otra.db\n\n[logging]\nlevel = debug\n", encoding="utf-8")
    monkeypatch.setattr(config, "CONFIG_PATH", ini)
    monkeypatch.delenv("FACTURAS_LOG_LEVEL", raising=False)

    assert config.database_url() == "sqlite:///otra.db"
    assert config.log_level() == "DEBUG"


def test_environment_has_priority(tmp_path, monkeypatch):
    ini = tmp_path / "settings.ini"
    ini.write_text("[database]\nurl = sqlite:///otra.db\n", encoding="utf-8")
    monkeypatch.setattr(config, "CONFIG_PATH", ini)
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@localhost/facturas")
    monkeypatch.setenv("FACTURAS_LOG_LEVEL", "warning")

    assert config.database_url() == "postgresql://u:p@localhost/facturas"
    assert config.log_level() == "WARNING"


def test_defaults_without_file(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "CONFIG_PATH", tmp_path / "no_existe.ini")
    monkeypatch.delenv("FACTURAS_LOG_LEVEL", raising=False)

    assert config.database_url() == config.DEFAULT_DATABASE_URL
    assert config.log_level() == "INFO"
