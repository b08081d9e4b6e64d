from pathlib import Path

import app.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_tally_defaults_when_missing(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("VOTEBOX_TWO_THIRDS_MODE", raising=False)

    settings = loader.get_tally_settings()

    assert settings["two_thirds_mode"] == "exact"
    assert settings["default_abstain_counts"] is False


def test_tally_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "tally:",
                "  two_thirds_mode: \" Rounded \"",
                "  default_abstain_counts: \"yes\"",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("VOTEBOX_TWO_THIRDS_MODE", raising=False)

    settings = loader.get_tally_settings()

    assert settings["two_thirds_mode"] == "rounded"
    assert settings["default_abstain_counts"] is True


def test_unknown_two_thirds_mode_falls_back(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "tally:\n  two_thirds_mode: banker\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("VOTEBOX_TWO_THIRDS_MODE", raising=False)

    assert loader.get_tally_settings()["two_thirds_mode"] == "exact"


def test_two_thirds_mode_env_override(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "tally:\n  two_thirds_mode: exact\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.setenv("VOTEBOX_TWO_THIRDS_MODE", "rounded")

    assert loader.get_tally_settings()["two_thirds_mode"] == "rounded"


def test_proxy_settings(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "proxies:\n  max_per_holder: \"3\"\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("VOTEBOX_MAX_PROXIES_PER_HOLDER", raising=False)

    assert loader.get_proxy_settings()["max_per_holder"] == 3

    monkeypatch.setenv("VOTEBOX_MAX_PROXIES_PER_HOLDER", "-1")
    assert loader.get_proxy_settings()["max_per_holder"] == 2

    monkeypatch.setenv("VOTEBOX_MAX_PROXIES_PER_HOLDER", "5")
    assert loader.get_proxy_settings()["max_per_holder"] == 5


def test_export_settings_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "export:",
                "  csv_delimiter: \"||\"",
                "  decimal_places: 12",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    settings = loader.get_export_settings()

    assert settings["csv_delimiter"] == ";"
    assert settings["decimal_places"] == 6


def test_non_mapping_config_uses_defaults(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}
    assert loader.get_database_url("sqlite:///fallback.db") == "sqlite:///fallback.db"


def test_sqlite_settings_fall_back_per_key(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "sqlite:\n  journal_mode: DELETE\n  busy_timeout_ms: -4\n",
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    defaults = {
        "journal_mode": "WAL",
        "synchronous": "NORMAL",
        "busy_timeout_ms": 30000,
        "write_retries": 5,
        "retry_backoff_ms": 200,
    }

    settings = loader.get_sqlite_settings(defaults)

    assert settings["journal_mode"] == "DELETE"
    assert settings["synchronous"] == "NORMAL"
    assert settings["busy_timeout_ms"] == 30000
    assert settings["write_retries"] == 5
