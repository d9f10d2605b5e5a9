"""
Tests for the configuration validation script.
"""
from __future__ import annotations

from scripts.validate_config import check_settings, main
from shared.config.sessions import load_session_settings


def test_bundled_config_passes(capsys):
    assert main({}) == 0
    assert "Configuration validation passed." in capsys.readouterr().out


def test_broken_roles_fail(tmp_path):
    path = tmp_path / "roles.json"
    path.write_text('{"training": []}', encoding="utf-8")

    assert main({}, roles_path=path) == 1


def test_settings_warnings():
    warnings = check_settings(
        load_session_settings({"DISCORD_BOT_TOKEN": "x", "QUEUE_TRAINING_CHANNEL_ID": "1"})
    )

    assert not any("DISCORD_BOT_TOKEN" in w for w in warnings)
    assert "No queue channel for Training sessions" not in warnings
    assert "No queue channel for Interview sessions" in warnings
    assert any("Hyra" in w for w in warnings)
