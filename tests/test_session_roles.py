"""
Tests for role configuration parsing and category lookup.
"""
from __future__ import annotations

import json

import pytest

from shared.config.session_roles import (
    DEFAULT_ROLE_DEFINITIONS,
    RoleConfigError,
    RoleConfigResolver,
    RoleDefinition,
    SessionCategory,
    parse_role_config,
)


@pytest.mark.parametrize("value", ["mass_shift", "Mass Shift", "mass-shift", "MASS_SHIFT"])
def test_category_from_value(value):
    assert SessionCategory.from_value(value) is SessionCategory.MASS_SHIFT


def test_category_unknown():
    with pytest.raises(RoleConfigError):
        SessionCategory.from_value("karaoke")


def test_display_name():
    assert SessionCategory.MASS_SHIFT.display_name == "Mass Shift"


@pytest.mark.parametrize(
    "key, label, capacity",
    [
        ("", "Label", 1),
        ("Bad Key", "Label", 1),
        ("ok", "   ", 1),
        ("ok", "Label", 0),
        ("ok", "Label", True),
        ("ok", "Label", "3"),
    ],
)
def test_role_definition_validation(key, label, capacity):
    with pytest.raises(RoleConfigError):
        RoleDefinition(key, label, capacity)


def test_parse_keeps_defaults_for_missing_categories():
    roles = parse_role_config({"training": [{"key": "solo", "label": "Solo", "capacity": 1}]})

    assert roles[SessionCategory.TRAINING] == (RoleDefinition("solo", "Solo", 1),)
    assert roles[SessionCategory.INTERVIEW] == DEFAULT_ROLE_DEFINITIONS[SessionCategory.INTERVIEW]


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"training": []},
        {"training": "cohost"},
        {"training": [{"key": "a", "label": "A", "capacity": 1},
                      {"key": "a", "label": "A2", "capacity": 1}]},
        {"karaoke": [{"key": "a", "label": "A", "capacity": 1}]},
    ],
)
def test_parse_rejects_malformed(payload):
    with pytest.raises(RoleConfigError):
        parse_role_config(payload)


def test_resolver_reads_file(tmp_path):
    path = tmp_path / "roles.json"
    path.write_text(
        json.dumps({"interview": [{"key": "panel", "label": "Panel", "capacity": 3}]}),
        encoding="utf-8",
    )

    resolver = RoleConfigResolver(path)

    assert resolver("interview") == (RoleDefinition("panel", "Panel", 3),)
    assert resolver.resolve(SessionCategory.TRAINING) == DEFAULT_ROLE_DEFINITIONS[SessionCategory.TRAINING]


def test_resolver_missing_file_uses_defaults(tmp_path):
    resolver = RoleConfigResolver(tmp_path / "missing.json")

    assert resolver("mass_shift") == DEFAULT_ROLE_DEFINITIONS[SessionCategory.MASS_SHIFT]


def test_resolver_invalid_json(tmp_path):
    path = tmp_path / "roles.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(RoleConfigError):
        RoleConfigResolver(path)


def test_bundled_config_matches_defaults():
    resolver = RoleConfigResolver()

    for category in SessionCategory:
        assert resolver(category) == DEFAULT_ROLE_DEFINITIONS[category]
