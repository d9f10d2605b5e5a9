"""
Tests for SessionClassifier.
"""
from __future__ import annotations

import pytest

from core.sessions.classifier import SessionClassifier
from core.sessions.errors import UnclassifiableSession
from shared.config.session_roles import SessionCategory


@pytest.mark.parametrize(
    "title, expected",
    [
        ("Staff Interview #12", SessionCategory.INTERVIEW),
        ("TRAINING session", SessionCategory.TRAINING),
        ("Weekend Mass Shift", SessionCategory.MASS_SHIFT),
        ("massshift friday", SessionCategory.MASS_SHIFT),
    ],
)
def test_title_keywords(title, expected):
    assert SessionClassifier().classify(title) is expected


def test_list_mapping_wins_over_title():
    classifier = SessionClassifier({"list-int": SessionCategory.INTERVIEW})

    category = classifier.classify("Training refresher", list_id="list-int")

    assert category is SessionCategory.INTERVIEW


def test_labels_checked_before_title():
    category = SessionClassifier().classify("Interview prep", labels=["Mass Shift"])

    assert category is SessionCategory.MASS_SHIFT


def test_unclassifiable():
    with pytest.raises(UnclassifiableSession) as exc:
        SessionClassifier().classify("Community game night", list_id="x")

    assert exc.value.title == "Community game night"
    assert exc.value.list_id == "x"
