from __future__ import annotations

from typing import Dict, Iterable, Optional, Tuple

from core.sessions.errors import UnclassifiableSession
from shared.config.session_roles import SessionCategory

# Checked in order; "mass shift" before anything shorter that could overlap.
_KEYWORDS: Tuple[Tuple[str, SessionCategory], ...] = (
    ("mass shift", SessionCategory.MASS_SHIFT),
    ("massshift", SessionCategory.MASS_SHIFT),
    ("mass_shift", SessionCategory.MASS_SHIFT),
    ("interview", SessionCategory.INTERVIEW),
    ("training", SessionCategory.TRAINING),
)


class SessionClassifier:
    """
    Derives a SessionCategory from board data.

    The board list a card sits on is authoritative; label names and the
    card title are keyword fallbacks. Anything else is unclassifiable.
    """

    def __init__(self, list_categories: Optional[Dict[str, SessionCategory]] = None):
        self._list_categories = dict(list_categories or {})

    def classify(
        self,
        title: str,
        *,
        list_id: Optional[str] = None,
        labels: Iterable[str] = (),
    ) -> SessionCategory:
        if list_id and list_id in self._list_categories:
            return self._list_categories[list_id]

        for text in [*labels, title or ""]:
            lowered = str(text).lower()
            for keyword, category in _KEYWORDS:
                if keyword in lowered:
                    return category

        raise UnclassifiableSession(title, list_id)
