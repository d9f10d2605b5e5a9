import httpx
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from core.scheduler import ScheduledSession
from shared.logging.logger import get_logger

log = get_logger("trello.client")


def _parse_due(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def card_to_session(card: Dict[str, Any], list_id: str) -> Optional[ScheduledSession]:
    """
    Normalize a Trello card into a ScheduledSession.

    Cards without an id or a parseable due date are not sessions.
    """
    card_id = card.get("id")
    starts_at = _parse_due(card.get("due"))
    if not card_id or starts_at is None:
        return None

    labels = card.get("labels")
    label_names = tuple(
        str(label.get("name"))
        for label in labels
        if isinstance(label, dict) and label.get("name")
    ) if isinstance(labels, list) else ()

    return ScheduledSession(
        event_id=str(card_id),
        title=str(card.get("name") or ""),
        starts_at=starts_at,
        list_id=card.get("idList") or list_id,
        labels=label_names,
        url=card.get("shortUrl") or card.get("url") or f"https://trello.com/c/{card_id}",
        short_link=card.get("shortLink") or None,
    )


class TrelloSessionSource:
    """
    Read-only session source backed by Trello lists.

    One list per session category. Cards carrying a skip label (completed,
    canceled) are ignored.
    """

    API_BASE = "https://api.trello.com/1"
    CARD_FIELDS = "id,name,due,idLabels,idList,shortLink,shortUrl,url"

    def __init__(
        self,
        *,
        key: str,
        token: str,
        list_ids: Iterable[str],
        skip_label_ids: Iterable[str] = (),
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not key or not token:
            raise RuntimeError("Trello key and token are required")
        self._auth = {"key": key, "token": token}
        self._list_ids = [list_id for list_id in list_ids if list_id]
        self._skip_label_ids = set(skip_label_ids)
        self._timeout = timeout
        self._transport = transport

    # ------------------------------------------------------------

    async def _list_cards(self, client: httpx.AsyncClient, list_id: str) -> List[Dict[str, Any]]:
        try:
            r = await client.get(
                f"/lists/{list_id}/cards",
                params={**self._auth, "fields": self.CARD_FIELDS, "labels": "all"},
            )
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning(f"Trello list {list_id} fetch failed: {e}")
            return []

        if not isinstance(data, list):
            log.warning(f"Trello list {list_id} returned {type(data).__name__}")
            return []
        return [card for card in data if isinstance(card, dict)]

    async def list_sessions(self) -> List[ScheduledSession]:
        sessions: List[ScheduledSession] = []

        async with httpx.AsyncClient(
            base_url=self.API_BASE,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            for list_id in self._list_ids:
                for card in await self._list_cards(client, list_id):
                    label_ids = card.get("idLabels") or []
                    if self._skip_label_ids.intersection(label_ids):
                        continue
                    session = card_to_session(card, list_id)
                    if session is not None:
                        sessions.append(session)

        log.debug(f"Trello reported {len(sessions)} scheduled session(s)")
        return sessions
