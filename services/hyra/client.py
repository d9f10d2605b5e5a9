import httpx
from typing import Any, Dict, Iterable, List, Optional

from shared.logging.logger import get_logger

log = get_logger("hyra.client")


class FairnessProviderError(RuntimeError):
    """Hyra could not produce weekly session counts."""


def _first_number(*candidates: Any) -> Optional[int]:
    for value in candidates:
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
    return None


def _extract_discord_id(entry: Dict[str, Any]) -> Optional[str]:
    direct = entry.get("discordId") or entry.get("discord_id")
    if direct:
        return str(direct)

    for nested_key, id_keys in (
        ("discord", ("id", "userId")),
        ("user", ("discordId", "discord_id")),
        ("profile", ("discordId", "discord_id")),
    ):
        nested = entry.get(nested_key)
        if isinstance(nested, dict):
            for key in id_keys:
                if nested.get(key):
                    return str(nested[key])

    return None


def _extract_weekly_sessions(entry: Dict[str, Any]) -> int:
    sessions = entry.get("sessions")
    stats = entry.get("stats") if isinstance(entry.get("stats"), dict) else {}
    session_obj = sessions if isinstance(sessions, dict) else {}

    count = _first_number(
        sessions,
        session_obj.get("week"),
        session_obj.get("thisWeek"),
        session_obj.get("weekly"),
        stats.get("sessions"),
        stats.get("weeklySessions"),
        entry.get("totalSessions"),
    )
    return count or 0


def _staff_entries(body: Any) -> Iterable[Dict[str, Any]]:
    if not isinstance(body, dict):
        raise FairnessProviderError(
            f"Hyra dashboard root is {type(body).__name__}, expected object"
        )

    arrays: List[list] = []
    for key in ("staff", "results"):
        if isinstance(body.get(key), list):
            arrays.append(body[key])

    data = body.get("data")
    if isinstance(data, list):
        arrays.append(data)
    elif isinstance(data, dict) and isinstance(data.get("staff"), list):
        arrays.append(data["staff"])

    for array in arrays:
        for entry in array:
            if isinstance(entry, dict):
                yield entry


def parse_weekly_session_counts(body: Any) -> Dict[str, int]:
    """
    Map Discord user id -> sessions run this week from a Hyra staff
    dashboard payload.

    The dashboard schema varies between workspaces, so staff arrays are
    collected from several known locations and each entry is checked for a
    Discord id and a weekly count.
    """
    counts: Dict[str, int] = {}
    for entry in _staff_entries(body):
        discord_id = _extract_discord_id(entry)
        if not discord_id:
            continue
        counts[discord_id] = _extract_weekly_sessions(entry)
    return counts


class HyraClient:
    """
    Hyra staff dashboard client.

    Responsibilities:
    - Fetch GET /v1/staff/dashboard?period=week
    - Normalize it into {discord_id: weekly_session_count}

    Any failure raises FairnessProviderError; callers decide whether to
    degrade.
    """

    DASHBOARD_PATH = "/v1/staff/dashboard"

    def __init__(
        self,
        *,
        api_key: Optional[str],
        workspace_id: Optional[str],
        base_url: str = "https://api.hyra.io",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.workspace_id = workspace_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key and self.workspace_id)

    # ------------------------------------------------------------

    async def _get_dashboard(self) -> Any:
        if not self.configured:
            raise FairnessProviderError("Missing HYRA_API_KEY or HYRA_WORKSPACE_ID")

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "X-Workspace-Id": self.workspace_id,
            "Accept": "application/json",
        }

        async with httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
        ) as client:
            try:
                r = await client.get(
                    self.DASHBOARD_PATH,
                    params={"period": "week"},
                    headers=headers,
                )
                r.raise_for_status()
            except httpx.HTTPStatusError as e:
                raise FairnessProviderError(
                    f"Hyra API error {e.response.status_code}"
                ) from e
            except httpx.HTTPError as e:
                raise FairnessProviderError(f"Hyra network error: {e}") from e

        try:
            return r.json()
        except ValueError as e:
            raise FairnessProviderError("Hyra returned a non-JSON body") from e

    async def fetch_fairness_scores(self) -> Dict[str, int]:
        body = await self._get_dashboard()
        counts = parse_weekly_session_counts(body)
        log.info(f"Parsed weekly session counts for {len(counts)} staff members")
        return counts
