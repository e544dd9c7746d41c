from typing import Any, Dict, Mapping, Optional

from ..exceptions import InvalidInput


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_venue(data: Mapping[str, Any]) -> Optional[Dict[str, Optional[str]]]:
    """Return the venue carried by ``data`` as ``{"id", "name"}``.

    Older saves stored the venue in several shapes:

    - ``{"venue": {"id": ..., "name": ...}}``
    - ``{"venue": {"venue_id": ..., "venue_name": ...}}`` or the camelCase
      ``venueId``/``venueName`` pair nested the same way
    - ``{"venue": "<id>"}``
    - flat ``venueId``/``venueName`` (or ``venue_id``/``venue_name``) keys

    ``None`` means the payload says nothing about the venue.
    """

    raw = data.get("venue")
    venue_id: Optional[str] = None
    venue_name: Optional[str] = None

    if isinstance(raw, Mapping):
        venue_id = _clean(raw.get("id") or raw.get("venue_id") or raw.get("venueId"))
        venue_name = _clean(
            raw.get("name") or raw.get("venue_name") or raw.get("venueName")
        )
    elif isinstance(raw, (str, int)) and not isinstance(raw, bool):
        venue_id = _clean(raw)
    elif raw is not None:
        raise InvalidInput("venue must be an id or an object with id and name")

    venue_id = venue_id or _clean(data.get("venueId") or data.get("venue_id"))
    venue_name = venue_name or _clean(data.get("venueName") or data.get("venue_name"))

    if venue_id is None and venue_name is None:
        return None
    return {"id": venue_id, "name": venue_name}


def validate_team(team: Any) -> str:
    if isinstance(team, str) and team.strip().upper() in ("A", "B"):
        return team.strip().upper()
    raise InvalidInput(f"team must be 'A' or 'B', got {team!r}")


def validate_match_id(match_id: Any) -> str:
    if not isinstance(match_id, str) or not match_id.strip():
        raise InvalidInput("match id must be a non-empty string")
    if any(ch.isspace() for ch in match_id.strip()):
        raise InvalidInput("match id must not contain whitespace")
    return match_id.strip()
