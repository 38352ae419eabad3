"""Domain models for spin sessions."""

import json
from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from prize_wheel.domain.errors import StoreError

MIN_ITEMS = 2


class SessionStatus(StrEnum):
    """Lifecycle states of a spin session."""

    WAITING = "waiting"
    CHOSEN = "chosen"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SpinSession:
    """Coordination record for a single spin."""

    id: str
    items: tuple[str, ...]
    status: SessionStatus
    created_at: int
    chosen_index: int | None = None
    chosen_by: str | None = None

    @property
    def is_resolved(self) -> bool:
        """Return true once the session reached a terminal state."""
        return self.status is not SessionStatus.WAITING

    @property
    def chosen_item(self) -> str | None:
        """Return the winning label, if a choice was recorded."""
        if self.chosen_index is None:
            return None
        return self.items[self.chosen_index]

    def to_dict(self) -> dict[str, object]:
        """Return the camelCase mapping used for storage and diagnostics."""
        payload: dict[str, object] = {
            "id": self.id,
            "items": list(self.items),
            "status": self.status.value,
            "createdAt": self.created_at,
        }
        if self.chosen_index is not None:
            payload["chosenIndex"] = self.chosen_index
        if self.chosen_by is not None:
            payload["chosenBy"] = self.chosen_by
        return payload

    def to_json(self) -> str:
        """Serialize the session for the key-value store."""
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str | bytes | Mapping[str, object]) -> "SpinSession":
        """Deserialize a stored session, rejecting malformed records."""
        if isinstance(raw, Mapping):
            data = raw
        else:
            try:
                data = json.loads(raw)
            except (TypeError, ValueError) as exc:
                raise StoreError("Stored session is not valid JSON") from exc
        if not isinstance(data, Mapping):
            raise StoreError("Stored session is not an object")
        return _session_from_mapping(data)


def _session_from_mapping(data: Mapping[str, object]) -> SpinSession:
    session_id = data.get("id")
    items = data.get("items")
    created_at = data.get("createdAt")
    if not isinstance(session_id, str) or not session_id:
        raise StoreError("Stored session has no id")
    if not isinstance(items, list) or not all(isinstance(i, str) for i in items):
        raise StoreError("Stored session items are malformed")
    if len(items) < MIN_ITEMS:
        raise StoreError("Stored session has fewer than two items")
    if not isinstance(created_at, int) or isinstance(created_at, bool):
        raise StoreError("Stored session has no creation timestamp")
    try:
        status = SessionStatus(data.get("status"))
    except ValueError as exc:
        raise StoreError("Stored session status is unknown") from exc

    chosen_index = data.get("chosenIndex")
    chosen_by = data.get("chosenBy")
    if status is SessionStatus.CHOSEN:
        if not _is_index(chosen_index, len(items)):
            raise StoreError("Chosen session has an invalid index")
    elif chosen_index is not None:
        raise StoreError("Only chosen sessions may carry an index")
    if chosen_by is not None and not isinstance(chosen_by, str):
        raise StoreError("Stored chooser name is malformed")

    return SpinSession(
        id=session_id,
        items=tuple(items),
        status=status,
        created_at=created_at,
        chosen_index=chosen_index,
        chosen_by=chosen_by,
    )


def _is_index(value: object, length: int) -> bool:
    return (
        isinstance(value, int) and not isinstance(value, bool) and 0 <= value < length
    )
