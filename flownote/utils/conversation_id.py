from typing import Iterable


DELIMITER = "_"


def resolve_conversation_id(participant_ids: Iterable[str]) -> str:
    """Sorted participant ids joined with ``_``; same set, same id."""
    ids = sorted(set(participant_ids))
    if not ids:
        raise ValueError("At least one participant id is required")
    for pid in ids:
        if not pid:
            raise ValueError("Participant id cannot be empty")
        if DELIMITER in pid:
            raise ValueError(f"Participant id {pid!r} contains the reserved delimiter {DELIMITER!r}")
    return DELIMITER.join(ids)
