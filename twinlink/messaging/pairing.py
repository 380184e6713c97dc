"""
Pairing Key Resolver - stable conversation identities for participant pairs.

Canonical keys sort the two identifiers so that A->B and B->A land in the
same document. Directed keys keep role order (initiator first or
responder first) for callers that store one conversation per direction.
"""
from typing import List, Optional, Union

from twinlink.core.exceptions import InvalidArgument
from twinlink.core.validators import validate_identifier
from twinlink.models.conversation import PairingOrigin

KEY_SEPARATOR = "_"

# Loose origin hints accepted on the inbound surface
_ORIGIN_HINTS = {
    "": PairingOrigin.CANONICAL,
    "canonical": PairingOrigin.CANONICAL,
    "initiator": PairingOrigin.INITIATOR_FIRST,
    "initiator_first": PairingOrigin.INITIATOR_FIRST,
    "agenteinmobiliario": PairingOrigin.INITIATOR_FIRST,
    "agent": PairingOrigin.INITIATOR_FIRST,
    "responder": PairingOrigin.RESPONDER_FIRST,
    "responder_first": PairingOrigin.RESPONDER_FIRST,
    "cliente": PairingOrigin.RESPONDER_FIRST,
    "client": PairingOrigin.RESPONDER_FIRST,
}


def _normalize(participant_id: str, field: str) -> str:
    normalized = validate_identifier(participant_id, field)
    if KEY_SEPARATOR in normalized:
        raise InvalidArgument(
            f"{field} must not contain '{KEY_SEPARATOR}'",
            field=field
        )
    return normalized


def parse_origin(hint: Optional[Union[str, PairingOrigin]]) -> PairingOrigin:
    """
    Map a caller-supplied origin hint onto a PairingOrigin.

    Raises:
        InvalidArgument: If the hint is not recognised
    """
    if isinstance(hint, PairingOrigin):
        return hint
    normalized = (hint or "").strip().lower()
    try:
        return _ORIGIN_HINTS[normalized]
    except KeyError:
        raise InvalidArgument(f"Unknown origin '{hint}'", field="origin") from None


def resolve(
    participant_a: str,
    participant_b: str,
    origin: Union[str, PairingOrigin] = PairingOrigin.CANONICAL
) -> str:
    """
    Derive the conversation key for a pair of participants.

    In the directed modes ``participant_a`` is the initiator and
    ``participant_b`` the responder.

    Args:
        participant_a: First participant (initiator in directed modes)
        participant_b: Second participant (responder in directed modes)
        origin: Key derivation mode

    Returns:
        Conversation key, e.g. "alice_bob"

    Raises:
        InvalidArgument: Empty identifiers or identifiers containing "_"
    """
    first = _normalize(participant_a, "participant_a")
    second = _normalize(participant_b, "participant_b")
    mode = parse_origin(origin)

    if mode == PairingOrigin.CANONICAL:
        first, second = sorted((first, second))
    elif mode == PairingOrigin.RESPONDER_FIRST:
        first, second = second, first

    return f"{first}{KEY_SEPARATOR}{second}"


def candidate_keys(participant_a: str, participant_b: str) -> List[str]:
    """Every key the pair may be stored under; the canonical key comes first."""
    canonical = resolve(participant_a, participant_b)
    keys = [canonical]
    for mode in (PairingOrigin.INITIATOR_FIRST, PairingOrigin.RESPONDER_FIRST):
        key = resolve(participant_a, participant_b, mode)
        if key not in keys:
            keys.append(key)
    return keys
