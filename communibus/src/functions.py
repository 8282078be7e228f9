from typing import List, Dict, Any

from communibus.src import schemas
from communibus.src.exceptions import APIException


def fuseExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Build the `responses` argument of a route from the errors it can raise.

    Errors sharing a status code are listed as separate examples of one
    `ErrorResponse` entry, keyed by the exception class name.
    """
    responses = {}
    for exception in exceptions:
        entry = responses.setdefault(
            exception.status_code,
            {
                "model": schemas.ErrorResponse,
                "content": {"application/json": {"examples": {}}},
            },
        )
        examples = entry["content"]["application/json"]["examples"]
        examples[type(exception).__name__] = {
            "summary": str(exception.headers),
            "value": {"detail": exception.detail},
        }
    return responses


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Example:
        >>> enumStr(VoteType)
        'INTERESTED: 1, MAYBE: 2, PLEDGE: 3'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    True when `transitions[old_state]` lists `new_state`.

    Terminal states map to an empty list, e.g.
    `{ProposalStatus.OPEN: [ProposalStatus.THRESHOLD_MET], ProposalStatus.REJECTED: []}`.
    Unknown states are never valid.
    """
    return new_state in transitions.get(old_state, [])


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     privacy,
        ...     fParam,
        ...     [
        ...         TravelPrivacy.share_travel_patterns.key,
        ...         TravelPrivacy.privacy_level.key,
        ...     ],
        ... )
    """
    for field in fields:
        value = getattr(sourceObj, field, None)
        if value is None or getattr(targetObj, field) == value:
            continue
        setattr(targetObj, field, value)


def outwardCode(postcode: str | None) -> str | None:
    """
    Return the postcode area of a UK style postcode.

    The area is the part before the first space, upper-cased.

    Example:
        >>> outwardCode("s10 2ab")
        'S10'
    """
    if postcode is None:
        return None
    parts = postcode.strip().upper().split()
    if not parts:
        return None
    return parts[0]
