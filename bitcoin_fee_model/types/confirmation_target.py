from __future__ import annotations

from enum import Enum

from bitcoin_fee_model.util.errors import InvalidTargetError
from bitcoin_fee_model.util.ints import uint16

MIN_CONFIRMATION_TARGET = 1
MAX_CONFIRMATION_TARGET = 1008  # one week of blocks

# targets up to and including this one are served by the hurry model
HURRY_MAX_TARGET = 2


class ModelRole(Enum):
    HURRY = "hurry"
    STANDARD = "standard"


def validate_target(target: int) -> uint16:
    # bool is an int subclass, True would otherwise be accepted as a target of 1
    if isinstance(target, bool) or not isinstance(target, int):
        raise InvalidTargetError(target)
    if target < MIN_CONFIRMATION_TARGET or target > MAX_CONFIRMATION_TARGET:
        raise InvalidTargetError(target)
    return uint16(target)


def role_for_target(target: int) -> ModelRole:
    """
    The only place the hurry/standard boundary is decided.
    Raises `InvalidTargetError` for targets outside [1, 1008].
    """
    if validate_target(target) <= HURRY_MAX_TARGET:
        return ModelRole.HURRY
    return ModelRole.STANDARD

