"""Result messages returned by the user service."""

import dataclasses
from dataclasses import dataclass, field
from typing import Any


class UserServiceError(Exception):
    """Raised when a user-service request is rejected."""


@dataclass
class Item:
    item_id: int = 0
    template_id: int = 0
    name: str = ""
    count: int = 0
    type: int = 0
    sub_type: int = 0
    color: int = 0
    stack: int = 0
    equipped: bool = False


@dataclass
class Inventory:
    items: list[Item] = field(default_factory=list)
    capacity: int = 0


@dataclass
class Card:
    id: int = 0
    template_id: int = 0
    name: str = ""
    level: int = 0
    star: int = 0
    activated: bool = False
    properties: str = ""


@dataclass
class Pet:
    id: int = 0
    template_id: int = 0
    name: str = ""
    level: int = 0
    exp: int = 0
    is_battle: bool = False
    properties: str = ""


@dataclass
class Equipment:
    id: int = 0
    template_id: int = 0
    slot: str = ""
    name: str = ""
    properties: str = ""


@dataclass
class UserInfo:
    user_id: int = 0
    name: str = ""
    level: int = 0


@dataclass
class LoginResult:
    user_id: int = 0
    token: str = ""
    expires_at: int = 0


@dataclass
class MonthlySignInfo:
    year: int = 0
    month: int = 0
    sign_days: list[int] = field(default_factory=list)
    total_sign_days: int = 0
    can_sign_today: bool = False
    today: int = 0


@dataclass
class ActionResult:
    """Outcome of an action: whether it succeeded, a message and any rewards."""

    success: bool = False
    message: str = ""
    rewards: list[Item] = field(default_factory=list)


def to_dict(message: Any) -> dict[str, Any]:
    """Return a message, including nested messages, as plain dicts and lists."""
    if isinstance(message, type) or not dataclasses.is_dataclass(message):
        raise TypeError(f"not a message: {message!r}")
    return dataclasses.asdict(message)