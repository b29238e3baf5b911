"""Read-through caching of per-user data, with explicit invalidation.

A cache manager does the storage. On a miss it calls the loader and returns
the loaded object; on a hit it returns the stored JSON, as bytes or text,
which is decoded here into a record.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from gameuser import applog

Loader = Callable[[], Any]
Decoder = Callable[[Any], Any]


class CacheDataError(ValueError):
    """Raised when a cached value cannot be turned back into a record."""


@dataclass(frozen=True)
class CacheStrategy:
    """How one kind of data is cached: its key prefix and lifetime in seconds."""

    key_prefix: str
    ttl: float = 300.0


class CacheManager(Protocol):
    """Storage used by :class:`CacheService`."""

    def get_or_set(self, key: str, strategy: CacheStrategy, loader: Loader) -> Any:
        """Return the cached value for ``key``, or load, store and return it."""

    def invalidate(self, key: str) -> None:
        """Drop the cached value for ``key``."""


USER_INFO = "user_info"
USER_INVENTORY = "user_inventory"
USER_CARDS = "user_cards"
USER_PETS = "user_pets"
USER_EQUIPMENTS = "user_equipments"
MONTHLY_SIGN = "monthly_sign"
MONTHLY_SIGN_REWARD = "monthly_sign_reward"

DEFAULT_STRATEGIES: dict[str, CacheStrategy] = {
    USER_INFO: CacheStrategy("user:info:", 1800.0),
    USER_INVENTORY: CacheStrategy("user:inventory:", 600.0),
    USER_CARDS: CacheStrategy("user:cards:", 600.0),
    USER_PETS: CacheStrategy("user:pets:", 600.0),
    USER_EQUIPMENTS: CacheStrategy("user:equipments:", 600.0),
    MONTHLY_SIGN: CacheStrategy("user:monthly_sign:", 3600.0),
    MONTHLY_SIGN_REWARD: CacheStrategy("user:monthly_sign_reward:", 3600.0),
}

_LABELS = {
    USER_INFO: "user",
    USER_INVENTORY: "inventory",
    USER_CARDS: "cards",
    USER_PETS: "pets",
    USER_EQUIPMENTS: "equipments",
    MONTHLY_SIGN: "monthly sign",
    MONTHLY_SIGN_REWARD: "monthly sign reward",
}


def _identity(value: Any) -> Any:
    return value


class CacheService:
    """Caches user, inventory, card, pet, equipment and sign-in data per user.

    ``decoders`` maps a kind (such as ``"user_info"``) to a callable that
    turns one parsed JSON object into a record; kinds without a decoder
    yield the parsed JSON itself. For list kinds the decoder is applied to
    every element.
    """

    def __init__(
        self,
        cache_manager: CacheManager,
        decoders: Mapping[str, Decoder] | None = None,
        strategies: Mapping[str, CacheStrategy] | None = None,
    ):
        self._manager = cache_manager
        self._decoders = dict(decoders or {})
        self._strategies = {**DEFAULT_STRATEGIES, **(strategies or {})}

    def key_for(self, kind: str, user_id: int) -> str:
        """Return the cache key of ``kind`` data for ``user_id``."""
        return f"{self._strategies[kind].key_prefix}{user_id}"

    def _fetch(self, kind: str, user_id: int, loader: Loader, many: bool) -> Any:
        strategy = self._strategies[kind]
        key = f"{strategy.key_prefix}{user_id}"
        data = self._manager.get_or_set(key, strategy, loader)
        label = _LABELS[kind]

        if data is None:
            return [] if many else None

        if not isinstance(data, (bytes, bytearray, str)):
            if many and not isinstance(data, list):
                raise CacheDataError(f"invalid {label} data format")
            return data

        try:
            parsed = json.loads(data)
            return self._decode(kind, parsed, many)
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            applog.error(f"failed to unmarshal {label} from cache", error=str(exc))
            raise CacheDataError(f"invalid {label} data format") from exc

    def _decode(self, kind: str, parsed: Any, many: bool) -> Any:
        decode = self._decoders.get(kind, _identity)
        if many:
            if parsed is None:
                return []
            if not isinstance(parsed, list):
                raise TypeError("expected a JSON array")
            return [decode(element) for element in parsed]
        if parsed is None:
            parsed = {}
        if not isinstance(parsed, dict):
            raise TypeError("expected a JSON object")
        return decode(parsed)

    def _invalidate(self, kind: str, user_id: int) -> None:
        self._manager.invalidate(self.key_for(kind, user_id))

    def get_user_info_with_cache(self, user_id: int, loader: Loader) -> Any:
        """Return the user record, or None if there is none."""
        return self._fetch(USER_INFO, user_id, loader, many=False)

    def update_user_with_cache(self, user: Any, update: Callable[[], Any]) -> None:
        """Run ``update``, then drop the cached record of ``user``."""
        update()
        self._invalidate(USER_INFO, user.id)

    def get_inventory_with_cache(self, user_id: int, loader: Loader) -> Any:
        """Return the inventory, or None if there is none."""
        return self._fetch(USER_INVENTORY, user_id, loader, many=False)

    def invalidate_inventory_cache(self, user_id: int) -> None:
        self._invalidate(USER_INVENTORY, user_id)

    def get_user_cards_with_cache(self, user_id: int, loader: Loader) -> list[Any]:
        """Return the user's cards; an empty list if there are none."""
        return self._fetch(USER_CARDS, user_id, loader, many=True)

    def invalidate_user_cards_cache(self, user_id: int) -> None:
        self._invalidate(USER_CARDS, user_id)

    def get_user_pets_with_cache(self, user_id: int, loader: Loader) -> list[Any]:
        """Return the user's pets; an empty list if there are none."""
        return self._fetch(USER_PETS, user_id, loader, many=True)

    def invalidate_user_pets_cache(self, user_id: int) -> None:
        self._invalidate(USER_PETS, user_id)

    def get_equipments_with_cache(self, user_id: int, loader: Loader) -> list[Any]:
        """Return the user's equipment; an empty list if there is none."""
        return self._fetch(USER_EQUIPMENTS, user_id, loader, many=True)

    def invalidate_user_equipments_cache(self, user_id: int) -> None:
        self._invalidate(USER_EQUIPMENTS, user_id)

    def get_monthly_sign_with_cache(self, user_id: int, loader: Loader) -> Any:
        """Return the monthly sign-in record, or None if there is none."""
        return self._fetch(MONTHLY_SIGN, user_id, loader, many=False)

    def invalidate_monthly_sign_cache(self, user_id: int) -> None:
        self._invalidate(MONTHLY_SIGN, user_id)

    def get_monthly_sign_reward_with_cache(self, user_id: int, loader: Loader) -> Any:
        """Return the claimed-reward record, or None if there is none."""
        return self._fetch(MONTHLY_SIGN_REWARD, user_id, loader, many=False)

    def invalidate_monthly_sign_reward_cache(self, user_id: int) -> None:
        self._invalidate(MONTHLY_SIGN_REWARD, user_id)