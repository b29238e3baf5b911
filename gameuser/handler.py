"""Entry point of the user service: one object answering every request."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from gameuser.accounts import AccountService, User
from gameuser.cache_service import (
    MONTHLY_SIGN,
    MONTHLY_SIGN_REWARD,
    USER_CARDS,
    USER_INFO,
    USER_PETS,
    CacheService,
    Decoder,
)
from gameuser.cards import CardRecord, CardService
from gameuser.inventory import InventoryService
from gameuser.messages import (
    ActionResult,
    Card,
    Equipment,
    Inventory,
    Item,
    LoginResult,
    MonthlySignInfo,
    Pet,
    UserInfo,
)
from gameuser.pets import PetRecord, PetService
from gameuser.signin import MonthlySign, MonthlySignReward, MonthlySignService

DEFAULT_DECODERS: dict[str, Decoder] = {
    USER_INFO: User.from_dict,
    USER_CARDS: CardRecord.from_dict,
    USER_PETS: PetRecord.from_dict,
    MONTHLY_SIGN: MonthlySign.from_dict,
    MONTHLY_SIGN_REWARD: MonthlySignReward.from_dict,
}


class Handler:
    """Serves account, inventory, equipment, card, pet and sign-in requests.

    ``db`` is the user store, ``cache_client`` stores login tokens and hands
    out locks, ``cache_manager`` backs the read-through cache, ``next_id``
    yields new unique ids, ``auth`` hashes passwords and issues tokens, and
    ``config_manager`` serves the design-config tables. ``decoders`` adds or
    replaces decoders of cached JSON; inventory and equipment have none by
    default.
    """

    def __init__(
        self,
        db: Any,
        cache_client: Any,
        cache_manager: Any,
        next_id: Callable[[], int],
        auth: Any,
        config_manager: Any,
        *,
        secret_key: str,
        token_expire_time: Any,
        clock: Callable[[], datetime] = datetime.now,
        decoders: Mapping[str, Decoder] | None = None,
        grant: Callable[[int, list[Item]], None] | None = None,
    ):
        required = {
            "db": db,
            "cache_client": cache_client,
            "cache_manager": cache_manager,
            "next_id": next_id,
            "auth": auth,
            "config_manager": config_manager,
        }
        for name, value in required.items():
            if value is None:
                raise ValueError(f"missing dependency: {name}")

        cache_service = CacheService(
            cache_manager, decoders={**DEFAULT_DECODERS, **(decoders or {})}
        )
        self._accounts = AccountService(
            db, auth, cache_client, cache_service, next_id,
            secret_key=secret_key, token_expire_time=token_expire_time, clock=clock,
        )
        self._inventory = InventoryService(db, config_manager, cache_service)
        self._cards = CardService(db, config_manager, cache_service)
        self._pets = PetService(db, config_manager, cache_service, next_id)
        self._signin = MonthlySignService(
            db, config_manager, cache_client, cache_service, clock=clock, grant=grant
        )

    def register(self, username: str, password: str, email: str) -> int:
        return self._accounts.register(username, password, email)

    def login(self, username: str, password: str) -> LoginResult:
        return self._accounts.login(username, password)

    def get_user_info(self, user_id: int) -> UserInfo:
        return self._accounts.get_user_info(user_id)

    def get_inventory(self, user_id: int) -> Inventory:
        return self._inventory.get_inventory(user_id)

    def add_item(self, user_id: int, template_id: int, count: int) -> ActionResult:
        return self._inventory.add_item(user_id, template_id, count)

    def remove_item(self, user_id: int, item_id: int, count: int) -> ActionResult:
        return self._inventory.remove_item(user_id, item_id, count)

    def use_item(self, user_id: int, item_id: int, count: int) -> ActionResult:
        return self._inventory.use_item(user_id, item_id, count)

    def get_equipments(self, user_id: int) -> list[Equipment]:
        return self._inventory.get_equipments(user_id)

    def equip_item(self, user_id: int, item_id: int, slot: Any) -> ActionResult:
        return self._inventory.equip_item(user_id, item_id, slot)

    def unequip_item(self, user_id: int, slot: Any) -> ActionResult:
        return self._inventory.unequip_item(user_id, slot)

    def get_user_cards(self, user_id: int) -> list[Card]:
        return self._cards.get_user_cards(user_id)

    def activate_card(self, user_id: int, template_id: int) -> ActionResult:
        return self._cards.activate_card(user_id, template_id)

    def upgrade_card(self, user_id: int, card_id: int) -> ActionResult:
        return self._cards.upgrade_card(user_id, card_id)

    def upgrade_card_star(self, user_id: int, card_id: int) -> ActionResult:
        return self._cards.upgrade_card_star(user_id, card_id)

    def get_user_pets(self, user_id: int) -> list[Pet]:
        return self._pets.get_user_pets(user_id)

    def add_pet(self, user_id: int, template_id: int) -> ActionResult:
        return self._pets.add_pet(user_id, template_id)

    def set_pet_battle_status(self, user_id: int, pet_id: int,
                              is_battle: bool) -> ActionResult:
        return self._pets.set_pet_battle_status(user_id, pet_id, is_battle)

    def add_pet_exp(self, user_id: int, pet_id: int, exp: int) -> ActionResult:
        return self._pets.add_pet_exp(user_id, pet_id, exp)

    def get_monthly_sign_info(self, user_id: int) -> MonthlySignInfo:
        return self._signin.get_monthly_sign_info(user_id)

    def monthly_sign(self, user_id: int) -> ActionResult:
        return self._signin.monthly_sign(user_id)

    def claim_monthly_sign_reward(self, user_id: int, days: int) -> ActionResult:
        return self._signin.claim_monthly_sign_reward(user_id, days)