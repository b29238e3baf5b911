"""Card collection: listing, activation, levelling up and starring up."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from gameuser import applog
from gameuser.cache_service import CacheService
from gameuser.messages import ActionResult, Card, UserServiceError

CARD_STAR_TABLE = "card_star"
CARD_LEVEL_TABLE = "card_level"


class _CardStore(Protocol):
    def get_user_cards(self, user_id: int) -> list[CardRecord]: ...

    def get_user_card(self, user_id: int, card_id: int) -> CardRecord | None: ...

    def card_exists(self, user_id: int, template_id: int) -> bool: ...

    def create_card(self, card: CardRecord) -> None: ...

    def update_card(self, card: CardRecord) -> None: ...

    def has_enough_items(self, user_id: int, item_id: int, count: int) -> bool: ...

    def remove_item(self, user_id: int, item_id: int, count: int) -> None: ...


class _CardConfig(Protocol):
    def get_card_by_id(self, template_id: int) -> Any: ...

    def get_config(self, name: str) -> Any: ...


@dataclass
class CardRecord:
    """A card a user has activated."""

    id: int = 0
    user_id: int = 0
    template_id: int = 0
    level: int = 0
    star: int = 0

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CardRecord:
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in names})


def _stats_json(attribute: Any) -> str:
    """Render attack, defence and max HP as a compact JSON object."""
    stats = {
        "atk": attribute.atk,
        "def": attribute.defense,
        "hpMax": attribute.hp_max,
    }
    return json.dumps(stats, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class CardService:
    """Lists a user's cards and activates, levels and stars them up."""

    def __init__(self, db: _CardStore, config: _CardConfig, cache_service: CacheService):
        self._db = db
        self._config = config
        self._cache = cache_service

    def _card_template(self, template_id: int) -> Any:
        template = self._config.get_card_by_id(template_id)
        if template is None:
            raise LookupError(f"card template not found: {template_id}")
        return template

    def _find_row(self, table: str, label: str, match: Callable[[Any], bool],
                  not_found: str) -> Any:
        rows = self._config.get_config(table)
        if rows is None:
            raise LookupError(f"{label} config not found")
        if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
            raise LookupError(f"{label} config type assertion failed")
        for row in rows:
            if match(row):
                return row
        raise LookupError(not_found)

    def _star_template(self, card_id: int, star: int) -> Any:
        return self._find_row(
            CARD_STAR_TABLE, "card star",
            lambda row: row.card_id == card_id and row.star == star,
            f"card star template not found: card_id={card_id}, star={star}",
        )

    def _level_template(self, card_id: int, level: int) -> Any:
        return self._find_row(
            CARD_LEVEL_TABLE, "card level",
            lambda row: row.card_id == card_id and row.level == level,
            f"card level template not found: card_id={card_id}, level={level}",
        )

    def _invalidate(self, user_id: int) -> None:
        try:
            self._cache.invalidate_user_cards_cache(user_id)
        except Exception as exc:
            applog.error("Failed to invalidate cards cache", error=str(exc))

    def get_user_cards(self, user_id: int) -> list[Card]:
        """Return the user's cards; cards with unknown templates are left out."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            records = self._cache.get_user_cards_with_cache(
                user_id, lambda: self._db.get_user_cards(user_id)
            )
        except Exception as exc:
            applog.error("GetUserCards error", error=str(exc))
            raise UserServiceError("failed to get user cards") from exc

        cards = []
        for record in records:
            try:
                template = self._card_template(record.template_id)
            except Exception as exc:
                applog.error("Failed to get card template",
                             template_id=record.template_id, error=str(exc))
                continue
            cards.append(Card(
                id=record.id,
                template_id=record.template_id,
                name=template.name,
                level=record.level,
                star=record.star,
                activated=True,
                properties=_stats_json(template.attribute),
            ))
        return cards

    def consume_items(self, user_id: int, costs: Iterable[Any]) -> None:
        """Check and take each cost's items from the user's bag, in order."""
        for cost in costs:
            try:
                enough = self._db.has_enough_items(user_id, cost.item_id, cost.count)
            except Exception as exc:
                raise UserServiceError(f"failed to check item count: {exc}") from exc
            if not enough:
                raise UserServiceError(
                    f"insufficient items: item_id={cost.item_id}, required={cost.count}"
                )
            try:
                self._db.remove_item(user_id, cost.item_id, cost.count)
            except Exception as exc:
                raise UserServiceError(f"failed to consume item: {exc}") from exc

    def activate_card(self, user_id: int, template_id: int) -> ActionResult:
        """Activate a card from its template, paying the activation cost."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if template_id == 0:
            raise UserServiceError("invalid template id")

        try:
            exists = self._db.card_exists(user_id, template_id)
        except Exception as exc:
            applog.error("CardExists error", error=str(exc))
            raise UserServiceError("failed to check card exists") from exc
        if exists:
            return ActionResult(success=False, message="卡牌已经激活")

        try:
            template = self._card_template(template_id)
        except Exception as exc:
            applog.error("Failed to get card template", error=str(exc))
            return ActionResult(success=False, message="卡牌模板不存在")

        try:
            self.consume_items(user_id, template.cost)
        except UserServiceError as exc:
            applog.error("Failed to consume activation items", error=str(exc))
            return ActionResult(success=False, message=f"激活失败: {exc}")

        card = CardRecord(user_id=user_id, template_id=template_id, level=1, star=0)
        try:
            self._db.create_card(card)
        except Exception as exc:
            applog.error("CreateCard error", error=str(exc))
            raise UserServiceError("failed to create card") from exc

        self._invalidate(user_id)
        return ActionResult(success=True, message="卡牌激活成功")

    def _load_card(self, user_id: int, card_id: int) -> CardRecord | None:
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if card_id == 0:
            raise UserServiceError("invalid card id")
        try:
            return self._db.get_user_card(user_id, card_id)
        except Exception as exc:
            applog.error("GetUserCard error", error=str(exc))
            return None

    def _save_card(self, card: CardRecord) -> None:
        try:
            self._db.update_card(card)
        except Exception as exc:
            applog.error("UpdateCard error", error=str(exc))
            raise UserServiceError("failed to update card") from exc
        self._invalidate(card.user_id)

    def upgrade_card(self, user_id: int, card_id: int) -> ActionResult:
        """Raise a card's level by one, paying the cost of its current level."""
        card = self._load_card(user_id, card_id)
        if card is None:
            return ActionResult(success=False, message="卡牌不存在")

        try:
            template = self._level_template(card.template_id, card.level)
        except Exception as exc:
            applog.error("Failed to get card level template", error=str(exc))
            return ActionResult(success=False, message="升级模板不存在")

        try:
            self.consume_items(user_id, template.cost)
        except UserServiceError as exc:
            applog.error("Failed to consume upgrade items", error=str(exc))
            return ActionResult(success=False, message=f"升级失败: {exc}")

        card.level += 1
        card.user_id = user_id
        self._save_card(card)
        return ActionResult(success=True, message="卡牌升级成功")

    def upgrade_card_star(self, user_id: int, card_id: int) -> ActionResult:
        """Raise a card's star by one, paying the cost of its current star."""
        card = self._load_card(user_id, card_id)
        if card is None:
            return ActionResult(success=False, message="卡牌不存在")

        try:
            template = self._star_template(card.template_id, card.star)
        except Exception as exc:
            applog.error("Failed to get card star template", error=str(exc))
            return ActionResult(success=False, message="升星模板不存在")

        try:
            self.consume_items(user_id, template.cost)
        except UserServiceError as exc:
            applog.error("Failed to consume star upgrade items", error=str(exc))
            return ActionResult(success=False, message=f"升星失败: {exc}")

        card.star += 1
        card.user_id = user_id
        self._save_card(card)
        return ActionResult(success=True, message="卡牌升星成功")