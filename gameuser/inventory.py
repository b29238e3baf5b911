"""Bag contents and equipped gear."""

from __future__ import annotations

from typing import Any, Protocol

from gameuser import applog
from gameuser.cache_service import CacheService
from gameuser.messages import (
    ActionResult,
    Equipment,
    Inventory,
    Item,
    UserServiceError,
)


class _InventoryStore(Protocol):
    def get_inventory(self, user_id: int) -> Any: ...

    def add_item_by_template(self, user_id: int, template_id: int, count: int) -> None: ...

    def remove_item(self, user_id: int, item_id: int, count: int) -> None: ...

    def get_equipments(self, user_id: int) -> list[Any]: ...

    def equip_item(self, user_id: int, item_id: int, slot: Any) -> None: ...

    def unequip_item(self, user_id: int, slot: Any) -> None: ...


class _ItemConfig(Protocol):
    def get_item_by_id(self, template_id: int) -> Any: ...

    def get_equipment_by_id(self, template_id: int) -> Any: ...


class InventoryService:
    """Reads and changes a user's bag and equipment."""

    def __init__(self, db: _InventoryStore, config: _ItemConfig,
                 cache_service: CacheService):
        self._db = db
        self._config = config
        self._cache = cache_service

    def _item_template(self, template_id: int) -> Any:
        template = self._config.get_item_by_id(template_id)
        if template is None:
            raise LookupError(f"item template not found: {template_id}")
        return template

    def _equipment_template(self, template_id: int) -> Any:
        template = self._config.get_equipment_by_id(template_id)
        if template is None:
            raise LookupError(f"equipment template not found: {template_id}")
        return template

    def _invalidate_inventory(self, user_id: int) -> None:
        try:
            self._cache.invalidate_inventory_cache(user_id)
        except Exception as exc:
            applog.error("Failed to invalidate inventory cache", error=str(exc))

    def _invalidate_equipments(self, user_id: int) -> None:
        try:
            self._cache.invalidate_user_equipments_cache(user_id)
        except Exception as exc:
            applog.error("Failed to invalidate equipments cache",
                         userID=user_id, error=str(exc))

    def get_inventory(self, user_id: int) -> Inventory:
        """Return the bag; items with unknown templates are left out."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            inventory = self._cache.get_inventory_with_cache(
                user_id, lambda: self._db.get_inventory(user_id)
            )
        except Exception as exc:
            applog.error("GetInventory error", error=str(exc))
            raise UserServiceError("failed to get inventory") from exc
        if inventory is None:
            applog.error("GetInventory error", error="inventory not found")
            raise UserServiceError("failed to get inventory")

        items = []
        for item in inventory.items:
            try:
                template = self._item_template(item.template_id)
            except Exception as exc:
                applog.error("Failed to get item template",
                             template_id=item.template_id, error=str(exc))
                continue
            items.append(Item(
                item_id=item.id,
                template_id=item.template_id,
                name=template.name,
                count=item.count,
                type=template.type,
                sub_type=template.subtype,
                color=template.color,
                stack=template.stack,
                equipped=item.equipped,
            ))
        return Inventory(items=items, capacity=inventory.capacity)

    def add_item(self, user_id: int, template_id: int, count: int) -> ActionResult:
        """Add ``count`` items of a template to the bag."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if template_id <= 0:
            raise UserServiceError("template_id must be provided")
        try:
            self._item_template(template_id)
        except Exception as exc:
            raise UserServiceError(f"invalid template id: {exc}") from exc
        try:
            self._db.add_item_by_template(user_id, template_id, count)
        except Exception as exc:
            applog.error("AddItemByTemplate error", error=str(exc))
            raise UserServiceError(f"failed to add item by template: {exc}") from exc
        self._invalidate_inventory(user_id)
        return ActionResult(success=True)

    def _take(self, user_id: int, item_id: int, count: int, verb: str,
              note: str) -> ActionResult:
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if count <= 0:
            raise UserServiceError("invalid count")
        try:
            self._db.remove_item(user_id, item_id, count)
        except Exception as exc:
            applog.error(note, error=str(exc))
            raise UserServiceError(f"failed to {verb} item: {exc}") from exc
        self._invalidate_inventory(user_id)
        return ActionResult(success=True)

    def remove_item(self, user_id: int, item_id: int, count: int) -> ActionResult:
        """Take ``count`` of an item out of the bag."""
        return self._take(user_id, item_id, count, "remove", "RemoveItem error")

    def use_item(self, user_id: int, item_id: int, count: int) -> ActionResult:
        """Use up ``count`` of an item."""
        return self._take(user_id, item_id, count, "use", "UseItem error")

    def get_equipments(self, user_id: int) -> list[Equipment]:
        """Return the user's equipment; pieces with unknown templates are left out."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            pieces = self._cache.get_equipments_with_cache(
                user_id, lambda: self._db.get_equipments(user_id)
            )
        except Exception as exc:
            raise UserServiceError(f"failed to get equipments: {exc}") from exc

        result = []
        for piece in pieces:
            try:
                template = self._equipment_template(piece.template_id)
            except Exception:
                continue
            stats = template.attribute
            result.append(Equipment(
                id=piece.id,
                template_id=piece.template_id,
                slot=piece.slot,
                name=template.name,
                properties=(
                    f'{{"atk":{stats.atk},"def":{stats.defense},'
                    f'"hpMax":{stats.hp_max}}}'
                ),
            ))
        return result

    def equip_item(self, user_id: int, item_id: int, slot: Any) -> ActionResult:
        """Put an item from the bag into an equipment slot."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            self._db.equip_item(user_id, item_id, slot)
        except Exception as exc:
            return ActionResult(success=False, message=f"failed to equip item: {exc}")
        self._invalidate_equipments(user_id)
        return ActionResult(success=True, message="Item equipped successfully")

    def unequip_item(self, user_id: int, slot: Any) -> ActionResult:
        """Empty an equipment slot."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            self._db.unequip_item(user_id, slot)
        except Exception as exc:
            return ActionResult(success=False, message=f"failed to unequip item: {exc}")
        self._invalidate_equipments(user_id)
        return ActionResult(success=True, message="Item unequipped successfully")