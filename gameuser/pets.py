"""Pets: listing, adoption, battle status and experience."""

from __future__ import annotations

import dataclasses
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from gameuser import applog
from gameuser.cache_service import CacheService
from gameuser.messages import ActionResult, Pet, UserServiceError

PET_LEVEL_TABLE = "pet_level"


class _PetStore(Protocol):
    def get_user_pets(self, user_id: int) -> list[PetRecord]: ...

    def get_pet(self, pet_id: int) -> PetRecord | None: ...

    def create_pet(self, pet: PetRecord) -> None: ...

    def update_pet(self, pet: PetRecord) -> None: ...

    def set_pet_battle_status(self, user_id: int, pet_id: int, is_battle: bool) -> None: ...


class _PetConfig(Protocol):
    def get_pet_by_id(self, template_id: int) -> Any: ...

    def get_config(self, name: str) -> Any: ...


@dataclass
class PetRecord:
    """A pet owned by a user."""

    id: int = 0
    user_id: int = 0
    template_id: int = 0
    name: str = ""
    level: int = 0
    exp: int = 0
    is_battle: bool = False

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PetRecord:
        names = {f.name for f in dataclasses.fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in names})


def _properties_json(template: Any) -> str:
    properties = {"name": template.name, "color": template.color}
    return json.dumps(properties, sort_keys=True, separators=(",", ":"),
                      ensure_ascii=False)


class PetService:
    """Lists, adds and trains a user's pets."""

    def __init__(self, db: _PetStore, config: _PetConfig,
                 cache_service: CacheService, next_id: Callable[[], int]):
        self._db = db
        self._config = config
        self._cache = cache_service
        self._next_id = next_id

    def _pet_template(self, template_id: int) -> Any:
        template = self._config.get_pet_by_id(template_id)
        if template is None:
            raise LookupError(f"pet template not found: {template_id}")
        return template

    def _level_template(self, template_id: int, level: int) -> Any:
        rows = self._config.get_config(PET_LEVEL_TABLE)
        if rows is None:
            raise LookupError("pet level config not found")
        if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
            raise LookupError("pet level config type assertion failed")
        for row in rows:
            if row.pet_id == template_id and row.level == level:
                return row
        raise LookupError(
            f"pet level template not found: pet_id={template_id}, level={level}"
        )

    def _invalidate(self, user_id: int) -> None:
        try:
            self._cache.invalidate_user_pets_cache(user_id)
        except Exception as exc:
            applog.error("Failed to invalidate pets cache", error=str(exc))

    def _owned_pet(self, user_id: int, pet_id: int) -> PetRecord | str:
        """Return the pet, or the failure message if it cannot be used."""
        try:
            pet = self._db.get_pet(pet_id)
        except Exception as exc:
            applog.error("GetPet error", error=str(exc))
            return "宠物不存在"
        if pet is None or pet.user_id != user_id:
            return "宠物不存在或不属于该用户"
        return pet

    def get_user_pets(self, user_id: int) -> list[Pet]:
        """Return the user's pets; pets with unknown templates are left out."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        try:
            records = self._cache.get_user_pets_with_cache(
                user_id, lambda: self._db.get_user_pets(user_id)
            )
        except Exception as exc:
            applog.error("GetUserPets error", error=str(exc))
            raise UserServiceError("failed to get user pets") from exc

        pets = []
        for record in records:
            try:
                template = self._pet_template(record.template_id)
            except Exception as exc:
                applog.error("Failed to get pet template",
                             template_id=record.template_id, error=str(exc))
                continue
            pets.append(Pet(
                id=record.id,
                template_id=record.template_id,
                name=record.name,
                level=record.level,
                exp=record.exp,
                is_battle=record.is_battle,
                properties=_properties_json(template),
            ))
        return pets

    def add_pet(self, user_id: int, template_id: int) -> ActionResult:
        """Give the user a new level-1 pet of the given template."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if template_id == 0:
            raise UserServiceError("invalid template id")

        try:
            template = self._pet_template(template_id)
        except Exception as exc:
            applog.error("Failed to get pet template", error=str(exc))
            return ActionResult(success=False, message="宠物模板不存在")

        pet = PetRecord(user_id=user_id, template_id=template_id,
                        name=template.name, level=1, exp=0, is_battle=False)
        try:
            pet.id = self._next_id()
        except Exception as exc:
            applog.error("Failed to generate pet ID", error=str(exc))
            raise UserServiceError("failed to generate pet ID") from exc

        try:
            self._db.create_pet(pet)
        except Exception as exc:
            applog.error("CreatePet error", error=str(exc))
            raise UserServiceError("failed to create pet") from exc

        self._invalidate(user_id)
        return ActionResult(success=True, message="宠物添加成功")

    def set_pet_battle_status(self, user_id: int, pet_id: int,
                              is_battle: bool) -> ActionResult:
        """Send a pet into battle or stand it down."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if pet_id == 0:
            raise UserServiceError("invalid pet id")

        pet = self._owned_pet(user_id, pet_id)
        if isinstance(pet, str):
            return ActionResult(success=False, message=pet)

        try:
            self._db.set_pet_battle_status(user_id, pet_id, is_battle)
        except Exception as exc:
            applog.error("SetPetBattleStatus error", error=str(exc))
            raise UserServiceError("failed to set pet battle status") from exc

        self._invalidate(user_id)
        status = "出战" if is_battle else "休战"
        return ActionResult(success=True, message=f"宠物{status}成功")

    def add_pet_exp(self, user_id: int, pet_id: int, exp: int) -> ActionResult:
        """Add experience to a pet, levelling it up as far as the config allows."""
        if user_id == 0:
            raise UserServiceError("invalid user id")
        if pet_id == 0:
            raise UserServiceError("invalid pet id")
        if exp <= 0:
            raise UserServiceError("invalid exp value")

        pet = self._owned_pet(user_id, pet_id)
        if isinstance(pet, str):
            return ActionResult(success=False, message=pet)

        pet.exp += exp
        while True:
            try:
                template = self._level_template(pet.template_id, pet.level)
            except Exception:
                break
            if pet.exp < template.exp:
                break
            pet.level += 1
            pet.exp -= template.exp

        try:
            self._db.update_pet(pet)
        except Exception as exc:
            applog.error("UpdatePet error", error=str(exc))
            raise UserServiceError("failed to update pet") from exc

        self._invalidate(user_id)
        return ActionResult(success=True, message="经验增加成功")