"""Design-config tables the user service loads."""

from dataclasses import dataclass

BASE_GROUP = "base"


@dataclass(frozen=True)
class TableSpec:
    """One design-config table: its data file, table name and record type."""

    data_id: str
    table_name: str
    record_type: str
    group: str = BASE_GROUP


TABLES: tuple[TableSpec, ...] = (
    TableSpec("item.csv", "item", "ItemData"),
    TableSpec("level.csv", "level", "LevelData"),
    TableSpec("equipment.csv", "equipment", "EquipmentData"),
    TableSpec("pet.csv", "pet", "PetData"),
    TableSpec("pet_level.csv", "pet_level", "PetLevelData"),
    TableSpec("card.csv", "card", "CardData"),
    TableSpec("card_star.csv", "card_star", "CardStarData"),
    TableSpec("card_level.csv", "card_level", "CardLevelData"),
    TableSpec("monthly_sign.csv", "monthly_sign", "MonthlySignData"),
    TableSpec(
        "monthly_sign_cumulative.csv",
        "monthly_sign_cumulative",
        "MonthlySignCumulativeData",
    ),
)


def find_table(name: str) -> TableSpec:
    """Return the table with the given table name; raise KeyError if unknown."""
    for spec in TABLES:
        if spec.table_name == name:
            return spec
    raise KeyError(f"unknown config table: {name}")