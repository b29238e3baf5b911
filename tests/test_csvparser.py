from dataclasses import dataclass, field
from typing import Optional

import pytest

from gameuser.csvparser import CSVParseError, CSVParser


@dataclass
class Reward:
    item_id: int = 0
    count: int = 0


@dataclass
class Attribute:
    atk: int = 0
    defence: int = field(default=0, metadata={"json": "def"})
    hp_max: int = 0


@dataclass
class Row:
    id: int = 0
    name: str = ""
    ratio: float = 0.0
    enabled: bool = False
    reward: list[Reward] = field(default_factory=list)
    attribute: Attribute = field(default_factory=Attribute)
    weights: dict[str, int] = field(default_factory=dict)
    bonus: Optional[int] = None
    hidden: str = field(default="keep", metadata={"csv": "-"})
    display: str = field(default="", metadata={"csv": "displayName"})


@dataclass
class Unsupported:
    value: complex = 0j


@pytest.fixture
def parser():
    return CSVParser()


def test_parses_all_kinds_of_fields(parser):
    data = (
        "id,name,ratio,enabled,reward,attribute,weights,bonus,displayName\n"
        '5,Sword,1.5,true,"[{""itemId"":10,""count"":2}]",'
        '"{""atk"":3,""def"":4,""hpMax"":9}","{""a"":1}",8,Blade\n'
    )
    (row,) = parser.unmarshal_string(data, Row)
    assert row.id == 5
    assert row.name == "Sword"
    assert row.ratio == 1.5
    assert row.enabled is True
    assert row.reward == [Reward(item_id=10, count=2)]
    assert row.attribute == Attribute(atk=3, defence=4, hp_max=9)
    assert row.weights == {"a": 1}
    assert row.bonus == 8
    assert row.display == "Blade"


def test_empty_cells_keep_defaults(parser):
    rows = parser.unmarshal_string("id,name,bonus,reward\n7,,,\n", Row)
    assert rows == [Row(id=7)]


def test_unknown_and_excluded_columns_are_ignored(parser):
    rows = parser.unmarshal_string("id,hidden,colour\n3,changed,red\n", Row)
    assert rows[0].hidden == "keep"
    assert rows[0].id == 3


def test_rows_keep_their_order(parser):
    rows = parser.unmarshal_string("id,name\n1,a\n2,b\n3,c\n", Row)
    assert [(r.id, r.name) for r in rows] == [(1, "a"), (2, "b"), (3, "c")]


def test_header_only_gives_no_rows(parser):
    assert parser.unmarshal_string("id,name\n", Row) == []


def test_blank_lines_are_skipped(parser):
    rows = parser.unmarshal_string("id\n\n4\n\n", Row)
    assert [r.id for r in rows] == [4]


@pytest.mark.parametrize("text,expected", [("T", True), ("0", False), ("False", False)])
def test_bool_spellings(parser, text, expected):
    (row,) = parser.unmarshal_string(f"enabled\n{text}\n", Row)
    assert row.enabled is expected


def test_empty_data_is_an_error(parser):
    with pytest.raises(CSVParseError, match="empty CSV data"):
        parser.unmarshal_string("", Row)


def test_bad_int_reports_row_and_field(parser):
    with pytest.raises(CSVParseError, match="row 2: error setting field id"):
        parser.unmarshal_string("id\n1\nabc\n", Row)


def test_bad_bool_is_an_error(parser):
    with pytest.raises(CSVParseError, match="bool"):
        parser.unmarshal_string("enabled\nyes\n", Row)


def test_bad_json_is_an_error(parser):
    with pytest.raises(CSVParseError, match="JSON"):
        parser.unmarshal_string("reward\n[oops\n", Row)


def test_json_type_mismatch_is_an_error(parser):
    with pytest.raises(CSVParseError):
        parser.unmarshal_string('reward\n"{""itemId"":1}"\n', Row)


def test_wrong_field_count_is_an_error(parser):
    with pytest.raises(CSVParseError, match="wrong number of fields"):
        parser.unmarshal_string("id,name\n1,a,extra\n", Row)


def test_unsupported_type_is_an_error(parser):
    with pytest.raises(CSVParseError, match="unsupported field type"):
        parser.unmarshal_string("value\n1\n", Unsupported)


def test_dest_must_be_dataclass(parser):
    with pytest.raises(CSVParseError, match="dataclass"):
        parser.unmarshal_string("id\n1\n", dict)