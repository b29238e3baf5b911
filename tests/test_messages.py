import pytest

from gameuser.messages import (
    ActionResult,
    Card,
    Inventory,
    Item,
    LoginResult,
    MonthlySignInfo,
    to_dict,
)


def test_nested_inventory_to_dict():
    inventory = Inventory(items=[Item(template_id=5, count=2)], capacity=10)
    data = to_dict(inventory)
    assert data["capacity"] == 10
    assert data["items"][0]["template_id"] == 5
    assert data["items"][0]["count"] == 2
    assert data["items"][0]["equipped"] is False


def test_item_round_trip():
    item = Item(item_id=1, template_id=2, name="Potion", count=3, stack=99)
    assert Item(**to_dict(item)) == item


def test_card_round_trip():
    card = Card(id=4, template_id=8, name="Knight", level=1, activated=True)
    assert Card(**to_dict(card)) == card


def test_action_result_rewards_are_independent():
    first = ActionResult()
    second = ActionResult()
    first.rewards.append(Item(template_id=1))
    assert second.rewards == []


def test_action_result_with_rewards():
    result = ActionResult(success=True, message="ok", rewards=[Item(template_id=3)])
    data = to_dict(result)
    assert data["success"] is True
    assert [reward["template_id"] for reward in data["rewards"]] == [3]


def test_sign_info_to_dict():
    info = MonthlySignInfo(year=2024, month=5, sign_days=[1, 2], total_sign_days=2)
    data = to_dict(info)
    assert data["sign_days"] == [1, 2]
    assert data["total_sign_days"] == len(info.sign_days)


def test_login_result_fields():
    result = LoginResult(user_id=9, token="token", expires_at=100)
    assert to_dict(result) == {"user_id": 9, "token": "token", "expires_at": 100}


@pytest.mark.parametrize("value", [{"a": 1}, 3, Item])
def test_to_dict_rejects_non_messages(value):
    with pytest.raises(TypeError):
        to_dict(value)