import json
from types import SimpleNamespace

import pytest

from gameuser.cache_service import CacheService
from gameuser.cards import CardRecord, CardService
from gameuser.messages import UserServiceError

USER = 7


class FakeCacheManager:
    def __init__(self):
        self.store = {}
        self.invalidated = []

    def get_or_set(self, key, strategy, loader):
        if key in self.store:
            return self.store[key]
        return loader()

    def invalidate(self, key):
        self.invalidated.append(key)
        self.store.pop(key, None)


class FakeDB:
    def __init__(self):
        self.cards = {}
        self.items = {}
        self.fail_check = False
        self.next_id = 100

    def get_user_cards(self, user_id):
        return [c for c in self.cards.values() if c.user_id == user_id]

    def get_user_card(self, user_id, card_id):
        card = self.cards.get(card_id)
        if card is None or card.user_id != user_id:
            return None
        return CardRecord(**card.to_dict())

    def card_exists(self, user_id, template_id):
        return any(c.user_id == user_id and c.template_id == template_id
                   for c in self.cards.values())

    def create_card(self, card):
        self.next_id += 1
        card.id = self.next_id
        self.cards[card.id] = card

    def update_card(self, card):
        self.cards[card.id] = card

    def has_enough_items(self, user_id, item_id, count):
        if self.fail_check:
            raise RuntimeError("db down")
        return self.items.get((user_id, item_id), 0) >= count

    def remove_item(self, user_id, item_id, count):
        self.items[(user_id, item_id)] -= count


def cost(item_id, count):
    return SimpleNamespace(item_id=item_id, count=count)


class FakeConfig:
    def __init__(self):
        self.cards = {
            11: SimpleNamespace(
                name="Knight",
                attribute=SimpleNamespace(atk=10, defense=5, hp_max=100),
                cost=[cost(501, 3)],
            )
        }
        self.tables = {
            "card_level": [SimpleNamespace(card_id=11, level=1, cost=[cost(502, 2)])],
            "card_star": [SimpleNamespace(card_id=11, star=0, cost=[cost(503, 1)])],
        }

    def get_card_by_id(self, template_id):
        return self.cards[template_id]

    def get_config(self, name):
        return self.tables.get(name)


@pytest.fixture
def env():
    db = FakeDB()
    config = FakeConfig()
    manager = FakeCacheManager()
    cache = CacheService(manager, decoders={"user_cards": CardRecord.from_dict})
    return SimpleNamespace(db=db, config=config, manager=manager, cache=cache,
                           service=CardService(db, config, cache))


def test_get_user_cards_builds_properties_and_skips_unknown(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=2, star=1)
    env.db.cards[2] = CardRecord(id=2, user_id=USER, template_id=99, level=1)
    cards = env.service.get_user_cards(USER)
    assert [c.id for c in cards] == [1]
    card = cards[0]
    assert card.name == "Knight"
    assert card.activated is True
    assert (card.level, card.star) == (2, 1)
    assert card.properties == '{"atk":10,"def":5,"hpMax":100}'


def test_get_user_cards_decodes_cached_json(env):
    key = env.cache.key_for("user_cards", USER)
    stored = [CardRecord(id=5, user_id=USER, template_id=11, level=3).to_dict()]
    env.manager.store[key] = json.dumps(stored).encode()
    cards = env.service.get_user_cards(USER)
    assert [(c.id, c.level) for c in cards] == [(5, 3)]


def test_get_user_cards_invalid_user(env):
    with pytest.raises(UserServiceError, match="invalid user id"):
        env.service.get_user_cards(0)


def test_get_user_cards_load_failure(env):
    def broken(user_id):
        raise RuntimeError("db down")

    env.db.get_user_cards = broken
    with pytest.raises(UserServiceError, match="failed to get user cards"):
        env.service.get_user_cards(USER)


def test_activate_card_consumes_and_creates(env):
    env.db.items[(USER, 501)] = 5
    result = env.service.activate_card(USER, 11)
    assert result.success is True
    assert result.message == "卡牌激活成功"
    assert env.db.items[(USER, 501)] == 5 - 3
    created = env.db.get_user_cards(USER)
    assert [(c.template_id, c.level, c.star) for c in created] == [(11, 1, 0)]
    assert env.cache.key_for("user_cards", USER) in env.manager.invalidated


def test_activate_card_already_active(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=1)
    result = env.service.activate_card(USER, 11)
    assert (result.success, result.message) == (False, "卡牌已经激活")


def test_activate_card_unknown_template(env):
    result = env.service.activate_card(USER, 99)
    assert (result.success, result.message) == (False, "卡牌模板不存在")


def test_activate_card_insufficient_items(env):
    env.db.items[(USER, 501)] = 2
    result = env.service.activate_card(USER, 11)
    assert result.success is False
    assert result.message == "激活失败: insufficient items: item_id=501, required=3"
    assert env.db.get_user_cards(USER) == []


@pytest.mark.parametrize("user_id,template_id,message", [
    (0, 11, "invalid user id"),
    (USER, 0, "invalid template id"),
])
def test_activate_card_invalid_ids(env, user_id, template_id, message):
    with pytest.raises(UserServiceError, match=message):
        env.service.activate_card(user_id, template_id)


def test_upgrade_card_raises_level(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=1)
    env.db.items[(USER, 502)] = 2
    result = env.service.upgrade_card(USER, 1)
    assert (result.success, result.message) == (True, "卡牌升级成功")
    assert env.db.cards[1].level == 2
    assert env.db.items[(USER, 502)] == 0


def test_upgrade_card_without_next_template(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=4)
    result = env.service.upgrade_card(USER, 1)
    assert (result.success, result.message) == (False, "升级模板不存在")
    assert env.db.cards[1].level == 4


def test_upgrade_card_missing(env):
    result = env.service.upgrade_card(USER, 42)
    assert (result.success, result.message) == (False, "卡牌不存在")


def test_upgrade_card_invalid_card_id(env):
    with pytest.raises(UserServiceError, match="invalid card id"):
        env.service.upgrade_card(USER, 0)


def test_upgrade_card_star(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=1, star=0)
    env.db.items[(USER, 503)] = 1
    result = env.service.upgrade_card_star(USER, 1)
    assert (result.success, result.message) == (True, "卡牌升星成功")
    assert env.db.cards[1].star == 1


def test_upgrade_card_star_insufficient(env):
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=1, star=0)
    result = env.service.upgrade_card_star(USER, 1)
    assert result.success is False
    assert result.message == "升星失败: insufficient items: item_id=503, required=1"
    assert env.db.cards[1].star == 0


def test_upgrade_card_star_missing_config(env):
    env.config.tables.pop("card_star")
    env.db.cards[1] = CardRecord(id=1, user_id=USER, template_id=11, level=1)
    result = env.service.upgrade_card_star(USER, 1)
    assert (result.success, result.message) == (False, "升星模板不存在")


def test_consume_items_check_failure(env):
    env.db.fail_check = True
    with pytest.raises(UserServiceError, match="failed to check item count: db down"):
        env.service.consume_items(USER, [cost(501, 1)])


def test_card_record_round_trip():
    record = CardRecord(id=3, user_id=USER, template_id=11, level=2, star=4)
    assert CardRecord.from_dict(record.to_dict()) == record