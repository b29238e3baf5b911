# gameuser

Business logic for the user side of a game server, as a plain Python
library. Storage, caching, authentication and design-config lookup are
passed in as objects, so the logic runs against any backend, or against
simple in-memory fakes in tests.

## Modules

- `gameuser.handler`: `Handler`, a single object that answers every request
  (register, login, user info, inventory, equipment, cards, pets and monthly
  sign-in) by delegating to the services below.
- `gameuser.accounts`: `User` and `AccountService` (`register`, `login`,
  `get_user_info`).
- `gameuser.inventory`: `InventoryService` (`get_inventory`, `add_item`,
  `remove_item`, `use_item`, `get_equipments`, `equip_item`, `unequip_item`).
- `gameuser.cards`: `CardRecord` and `CardService` (`get_user_cards`,
  `activate_card`, `upgrade_card`, `upgrade_card_star`, `consume_items`).
- `gameuser.pets`: `PetRecord` and `PetService` (`get_user_pets`, `add_pet`,
  `set_pet_battle_status`, `add_pet_exp`). Adding experience levels a pet up
  for as long as the `pet_level` table has a row for its current level and
  enough experience remains.
- `gameuser.signin`: `MonthlySign`, `MonthlySignReward` and
  `MonthlySignService` (`get_monthly_sign_info`, `monthly_sign`,
  `claim_monthly_sign_reward`, `can_sign_today`). Signed days and claimed
  cumulative rewards are stored as day bitmaps, and both actions run under
  a lock taken from the cache client.
- `gameuser.cache_service`: `CacheService`, a read-through cache for user
  info, inventory, cards, pets, equipment and sign-in records, with one
  `invalidate_*` method per kind. Cached JSON that cannot be decoded raises
  `CacheDataError`.
- `gameuser.bitmap`: 31-bit day bitmaps (`set_bit`, `clear_bit`, `get_bit`,
  `get_set_bits`, `count_bits`, `has_bit`, `is_empty`, `is_full`). Bits are
  numbered from 1 to 31, and any bit outside that range is ignored.
- `gameuser.csvparser`: `CSVParser.unmarshal_string(csv_data, dest_type)`
  turns design-table CSV text into a list of dataclass instances. It raises
  `CSVParseError` on bad input.
- `gameuser.tables`: `TABLES`, the design-config tables the service uses,
  each a `TableSpec`, and `find_table(name)`.
- `gameuser.messages`: the result records (`Item`, `Inventory`, `Card`,
  `Pet`, `Equipment`, `UserInfo`, `LoginResult`, `MonthlySignInfo`,
  `ActionResult`), `UserServiceError`, and `to_dict` to turn any record into
  plain dicts and lists.
- `gameuser.applog`: structured logging that writes one JSON object per line
  to stderr (`info`, `warn`, `error`, `debug`, `fatal`, `with_field`,
  `with_fields`, `get_logger`, `sync`). `fatal` logs and then raises
  `SystemExit(1)`.

## Errors and refusals

Invalid requests, such as a zero user id or a non-positive count, raise
`gameuser.messages.UserServiceError`. Business refusals, such as a card that
is already active or a reward that was already claimed, come back as an
`ActionResult` with `success=False` and a message.

## Wiring a Handler

```python
from gameuser.handler import Handler

handler = Handler(
    db,              # user store
    cache_client,    # set_token(user_id, token, ttl), lock(key, ttl, wait), unlock(key)
    cache_manager,   # get_or_set(key, strategy, loader), invalidate(key)
    next_id,         # callable returning a new unique id
    auth,            # generate_salt, hash_password, verify_password, generate_token
    config_manager,  # get_config(name), get_item_by_id, get_equipment_by_id,
                     # get_card_by_id, get_pet_by_id
    secret_key="secret",
    token_expire_time=3600,
)
```

Optional keyword arguments: `clock` (defaults to `datetime.now`),
`decoders` (turn cached JSON back into records, per cache kind) and `grant`
(called as `grant(user_id, rewards)` whenever sign-in rewards are handed
out). A `None` for any required dependency raises `ValueError`.

## Examples

Day bitmaps:

```python
from gameuser import bitmap

days = 0
days = bitmap.set_bit(days, 1)
days = bitmap.set_bit(days, 15)
assert bitmap.get_set_bits(days) == [1, 15]
assert bitmap.count_bits(days) == 2
```

Reading a design table. Columns match fields by their lower-cased name (or a
`csv` entry in the field's metadata; `"-"` excludes the field), nested fields
are read from JSON in the cell, and empty cells keep the field's default:

```python
from dataclasses import dataclass, field
from gameuser.csvparser import CSVParser

@dataclass
class Reward:
    item_id: int = 0
    count: int = 0

@dataclass
class SignDay:
    id: int = 0
    reward: list[Reward] = field(default_factory=list)

rows = CSVParser().unmarshal_string(
    'id,reward\n1,"[{""item_id"":1001,""count"":2}]"\n', SignDay
)
assert rows[0].reward == [Reward(item_id=1001, count=2)]
```

## What this package does not do

- It has no storage of its own: users, items, cards, pets and sign-in
  records live in whatever `db` object is passed in.
- It has no cache store or lock service; `cache_manager` and `cache_client`
  provide them.
- It does not hash passwords, issue tokens or generate ids; `auth` and
  `next_id` do that.
- It does not load design-config files; `config_manager` serves the tables
  listed in `gameuser.tables`, and `CSVParser` can be used to read them.
- Sign-in rewards are only reported in the result unless a `grant` callback
  puts them in the player's bag.
- It runs no network server and has no command-line program; it is a
  library to be called from one.

## Installing

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```