"""Monthly sign-in: daily check-ins and cumulative rewards kept as day bitmaps."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from gameuser import applog
from gameuser.bitmap import count_bits, get_set_bits, has_bit, set_bit
from gameuser.cache_service import CacheService
from gameuser.messages import ActionResult, Item, MonthlySignInfo, UserServiceError

LOCK_TTL = 30.0
LOCK_WAIT = 5.0
SIGN_TABLE = "monthly_sign"
CUMULATIVE_TABLE = "monthly_sign_cumulative"

_TIME_FIELDS = {"last_sign_time", "created_at", "updated_at"}


class _SignStore(Protocol):
    def get_monthly_sign(self, user_id: int) -> MonthlySign | None: ...

    def create_or_update_monthly_sign(self, sign: MonthlySign) -> None: ...

    def get_monthly_sign_reward(self, user_id: int) -> MonthlySignReward | None: ...

    def create_or_update_monthly_sign_reward(self, reward: MonthlySignReward) -> None: ...


class _ConfigSource(Protocol):
    def get_config(self, name: str) -> Any: ...


class _LockClient(Protocol):
    def lock(self, key: str, ttl: float, wait: float) -> Any: ...

    def unlock(self, key: str) -> Any: ...


def _record_to_dict(record: Any) -> dict[str, Any]:
    data = dataclasses.asdict(record)
    for name in _TIME_FIELDS & data.keys():
        value = data[name]
        data[name] = value.isoformat() if value is not None else None
    return data


def _record_from_dict(cls: type, data: dict[str, Any]) -> Any:
    values = {}
    for f in dataclasses.fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        if f.name in _TIME_FIELDS:
            value = datetime.fromisoformat(value) if value else None
        values[f.name] = value
    return cls(**values)


@dataclass
class MonthlySign:
    """A user's sign-in record for one month; bit n of sign_days is day n."""

    user_id: int = 0
    year: int = 0
    month: int = 0
    sign_days: int = 0
    last_sign_time: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return _record_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthlySign:
        return _record_from_dict(cls, data)


@dataclass
class MonthlySignReward:
    """Cumulative rewards claimed in one month; bit n means the n-day reward."""

    user_id: int = 0
    year: int = 0
    month: int = 0
    reward_days: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return _record_to_dict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MonthlySignReward:
        return _record_from_dict(cls, data)


class MonthlySignService:
    """Signs users in for the day and hands out daily and cumulative rewards.

    ``grant`` receives ``(user_id, rewards)`` whenever rewards are handed out;
    without it rewards are only reported in the result.
    """

    def __init__(
        self,
        db: _SignStore,
        config: _ConfigSource,
        locks: _LockClient,
        cache_service: CacheService,
        *,
        clock: Callable[[], datetime] = datetime.now,
        grant: Callable[[int, list[Item]], None] | None = None,
    ):
        self._db = db
        self._config = config
        self._locks = locks
        self._cache = cache_service
        self._clock = clock
        self._grant = grant

    def get_monthly_sign_info(self, user_id: int) -> MonthlySignInfo:
        """Return this month's sign-in state for ``user_id``."""
        now = self._clock()
        try:
            sign = self._load_sign(user_id)
        except Exception as exc:
            raise UserServiceError(f"failed to get monthly sign: {exc}") from exc
        if sign is None:
            sign = MonthlySign(
                user_id=user_id,
                year=now.year,
                month=now.month,
                created_at=now,
                updated_at=now,
            )
        return MonthlySignInfo(
            year=now.year,
            month=now.month,
            sign_days=get_set_bits(sign.sign_days),
            total_sign_days=count_bits(sign.sign_days),
            can_sign_today=self.can_sign_today(sign),
            today=now.day,
        )

    def monthly_sign(self, user_id: int) -> ActionResult:
        """Sign ``user_id`` in for today and return the day's rewards."""
        now = self._clock()
        today = now.day
        key = f"monthly_sign:{user_id}:{now.year}:{now.month}"
        with self._locked(key, "获取签到锁失败"):
            sign = self._attempt("获取签到信息失败", self._load_sign, user_id)
            if sign is None:
                sign = MonthlySign(
                    user_id=user_id,
                    year=now.year,
                    month=now.month,
                    created_at=now,
                    updated_at=now,
                )
            if not self.can_sign_today(sign):
                return ActionResult(success=False, message="今日已签到")

            sign.sign_days = set_bit(sign.sign_days, today)
            sign.last_sign_time = now
            sign.updated_at = now
            self._attempt("保存签到记录失败", self._db.create_or_update_monthly_sign, sign)
            self._invalidate(self._cache.invalidate_monthly_sign_cache, user_id,
                             "Failed to invalidate monthly sign cache")

            rewards = self._attempt("获取签到奖励失败", self._sign_rewards, today)
            self._attempt("发放奖励失败", self._give_rewards, user_id, rewards)
            return ActionResult(success=True, message="签到成功", rewards=rewards)

    def claim_monthly_sign_reward(self, user_id: int, days: int) -> ActionResult:
        """Claim the reward for having signed in on ``days`` days this month."""
        now = self._clock()
        key = f"monthly_sign_reward:{user_id}:{now.year}:{now.month}"
        with self._locked(key, "获取奖励锁失败"):
            sign = self._attempt("获取签到信息失败", self._load_sign, user_id)
            if sign is None:
                return ActionResult(success=False, message="本月未签到")
            if count_bits(sign.sign_days) < days:
                return ActionResult(success=False, message="累计签到天数不足")

            reward = self._attempt("获取奖励记录失败", self._load_reward, user_id)
            if reward is None:
                reward = MonthlySignReward(
                    user_id=user_id,
                    year=now.year,
                    month=now.month,
                    created_at=now,
                    updated_at=now,
                )
            if has_bit(reward.reward_days, days):
                return ActionResult(success=False, message="该奖励已领取")

            rewards = self._attempt("获取累计奖励失败", self._cumulative_rewards, days)
            self._attempt("发放奖励失败", self._give_rewards, user_id, rewards)

            reward.reward_days = set_bit(reward.reward_days, days)
            reward.updated_at = now
            self._attempt("保存奖励记录失败",
                          self._db.create_or_update_monthly_sign_reward, reward)
            self._invalidate(self._cache.invalidate_monthly_sign_reward_cache, user_id,
                             "Failed to invalidate monthly sign reward cache")
            return ActionResult(success=True, message="领取奖励成功", rewards=rewards)

    def can_sign_today(self, sign: MonthlySign) -> bool:
        """Tell whether ``sign`` allows signing in today."""
        now = self._clock()
        if sign.year != now.year or sign.month != now.month:
            return True
        return not has_bit(sign.sign_days, now.day)

    def _load_sign(self, user_id: int) -> MonthlySign | None:
        return self._cache.get_monthly_sign_with_cache(
            user_id, lambda: self._db.get_monthly_sign(user_id)
        )

    def _load_reward(self, user_id: int) -> MonthlySignReward | None:
        return self._cache.get_monthly_sign_reward_with_cache(
            user_id, lambda: self._db.get_monthly_sign_reward(user_id)
        )

    @contextmanager
    def _locked(self, key: str, failure: str) -> Iterator[None]:
        try:
            acquired = self._locks.lock(key, LOCK_TTL, LOCK_WAIT)
        except Exception as exc:
            raise UserServiceError(failure) from exc
        if acquired is False:
            raise UserServiceError(failure)
        try:
            yield
        finally:
            try:
                self._locks.unlock(key)
            except Exception as exc:
                applog.error("failed to release lock", key=key, error=str(exc))

    @staticmethod
    def _attempt(failure: str, action: Callable[..., Any], *args: Any) -> Any:
        try:
            return action(*args)
        except Exception as exc:
            raise UserServiceError(failure) from exc

    @staticmethod
    def _invalidate(invalidate: Callable[[int], None], user_id: int, note: str) -> None:
        try:
            invalidate(user_id)
        except Exception as exc:
            applog.error(note, userID=user_id, error=str(exc))

    def _rewards_from(self, table: str, key: int, missing: str,
                      malformed: str, not_found: str) -> list[Item]:
        rows = self._config.get_config(table)
        if rows is None:
            raise UserServiceError(missing)
        if isinstance(rows, (str, bytes)) or not isinstance(rows, Sequence):
            raise UserServiceError(malformed)
        entry = next((row for row in rows if row.id == key), None)
        if entry is None:
            raise UserServiceError(not_found)
        return [
            Item(item_id=0, template_id=reward.item_id, count=reward.count)
            for reward in entry.reward
        ]

    def _sign_rewards(self, day: int) -> list[Item]:
        return self._rewards_from(
            SIGN_TABLE, day, "未找到月签到配置", "签到配置格式错误",
            f"未找到第{day}天的签到配置",
        )

    def _cumulative_rewards(self, days: int) -> list[Item]:
        return self._rewards_from(
            CUMULATIVE_TABLE, days, "未找到月签到累计奖励配置", "累计奖励配置格式错误",
            f"未找到{days}天累计奖励配置",
        )

    def _give_rewards(self, user_id: int, rewards: list[Item]) -> None:
        if self._grant is not None:
            self._grant(user_id, rewards)