"""计费引擎 - 时长与金额之间的换算

纯函数，无 I/O，不读取全局时钟；所有时间都由调用方显式传入。
时间差统一换算为整数毫秒后用整数运算，避免浮点误差：

- cash：金额 → 时长，向下取整到毫秒
- vip：时长 → 金额，先向上取整到 1 个货币单位，再向上取整到 1000
  （取整方向对店家有利，这是计费规则本身）
"""
from dataclasses import dataclass
from datetime import datetime, timedelta

MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
ROUNDING_STEP = 1000


@dataclass(frozen=True)
class CompletionOutcome:
    """结算结果

    Attributes:
        accrued: 按实际时长计算的金额（已取整到 1000）
        elapsed_minutes: 实际游玩分钟数
        refund: 提前结束时应退还的金额
        remaining_minutes: 提前结束时剩余的分钟数
        finished_early: 是否在预付时长用完前结束
    """
    accrued: int
    elapsed_minutes: int
    refund: int = 0
    remaining_minutes: int = 0
    finished_early: bool = False


def _check_rate(price_per_hour: int) -> None:
    if price_per_hour <= 0:
        raise ValueError(f"price_per_hour must be positive, got {price_per_hour}")


def _millis(delta: timedelta) -> int:
    return delta // timedelta(milliseconds=1)


def round_up_to_thousand(raw: int) -> int:
    """向上取整到 1000 的整数倍"""
    return -(-raw // ROUNDING_STEP) * ROUNDING_STEP


def cash_duration_from_amount(amount: int, price_per_hour: int) -> timedelta:
    """预付金额可使用的时长：floor(amount / price * 3600000) 毫秒"""
    _check_rate(price_per_hour)
    return timedelta(milliseconds=amount * MS_PER_HOUR // price_per_hour)


def cash_end_time(start_time: datetime, amount: int, price_per_hour: int) -> datetime:
    return start_time + cash_duration_from_amount(amount, price_per_hour)


def accrued_amount(elapsed: timedelta, price_per_hour: int) -> int:
    """时长对应的金额，向上取整到 1000；负时长按 0 计。"""
    _check_rate(price_per_hour)
    ms = max(0, _millis(elapsed))
    raw = -(-ms * price_per_hour // MS_PER_HOUR)
    return round_up_to_thousand(raw)


def vip_accrued_amount(start_time: datetime, now: datetime, price_per_hour: int) -> int:
    return accrued_amount(now - start_time, price_per_hour)


def elapsed_minutes(start_time: datetime, now: datetime) -> int:
    return _millis(now - start_time) // MS_PER_MINUTE


def vip_completion_outcome(start_time: datetime, now: datetime,
                           price_per_hour: int) -> CompletionOutcome:
    return CompletionOutcome(
        accrued=vip_accrued_amount(start_time, now, price_per_hour),
        elapsed_minutes=elapsed_minutes(start_time, now),
    )


def cash_completion_outcome(start_time: datetime, end_time: datetime, summa: int,
                            now: datetime, price_per_hour: int) -> CompletionOutcome:
    """cash 订单结算

    now 早于 end_time 时视为提前结束：计算剩余分钟数和应退金额
    （原预付金额减去实际消费）；否则不产生退款字段。
    """
    accrued = accrued_amount(now - start_time, price_per_hour)
    minutes = elapsed_minutes(start_time, now)
    if end_time is not None and now < end_time:
        return CompletionOutcome(
            accrued=accrued,
            elapsed_minutes=minutes,
            refund=summa - accrued,
            remaining_minutes=_millis(end_time - now) // MS_PER_MINUTE,
            finished_early=True,
        )
    return CompletionOutcome(accrued=accrued, elapsed_minutes=minutes)
