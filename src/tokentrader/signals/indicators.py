"""Technical indicators over Decimal price and volume lists.

Every function is pure: it takes values ordered oldest first and returns a
list of indicator values ordered oldest first, aligned to the END of the
input (the last output corresponds to the last input). Inputs shorter than
an indicator's warm-up produce an empty list rather than raising.

Series carry a single price per sample, so indicators that normally take
high/low/close use the price for all three.

CRITICAL: All computations use Decimal. Never use float.
"""

from decimal import Decimal

_ZERO = Decimal("0")
_ONE = Decimal("1")
_HUNDRED = Decimal("100")
_CCI_CONSTANT = Decimal("0.015")


def compute_sma(values: list[Decimal], period: int) -> list[Decimal]:
    """Simple moving average; ``len(values) - period + 1`` outputs."""
    if period <= 0 or len(values) < period:
        return []
    divisor = Decimal(period)
    window = sum(values[:period], _ZERO)
    result = [window / divisor]
    for i in range(period, len(values)):
        window += values[i] - values[i - period]
        result.append(window / divisor)
    return result


def compute_ema(values: list[Decimal], span: int) -> list[Decimal]:
    """Compute Exponential Moving Average over a list of Decimal values.

    Uses the standard recursive formula:
        alpha = 2 / (span + 1)
        EMA_t = alpha * value_t + (1 - alpha) * EMA_{t-1}

    First EMA value = first input value. Output has the same length as input.
    """
    if not values:
        return []

    alpha = Decimal("2") / (Decimal(span) + _ONE)
    one_minus_alpha = _ONE - alpha

    ema = [values[0]]
    for v in values[1:]:
        ema.append(alpha * v + one_minus_alpha * ema[-1])
    return ema


def compute_rsi(values: list[Decimal], period: int = 14) -> list[Decimal]:
    """Relative Strength Index with Wilder smoothing.

    The first value uses simple averages of the first ``period`` gains and
    losses; later values smooth as ``(prev * (period - 1) + current) / period``.
    Needs ``period + 1`` prices. A window with no losses reads 100 (or 50 when
    the price did not move at all).
    """
    if len(values) < period + 1:
        return []

    gains: list[Decimal] = []
    losses: list[Decimal] = []
    for prev, cur in zip(values, values[1:]):
        change = cur - prev
        gains.append(change if change > 0 else _ZERO)
        losses.append(-change if change < 0 else _ZERO)

    p = Decimal(period)
    avg_gain = sum(gains[:period], _ZERO) / p
    avg_loss = sum(losses[:period], _ZERO) / p

    rsi = [_rsi_value(avg_gain, avg_loss)]
    for gain, loss in zip(gains[period:], losses[period:]):
        avg_gain = (avg_gain * (p - _ONE) + gain) / p
        avg_loss = (avg_loss * (p - _ONE) + loss) / p
        rsi.append(_rsi_value(avg_gain, avg_loss))
    return rsi


def _rsi_value(avg_gain: Decimal, avg_loss: Decimal) -> Decimal:
    if avg_loss == 0:
        return _HUNDRED if avg_gain > 0 else Decimal("50")
    rs = avg_gain / avg_loss
    return _HUNDRED - _HUNDRED / (_ONE + rs)


def compute_roc(values: list[Decimal], period: int = 12) -> list[Decimal]:
    """Rate of change in percent against the price ``period`` samples back."""
    result: list[Decimal] = []
    for i in range(period, len(values)):
        base = values[i - period]
        result.append((values[i] - base) / base * _HUNDRED if base != 0 else _ZERO)
    return result


def compute_cci(values: list[Decimal], period: int = 20) -> list[Decimal]:
    """Commodity Channel Index: (tp - sma) / (0.015 * mean deviation)."""
    if len(values) < period:
        return []
    p = Decimal(period)
    result: list[Decimal] = []
    for end in range(period, len(values) + 1):
        window = values[end - period:end]
        mean = sum(window, _ZERO) / p
        mean_dev = sum((abs(v - mean) for v in window), _ZERO) / p
        if mean_dev == 0:
            result.append(_ZERO)
        else:
            result.append((window[-1] - mean) / (_CCI_CONSTANT * mean_dev))
    return result


def compute_adx(values: list[Decimal], period: int = 14) -> list[Decimal]:
    """Average Directional Index (Wilder), trend strength 0-100.

    Needs ``2 * period`` prices: ``period`` moves to seed the directional
    indicators and ``period`` DX values to seed the ADX.
    """
    if len(values) < 2 * period:
        return []

    plus_dm: list[Decimal] = []
    minus_dm: list[Decimal] = []
    true_range: list[Decimal] = []
    for prev, cur in zip(values, values[1:]):
        up = cur - prev
        down = prev - cur
        plus_dm.append(up if up > down and up > 0 else _ZERO)
        minus_dm.append(down if down > up and down > 0 else _ZERO)
        true_range.append(abs(cur - prev))

    p = Decimal(period)
    s_plus = sum(plus_dm[:period], _ZERO)
    s_minus = sum(minus_dm[:period], _ZERO)
    s_tr = sum(true_range[:period], _ZERO)

    dx_values = [_dx(s_plus, s_minus, s_tr)]
    for i in range(period, len(true_range)):
        s_plus = s_plus - s_plus / p + plus_dm[i]
        s_minus = s_minus - s_minus / p + minus_dm[i]
        s_tr = s_tr - s_tr / p + true_range[i]
        dx_values.append(_dx(s_plus, s_minus, s_tr))

    adx = [sum(dx_values[:period], _ZERO) / p]
    for dx in dx_values[period:]:
        adx.append((adx[-1] * (p - _ONE) + dx) / p)
    return adx


def _dx(s_plus: Decimal, s_minus: Decimal, s_tr: Decimal) -> Decimal:
    if s_tr == 0:
        return _ZERO
    plus_di = _HUNDRED * s_plus / s_tr
    minus_di = _HUNDRED * s_minus / s_tr
    total = plus_di + minus_di
    if total == 0:
        return _ZERO
    return _HUNDRED * abs(plus_di - minus_di) / total


def compute_force_index(
    prices: list[Decimal], volumes: list[Decimal], period: int = 13
) -> list[Decimal]:
    """EMA-smoothed Force Index: (price_t - price_{t-1}) * volume_t."""
    if len(prices) < period + 1 or len(volumes) != len(prices):
        return []
    raw = [
        (prices[i] - prices[i - 1]) * volumes[i] for i in range(1, len(prices))
    ]
    return compute_ema(raw, period)


def compute_awesome_oscillator(
    values: list[Decimal], fast: int = 5, slow: int = 34
) -> list[Decimal]:
    """SMA(fast) - SMA(slow) of the median price, aligned to the slow window."""
    slow_sma = compute_sma(values, slow)
    if not slow_sma:
        return []
    fast_sma = compute_sma(values, fast)[-len(slow_sma):]
    return [f - s for f, s in zip(fast_sma, slow_sma)]


def compute_macd_histogram(
    values: list[Decimal], fast: int = 12, slow: int = 26, signal: int = 9
) -> list[Decimal]:
    """MACD line minus its signal line.

    The MACD line starts once the slow EMA has seen ``slow`` prices; the
    histogram starts once the signal EMA has seen ``signal`` MACD values.
    """
    if len(values) < slow + signal - 1:
        return []
    fast_ema = compute_ema(values, fast)
    slow_ema = compute_ema(values, slow)
    macd_line = [f - s for f, s in zip(fast_ema[slow - 1:], slow_ema[slow - 1:])]
    signal_line = compute_ema(macd_line, signal)
    return [m - s for m, s in zip(macd_line, signal_line)][signal - 1:]


def compute_ema_spread(
    values: list[Decimal], fast: int = 9, slow: int = 21
) -> list[Decimal]:
    """Fast EMA minus slow EMA, from the first index the slow EMA is warm."""
    if len(values) < slow:
        return []
    fast_ema = compute_ema(values, fast)
    slow_ema = compute_ema(values, slow)
    return [f - s for f, s in zip(fast_ema[slow - 1:], slow_ema[slow - 1:])]


def compute_bollinger_bands(
    values: list[Decimal], period: int = 20, std_dev: Decimal = Decimal("2")
) -> list[tuple[Decimal, Decimal, Decimal]]:
    """``(lower, middle, upper)`` bands using the population standard deviation."""
    if len(values) < period:
        return []
    p = Decimal(period)
    bands: list[tuple[Decimal, Decimal, Decimal]] = []
    for end in range(period, len(values) + 1):
        window = values[end - period:end]
        mean = sum(window, _ZERO) / p
        variance = sum(((v - mean) ** 2 for v in window), _ZERO) / p
        width = std_dev * variance.sqrt()
        bands.append((mean - width, mean, mean + width))
    return bands


def crossed_above(values: list[Decimal], level: Decimal = _ZERO) -> bool:
    """True when the last value is above ``level`` and the one before was not."""
    return len(values) >= 2 and values[-1] > level and values[-2] <= level


def crossed_below(values: list[Decimal], level: Decimal = _ZERO) -> bool:
    """True when the last value is below ``level`` and the one before was not."""
    return len(values) >= 2 and values[-1] < level and values[-2] >= level
