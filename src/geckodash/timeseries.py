"""Gap-filling normalizer for OHLCV candle series.

GeckoTerminal omits candles for intervals without trades, and delivers the
rest newest-first. Charts need an ascending series with one candle per
interval, so the holes are filled with flat candles at the previous close.

The filled series never extends past the last real observation: a quiet pool
shows a flat line up to its last trade, not up to "now".
"""

from dataclasses import replace
from datetime import datetime, timezone

from geckodash.models import OHLCVPoint, Timeframe


def format_timestamp(timestamp: int) -> str:
    """Render unix seconds as e.g. ``2024-01-01 00:05:00.000 UTC``."""
    dt = datetime.fromtimestamp(timestamp, tz=timezone.utc)
    return dt.strftime("%Y-%m-%d %H:%M:%S.") + f"{dt.microsecond // 1000:03d} UTC"


def fill_time_series_gaps(
    points: list[OHLCVPoint], timeframe: Timeframe | str
) -> list[OHLCVPoint]:
    """Return an ascending, gap-free copy of ``points`` for the given timeframe.

    Walks consecutive pairs of the sorted input. After each real point, emits a
    synthetic candle every ``interval`` seconds until the next real timestamp
    is reached; synthetic candles have open = high = low = close = the previous
    real close and zero volume. Every point in the output carries a
    ``readable_timestamp``.

    Points sharing a timestamp collapse to the last one seen, keeping the
    output strictly ascending. The input list is not modified.

    Args:
        points: Candles in any order (the API delivers newest first).
        timeframe: Timeframe enum or its string identifier.

    Returns:
        New list of points; empty when ``points`` is empty.

    Raises:
        UnknownTimeframeError: If ``timeframe`` is not a known identifier.
    """
    if not isinstance(timeframe, Timeframe):
        timeframe = Timeframe.parse(timeframe)
    interval = timeframe.interval_seconds

    if not points:
        return []

    by_timestamp = {point.timestamp: point for point in points}
    ordered = [by_timestamp[ts] for ts in sorted(by_timestamp)]

    filled: list[OHLCVPoint] = []
    for current, following in zip(ordered, ordered[1:] + [None]):
        filled.append(
            replace(current, readable_timestamp=format_timestamp(current.timestamp))
        )
        if following is None:
            break

        expected = current.timestamp + interval
        while expected < following.timestamp:
            filled.append(
                OHLCVPoint(
                    timestamp=expected,
                    open=current.close,
                    high=current.close,
                    low=current.close,
                    close=current.close,
                    volume=0.0,
                    readable_timestamp=format_timestamp(expected),
                )
            )
            expected += interval

    return filled
