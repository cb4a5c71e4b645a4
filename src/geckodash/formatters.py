"""Compact display formatting for market figures (1.23M, 4.5K, ...).

The API sends most figures as decimal strings; None, empty strings, zero and
unparseable values all render as "-".
"""


def _to_float(value: str | float | int | None) -> float | None:
    if not value:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if num != num:  # NaN
        return None
    return num


def _abbreviate(num: float, digits: int, suffixes: tuple[tuple[float, str], ...]) -> str:
    for threshold, suffix in suffixes:
        if num >= threshold:
            return f"{num / threshold:.{digits}f}{suffix}"
    return f"{num:.{digits}f}"


_BKM = ((1e9, "B"), (1e6, "M"), (1e3, "K"))
_MK = ((1e6, "M"), (1e3, "K"))


def format_number(value: str | float | int | None) -> str:
    """Market cap / FDV style: two decimals, B/M/K suffix."""
    num = _to_float(value)
    if num is None:
        return "-"
    return _abbreviate(num, 2, _BKM)


def format_volume_number(value: str | float | int | None) -> str:
    """Volume style: one decimal, B/M/K suffix."""
    num = _to_float(value)
    if num is None:
        return "-"
    return _abbreviate(num, 1, _BKM)


def format_price_change(value: str | None) -> str:
    """Percentage change magnitude without sign, one decimal, M/K suffix.

    Sign is dropped because the UI colours the cell instead
    (e.g. "+1358.8" -> "1.4K").
    """
    if not value:
        return "-"
    cleaned = value.lstrip("+-")
    try:
        num = float(cleaned)
    except ValueError:
        return cleaned
    return _abbreviate(num, 1, _MK)
