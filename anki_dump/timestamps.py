"""
Epoch timestamp codecs for Anki database columns.

Anki stores two kinds of timestamps as plain integers:

- seconds since 1970/1/1 (``cards.mod``, review log times)
- milliseconds since 1970/1/1 (``col.crt``, ``col.mod``, ``col.scm``)

Depending on how a row was written, SQLite may hand back an ``int``, a
``float`` or a numeric ``str`` for the same column, so decoding accepts all
three. Encoding only uses integer arithmetic, which makes
``encode_x(decode_x(t)) == t`` hold for every integer ``t``.
"""

from datetime import datetime, timedelta, timezone

from anki_dump.errors import ColumnTypeError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_int(value: object, unit: str) -> int | None:
    """Coerce a raw column value to an integer count, or ``None`` for datetimes."""
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ColumnTypeError(f"Cannot convert {value!r} to {unit} timestamp")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        try:
            return int(value)
        except (OverflowError, ValueError) as exc:
            raise ColumnTypeError(
                f"Cannot convert {value!r} to {unit} timestamp"
            ) from exc
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as exc:
            raise ColumnTypeError(
                f"Cannot convert {value!r} to {unit} timestamp"
            ) from exc
    if isinstance(value, datetime):
        return None
    raise ColumnTypeError(
        f"Cannot convert {type(value).__name__} {value!r} to {unit} timestamp"
    )


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _from_epoch(count: int, unit: str) -> datetime:
    """Add ``count`` units to the epoch, within the range of :class:`datetime`."""
    try:
        return EPOCH + timedelta(**{unit: count})
    except OverflowError as exc:
        raise ColumnTypeError(
            f"{unit.capitalize()} timestamp {count} is out of range"
        ) from exc


def decode_seconds(value: object) -> datetime:
    """
    Decode a seconds-resolution epoch column.

    :param value: Raw column value (int, float, numeric str, datetime or None).
    :returns: Timezone-aware UTC datetime. ``None`` decodes to the epoch.
    :raises ColumnTypeError: For any other representation, NaN or infinite
        floats, and values outside the range of :class:`datetime`.
    """
    secs = _to_int(value, "seconds")
    if secs is None:
        return _as_utc(value)
    return _from_epoch(secs, "seconds")


def encode_seconds(value: datetime) -> int:
    """Encode a datetime as whole seconds since the epoch."""
    delta = _as_utc(value) - EPOCH
    return delta.days * 86400 + delta.seconds


def decode_millis(value: object) -> datetime:
    """
    Decode a milliseconds-resolution epoch column.

    :param value: Raw column value (int, float, numeric str, datetime or None).
    :returns: Timezone-aware UTC datetime. ``None`` decodes to the epoch.
    :raises ColumnTypeError: For any other representation, NaN or infinite
        floats, and values outside the range of :class:`datetime`.
    """
    msecs = _to_int(value, "milliseconds")
    if msecs is None:
        return _as_utc(value)
    return _from_epoch(msecs, "milliseconds")


def encode_millis(value: datetime) -> int:
    """Encode a datetime as whole milliseconds since the epoch."""
    delta = _as_utc(value) - EPOCH
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000
