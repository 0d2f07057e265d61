"""
Price frame schema and validation.

**Conceptual**: Every price history handed to the simulation (by the CSV
loader, the synthetic generator or a test) is a DataFrame with at least a
`timestamp` column and a `closing_price` column, one row per trading date,
sorted newest first. Validating this once at the boundary lets the price
table, calendars and strategies assume clean input.

**Schema rules**:
  - Required columns: timestamp, closing_price.
  - timestamp parseable as datetime, no duplicates after normalizing to dates.
  - Rows in strictly descending timestamp order.
  - closing_price numeric and strictly positive (a zero price cannot be traded).
"""

import pandas as pd


class SchemaValidationError(Exception):
    """
    Raised when a price frame does not conform to the expected schema.

    Messages carry the context (file path or symbol) so the broken input can be
    located without a debugger.
    """
    pass


PRICE_REQUIRED_COLUMNS = [
    'timestamp',
    'closing_price',
]


def validate_price_frame(
    df: pd.DataFrame,
    context: str | None = None,
) -> None:
    """
    Validate that a DataFrame conforms to the price schema.

    Args:
        df: Frame to validate.
        context: Optional description of the source (e.g. "data/raw/AAA.csv"),
                 included in error messages.

    Raises:
        SchemaValidationError: On missing columns, unparseable or unsorted
                              timestamps, or non-positive prices.
    """
    ctx = f"{context}: " if context else ""

    missing_cols = set(PRICE_REQUIRED_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{ctx}Missing required columns: {sorted(missing_cols)}. "
            f"Expected columns: {PRICE_REQUIRED_COLUMNS}. "
            f"Found columns: {list(df.columns)}."
        )

    timestamp_col = df['timestamp']
    if not pd.api.types.is_datetime64_any_dtype(timestamp_col):
        try:
            timestamp_col = pd.to_datetime(timestamp_col, format='ISO8601')
        except (ValueError, TypeError) as e:
            raise SchemaValidationError(
                f"{ctx}'timestamp' column contains non-parseable values. "
                f"Expected ISO 8601 date-time strings. Error: {e}"
            )

    if len(timestamp_col) > 1:
        diffs = timestamp_col.diff().iloc[1:]
        if not (diffs < pd.Timedelta(0)).all():
            bad_indices = diffs[diffs >= pd.Timedelta(0)].index.tolist()
            raise SchemaValidationError(
                f"{ctx}Timestamps are not in strictly descending order. "
                f"Violations found at row indices: {bad_indices[:5]} (showing first 5). "
                f"Hint: sort by timestamp descending (newest first) and drop duplicates."
            )

    if not pd.api.types.is_numeric_dtype(df['closing_price']):
        raise SchemaValidationError(
            f"{ctx}'closing_price' must be numeric, got dtype {df['closing_price'].dtype}."
        )

    if (df['closing_price'].dropna() <= 0).any():
        raise SchemaValidationError(
            f"{ctx}'closing_price' contains zero or negative prices."
        )


def normalize_price_frame(df: pd.DataFrame, context: str | None = None) -> pd.DataFrame:
    """
    Return a copy of `df` with naive, midnight timestamps, sorted newest first.

    Rows falling on the same date after normalization keep the last
    occurrence in the input. The result is validated before it is returned.

    Args:
        df: Frame with at least timestamp and closing_price columns.
        context: Optional source description for error messages.

    Returns:
        New DataFrame conforming to the price schema.
    """
    missing_cols = set(PRICE_REQUIRED_COLUMNS) - set(df.columns)
    if missing_cols:
        raise SchemaValidationError(
            f"{context + ': ' if context else ''}Missing required columns: {sorted(missing_cols)}."
        )

    out = df.copy()
    try:
        timestamps = pd.to_datetime(out['timestamp'], format='ISO8601')
    except (ValueError, TypeError) as e:
        raise SchemaValidationError(
            f"{context + ': ' if context else ''}'timestamp' column contains non-parseable values. Error: {e}"
        )
    if getattr(timestamps.dt, 'tz', None) is not None:
        timestamps = timestamps.dt.tz_convert('UTC').dt.tz_localize(None)
    out['timestamp'] = timestamps.dt.normalize()

    out = out.drop_duplicates(subset='timestamp', keep='last')
    out = out.sort_values('timestamp', ascending=False).reset_index(drop=True)

    validate_price_frame(out, context=context)
    return out
