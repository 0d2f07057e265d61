"""
Loaders that turn CSV price files into a PriceTable.

**Layout**: one file per symbol, `<directory>/<SYMBOL>.csv`, with at least the
`timestamp` and `closing_price` columns (extra OHLCV columns are kept but not
used). Timestamps may be in any ISO 8601 form and any row order; they are
normalized on load.
"""

from pathlib import Path
from typing import Iterable

import pandas as pd

from src.data.prices import PriceTable


PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
RAW_DATA_DIR = PROJECT_ROOT / "data" / "raw"


def read_price_csv(path: Path | str) -> pd.DataFrame:
    """
    Read one price CSV.

    Raises:
        FileNotFoundError: If the file does not exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Price file not found: {path}")
    return pd.read_csv(path)


def load_price_table(
    symbols: Iterable[str] | None = None,
    directory: Path | str = RAW_DATA_DIR,
) -> PriceTable:
    """
    Load a PriceTable from `directory`.

    Args:
        symbols: Symbols to load. If None, every `*.csv` in the directory is
                 loaded and the file stem is used as the symbol.
        directory: Folder holding the CSV files (defaults to data/raw/).

    Returns:
        PriceTable with one entry per loaded symbol.

    Raises:
        FileNotFoundError: If the directory or a requested file is missing.
        SchemaValidationError: If a file does not match the price schema.
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Price directory not found: {directory}")

    if symbols is None:
        paths = sorted(directory.glob("*.csv"))
        symbols = [p.stem for p in paths]

    table = PriceTable()
    for symbol in symbols:
        frame = read_price_csv(directory / f"{symbol}.csv")
        table.add(symbol, frame)
    return table
