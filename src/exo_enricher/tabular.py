from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

SUPPORTED_SUFFIXES = {".csv", ".tsv", ".xlsx", ".json"}


def _read_frame(path: Path) -> pd.DataFrame:
    suffix = path.suffix.lower()
    # Delimited cells stay text so identifiers like TOI "1000.10" keep their
    # digits; numeric fields are coerced during harmonization.
    if suffix == ".csv":
        # NASA archive exports prefix metadata lines with '#'.
        return pd.read_csv(path, comment="#", dtype=str)
    if suffix == ".tsv":
        return pd.read_csv(path, sep="\t", comment="#", dtype=str)
    if suffix == ".xlsx":
        return pd.read_excel(path, sheet_name=0)
    if suffix == ".json":
        return pd.read_json(path, orient="records")
    supported = ", ".join(sorted(SUPPORTED_SUFFIXES))
    raise ValueError(f"Unsupported input format {suffix or '<none>'} (expected one of: {supported})")


def frame_to_rows(frame: pd.DataFrame) -> list[dict[str, Any]]:
    """Convert a frame to plain dict rows with NaN/NaT cells as None."""
    frame = frame.copy()
    frame.columns = [str(column).strip() for column in frame.columns]
    cleaned = frame.astype(object).where(frame.notna(), None)
    return cleaned.to_dict(orient="records")


def read_rows(path: Path, max_rows: int | None = None) -> list[dict[str, Any]]:
    if not path.exists():
        raise ValueError(f"Input file does not exist: {path}")
    frame = _read_frame(path)
    if max_rows is not None:
        frame = frame.head(max_rows)
    return frame_to_rows(frame)
