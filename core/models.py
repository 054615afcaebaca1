"""OHLCV record, series frame helpers and prediction result types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

import pandas as pd

REQUIRED_COLUMNS = ["Date", "Open", "High", "Low", "Close", "Volume"]
PRICE_COLUMNS = ["Open", "High", "Low", "Close"]
OHLCV_COLUMNS = ["Open", "High", "Low", "Close", "Volume"]


class Confidence(str, Enum):
    """Coarse confidence label returned by the prediction backend."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Signal(str, Enum):
    """Direction bucket for a predicted percentage move."""

    STRONG_BUY = "STRONG_BUY"
    STRONG_SELL = "STRONG_SELL"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class OhlcvRecord:
    """One trading day."""

    open: float
    high: float
    low: float
    close: float
    volume: int
    date: pd.Timestamp | None = None

    def as_row(self) -> list[float]:
        """Wire shape expected by the predictor: [open, high, low, close, volume]."""
        return [self.open, self.high, self.low, self.close, self.volume]


@dataclass(frozen=True)
class PredictionResult:
    """Parsed answer from the prediction backend."""

    predicted_price: float
    predicted_return_pct: float
    confidence: Confidence
    signal: str | None = None


def empty_ohlcv_frame() -> pd.DataFrame:
    """Return an empty series frame with the canonical schema."""
    return pd.DataFrame(
        {
            "Date": pd.Series(dtype="datetime64[ns]"),
            "Open": pd.Series(dtype="float64"),
            "High": pd.Series(dtype="float64"),
            "Low": pd.Series(dtype="float64"),
            "Close": pd.Series(dtype="float64"),
            "Volume": pd.Series(dtype="int64"),
        }
    )


def normalize_frame(frame: pd.DataFrame) -> pd.DataFrame:
    """Coerce column dtypes and reset to a positional 0..n-1 index."""
    normalized = frame[REQUIRED_COLUMNS].copy()
    normalized["Date"] = pd.to_datetime(normalized["Date"], errors="coerce")
    for column in PRICE_COLUMNS:
        normalized[column] = normalized[column].astype("float64")
    normalized["Volume"] = normalized["Volume"].round().astype("int64")
    return normalized.reset_index(drop=True)


def records_to_table(records: Iterable[OhlcvRecord]) -> pd.DataFrame:
    """Records as an uncoerced frame with the canonical column names."""
    rows = [
        {
            "Date": record.date,
            "Open": record.open,
            "High": record.high,
            "Low": record.low,
            "Close": record.close,
            "Volume": record.volume,
        }
        for record in records
    ]
    return pd.DataFrame(rows, columns=REQUIRED_COLUMNS)


def records_to_frame(records: Iterable[OhlcvRecord]) -> pd.DataFrame:
    """Build a series frame from records, keeping their order."""
    table = records_to_table(records)
    if table.empty:
        return empty_ohlcv_frame()
    return normalize_frame(table)


def frame_to_records(frame: pd.DataFrame) -> list[OhlcvRecord]:
    """Convert a series frame back to records."""
    records: list[OhlcvRecord] = []
    for row in frame.itertuples(index=False):
        date = row.Date if pd.notna(row.Date) else None
        records.append(
            OhlcvRecord(
                open=float(row.Open),
                high=float(row.High),
                low=float(row.Low),
                close=float(row.Close),
                volume=int(row.Volume),
                date=date,
            )
        )
    return records


def frame_to_rows(frame: pd.DataFrame) -> list[list[float]]:
    """Serialize a series frame as [open, high, low, close, volume] rows."""
    return [record.as_row() for record in frame_to_records(frame)]
