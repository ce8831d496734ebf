"""
Stock Price Forecast (Linear Trend on Trading Dates).

What this script does:
- Loads a daily price CSV with ``Date`` (DD-MMM-YYYY) and ``close`` columns
- Converts dates to timestamps and min-max scales dates and prices into [0, 1]
- Fits a one-weight linear model (date -> close) with 100 epochs of SGD
- Scores the in-sample fit with MSE and RMSE
- Forecasts the next 30 weekdays and writes Date, PredictedPrice, RMSE, MSE

Usage:
  python stock_price_forecast.py
  python stock_price_forecast.py --input prices.csv --output forecast.csv --seed 7 --plot

Notes:
- The forecast horizon starts at the first row of the input file.
- Without --seed the SGD shuffling differs run to run, so outputs vary slightly.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from sklearn.linear_model import SGDRegressor
from sklearn.metrics import mean_squared_error

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
DEFAULT_INPUT = BASE_DIR / "file" / "tcs-1april-31may.csv"
DEFAULT_OUTPUT = BASE_DIR / "file" / "tcs_result.csv"

EPOCHS = 100
HORIZON_DAYS = 30
DATE_FORMAT = "%d-%b-%Y"
OUTPUT_COLUMNS = ["Date", "PredictedPrice", "RMSE", "MSE"]


class ForecastError(Exception):
    """Base class for fatal pipeline errors."""


class ParseError(ForecastError):
    """The input file could not be parsed as a table."""


class DataError(ForecastError):
    """The parsed rows cannot be used for training."""


@dataclass
class ForecastConfig:
    input_path: Path = DEFAULT_INPUT
    output_path: Path = DEFAULT_OUTPUT
    seed: Optional[int] = None
    plot: bool = False


@dataclass(frozen=True)
class ScalingParams:
    min_date: float
    max_date: float
    min_price: float
    max_price: float

    @classmethod
    def from_samples(cls, timestamps: np.ndarray, prices: np.ndarray) -> "ScalingParams":
        return cls(
            min_date=float(np.min(timestamps)),
            max_date=float(np.max(timestamps)),
            min_price=float(np.min(prices)),
            max_price=float(np.max(prices)),
        )


@dataclass
class TrainingSet:
    dates: pd.Series
    timestamps: np.ndarray
    prices: np.ndarray
    xs: np.ndarray
    ys: np.ndarray
    scaling: ScalingParams

    @property
    def first_date(self) -> pd.Timestamp:
        return self.dates.iloc[0]


@dataclass(frozen=True)
class TrendModel:
    weight: float
    bias: float
    loss: float = float("nan")


@dataclass
class ErrorMetrics:
    mse: float
    rmse: float


@dataclass
class ForecastRow:
    date: str
    predicted_price: float
    rmse: float
    mse: float


# --- Loader ---

def load_prices(path: Path | str) -> pd.DataFrame:
    """Read a header-delimited price file; column types are inferred by pandas."""
    try:
        return pd.read_csv(path)
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ParseError(f"Could not parse {path}: {e}") from e


# --- Normalizer ---

def parse_dates(values: pd.Series) -> pd.Series:
    """DD-MMM-YYYY strings to calendar dates; unparseable entries become NaT."""
    text = values.astype(str).str.strip()
    return pd.to_datetime(text, format=DATE_FORMAT, errors="coerce")


def parse_prices(values: pd.Series) -> pd.Series:
    """Strip thousands separators and parse as float; bad entries become NaN."""
    text = values.astype(str).str.replace(",", "", regex=False).str.strip()
    return pd.to_numeric(text, errors="coerce").astype(float)


def to_timestamps(dates: Iterable) -> np.ndarray:
    """Epoch milliseconds at UTC midnight of each date."""
    return np.asarray(pd.to_datetime(dates), dtype="datetime64[ms]").astype(np.int64)


def normalize(values, lo: float, hi: float) -> np.ndarray:
    # A zero range yields NaN/inf rather than a plausible-looking number.
    with np.errstate(divide="ignore", invalid="ignore"):
        return (np.asarray(values, dtype=float) - lo) / (hi - lo)


def denormalize(values, lo: float, hi: float) -> np.ndarray:
    return np.asarray(values, dtype=float) * (hi - lo) + lo


def prepare_data(df: pd.DataFrame) -> TrainingSet:
    missing = [c for c in ("Date", "close") if c not in df.columns]
    if missing:
        raise DataError(f"Missing required columns: {missing}")
    if df.empty:
        raise DataError("Input contains no rows")

    dates = parse_dates(df["Date"])
    prices = parse_prices(df["close"])
    if dates.isna().any() or prices.isna().any():
        raise DataError("Data contains NaN values")

    timestamps = to_timestamps(dates)
    price_values = prices.to_numpy(dtype=float)
    scaling = ScalingParams.from_samples(timestamps, price_values)

    xs = normalize(timestamps, scaling.min_date, scaling.max_date)
    ys = normalize(price_values, scaling.min_price, scaling.max_price)
    if not (np.isfinite(xs).all() and np.isfinite(ys).all()):
        raise DataError(
            "Normalized data contains non-finite values "
            f"(date range {scaling.min_date:.0f}..{scaling.max_date:.0f}, "
            f"price range {scaling.min_price}..{scaling.max_price})"
        )

    return TrainingSet(
        dates=dates.reset_index(drop=True),
        timestamps=timestamps,
        prices=price_values,
        xs=xs,
        ys=ys,
        scaling=scaling,
    )


# --- Regressor ---

def fit(xs: Sequence[float], ys: Sequence[float], *, epochs: int = EPOCHS,
        seed: Optional[int] = None) -> TrendModel:
    """
    Fit y = w*x + b by minimising squared error with SGD.

    One ``partial_fit`` call is one epoch over the full training set; all
    epochs always run (no tolerance, no early stopping).
    """
    X = np.asarray(xs, dtype=float).reshape(-1, 1)
    y = np.asarray(ys, dtype=float).ravel()

    reg = SGDRegressor(loss="squared_error", penalty=None, random_state=seed)
    loss = float("nan")
    for epoch in range(1, epochs + 1):
        reg.partial_fit(X, y)
        loss = float(mean_squared_error(y, reg.predict(X)))
        logger.debug("epoch %d/%d loss=%.6f", epoch, epochs, loss)

    model = TrendModel(weight=float(reg.coef_[0]), bias=float(reg.intercept_[0]), loss=loss)
    logger.info("Trained linear trend: weight=%.6f bias=%.6f loss=%.6f",
                model.weight, model.bias, model.loss)
    return model


def predict(model: TrendModel, xs) -> np.ndarray:
    return model.weight * np.asarray(xs, dtype=float) + model.bias


# --- Forecaster ---

def next_weekdays(start, count: int = HORIZON_DAYS) -> List[str]:
    """``count`` Monday-Friday dates from ``start`` (inclusive) as YYYY-MM-DD."""
    days = pd.bdate_range(start=pd.Timestamp(start).normalize(), periods=count)
    return [d.strftime("%Y-%m-%d") for d in days]


def predict_prices(model: TrendModel, timestamps, scaling: ScalingParams) -> np.ndarray:
    """Scale timestamps with the training range, predict, and map back to prices."""
    xs = normalize(timestamps, scaling.min_date, scaling.max_date)
    prices = denormalize(predict(model, xs), scaling.min_price, scaling.max_price)

    nan_mask = np.isnan(prices)
    if nan_mask.any():
        logger.warning("Prediction is NaN for %d of %d dates; using 0",
                       int(nan_mask.sum()), len(prices))
        prices = np.where(nan_mask, 0.0, prices)
    return prices


def forecast_prices(model: TrendModel, dates: Sequence[str], scaling: ScalingParams) -> np.ndarray:
    return predict_prices(model, to_timestamps(list(dates)), scaling)


# --- Reporter ---

def error_metrics(actual, predicted) -> ErrorMetrics:
    mse = float(mean_squared_error(actual, predicted))
    rmse = float(np.sqrt(mse))
    return ErrorMetrics(mse=mse, rmse=rmse)


def write_results(path: Path | str, rows: Sequence[ForecastRow]) -> None:
    """Write forecast rows, overwriting ``path``; numbers get two decimals."""
    out = pd.DataFrame(
        {
            "Date": [r.date.strip() for r in rows],
            "PredictedPrice": [float(r.predicted_price) for r in rows],
            "RMSE": [float(r.rmse) for r in rows],
            "MSE": [float(r.mse) for r in rows],
        },
        columns=OUTPUT_COLUMNS,
    )
    out.to_csv(path, index=False, float_format="%.2f")


def plot_forecast(training: TrainingSet, in_sample: np.ndarray,
                  dates: Sequence[str], future: np.ndarray) -> None:
    plt.figure(figsize=(12, 6))
    plt.plot(training.dates, training.prices, label="Actual", alpha=0.8)
    plt.plot(training.dates, in_sample, label="Fitted trend", alpha=0.8)
    plt.plot(pd.to_datetime(list(dates)), future, label="Forecast", linestyle="--")
    plt.xlabel("Date")
    plt.ylabel("Price")
    plt.title("Close price: linear trend forecast")
    plt.grid(True)
    plt.legend()
    plt.show()


# --- Pipeline ---

def run_pipeline(config: ForecastConfig) -> List[ForecastRow]:
    raw = load_prices(config.input_path)
    training = prepare_data(raw)
    logger.info("Loaded %d rows from %s", len(training.prices), config.input_path)

    model = fit(training.xs, training.ys, epochs=EPOCHS, seed=config.seed)

    in_sample = predict_prices(model, training.timestamps, training.scaling)
    metrics = error_metrics(training.prices, in_sample)
    logger.info("In-sample MSE=%.4f RMSE=%.4f", metrics.mse, metrics.rmse)

    dates = next_weekdays(training.first_date, HORIZON_DAYS)
    future = forecast_prices(model, dates, training.scaling)

    rows = [
        ForecastRow(date=d, predicted_price=float(p), rmse=metrics.rmse, mse=metrics.mse)
        for d, p in zip(dates, future)
    ]
    write_results(config.output_path, rows)

    if config.plot:
        plot_forecast(training, in_sample, dates, future)
    return rows


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Linear trend forecast of daily close prices.")
    parser.add_argument("--input", type=Path, default=DEFAULT_INPUT, help="Input CSV (Date, close).")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT, help="Output CSV path.")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for SGD shuffling.")
    parser.add_argument("--plot", action="store_true", help="Show plots.")
    parser.add_argument("--verbose", action="store_true", help="Log per-epoch training loss.")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s | %(levelname)-7s | %(name)s | %(message)s",
        datefmt="%H:%M:%S",
    )

    config = ForecastConfig(
        input_path=args.input,
        output_path=args.output,
        seed=args.seed,
        plot=args.plot,
    )
    try:
        run_pipeline(config)
    except (ForecastError, OSError, ValueError) as e:
        logger.error("Error: %s", e)
        return 1

    print("Predictions and metrics saved to", config.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
