from __future__ import annotations

import math
from dataclasses import asdict, dataclass, is_dataclass
from typing import Any, Callable, Dict, Hashable, List, Literal, Optional, Sequence, Union

import pandas as pd


Reducer = Literal["mean", "sum"]
Fallback = Literal["zero", "null"]
GroupKey = Union[str, Sequence[str], Callable[[Dict[str, Any]], Hashable]]
ValueSelector = Union[str, Callable[[Dict[str, Any]], Any]]

REDUCERS = ("mean", "sum")
FALLBACKS = ("zero", "null")


@dataclass(frozen=True)
class AggregateResult:
    key: Any
    value: Optional[float]
    count: int


def _py(value: Any) -> Any:
    if isinstance(value, tuple):
        return tuple(_py(v) for v in value)
    if hasattr(value, "item"):
        try:
            return value.item()
        except Exception:
            return value
    return value


def as_frame(records: Any) -> pd.DataFrame:
    """Accept a DataFrame, or an iterable of dicts / dataclass records."""
    if records is None:
        return pd.DataFrame()
    if isinstance(records, pd.DataFrame):
        return records
    rows = [asdict(r) if is_dataclass(r) else dict(r) for r in records]
    return pd.DataFrame(rows)


def distinct_keys(df: pd.DataFrame, column: str) -> List[Any]:
    """Distinct non-null values of ``column`` as native Python scalars, sorted."""
    if df is None or column not in df.columns:
        return []
    keys = {_py(x) for x in df[column].dropna().unique()}
    try:
        return sorted(keys)
    except TypeError:
        return sorted(keys, key=str)


def resolve(value: Optional[float], fallback: Fallback) -> Optional[float]:
    if value is None or not math.isfinite(value):
        return 0.0 if fallback == "zero" else None
    return float(value)


def _values(df: pd.DataFrame, value: ValueSelector) -> pd.Series:
    if callable(value):
        raw = [value(row) for row in df.to_dict(orient="records")]
        return pd.to_numeric(pd.Series(raw, index=df.index, dtype=object), errors="coerce").astype("float64")
    if value not in df.columns:
        return pd.Series(float("nan"), index=df.index, dtype="float64")
    return pd.to_numeric(df[value], errors="coerce").astype("float64")


def aggregate(
    records: Any,
    group_key: GroupKey,
    value: ValueSelector,
    reducer: Reducer = "mean",
    *,
    fallback: Fallback,
) -> List[AggregateResult]:
    """Partition ``records`` by ``group_key`` and reduce ``value`` per group.

    ``fallback`` has no default on purpose: charts that break lines at missing
    points pass ``"null"``, charts that draw solid shapes pass ``"zero"``.
    A group whose values are all missing, or whose reduction is not finite,
    resolves to the fallback. Results are ordered by key.
    """
    if reducer not in REDUCERS:
        raise ValueError(f"Unknown reducer: {reducer!r}")
    if fallback not in FALLBACKS:
        raise ValueError(f"Unknown fallback: {fallback!r}")

    df = as_frame(records)
    if df.empty:
        return []

    work = pd.DataFrame({"__value": _values(df, value)}, index=df.index)
    if callable(group_key):
        work["__key"] = [group_key(row) for row in df.to_dict(orient="records")]
        by: List[str] = ["__key"]
    else:
        by = [group_key] if isinstance(group_key, str) else list(group_key)
        for col in by:
            work[col] = df[col] if col in df.columns else None

    try:
        grouped = work.groupby(by, sort=True, dropna=False)["__value"]
        stats = grouped.agg(total="sum", present="count", size="size")
    except TypeError:
        grouped = work.groupby(by, sort=False, dropna=False)["__value"]
        stats = grouped.agg(total="sum", present="count", size="size")

    out: List[AggregateResult] = []
    for key, row in stats.iterrows():
        present = int(row["present"])
        if present == 0:
            reduced = None
        elif reducer == "sum":
            reduced = float(row["total"])
        else:
            reduced = float(row["total"]) / present
        out.append(AggregateResult(key=_py(key), value=resolve(reduced, fallback), count=int(row["size"])))
    return out


def align_series(
    series: Dict[str, List[AggregateResult]],
    keys: Optional[Sequence[Any]] = None,
    *,
    fallback: Fallback,
) -> pd.DataFrame:
    """Align several aggregated series on one shared key axis.

    Returns a frame with a ``key`` column followed by one column per series.
    Keys missing from a series take the fallback (NaN for ``"null"``).
    """
    if keys is None:
        seen = {r.key for results in series.values() for r in results}
        try:
            keys = sorted(seen)
        except TypeError:
            keys = list(seen)
    frame = pd.DataFrame({"key": list(keys)})
    for name, results in series.items():
        lookup = {r.key: r.value for r in results}
        col = [resolve(lookup.get(k), fallback) for k in frame["key"]]
        frame[name] = pd.Series([float("nan") if v is None else v for v in col], dtype="float64")
    return frame
