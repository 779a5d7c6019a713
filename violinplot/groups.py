from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from .errors import ConfigError, ShapeError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Group:
    """One violin: samples in input order plus the x center it is drawn at."""

    index: int  # 1-based
    samples: np.ndarray
    x: float
    label: str = ""

    @property
    def finite(self) -> np.ndarray:
        return self.samples[np.isfinite(self.samples)]

    @property
    def n_finite(self) -> int:
        return int(np.isfinite(self.samples).sum())


def _as_float_array(values: Any, what: str) -> np.ndarray:
    try:
        arr = np.asarray(values, dtype=float)
    except (TypeError, ValueError) as e:
        raise ShapeError(f"{what} is not numeric: {e}") from e
    return arr


def _columns(data: Any) -> tuple[List[np.ndarray], List[str]]:
    if hasattr(data, "to_numpy") and not isinstance(data, np.ndarray):
        labels = [str(c) for c in getattr(data, "columns", [])]
        data = data.to_numpy()
    else:
        labels = []

    if isinstance(data, Mapping):
        cols = [_as_float_array(v, f"Group '{k}'") for k, v in data.items()]
        return cols, [str(k) for k in data.keys()]

    if isinstance(data, np.ndarray):
        arr = _as_float_array(data, "Table")
        if arr.ndim == 1:
            return [arr], labels
        if arr.ndim != 2:
            raise ShapeError(f"Table must be 1-D or 2-D, got {arr.ndim}-D.")
        return [arr[:, j] for j in range(arr.shape[1])], labels

    if isinstance(data, (str, bytes)) or not isinstance(data, Sequence):
        raise ShapeError(f"Cannot interpret {type(data).__name__} as groups of samples.")

    cols = []
    for i, item in enumerate(data):
        arr = _as_float_array(item, f"Group {i + 1}")
        if arr.ndim == 0:
            raise ShapeError(f"Group {i + 1} is a scalar; expected a sequence of samples.")
        if arr.ndim > 1:
            if arr.ndim == 2 and 1 in arr.shape:
                arr = arr.ravel()
            else:
                raise ShapeError(f"Group {i + 1} must be 1-D, got shape {arr.shape}.")
        cols.append(arr)
    return cols, labels


def normalise_groups(
    data: Any,
    x_positions: Optional[Sequence[float]] = None,
    labels: Optional[Sequence[str]] = None,
) -> List[Group]:
    """
    Turn a table or a collection of sequences into an ordered list of groups.

    A 2-D array (rows = samples) gives one group per column; a 1-D array is a
    single group; a mapping or any other sequence gives one group per item,
    whose lengths may differ. Order is preserved.
    """
    cols, found_labels = _columns(data)
    if not cols:
        raise ShapeError("Input has zero columns / groups.")

    n = len(cols)
    if x_positions is not None and len(x_positions) != n:
        raise ConfigError(f"x_positions has {len(x_positions)} entries but there are {n} groups.")

    if labels is None:
        labels = found_labels if len(found_labels) == n else [""] * n
    elif len(labels) != n:
        raise ConfigError(f"Got {len(labels)} labels for {n} groups.")

    groups: List[Group] = []
    for i, col in enumerate(cols):
        x = float(x_positions[i]) if x_positions is not None else float(i + 1)
        groups.append(Group(index=i + 1, samples=col, x=x, label=str(labels[i])))

    logger.debug("Normalised %d group(s) with sizes %s", n, [g.samples.size for g in groups])
    return groups
