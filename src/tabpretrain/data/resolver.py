from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, List, Optional, Sequence

import numpy as np
import pandas as pd
import torch

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedBatch:
    """
    Numeric view of a block of rows.

    x          : float tensor [rows, columns]; categorical columns hold 1-based codes, 0 = missing
    x_na_mask  : bool tensor, True where the raw value is missing
    weights    : float tensor [rows]
    input_dim, cat_idxs, cat_dims describe the column layout for the network.
    """

    x: torch.Tensor
    x_na_mask: torch.Tensor
    weights: torch.Tensor
    input_dim: int
    cat_idxs: List[int] = field(default_factory=list)
    cat_dims: List[int] = field(default_factory=list)

    def __len__(self) -> int:
        return int(self.x.shape[0])


class TabularResolver:
    """
    Converts pandas rows into ``ResolvedBatch`` tensors.

    Column labels are kept as given, so frames with integer or mixed labels
    resolve and report under their own names. ``fit`` freezes the column order and the category levels of every non-numeric
    column so that all batches share one encoding, whatever rows they contain.
    """

    def __init__(self) -> None:
        self.columns: List[Hashable] = []
        self.cat_levels: Dict[Hashable, List[Any]] = {}
        self._fitted = False

    @property
    def cat_idxs(self) -> List[int]:
        return [i for i, c in enumerate(self.columns) if c in self.cat_levels]

    @property
    def cat_dims(self) -> List[int]:
        # one extra slot for the missing/unknown code 0
        return [len(self.cat_levels[c]) + 1 for c in self.columns if c in self.cat_levels]

    @property
    def input_dim(self) -> int:
        return len(self.columns)

    def fit(self, frame: pd.DataFrame) -> "TabularResolver":
        if not isinstance(frame, pd.DataFrame):
            raise TypeError(f"Expected a pandas DataFrame, got {type(frame).__name__}")
        if frame.shape[1] == 0:
            raise ValueError("Cannot resolve a frame without columns")
        if frame.shape[0] == 0:
            raise ValueError("Cannot resolve a frame without rows")
        if frame.columns.has_duplicates:
            dupes = frame.columns[frame.columns.duplicated()].tolist()
            raise ValueError(f"Column labels must be unique, duplicated: {dupes}")

        self.columns = list(frame.columns)
        self.cat_levels = {}
        for name in self.columns:
            series = frame[name]
            if pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
                continue
            levels = series.astype("category").cat.categories.tolist()
            self.cat_levels[name] = levels
        self._fitted = True
        logger.debug(
            "Resolver fitted: %d columns, %d categorical", len(self.columns), len(self.cat_levels)
        )
        return self

    def resolve(self, rows: pd.DataFrame, weights: Optional[Sequence[float]] = None) -> ResolvedBatch:
        if not self._fitted:
            raise RuntimeError("TabularResolver.resolve called before fit")
        if rows.columns.has_duplicates:
            raise ValueError("Column labels must be unique")
        missing = [c for c in self.columns if c not in rows.columns]
        if missing:
            raise ValueError(f"Rows are missing fitted columns: {missing}")

        n = len(rows)
        values = np.zeros((n, len(self.columns)), dtype=np.float32)
        na_mask = np.zeros((n, len(self.columns)), dtype=bool)
        for j, name in enumerate(self.columns):
            series = rows[name]
            if name in self.cat_levels:
                codes = pd.Categorical(series, categories=self.cat_levels[name]).codes.astype(np.int64) + 1
                values[:, j] = codes
                na_mask[:, j] = codes == 0
            else:
                col = pd.to_numeric(series, errors="coerce").to_numpy(dtype=np.float64, na_value=np.nan)
                isna = np.isnan(col)
                values[:, j] = np.where(isna, 0.0, col)
                na_mask[:, j] = isna

        if weights is None:
            w = torch.ones(n, dtype=torch.float32)
        else:
            w = torch.as_tensor(np.asarray(weights, dtype=np.float32))
        return ResolvedBatch(
            x=torch.from_numpy(values),
            x_na_mask=torch.from_numpy(na_mask),
            weights=w,
            input_dim=self.input_dim,
            cat_idxs=self.cat_idxs,
            cat_dims=self.cat_dims,
        )


def resolve_data(frame: pd.DataFrame, weights: Optional[Sequence[float]] = None) -> ResolvedBatch:
    """Fit a resolver on ``frame`` and resolve all of its rows."""
    return TabularResolver().fit(frame).resolve(frame, weights)
