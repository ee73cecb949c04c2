from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

MetricRecord = Dict[str, float]
ColumnarMetrics = Dict[str, List[float]]


@dataclass(frozen=True)
class EpochMetrics:
    """Per-epoch columnar metrics. ``valid`` is None when there is no validation split."""

    epoch: int
    train: ColumnarMetrics
    valid: Optional[ColumnarMetrics] = None

    def mean(self, split: str = "train", name: str = "loss") -> float:
        columns = self.train if split == "train" else self.valid
        if columns is None:
            return float("nan")
        return mean_metric(columns, name)

    def to_dict(self) -> Dict[str, object]:
        return {"epoch": self.epoch, "train": self.train, "valid": self.valid}


def transpose_metrics(records: Sequence[Mapping[str, float]]) -> ColumnarMetrics:
    """
    Turn a sequence of per-batch records into ``{name: [value per batch]}``.
    Keys come from the first record; an empty sequence gives an empty mapping.
    """
    if len(records) == 0:
        return {}
    names = list(records[0].keys())
    out: ColumnarMetrics = {nm: [0.0] * len(records) for nm in names}
    for i, record in enumerate(records):
        for nm in names:
            out[nm][i] = float(record[nm])
    return out


def mean_metric(columns: Mapping[str, Sequence[float]], name: str = "loss") -> float:
    values = columns.get(name, [])
    if len(values) == 0:
        return float("nan")
    return math.fsum(values) / len(values)
