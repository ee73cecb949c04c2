from __future__ import annotations

import logging
import random
from typing import Hashable, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import torch
from torch.utils.data import BatchSampler, DataLoader, Dataset, RandomSampler, SequentialSampler

from ..config import PretrainConfig
from ..data import ResolvedBatch, TabularResolver

logger = logging.getLogger(__name__)


def _seed_worker(worker_id: int) -> None:
    # Ensure each worker has a distinct but deterministic seed
    base_seed = torch.initial_seed() % 2**32
    np.random.seed(base_seed + worker_id)
    random.seed(base_seed + worker_id)


def _passthrough(batch: ResolvedBatch) -> ResolvedBatch:
    return batch


def split_indices(
    n: int, valid_split: float, generator: Optional[torch.Generator] = None
) -> Tuple[torch.Tensor, Optional[torch.Tensor]]:
    """
    Draw ``floor(n * valid_split)`` row indices without replacement as the
    validation partition; the rest, in original order, is the training partition.
    """
    if not 0.0 <= valid_split < 1.0:
        raise ValueError(f"valid_split must be in [0, 1), got {valid_split}")
    all_idx = torch.arange(n)
    n_valid = int(n * valid_split)
    if n_valid == 0:
        return all_idx, None
    valid_idx = torch.randperm(n, generator=generator)[:n_valid]
    keep = torch.ones(n, dtype=torch.bool)
    keep[valid_idx] = False
    return all_idx[keep], valid_idx


class TabularBatchDataset(Dataset):
    """
    Rows of a frame, resolved lazily a whole batch at a time.
    ``dataset[[i, j, ...]]`` returns one ``ResolvedBatch``.
    """

    def __init__(self, frame: pd.DataFrame, resolver: TabularResolver):
        self.frame = frame.reset_index(drop=True)
        self.resolver = resolver

    def __len__(self) -> int:
        return len(self.frame)

    def __getitem__(self, indices: Sequence[int]) -> ResolvedBatch:
        rows: List[int] = [int(i) for i in indices]
        return self.resolver.resolve(self.frame.iloc[rows])

    @property
    def columns(self) -> List[Hashable]:
        return list(self.resolver.columns)


def build_dataloaders(
    train_ds: TabularBatchDataset,
    valid_ds: Optional[TabularBatchDataset],
    cfg: PretrainConfig,
    generator: Optional[torch.Generator] = None,
) -> Tuple[DataLoader, Optional[DataLoader]]:
    """
    Training batches are reshuffled every epoch and may drop a trailing partial
    batch; validation batches keep dataset order and are never dropped.
    """
    nw = int(cfg.num_workers)
    train_sampler = BatchSampler(
        RandomSampler(train_ds, generator=generator), batch_size=cfg.batch_size, drop_last=cfg.drop_last
    )
    train_loader = DataLoader(
        train_ds,
        sampler=train_sampler,
        batch_size=None,
        collate_fn=_passthrough,
        num_workers=nw,
        worker_init_fn=_seed_worker,
        persistent_workers=nw > 0,
    )
    val_loader = None
    if valid_ds is not None:
        val_sampler = BatchSampler(SequentialSampler(valid_ds), batch_size=cfg.batch_size, drop_last=False)
        val_loader = DataLoader(
            valid_ds,
            sampler=val_sampler,
            batch_size=None,
            collate_fn=_passthrough,
            num_workers=nw,
            worker_init_fn=_seed_worker,
            persistent_workers=nw > 0,
        )
    logger.info(
        "Built dataloaders: train=%d rows, valid=%d rows, batch_size=%d",
        len(train_ds),
        len(valid_ds) if valid_ds is not None else 0,
        cfg.batch_size,
    )
    return train_loader, val_loader
