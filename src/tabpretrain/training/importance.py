from __future__ import annotations

import logging
import warnings
from typing import Optional

import pandas as pd
import torch

from .dataset_utils import TabularBatchDataset
from .losses import unsupervised_loss

logger = logging.getLogger(__name__)

MAX_DEFAULT_SAMPLE_SIZE = 100_000


@torch.no_grad()
def _reconstruction_error(network: torch.nn.Module, x: torch.Tensor, x_na_mask: torch.Tensor) -> float:
    reconstruction, embedded_x, obf_mask = network(x, x_na_mask)
    return float(unsupervised_loss(reconstruction, embedded_x, obf_mask.logical_not()).item())


@torch.no_grad()
def compute_feature_importance(
    network: torch.nn.Module,
    x: torch.Tensor,
    x_na_mask: torch.Tensor,
    generator: Optional[torch.Generator] = None,
) -> torch.Tensor:
    """
    Permutation importance of each input column for reconstruction.

    Each column (value and missing flag together) is shuffled across the sample
    rows and the increase of the eval-mode reconstruction error over the
    unshuffled baseline is recorded. Increases are clipped at zero and
    normalised to sum to one; if no column matters, all scores are zero.
    """
    was_training = network.training
    network.eval()
    try:
        baseline = _reconstruction_error(network, x, x_na_mask)
        n_rows, n_cols = x.shape
        scores = torch.zeros(n_cols, dtype=torch.float64)
        for j in range(n_cols):
            perm = torch.randperm(n_rows, generator=generator)
            x_perm = x.clone()
            mask_perm = x_na_mask.clone()
            x_perm[:, j] = x[perm, j]
            mask_perm[:, j] = x_na_mask[perm, j]
            scores[j] = max(_reconstruction_error(network, x_perm, mask_perm) - baseline, 0.0)
    finally:
        network.train(was_training)

    scores = torch.nan_to_num(scores, nan=0.0, posinf=0.0, neginf=0.0)
    total = scores.sum()
    if total > 0:
        scores = scores / total
    return scores


def estimate_importances(
    network: torch.nn.Module,
    dataset: TabularBatchDataset,
    sample_size: Optional[int] = None,
    generator: Optional[torch.Generator] = None,
) -> pd.DataFrame:
    """
    Sample rows of ``dataset`` uniformly without replacement and score every
    column with ``compute_feature_importance``. ``network`` must be on the CPU.

    Returns a frame with columns ``variables`` and ``importance``, one row per
    input column, in the dataset's column order.
    """
    n = len(dataset)
    if sample_size is None and n > MAX_DEFAULT_SAMPLE_SIZE:
        warnings.warn(
            f"Computing importances for a dataset with size {n}. "
            f"This can consume too much memory. We are going to use a sample of size {MAX_DEFAULT_SAMPLE_SIZE}. "
            "You can disable this message by using the `importance_sample_size` argument.",
            UserWarning,
            stacklevel=2,
        )
        sample_size = MAX_DEFAULT_SAMPLE_SIZE
    size = n if sample_size is None else min(int(sample_size), n)

    indexes = torch.randperm(n, generator=generator)[:size].tolist()
    batch = dataset[indexes]
    scores = compute_feature_importance(network, batch.x.cpu(), batch.x_na_mask.cpu(), generator=generator)
    logger.info("Computed feature importances on %d sampled rows", size)
    return pd.DataFrame({"variables": dataset.columns, "importance": scores.numpy()})
