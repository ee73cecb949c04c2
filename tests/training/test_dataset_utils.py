"""
Validation split and loader adapter behaviour.
"""

import pytest
import torch

from tabpretrain.config import PretrainConfig
from tabpretrain.data import ResolvedBatch, TabularResolver
from tabpretrain.training.dataset_utils import TabularBatchDataset, build_dataloaders, split_indices


def test_split_sizes_and_disjointness():
    train_idx, valid_idx = split_indices(103, 0.25, generator=torch.Generator().manual_seed(1))
    assert len(valid_idx) == 25
    assert len(train_idx) == 78
    assert set(train_idx.tolist()).isdisjoint(valid_idx.tolist())
    assert set(train_idx.tolist()) | set(valid_idx.tolist()) == set(range(103))


def test_zero_split_has_no_validation_partition():
    train_idx, valid_idx = split_indices(10, 0.0)
    assert valid_idx is None
    assert train_idx.tolist() == list(range(10))


def test_tiny_split_rounds_down_to_nothing():
    _, valid_idx = split_indices(3, 0.2)
    assert valid_idx is None


def test_split_rejects_out_of_range_fraction():
    with pytest.raises(ValueError):
        split_indices(10, 1.0)


def test_dataset_resolves_whole_batches(frame):
    ds = TabularBatchDataset(frame, TabularResolver().fit(frame))
    batch = ds[[0, 5, 9]]
    assert isinstance(batch, ResolvedBatch)
    assert batch.x.shape == (3, frame.shape[1])
    assert ds.columns == list(frame.columns)


def test_loaders_shuffle_train_and_keep_validation_order(frame):
    resolver = TabularResolver().fit(frame)
    train_ds = TabularBatchDataset(frame.iloc[:64], resolver)
    valid_ds = TabularBatchDataset(frame.iloc[64:], resolver)
    cfg = PretrainConfig(batch_size=5, drop_last=True)
    train_dl, valid_dl = build_dataloaders(train_ds, valid_ds, cfg)

    train_sizes = [len(b) for b in train_dl]
    assert train_sizes == [5] * 12  # 64 rows, trailing 4 dropped

    valid_batches = list(valid_dl)
    assert [len(b) for b in valid_batches] == [5, 1]  # never dropped
    first_col = torch.cat([b.x[:, 0] for b in valid_batches])
    expected = torch.tensor(frame["num_a"].iloc[64:].to_numpy(), dtype=torch.float32)
    assert torch.allclose(first_col, expected)


def test_train_loader_reshuffles_each_epoch(frame):
    resolver = TabularResolver().fit(frame)
    train_ds = TabularBatchDataset(frame, resolver)
    train_dl, valid_dl = build_dataloaders(train_ds, None, PretrainConfig(batch_size=70))
    assert valid_dl is None
    epoch1 = next(iter(train_dl)).x[:, 0]
    epoch2 = next(iter(train_dl)).x[:, 0]
    assert not torch.equal(epoch1, epoch2)
    assert torch.allclose(epoch1.sort().values, epoch2.sort().values)
