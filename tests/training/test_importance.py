"""
Permutation feature importance and the sampling fallback.
"""

import numpy as np
import pytest
import torch

from tabpretrain.config import PretrainConfig
from tabpretrain.data import TabularResolver
from tabpretrain.models import build_network
from tabpretrain.training import importance
from tabpretrain.training.dataset_utils import TabularBatchDataset
from tabpretrain.training.importance import compute_feature_importance, estimate_importances


@pytest.fixture
def dataset(frame):
    return TabularBatchDataset(frame, TabularResolver().fit(frame))


@pytest.fixture
def network(dataset):
    r = dataset.resolver
    return build_network(r.input_dim, r.cat_idxs, r.cat_dims, PretrainConfig(n_d=4, n_steps=2))


def test_one_finite_score_per_column_in_order(network, dataset, frame):
    out = estimate_importances(network, dataset, sample_size=40)
    assert list(out.columns) == ["variables", "importance"]
    assert out["variables"].tolist() == list(frame.columns)
    assert np.all(np.isfinite(out["importance"].to_numpy()))
    assert np.all(out["importance"].to_numpy() >= 0)


def test_scores_are_normalised_or_all_zero(network, dataset):
    batch = dataset[list(range(len(dataset)))]
    scores = compute_feature_importance(network, batch.x, batch.x_na_mask)
    total = float(scores.sum())
    assert total == pytest.approx(1.0) or total == 0.0


def test_network_mode_is_restored(network, dataset):
    batch = dataset[list(range(10))]
    network.train()
    compute_feature_importance(network, batch.x, batch.x_na_mask)
    assert network.training


def test_sample_size_larger_than_dataset_uses_all_rows(network, dataset, monkeypatch):
    seen = {}

    def spy(net, x, mask, generator=None):
        seen["rows"] = x.shape[0]
        return torch.zeros(x.shape[1])

    monkeypatch.setattr(importance, "compute_feature_importance", spy)
    estimate_importances(network, dataset, sample_size=10_000)
    assert seen["rows"] == len(dataset)


def test_large_dataset_without_sample_size_warns_and_caps(network, dataset, monkeypatch):
    monkeypatch.setattr(importance, "MAX_DEFAULT_SAMPLE_SIZE", 25)
    seen = {}

    def spy(net, x, mask, generator=None):
        seen["rows"] = x.shape[0]
        return torch.zeros(x.shape[1])

    monkeypatch.setattr(importance, "compute_feature_importance", spy)
    with pytest.warns(UserWarning, match="importance_sample_size"):
        estimate_importances(network, dataset)
    assert seen["rows"] == 25
