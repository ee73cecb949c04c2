"""
Checkpoint serialization and the in-memory store.
"""

import pytest
import torch

from tabpretrain.config import PretrainConfig
from tabpretrain.data import resolve_data
from tabpretrain.models import build_network
from tabpretrain.training.checkpoint import CheckpointStore, model_from_raw, model_to_raw
from tabpretrain.training.utils import load_json


@pytest.fixture
def network_and_batch(frame):
    batch = resolve_data(frame)
    cfg = PretrainConfig(n_d=4, n_steps=2)
    return build_network(batch.input_dim, batch.cat_idxs, batch.cat_dims, cfg), batch


def test_round_trip_reproduces_eval_output(network_and_batch):
    network, batch = network_and_batch
    network.train()
    network(batch.x, batch.x_na_mask)  # move batch-norm running stats off their defaults
    network.eval()
    with torch.no_grad():
        expected = network(batch.x, batch.x_na_mask)[0]
        restored = model_from_raw(model_to_raw(network))
        restored.eval()
        got = restored(batch.x, batch.x_na_mask)[0]
    assert torch.allclose(expected, got)


def test_store_is_one_based_and_ordered(network_and_batch, tmp_path):
    network, _ = network_and_batch
    store = CheckpointStore(tmp_path / "ckpt")
    assert store.capture(network, epoch=2, device=torch.device("cpu")) == 1
    with torch.no_grad():
        for p in network.parameters():
            p.add_(1.0)
    assert store.capture(network, epoch=4, device=torch.device("cpu")) == 2

    assert len(store) == 2
    assert store.epochs == [2, 4]
    first, second = store.load(1), store.load(2)
    p1 = next(first.parameters())
    p2 = next(second.parameters())
    assert torch.allclose(p1 + 1.0, p2)

    assert (tmp_path / "ckpt" / "checkpoint_002.pt").read_bytes() == store.get(2)
    meta = load_json(tmp_path / "ckpt" / "meta.json")
    assert meta["checkpoints"] == [{"index": 1, "epoch": 2}, {"index": 2, "epoch": 4}]


def test_out_of_range_index(network_and_batch):
    store = CheckpointStore()
    with pytest.raises(IndexError):
        store.get(1)


def test_buffers_off_cpu_are_rejected():
    class WithBuffer(torch.nn.Module):
        def __init__(self):
            super().__init__()
            self.fc = torch.nn.Linear(2, 2)
            self.register_buffer("stats", torch.empty(2, device="meta"))

    with pytest.raises(RuntimeError, match="on the CPU"):
        model_to_raw(WithBuffer())
