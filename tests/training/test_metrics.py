import math

from tabpretrain.training.metrics import EpochMetrics, mean_metric, transpose_metrics


def test_identical_records_transpose_to_single_column():
    records = [{"loss": 0.25}] * 7
    out = transpose_metrics(records)
    assert list(out.keys()) == ["loss"]
    assert out["loss"] == [0.25] * 7


def test_transpose_preserves_batch_order_and_names():
    records = [{"loss": 1.0, "aux": 10.0}, {"loss": 2.0, "aux": 20.0}, {"loss": 3.0, "aux": 30.0}]
    out = transpose_metrics(records)
    assert out == {"loss": [1.0, 2.0, 3.0], "aux": [10.0, 20.0, 30.0]}


def test_empty_input_gives_empty_mapping():
    assert transpose_metrics([]) == {}


def test_mean_metric_and_epoch_view():
    em = EpochMetrics(epoch=3, train={"loss": [1.0, 3.0]}, valid=None)
    assert em.mean("train") == 2.0
    assert math.isnan(em.mean("valid"))
    assert math.isnan(mean_metric({}, "loss"))
    assert em.to_dict() == {"epoch": 3, "train": {"loss": [1.0, 3.0]}, "valid": None}
