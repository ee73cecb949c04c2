"""
tabpretrain training package

Self-supervised masked-reconstruction pretraining for tabular networks:

* Variance-normalised masked reconstruction loss
* Train/validation batch steps with optional gradient-norm clipping
* Random validation split with lazily resolved, per-epoch shuffled batches
* In-memory checkpoints at a fixed epoch cadence (optionally mirrored to disk)
* Relative-change early stopping and per-epoch LR scheduling
* Permutation feature importance after training
* Console/rotating-file logging + JSONL event stream

Public API:
PretrainTrainer           : Epoch loop controller
pretrain                  : One-call convenience wrapper
PretrainResult            : Network, metrics, checkpoints and importances of a run
unsupervised_loss         : Masked reconstruction loss
train_batch / valid_batch : Batch step executors
transpose_metrics         : Per-batch records -> columnar metrics
"""

from .engine import RunContext, train_batch, valid_batch
from .losses import unsupervised_loss
from .metrics import EpochMetrics, transpose_metrics
from .trainer import PretrainResult, PretrainTrainer, pretrain

__all__ = [
    "EpochMetrics",
    "PretrainResult",
    "PretrainTrainer",
    "RunContext",
    "pretrain",
    "train_batch",
    "transpose_metrics",
    "unsupervised_loss",
    "valid_batch",
]
