from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
import torch

from ..config import PretrainConfig
from ..data import TabularResolver
from ..models import build_network
from .checkpoint import CheckpointStore
from .dataset_utils import TabularBatchDataset, build_dataloaders, split_indices
from .early_stopping import EarlyStopping
from .engine import RunContext, train_batch, valid_batch
from .hooks import Callback, EpochSummaryCallback, JsonlCallback, ProgressCallback
from .importance import estimate_importances
from .loggers import JSONLLogger, setup_logging
from .losses import unsupervised_loss
from .metrics import EpochMetrics, MetricRecord, transpose_metrics
from .optim import build_optimizer, build_scheduler
from .utils import resolve_device, seed_everything

logger = logging.getLogger(__name__)


@dataclass
class PretrainResult:
    """Everything a pretraining run produces."""

    network: torch.nn.Module
    metrics: List[EpochMetrics]
    config: PretrainConfig
    checkpoints: CheckpointStore
    importances: pd.DataFrame
    resolver: TabularResolver
    last_epoch: int = 0
    stopped_early: bool = False
    interrupted: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def epochs_run(self) -> int:
        return len(self.metrics)

    def load_checkpoint(self, index: int) -> torch.nn.Module:
        """Network as captured at checkpoint ``index`` (1-based, capture order)."""
        return self.checkpoints.load(index)

    @torch.no_grad()
    def predict(self, x: pd.DataFrame, checkpoint: Optional[int] = None) -> np.ndarray:
        """
        Eval-mode reconstruction of ``x`` in the embedded space, from the final
        network or from checkpoint ``checkpoint``.
        """
        network = self.network if checkpoint is None else self.load_checkpoint(checkpoint)
        network.to("cpu")
        network.eval()
        batch = self.resolver.resolve(_as_frame(x))
        reconstruction, _, _ = network(batch.x, batch.x_na_mask)
        return reconstruction.numpy()

    def resume(self, x: pd.DataFrame, **overrides: Any) -> "PretrainResult":
        """
        Continue training this network for ``epochs`` more epochs. Epoch numbering,
        checkpoint cadence and early-stopping initialisation continue from
        ``last_epoch``; metrics and checkpoints of the new run start empty.
        """
        cfg = self.config.with_overrides(**overrides) if overrides else self.config
        return PretrainTrainer(cfg).fit(
            x, network=self.network, epoch_shift=self.last_epoch, resolver=self.resolver
        )


def _cancelled(event: Optional[threading.Event]) -> bool:
    return event is not None and event.is_set()


def _as_frame(x: Any) -> pd.DataFrame:
    if isinstance(x, pd.DataFrame):
        return x
    return pd.DataFrame(np.asarray(x))


class PretrainTrainer:
    """
    Epoch loop for masked-reconstruction pretraining.

    Typical usage:
        trainer = PretrainTrainer(PretrainConfig(epochs=10, valid_split=0.2))
        result = trainer.fit(frame)

    Per epoch: train over all batches, capture a checkpoint on cadence, validate,
    check early stopping, step the scheduler. After the loop the network is moved
    to the CPU and feature importances are estimated on the training rows.
    """

    def __init__(
        self,
        config: Any = None,
        callbacks: Optional[List[Callback]] = None,
        **overrides: Any,
    ):
        self.config = PretrainConfig.from_any(config, **overrides)
        self.callbacks: List[Callback] = list(callbacks or [])

    def _default_callbacks(self, cfg: PretrainConfig) -> List[Callback]:
        callbacks: List[Callback] = [EpochSummaryCallback()]
        if cfg.log_dir is not None:
            log_path = setup_logging(cfg.log_dir)
            logger.info("Logging to %s", log_path)
            callbacks.append(JsonlCallback(JSONLLogger(Path(cfg.log_dir) / "events.jsonl")))
        if cfg.verbose:
            callbacks.append(ProgressCallback())
        return callbacks

    @staticmethod
    def _emit(callbacks: List[Callback], method: str, state: Dict[str, Any]) -> None:
        for cb in callbacks:
            fn = getattr(cb, method, None)
            if fn is not None:
                fn(state)

    def fit(
        self,
        x: pd.DataFrame,
        network: Optional[torch.nn.Module] = None,
        epoch_shift: int = 0,
        resolver: Optional[TabularResolver] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PretrainResult:
        """
        Train on ``x`` and return a ``PretrainResult``.

        ``network`` and ``epoch_shift`` continue a previous run. ``cancel_event``
        is checked before every training and validation batch; once set, the
        running epoch is abandoned (no metrics, no checkpoint) and the loop stops.
        """
        cfg = self.config
        seed_everything(cfg.seed)
        device = resolve_device(cfg.device)
        ctx = RunContext(config=cfg, device=device, loss_fn=unsupervised_loss)
        callbacks = self._default_callbacks(cfg) + self.callbacks

        # data
        frame = _as_frame(x).reset_index(drop=True)
        resolver = resolver or TabularResolver().fit(frame)
        train_idx, valid_idx = split_indices(len(frame), cfg.valid_split)
        train_ds = TabularBatchDataset(frame.iloc[train_idx.numpy()], resolver)
        valid_ds = TabularBatchDataset(frame.iloc[valid_idx.numpy()], resolver) if valid_idx is not None else None
        train_dl, valid_dl = build_dataloaders(train_ds, valid_ds, cfg)

        # network, optimizer, scheduler
        if network is None:
            network = build_network(resolver.input_dim, resolver.cat_idxs, resolver.cat_dims, cfg)
        network.to(device)
        optimizer = build_optimizer(network.parameters(), cfg)
        scheduler = build_scheduler(optimizer, cfg)

        metrics: List[EpochMetrics] = []
        checkpoints = CheckpointStore(cfg.checkpoint_dir)
        early = EarlyStopping(cfg.early_stopping_patience, cfg.early_stopping_tolerance) if cfg.early_stopping else None
        monitor = cfg.monitor()
        stopped_early = False
        interrupted = False
        last_epoch = epoch_shift

        self._emit(callbacks, "on_train_start", {"device": device, "config": cfg.to_loggable()})
        try:
            for epoch in range(epoch_shift + 1, epoch_shift + cfg.epochs + 1):
                self._emit(callbacks, "on_epoch_start", {"epoch": epoch, "n_batches": len(train_dl)})

                network.train()
                train_records: List[MetricRecord] = []
                for batch in train_dl:
                    if _cancelled(cancel_event):
                        interrupted = True
                        break
                    m = train_batch(network, optimizer, batch, ctx)
                    train_records.append(m)
                    self._emit(callbacks, "on_batch_end", {"epoch": epoch, "loss": m["loss"]})
                if interrupted:
                    logger.warning("Training cancelled during epoch %03d; partial epoch discarded", epoch)
                    break

                pending_raw = None
                if cfg.checkpoint_epochs > 0 and epoch % cfg.checkpoint_epochs == 0:
                    pending_raw = checkpoints.snapshot(network, device)

                network.eval()
                valid_metrics = None
                if valid_dl is not None:
                    valid_records: List[MetricRecord] = []
                    for batch in valid_dl:
                        if _cancelled(cancel_event):
                            interrupted = True
                            break
                        valid_records.append(valid_batch(network, batch, ctx))
                    if interrupted:
                        logger.warning("Training cancelled while validating epoch %03d; epoch discarded", epoch)
                        break
                    valid_metrics = transpose_metrics(valid_records)

                # stored only once the epoch is complete
                if pending_raw is not None:
                    checkpoints.append(pending_raw, epoch)

                epoch_metrics = EpochMetrics(epoch=epoch, train=transpose_metrics(train_records), valid=valid_metrics)
                metrics.append(epoch_metrics)
                last_epoch = epoch

                train_loss = epoch_metrics.mean("train")
                valid_loss = epoch_metrics.mean("valid") if valid_metrics is not None else None
                message = "[Epoch %03d] Loss: %f" % (epoch, train_loss)
                if valid_loss is not None:
                    message += " Valid loss: %f" % valid_loss
                logger.log(logging.INFO if cfg.verbose else logging.DEBUG, message)

                if early is not None:
                    if monitor == "valid_loss" and valid_loss is not None:
                        current_loss = valid_loss
                    else:
                        current_loss = train_loss
                    stopped_early = early.step(current_loss)

                self._emit(
                    callbacks,
                    "on_epoch_end",
                    {
                        "epoch": epoch,
                        "optimizer": optimizer,
                        "train_loss": train_loss,
                        "valid_loss": valid_loss,
                        "stopped_early": stopped_early,
                    },
                )
                if stopped_early:
                    logger.info("Early stopping at epoch %03d", epoch)
                    break

                scheduler.step()
        finally:
            for cb in callbacks:
                if isinstance(cb, ProgressCallback):
                    cb.close()

        network.to("cpu")
        importances = estimate_importances(network, train_ds, cfg.importance_sample_size)

        result = PretrainResult(
            network=network,
            metrics=metrics,
            config=cfg,
            checkpoints=checkpoints,
            importances=importances,
            resolver=resolver,
            last_epoch=last_epoch,
            stopped_early=stopped_early,
            interrupted=interrupted,
            extra={"device": str(device), "monitor": monitor},
        )
        self._emit(
            callbacks,
            "on_train_end",
            {"epochs_run": result.epochs_run, "checkpoints": len(checkpoints), "interrupted": interrupted},
        )
        return result


def pretrain(x: pd.DataFrame, config: Any = None, **overrides: Any) -> PretrainResult:
    """Convenience wrapper: ``PretrainTrainer(config, **overrides).fit(x)``."""
    return PretrainTrainer(config, **overrides).fit(x)
