from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn

from .loggers import JSONLLogger

logger = logging.getLogger(__name__)


class Callback:
    """
    Hooks called by ``PretrainTrainer.fit``. Each receives a plain dict:

    on_train_start : device, config
    on_epoch_start : epoch, n_batches
    on_batch_end   : epoch, loss
    on_epoch_end   : epoch, optimizer, train_loss, valid_loss, stopped_early
    on_train_end   : epochs_run, checkpoints, interrupted
    """

    def on_train_start(self, state: Dict[str, Any]) -> None: ...

    def on_epoch_start(self, state: Dict[str, Any]) -> None: ...

    def on_batch_end(self, state: Dict[str, Any]) -> None: ...

    def on_epoch_end(self, state: Dict[str, Any]) -> None: ...

    def on_train_end(self, state: Dict[str, Any]) -> None: ...


class JsonlCallback(Callback):
    """One JSONL event per run boundary and per epoch; early stops get their own event."""

    def __init__(self, jsonl: JSONLLogger):
        self.jsonl = jsonl

    def on_train_start(self, state: Dict[str, Any]) -> None:
        self.jsonl.info(event="train_start", device=str(state.get("device")), config=state.get("config", {}))

    def on_epoch_end(self, state: Dict[str, Any]) -> None:
        self.jsonl.info(
            event="epoch_end",
            epoch=state["epoch"],
            train_loss=state.get("train_loss"),
            valid_loss=state.get("valid_loss"),
        )
        if state.get("stopped_early"):
            self.jsonl.info(event="early_stop", epoch=state["epoch"])

    def on_train_end(self, state: Dict[str, Any]) -> None:
        self.jsonl.info(
            event="train_end",
            epochs_run=state.get("epochs_run"),
            checkpoints=state.get("checkpoints"),
            interrupted=state.get("interrupted", False),
        )


class EpochSummaryCallback(Callback):
    """Debug line per epoch with wall time and the learning rate of every param group."""

    def __init__(self):
        self.t0: Optional[float] = None

    def on_epoch_start(self, state: Dict[str, Any]) -> None:
        self.t0 = time.perf_counter()

    def on_epoch_end(self, state: Dict[str, Any]) -> None:
        elapsed = time.perf_counter() - self.t0 if self.t0 is not None else float("nan")
        opt = state.get("optimizer")
        lrs: List[float] = [pg["lr"] for pg in getattr(opt, "param_groups", []) if "lr" in pg]
        logger.debug(
            "Epoch %03d took %.2fs, lr=%s",
            state.get("epoch", -1),
            elapsed,
            ", ".join(f"{lr:.3e}" for lr in lrs) or "-",
        )


class ProgressCallback(Callback):
    """Per-batch progress bar with the running batch loss."""

    def __init__(self):
        self.progress: Optional[Progress] = None
        self.task = None

    def on_epoch_start(self, state: Dict[str, Any]) -> None:
        self.progress = Progress(
            TextColumn("[Epoch {task.fields[epoch]:03d}]"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("loss= {task.fields[loss]}"),
            transient=True,
        )
        self.progress.start()
        self.task = self.progress.add_task(
            "train", total=state.get("n_batches"), epoch=state.get("epoch", 0), loss="-"
        )

    def on_batch_end(self, state: Dict[str, Any]) -> None:
        if self.progress is not None:
            self.progress.update(self.task, advance=1, loss=f"{state.get('loss', float('nan')):.6f}")

    def on_epoch_end(self, state: Dict[str, Any]) -> None:
        self.close()

    def on_train_end(self, state: Dict[str, Any]) -> None:
        self.close()

    def close(self) -> None:
        if self.progress is not None:
            self.progress.stop()
            self.progress = None
