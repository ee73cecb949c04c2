from __future__ import annotations

import logging
from typing import Any, Iterable

import torch
from torch.optim import Optimizer

from ..config import PretrainConfig
from ..config.schema import SUPPORTED_OPTIMIZERS, SUPPORTED_SCHEDULERS

logger = logging.getLogger(__name__)


class NoOpScheduler:
    """Stand-in used when no learning-rate scheduler is configured."""

    def step(self) -> None:
        return None


def build_optimizer(params: Iterable[torch.nn.Parameter], cfg: PretrainConfig) -> Optimizer:
    """
    Resolve ``cfg.optimizer`` into an optimizer instance.
    Accepts the name "adam" or a factory called as ``factory(params, lr)``.
    """
    spec = cfg.optimizer
    if not callable(spec) and spec not in SUPPORTED_OPTIMIZERS:
        raise ValueError(f"Unknown optimizer '{spec}'. Currently only the 'adam' optimizer is supported.")
    if callable(spec):
        optimizer = spec(params, cfg.learn_rate)
    else:
        optimizer = torch.optim.Adam(params, lr=cfg.learn_rate)

    if not (hasattr(optimizer, "zero_grad") and hasattr(optimizer, "step")):
        raise TypeError("Optimizer factory must return an object with zero_grad() and step()")
    logger.info("Optimizer: %s (lr=%g)", type(optimizer).__name__, cfg.learn_rate)
    return optimizer


def build_scheduler(optimizer: Optimizer, cfg: PretrainConfig) -> Any:
    """
    Resolve ``cfg.lr_scheduler`` into an object with ``step()``; called once per epoch.
    None gives a no-op, "step" a StepLR(step_size, gamma=lr_decay), a callable is
    called as ``factory(optimizer)``.
    """
    spec = cfg.lr_scheduler
    if spec is None:
        return NoOpScheduler()
    if not callable(spec) and spec not in SUPPORTED_SCHEDULERS:
        raise ValueError(f"Unknown scheduler '{spec}'; expected one of {SUPPORTED_SCHEDULERS} or a factory")
    if callable(spec):
        scheduler = spec(optimizer)
    else:
        scheduler = torch.optim.lr_scheduler.StepLR(optimizer, step_size=cfg.step_size, gamma=cfg.lr_decay)

    if not hasattr(scheduler, "step"):
        raise TypeError("Scheduler factory must return an object with step()")
    return scheduler
