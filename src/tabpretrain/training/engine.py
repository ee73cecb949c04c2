from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict

import torch
from torch.nn.utils import clip_grad_norm_

from ..config import PretrainConfig
from ..data import ResolvedBatch
from .losses import unsupervised_loss

LossFn = Callable[[torch.Tensor, torch.Tensor, torch.Tensor], torch.Tensor]


@dataclass(frozen=True)
class RunContext:
    """
    Private, per-run view of the configuration: the caller's config plus the
    resolved device and the loss function. Built once by the trainer.
    """

    config: PretrainConfig
    device: torch.device = field(default_factory=lambda: torch.device("cpu"))
    loss_fn: LossFn = unsupervised_loss

    @property
    def clip_value(self):
        return self.config.clip_value


def _forward(network: torch.nn.Module, batch: ResolvedBatch, device: torch.device):
    output = network(batch.x.to(device), batch.x_na_mask.to(device))
    if not isinstance(output, (tuple, list)) or len(output) != 3:
        raise RuntimeError("Network forward must return (reconstruction, embedded_x, obfuscation_mask)")
    return output


def train_batch(
    network: torch.nn.Module,
    optimizer: torch.optim.Optimizer,
    batch: ResolvedBatch,
    ctx: RunContext,
) -> Dict[str, float]:
    """One forward/backward/optimizer step. Mutates network parameters and optimizer state."""
    reconstruction, embedded_x, obf_mask = _forward(network, batch, ctx.device)
    loss = ctx.loss_fn(reconstruction, embedded_x, obf_mask)

    optimizer.zero_grad()
    loss.backward()
    if ctx.clip_value is not None:
        clip_grad_norm_(network.parameters(), ctx.clip_value)
    optimizer.step()

    return {"loss": float(loss.detach().item())}


@torch.no_grad()
def valid_batch(network: torch.nn.Module, batch: ResolvedBatch, ctx: RunContext) -> Dict[str, float]:
    """
    Forward pass only. The loss is taken on the cells that were NOT obfuscated,
    which keeps never-obfuscated cells from producing NaNs in the loss.
    """
    reconstruction, embedded_x, obf_mask = _forward(network, batch, ctx.device)
    loss = ctx.loss_fn(reconstruction, embedded_x, obf_mask.logical_not())
    return {"loss": float(loss.item())}
