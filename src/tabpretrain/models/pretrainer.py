from __future__ import annotations

import math
from typing import List, Sequence, Tuple

import torch
import torch.nn as nn
import torch.nn.functional as F


class GhostBatchNorm(nn.Module):
    """Batch norm applied over virtual batches of at most ``virtual_batch_size`` rows."""

    def __init__(self, input_dim: int, virtual_batch_size: int = 128, momentum: float = 0.02):
        super().__init__()
        self.input_dim = input_dim
        self.virtual_batch_size = virtual_batch_size
        self.bn = nn.BatchNorm1d(input_dim, momentum=momentum)

    def _norm(self, x: torch.Tensor) -> torch.Tensor:
        if self.training and x.size(0) == 1:
            # batch statistics are undefined for a single row
            return F.batch_norm(
                x, self.bn.running_mean, self.bn.running_var, self.bn.weight, self.bn.bias,
                training=False, eps=self.bn.eps,
            )
        return self.bn(x)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.size(0) <= self.virtual_batch_size:
            return self._norm(x)
        chunks = x.chunk(int(math.ceil(x.shape[0] / self.virtual_batch_size)), 0)
        return torch.cat([self._norm(x_) for x_ in chunks], dim=0)


class EmbeddingGenerator(nn.Module):
    """Replaces each categorical code column by a learned embedding of width ``cat_emb_dim``."""

    def __init__(self, input_dim: int, cat_idxs: Sequence[int], cat_dims: Sequence[int], cat_emb_dim: int = 1):
        super().__init__()
        if len(cat_idxs) != len(cat_dims):
            raise ValueError("cat_idxs and cat_dims must have the same length")
        self.input_dim = int(input_dim)
        self.cat_idxs = [int(i) for i in cat_idxs]
        self.embeddings = nn.ModuleList([nn.Embedding(int(d), cat_emb_dim) for d in cat_dims])
        self.post_embed_dim = self.input_dim + len(self.cat_idxs) * (cat_emb_dim - 1)

        widths: List[int] = []
        for i in range(self.input_dim):
            widths.append(cat_emb_dim if i in self.cat_idxs else 1)
        self.register_buffer("column_widths", torch.tensor(widths, dtype=torch.long))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if not self.cat_idxs:
            return x.float()
        cols = []
        cat_counter = 0
        for i in range(self.input_dim):
            if i in self.cat_idxs:
                cols.append(self.embeddings[cat_counter](x[:, i].long()))
                cat_counter += 1
            else:
                cols.append(x[:, i].float().view(-1, 1))
        return torch.cat(cols, dim=1)

    def embed_mask(self, mask: torch.Tensor) -> torch.Tensor:
        """Expand a per-column mask to the embedded layout."""
        return torch.repeat_interleave(mask.to(torch.uint8), self.column_widths, dim=1).bool()


class RandomObfuscator(nn.Module):
    """Hides a Bernoulli(pretraining_ratio) subset of the observed embedded cells."""

    def __init__(self, pretraining_ratio: float):
        super().__init__()
        self.pretraining_ratio = pretraining_ratio

    def forward(self, embedded_na_mask: torch.Tensor) -> torch.Tensor:
        draws = torch.bernoulli(
            torch.full(embedded_na_mask.shape, self.pretraining_ratio, device=embedded_na_mask.device)
        ).bool()
        return draws & embedded_na_mask.logical_not()


class MaskedTabularNetwork(nn.Module):
    """
    Encoder/decoder pretrainer for tabular rows.

    forward(x, x_na_mask) -> (reconstruction, embedded_x, obfuscation_mask)

    In training mode a random subset of observed cells is obfuscated. In eval mode
    nothing observed is hidden and the obfuscation mask equals the (embedded)
    missing-value mask, so the output is deterministic.
    """

    def __init__(
        self,
        input_dim: int,
        cat_idxs: Sequence[int] = (),
        cat_dims: Sequence[int] = (),
        pretraining_ratio: float = 0.5,
        n_d: int = 8,
        n_steps: int = 3,
        cat_emb_dim: int = 1,
        virtual_batch_size: int = 128,
        momentum: float = 0.02,
    ):
        super().__init__()
        self.embedder = EmbeddingGenerator(input_dim, cat_idxs, cat_dims, cat_emb_dim)
        self.masker = RandomObfuscator(pretraining_ratio)
        post_embed_dim = self.embedder.post_embed_dim

        steps = []
        in_dim = 2 * post_embed_dim
        for _ in range(n_steps):
            steps.append(
                nn.ModuleDict(
                    {
                        "fc": nn.Linear(in_dim, n_d, bias=False),
                        "bn": GhostBatchNorm(n_d, virtual_batch_size=virtual_batch_size, momentum=momentum),
                    }
                )
            )
            in_dim = n_d
        self.steps = nn.ModuleList(steps)
        self.decoder = nn.Linear(n_d, post_embed_dim)

    def forward(self, x: torch.Tensor, x_na_mask: torch.Tensor) -> Tuple[torch.Tensor, torch.Tensor, torch.Tensor]:
        embedded_x = self.embedder(x)
        embedded_na = self.embedder.embed_mask(x_na_mask.bool())

        if self.training:
            obf_vars = self.masker(embedded_na)
        else:
            obf_vars = embedded_na.clone()

        hidden = obf_vars | embedded_na
        masked_x = embedded_x.masked_fill(hidden, 0.0)
        h = torch.cat([masked_x, hidden.to(masked_x.dtype)], dim=1)

        out = torch.zeros(x.shape[0], self.decoder.in_features, device=x.device, dtype=masked_x.dtype)
        for step in self.steps:
            h = F.relu(step["bn"](step["fc"](h)))
            out = out + h
        res = self.decoder(out)
        return res, embedded_x, obf_vars


def build_network(input_dim: int, cat_idxs: Sequence[int], cat_dims: Sequence[int], config) -> MaskedTabularNetwork:
    """Network factory; architecture options come straight from the run config."""
    return MaskedTabularNetwork(
        input_dim=input_dim,
        cat_idxs=cat_idxs,
        cat_dims=cat_dims,
        pretraining_ratio=config.pretraining_ratio,
        n_d=config.n_d,
        n_steps=config.n_steps,
        cat_emb_dim=config.cat_emb_dim,
        virtual_batch_size=config.virtual_batch_size,
        momentum=config.momentum,
    )
