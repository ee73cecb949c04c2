from __future__ import annotations

import torch


def unsupervised_loss(
    y_pred: torch.Tensor,
    embedded_x: torch.Tensor,
    obfuscation_mask: torch.Tensor,
    eps: float = 1e-9,
) -> torch.Tensor:
    """
    Masked reconstruction loss used for self-supervised pretraining.

    Squared errors are kept only where ``obfuscation_mask`` is set, scaled by the
    inverse batch variance of each embedded column, summed per row and divided by
    the number of obfuscated cells in that row. Returns the mean over rows.

    A row without obfuscated cells contributes 0 (the denominator is eps-guarded),
    so an all-false mask yields a loss of exactly 0.
    """
    mask = obfuscation_mask.to(dtype=embedded_x.dtype)
    errors = y_pred - embedded_x
    reconstruction_errors = torch.mul(errors, mask) ** 2
    batch_vars = torch.var(embedded_x, dim=0, unbiased=False) + eps

    # number of obfuscated variables to reconstruct, per row
    nb_reconstructed_variables = torch.sum(mask, dim=1)

    features_loss = torch.matmul(reconstruction_errors, 1 / batch_vars) / (nb_reconstructed_variables + eps)
    return torch.mean(features_loss)
