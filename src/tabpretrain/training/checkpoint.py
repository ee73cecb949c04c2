from __future__ import annotations

import io
import itertools
import logging
from pathlib import Path
from typing import Iterator, List, Optional

import torch

from .utils import ensure_dir, write_json

logger = logging.getLogger(__name__)


def model_to_raw(network: torch.nn.Module) -> bytes:
    """Serialize a CPU-resident network (parameters and buffers) to bytes."""
    for t in itertools.chain(network.parameters(), network.buffers()):
        if t.device.type != "cpu":
            raise RuntimeError("model_to_raw expects the network on the CPU; call network.to('cpu') first")
    buffer = io.BytesIO()
    torch.save(network, buffer)
    return buffer.getvalue()


def model_from_raw(raw: bytes) -> torch.nn.Module:
    """Inverse of ``model_to_raw``; the network is returned on the CPU."""
    return torch.load(io.BytesIO(raw), map_location="cpu", weights_only=False)


class CheckpointStore:
    """
    Ordered, append-only in-memory checkpoints, indexed from 1 in capture order.
    When ``dirpath`` is set, every checkpoint is also written to disk together
    with a small meta.json mapping checkpoint index to epoch.
    """

    def __init__(self, dirpath: Optional[Path | str] = None):
        self._raw: List[bytes] = []
        self.epochs: List[int] = []
        self.dir = ensure_dir(dirpath) if dirpath is not None else None

    def __len__(self) -> int:
        return len(self._raw)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._raw)

    def append(self, raw: bytes, epoch: int) -> int:
        self._raw.append(raw)
        self.epochs.append(int(epoch))
        index = len(self._raw)
        if self.dir is not None:
            path = Path(self.dir) / f"checkpoint_{index:03d}.pt"
            path.write_bytes(raw)
            write_json(
                Path(self.dir) / "meta.json",
                {"checkpoints": [{"index": i + 1, "epoch": e} for i, e in enumerate(self.epochs)]},
            )
        logger.info("Checkpoint %d captured at epoch=%d", index, epoch)
        return index

    @staticmethod
    def snapshot(network: torch.nn.Module, device: torch.device) -> bytes:
        """Move ``network`` to the CPU, serialize it, then move it back to ``device``."""
        network.to("cpu")
        try:
            return model_to_raw(network)
        finally:
            network.to(device)

    def capture(self, network: torch.nn.Module, epoch: int, device: torch.device) -> int:
        return self.append(self.snapshot(network, device), epoch)

    def get(self, index: int) -> bytes:
        if not 1 <= index <= len(self._raw):
            raise IndexError(f"Checkpoint index {index} out of range 1..{len(self._raw)}")
        return self._raw[index - 1]

    def load(self, index: int) -> torch.nn.Module:
        return model_from_raw(self.get(index))
