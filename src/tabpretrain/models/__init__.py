"""Default pretraining network."""

from .pretrainer import EmbeddingGenerator, GhostBatchNorm, MaskedTabularNetwork, RandomObfuscator, build_network

__all__ = ["EmbeddingGenerator", "GhostBatchNorm", "MaskedTabularNetwork", "RandomObfuscator", "build_network"]
