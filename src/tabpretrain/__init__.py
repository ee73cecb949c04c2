"""tabpretrain: self-supervised masked-reconstruction pretraining for tabular encoders."""

from .config import PretrainConfig, load_config
from .training import PretrainResult, PretrainTrainer, pretrain

__version__ = "0.1.0"

__all__ = ["PretrainConfig", "PretrainResult", "PretrainTrainer", "load_config", "pretrain", "__version__"]
