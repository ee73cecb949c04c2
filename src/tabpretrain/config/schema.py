"""
Pydantic schema for pretraining configuration.
"""

from typing import Any, Callable, Dict, Mapping, Optional, Union

from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

OptimizerSpec = Union[str, Callable[..., Any]]
SchedulerSpec = Optional[Union[str, Callable[..., Any]]]

# names accepted by build_optimizer / build_scheduler
SUPPORTED_OPTIMIZERS = ("adam",)
SUPPORTED_SCHEDULERS = ("step",)
MONITORS = ("auto", "valid_loss", "train_loss")


class PretrainConfig(BaseModel):
    """
    Immutable configuration for one pretraining run.

    Optimizer and scheduler may be given by name or as factories:
    ``optimizer(params, lr)`` and ``lr_scheduler(optimizer)``.
    Architecture fields are passed through to the network unchanged.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True, extra="forbid")

    # Optimisation
    optimizer: OptimizerSpec = Field("adam", description="Optimizer name or factory(params, lr)")
    learn_rate: float = Field(2e-2, gt=0, description="Initial learning rate")
    lr_scheduler: SchedulerSpec = Field(None, description="None, 'step' or factory(optimizer)")
    step_size: int = Field(30, ge=1, description="Epochs between decays for the 'step' scheduler")
    lr_decay: float = Field(0.1, gt=0, description="Multiplicative decay for the 'step' scheduler")
    clip_value: Optional[float] = Field(None, gt=0, description="Global gradient-norm clip; None disables")

    # Loop
    batch_size: int = Field(256, ge=1)
    drop_last: bool = False
    epochs: int = Field(5, ge=0)
    device: str = Field("auto", description="'auto', 'cpu', 'cuda', 'cuda:N', ...")
    valid_split: float = Field(0.0, ge=0.0, lt=1.0)
    num_workers: int = Field(0, ge=0)
    verbose: bool = False
    seed: Optional[int] = None

    # Masking
    pretraining_ratio: float = Field(0.5, gt=0.0, lt=1.0)

    # Checkpoints
    checkpoint_epochs: int = Field(10, ge=0, description="Checkpoint cadence in epochs; 0 disables")
    checkpoint_dir: Optional[str] = Field(None, description="Optional directory mirroring checkpoints")
    log_dir: Optional[str] = Field(None, description="Optional directory for log file and JSONL events")

    # Early stopping
    early_stopping: bool = False
    early_stopping_monitor: str = "auto"
    early_stopping_tolerance: float = Field(0.0, ge=0.0)
    early_stopping_patience: int = Field(0, ge=0)

    # Importance
    importance_sample_size: Optional[int] = Field(None, ge=1)

    # Architecture pass-through
    n_d: int = Field(8, ge=1)
    n_steps: int = Field(3, ge=1)
    cat_emb_dim: int = Field(1, ge=1)
    momentum: float = Field(0.02, gt=0.0, lt=1.0)
    virtual_batch_size: int = Field(128, ge=1)

    @field_validator("optimizer")
    @classmethod
    def _check_optimizer(cls, v: OptimizerSpec) -> OptimizerSpec:
        if isinstance(v, str):
            return v.lower()
        return v

    @field_validator("lr_scheduler")
    @classmethod
    def _check_scheduler(cls, v: SchedulerSpec) -> SchedulerSpec:
        if isinstance(v, str):
            v = v.lower()
            if v in ("", "none"):
                return None
        return v

    @field_validator("early_stopping_monitor")
    @classmethod
    def _check_monitor(cls, v: str) -> str:
        if v not in MONITORS:
            raise ValueError(f"early_stopping_monitor must be one of {MONITORS}, got '{v}'")
        return v

    @field_validator("device")
    @classmethod
    def _check_device(cls, v: str) -> str:
        v = str(v).strip().lower()
        if not v:
            raise ValueError("device must not be empty")
        return v

    @model_validator(mode="after")
    def _check_early_stopping(self) -> "PretrainConfig":
        if self.early_stopping and self.early_stopping_patience < 1:
            raise ValueError("early_stopping requires early_stopping_patience >= 1")
        return self

    @property
    def has_valid(self) -> bool:
        return self.valid_split > 0

    def monitor(self) -> str:
        """Resolve 'auto' into the quantity early stopping watches."""
        if self.early_stopping_monitor == "auto":
            return "valid_loss" if self.has_valid else "train_loss"
        return self.early_stopping_monitor

    def with_overrides(self, **overrides: Any) -> "PretrainConfig":
        """Validated copy with ``overrides`` applied; ``self`` is left untouched."""
        data = self.model_dump()
        data.update(overrides)
        return PretrainConfig(**data)

    def to_loggable(self) -> Dict[str, Any]:
        """JSON-friendly view (factories replaced by their qualified names)."""
        out: Dict[str, Any] = {}
        for k, v in self.model_dump().items():
            if callable(v):
                v = getattr(v, "__qualname__", repr(v))
            out[k] = v
        return out

    @classmethod
    def from_any(cls, cfg: Any = None, **overrides: Any) -> "PretrainConfig":
        """
        Build from None, a PretrainConfig, a plain mapping or an OmegaConf DictConfig.
        """
        if cfg is None:
            base: Dict[str, Any] = {}
        elif isinstance(cfg, PretrainConfig):
            return cfg.with_overrides(**overrides) if overrides else cfg
        elif isinstance(cfg, DictConfig):
            base = dict(OmegaConf.to_container(cfg, resolve=True))  # type: ignore[arg-type]
        elif isinstance(cfg, Mapping):
            base = dict(cfg)
        else:
            raise TypeError(f"Cannot build PretrainConfig from {type(cfg).__name__}")
        base.update(overrides)
        return cls(**base)
