# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Type-safe configuration schemas for bigcoder.

Each config section gets its own frozen pydantic model:
  - frozen=True: immutability after construction
  - extra="forbid": unknown fields cause immediate failure
  - validate_default=True: even defaults get type-checked

A single YAML file holds a ``global:`` section and, optionally, ``model:``
and ``runtime:`` sections:

    global:
      config_version: "1.0.0"
      log_level: "INFO"
    model:
      config_version: "1.0.0"
      preset: "starcoder-1b"
    runtime:
      config_version: "1.0.0"
      dtype: "bfloat16"
"""

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class GlobalConfig(BaseModel):
    """Cross-cutting settings: project identity, seed and logging."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(
        description="Schema version for compatibility tracking, e.g. '1.0.0'"
    )
    project_name: str = Field(
        default="bigcoder", description="Human-readable project identifier"
    )
    seed: int = Field(
        default=42,
        ge=0,
        description="Seed for synthetic checkpoints and any other randomness",
    )
    log_level: str = Field(
        default="INFO",
        description="One of DEBUG, INFO, WARNING, ERROR, CRITICAL",
    )
    log_file: Optional[str] = Field(
        default=None,
        description="Optional path for file-based log output",
    )

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        upper = value.upper()
        if upper not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"invalid log level '{value}'")
        return upper


class ModelConfig(BaseModel):
    """
    GPT-BigCode architecture. Maps to the ``model:`` section.

    Either name a ``preset`` or give the architecture fields. When a preset is
    named, explicitly given fields override the preset's values.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    preset: Optional[str] = Field(
        default=None,
        description="Named preset, e.g. 'starcoder-1b'",
    )
    vocab_size: Optional[int] = Field(default=None, ge=1)
    max_position_embeddings: Optional[int] = Field(default=None, ge=1)
    num_hidden_layers: Optional[int] = Field(default=None, ge=0)
    hidden_size: Optional[int] = Field(default=None, ge=1)
    layer_norm_epsilon: Optional[float] = Field(default=None, gt=0.0)
    n_inner: Optional[int] = Field(
        default=None,
        ge=1,
        description="Feed-forward inner dimension (default 4 * hidden_size)",
    )
    num_attention_heads: Optional[int] = Field(default=None, ge=1)
    multi_query: Optional[bool] = Field(
        default=None,
        description="Share one key/value head across all query heads",
    )

    @model_validator(mode="after")
    def _check_architecture(self) -> "ModelConfig":
        if self.preset is None:
            required = (
                "vocab_size",
                "max_position_embeddings",
                "num_hidden_layers",
                "hidden_size",
                "num_attention_heads",
                "multi_query",
            )
            missing = [name for name in required if getattr(self, name) is None]
            if missing:
                raise ValueError(
                    f"without a preset these fields are required: {', '.join(missing)}"
                )
        if self.hidden_size is not None and self.num_attention_heads is not None:
            if self.hidden_size % self.num_attention_heads != 0:
                raise ValueError(
                    f"hidden_size ({self.hidden_size}) must be divisible by "
                    f"num_attention_heads ({self.num_attention_heads})"
                )
        return self


class RuntimeConfig(BaseModel):
    """Where and in what precision the loaded weights live."""

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    config_version: str = Field(description="Schema version")
    dtype: Literal["float32", "float16", "bfloat16"] = Field(
        default="float32",
        description="Parameter dtype after loading",
    )
    device: str = Field(default="cpu", description="torch device string")


class BigCoderConfig(BaseModel):
    """
    Top-level config container.

    Only ``global:`` is required. Sections not present in the YAML stay None;
    callers check for the sections they need.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", validate_default=True)

    global_config: GlobalConfig = Field(alias="global")
    model: Optional[ModelConfig] = Field(default=None)
    runtime: Optional[RuntimeConfig] = Field(default=None)
