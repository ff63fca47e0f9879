# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Model configuration for GPT-BigCode.

All architecture sizes flow from this record. The same class covers a
ten-token test model and the 15B StarCoder by changing values only.

This is a plain frozen dataclass (not Pydantic) because it is carried inside
torch modules and must stay lightweight. The YAML-facing validation lives in
config/schema.py; ``validate()`` here is the last line of defence before a
model is loaded.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

from bigcoder.model.errors import InvalidConfig


@dataclass(frozen=True)
class GPTBigCodeConfig:
    """
    Hyperparameters of a GPT-BigCode model.

    Args:
        vocab_size: Number of rows in the token embedding and LM head.
        max_position_embeddings: Number of learned absolute positions.
        num_hidden_layers: Number of transformer blocks.
        hidden_size: Model hidden dimension.
        num_attention_heads: Number of query heads.
        multi_query: If True, all query heads share a single key/value head.
        layer_norm_epsilon: Epsilon for every LayerNorm.
        n_inner: Feed-forward inner dimension. None means 4 * hidden_size.
    """

    vocab_size: int
    max_position_embeddings: int
    num_hidden_layers: int
    hidden_size: int
    num_attention_heads: int
    multi_query: bool
    layer_norm_epsilon: float = 1e-5
    n_inner: Optional[int] = None

    @property
    def head_dim(self) -> int:
        """Per-head vector width."""
        return self.hidden_size // self.num_attention_heads

    @property
    def kv_heads(self) -> int:
        """Number of key/value heads: one under multi-query, else one per query head."""
        return 1 if self.multi_query else self.num_attention_heads

    @property
    def kv_dim(self) -> int:
        return self.kv_heads * self.head_dim

    @property
    def inner_dim(self) -> int:
        return self.n_inner if self.n_inner is not None else 4 * self.hidden_size

    def validate(self) -> None:
        """
        Check internal consistency.

        Raises:
            InvalidConfig: If a size is non-positive or hidden_size is not
                evenly divisible by num_attention_heads.
        """
        for name in (
            "vocab_size",
            "max_position_embeddings",
            "hidden_size",
            "num_attention_heads",
        ):
            value = getattr(self, name)
            if value <= 0:
                raise InvalidConfig(f"{name} must be positive, got {value}")
        if self.num_hidden_layers < 0:
            raise InvalidConfig(
                f"num_hidden_layers must be non-negative, got {self.num_hidden_layers}"
            )
        if self.n_inner is not None and self.n_inner <= 0:
            raise InvalidConfig(f"n_inner must be positive, got {self.n_inner}")
        if self.layer_norm_epsilon <= 0:
            raise InvalidConfig(
                f"layer_norm_epsilon must be positive, got {self.layer_norm_epsilon}"
            )
        if self.hidden_size % self.num_attention_heads != 0:
            raise InvalidConfig(
                f"hidden_size ({self.hidden_size}) must be divisible by "
                f"num_attention_heads ({self.num_attention_heads})"
            )

    @classmethod
    def from_hf_config(cls, raw: Mapping[str, Any]) -> "GPTBigCodeConfig":
        """
        Build a config from a Hugging Face ``config.json`` mapping.

        The upstream files use GPT-2 style short names (``n_embd``,
        ``n_layer``, ...). The long names used by this class are accepted
        too, so a mapping produced by ``dataclasses.asdict`` round-trips.
        Unknown keys (``architectures``, ``use_cache``, ...) are ignored.

        Raises:
            InvalidConfig: If a required field is missing under both names.
        """

        def pick(long_name: str, short_name: str, default: Any = ...) -> Any:
            if long_name in raw:
                return raw[long_name]
            if short_name in raw:
                return raw[short_name]
            if default is ...:
                raise InvalidConfig(
                    f"Missing config field '{long_name}' (or '{short_name}')"
                )
            return default

        return cls(
            vocab_size=int(pick("vocab_size", "vocab_size")),
            max_position_embeddings=int(pick("max_position_embeddings", "n_positions")),
            num_hidden_layers=int(pick("num_hidden_layers", "n_layer")),
            hidden_size=int(pick("hidden_size", "n_embd")),
            layer_norm_epsilon=float(pick("layer_norm_epsilon", "layer_norm_eps", 1e-5)),
            n_inner=pick("n_inner", "intermediate_size", None),
            num_attention_heads=int(pick("num_attention_heads", "n_head")),
            multi_query=bool(pick("multi_query", "multi_query", True)),
        )
