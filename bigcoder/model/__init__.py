# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
GPT-BigCode model package.

Decoder-only transformer loaded from a named parameter store:
  - Learned token and absolute position embeddings
  - Pre-norm blocks with LayerNorm
  - Causal self-attention, optionally multi-query (one shared key/value head)
  - GELU feedforward
  - Untied LM head producing logits for the last position
"""

from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.errors import (
    ComputationError,
    InvalidConfig,
    InvalidInput,
    MissingParameter,
    ModelError,
    ShapeMismatch,
)
from bigcoder.model.store import ParameterStore
from bigcoder.model.transformer import GPTBigCode

__all__ = [
    "ComputationError",
    "GPTBigCode",
    "GPTBigCodeConfig",
    "InvalidConfig",
    "InvalidInput",
    "MissingParameter",
    "ModelError",
    "ParameterStore",
    "ShapeMismatch",
]
