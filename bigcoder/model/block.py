# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Transformer block for GPT-BigCode.

Each block contains, in fixed order:
  1. LayerNorm (ln_1)
  2. Self-Attention
  3. Residual
  4. LayerNorm (ln_2)
  5. FeedForward
  6. Residual

Pre-norm: each sub-layer sees the normalized input, and its output is added
back to the un-normalized value.
"""

import torch
import torch.nn as nn

from bigcoder.model.attention import MultiQueryAttention
from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.loaders import load_normalization
from bigcoder.model.mlp import FeedForward
from bigcoder.model.store import ParameterStore


class TransformerBlock(nn.Module):
    """
    Single pre-norm transformer block.

    The structure is:
      x = x + attn(ln_1(x))
      x = x + mlp(ln_2(x))
    """

    def __init__(
        self,
        ln_1: nn.LayerNorm,
        attn: MultiQueryAttention,
        ln_2: nn.LayerNorm,
        mlp: FeedForward,
    ) -> None:
        super().__init__()
        self.ln_1 = ln_1
        self.attn = attn
        self.ln_2 = ln_2
        self.mlp = mlp

    @classmethod
    def load(cls, store: ParameterStore, config: GPTBigCodeConfig) -> "TransformerBlock":
        """Load a block from a store scoped at ``h.{i}``."""
        hidden_size = config.hidden_size
        eps = config.layer_norm_epsilon
        ln_1 = load_normalization(hidden_size, eps, store.scope("ln_1"))
        attn = MultiQueryAttention.load(store.scope("attn"), config)
        ln_2 = load_normalization(hidden_size, eps, store.scope("ln_2"))
        mlp = FeedForward.load(store.scope("mlp"), config)
        return cls(ln_1, attn, ln_2, mlp)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Input tensor of shape (batch, seq_len, hidden).

        Returns:
            Output tensor of shape (batch, seq_len, hidden).
        """
        residual = x
        x = self.ln_1(x)
        x = self.attn(x)
        x = x + residual
        residual = x
        x = self.ln_2(x)
        x = self.mlp(x)
        return x + residual
