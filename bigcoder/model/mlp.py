# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Position-wise feedforward network for GPT-BigCode.

Structure: Linear (c_fc) → GELU → Linear (c_proj).

GPT-BigCode checkpoints are trained with the tanh approximation of GELU,
so that is what is applied here.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F

from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.loaders import load_linear
from bigcoder.model.store import ParameterStore


class FeedForward(nn.Module):
    """
    Two-layer MLP applied independently at every position.

    Args:
        c_fc: Expansion projection, hidden -> inner.
        c_proj: Contraction projection, inner -> hidden.
    """

    def __init__(self, c_fc: nn.Linear, c_proj: nn.Linear) -> None:
        super().__init__()
        self.c_fc = c_fc
        self.c_proj = c_proj

    @classmethod
    def load(cls, store: ParameterStore, config: GPTBigCodeConfig) -> "FeedForward":
        inner_dim = config.inner_dim
        c_fc = load_linear(config.hidden_size, inner_dim, True, store.scope("c_fc"))
        c_proj = load_linear(inner_dim, config.hidden_size, True, store.scope("c_proj"))
        return cls(c_fc, c_proj)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Args:
            x: Input tensor of shape (..., hidden).

        Returns:
            Output tensor of same shape.
        """
        return self.c_proj(F.gelu(self.c_fc(x), approximate="tanh"))
