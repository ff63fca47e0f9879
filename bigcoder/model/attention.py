# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Causal self-attention for GPT-BigCode, with optional multi-query.

The query, key and value projections are packed into one linear layer,
``c_attn``, whose output is laid out as:

    [ query (hidden) | key (kv_dim) | value (kv_dim) ]

Under multi-query attention there is a single key/value head
(kv_dim = head_dim) shared by every query head; otherwise there is one
key/value head per query head (kv_dim = hidden). Both modes run through the
same code: key/value tensors keep a head axis of size ``kv_heads``, and a
size-1 axis is expanded (as a view) over the query heads before the fused
scaled_dot_product_attention kernel runs.

The computation:
  1. Project input to packed Q, K, V and split
  2. Reshape to (batch, heads, seq, head_dim)
  3. Causal scaled dot-product attention (torch fused kernel)
  4. Merge heads
  5. Project output back to model dimension

There is no key/value cache; every call recomputes from the full sequence.
"""

import torch
import torch.nn as nn
import torch.nn.functional as F

from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.loaders import load_linear
from bigcoder.model.store import ParameterStore


class MultiQueryAttention(nn.Module):
    """
    Multi-head causal self-attention with ``kv_heads`` key/value heads.

    Args:
        c_attn: Packed projection, hidden -> hidden + 2 * kv_dim.
        c_proj: Output projection, hidden -> hidden.
        num_heads: Number of query heads.
        kv_heads: Number of key/value heads (1 or num_heads).
    """

    def __init__(
        self,
        c_attn: nn.Linear,
        c_proj: nn.Linear,
        num_heads: int,
        kv_heads: int,
    ) -> None:
        super().__init__()
        self.c_attn = c_attn
        self.c_proj = c_proj
        self.num_heads = num_heads
        self.kv_heads = kv_heads
        self.hidden_size = c_proj.in_features
        self.head_dim = self.hidden_size // num_heads
        self.kv_dim = kv_heads * self.head_dim

    @classmethod
    def load(cls, store: ParameterStore, config: GPTBigCodeConfig) -> "MultiQueryAttention":
        """Load ``c_attn`` and ``c_proj`` from a store scoped at ``h.{i}.attn``."""
        hidden_size = config.hidden_size
        c_attn = load_linear(
            hidden_size, hidden_size + 2 * config.kv_dim, True, store.scope("c_attn")
        )
        c_proj = load_linear(hidden_size, hidden_size, True, store.scope("c_proj"))
        return cls(c_attn, c_proj, config.num_attention_heads, config.kv_heads)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        """
        Compute causal self-attention.

        Args:
            x: Input tensor of shape (batch, seq_len, hidden).

        Returns:
            Output tensor of shape (batch, seq_len, hidden).
        """
        batch_size, seq_len, _ = x.shape

        qkv = self.c_attn(x)
        query, key, value = qkv.split(
            [self.hidden_size, self.kv_dim, self.kv_dim], dim=-1
        )

        # (batch, heads, seq_len, head_dim)
        query = query.view(batch_size, seq_len, self.num_heads, self.head_dim).transpose(1, 2)
        key = key.view(batch_size, seq_len, self.kv_heads, self.head_dim).transpose(1, 2)
        value = value.view(batch_size, seq_len, self.kv_heads, self.head_dim).transpose(1, 2)

        # The fused kernel wants one key/value head per query head. expand()
        # is a view, so the shared head is not copied.
        key = key.expand(batch_size, self.num_heads, seq_len, self.head_dim)
        value = value.expand(batch_size, self.num_heads, seq_len, self.head_dim)

        output = F.scaled_dot_product_attention(query, key, value, is_causal=True)
        output = output.transpose(1, 2).contiguous().view(batch_size, seq_len, self.hidden_size)
        return self.c_proj(output)
