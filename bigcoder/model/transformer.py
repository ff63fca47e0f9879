# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Full GPT-BigCode model.

The topology is:
  Token Embedding + Position Embedding → N × Transformer Blocks → Final Norm
  → Last Position → Linear LM Head → Logits

The model is loaded, never initialized: every tensor comes from a
ParameterStore laid out with the GPT-BigCode checkpoint names (``wte``,
``wpe``, ``h.{i}.*``, ``ln_f``, ``lm_head``). If any tensor is missing or
misshapen the load fails and no model is returned.

``forward`` returns logits for the final sequence position only, shape
(batch, vocab_size). There is no key/value cache: a generation loop calls
``forward`` on the whole growing sequence at every step, which costs
quadratic work per token. That is a known limitation of this model.
"""

import logging
from typing import Optional

import torch
import torch.nn as nn

from bigcoder.logging.logger import get_logger
from bigcoder.model.block import TransformerBlock
from bigcoder.model.config import GPTBigCodeConfig
from bigcoder.model.errors import InvalidInput
from bigcoder.model.loaders import load_embedding, load_linear, load_normalization
from bigcoder.model.store import ParameterStore

logger: logging.Logger = get_logger(__name__)


class GPTBigCode(nn.Module):
    """
    Decoder-only GPT-BigCode language model.

    Construct with ``GPTBigCode.load(store, config)``. The constructor takes
    already-loaded layers and does no validation of its own.

    Args:
        wte: Token embedding (vocab_size, hidden).
        wpe: Position embedding (max_position_embeddings, hidden).
        blocks: Transformer blocks in layer order.
        ln_f: Final LayerNorm.
        lm_head: Output projection hidden -> vocab_size, no bias.
        config: The hyperparameters these layers were loaded with.
    """

    def __init__(
        self,
        wte: nn.Embedding,
        wpe: nn.Embedding,
        blocks: list[TransformerBlock],
        ln_f: nn.LayerNorm,
        lm_head: nn.Linear,
        config: GPTBigCodeConfig,
    ) -> None:
        super().__init__()
        self.wte = wte
        self.wpe = wpe
        self.h = nn.ModuleList(blocks)
        self.ln_f = ln_f
        self.lm_head = lm_head
        self._config = config

    @property
    def config(self) -> GPTBigCodeConfig:
        return self._config

    @classmethod
    def load(cls, store: ParameterStore, config: GPTBigCodeConfig) -> "GPTBigCode":
        """
        Load the full model from a parameter store.

        Args:
            store: Store rooted at the checkpoint's top level.
            config: Model hyperparameters.

        Returns:
            A model in eval mode with all parameters frozen.

        Raises:
            InvalidConfig: If the config is inconsistent.
            MissingParameter / ShapeMismatch: If any tensor cannot be loaded.
        """
        config.validate()
        hidden_size = config.hidden_size

        wte = load_embedding(config.vocab_size, hidden_size, store.scope("wte"))
        wpe = load_embedding(config.max_position_embeddings, hidden_size, store.scope("wpe"))

        blocks = []
        for i in range(config.num_hidden_layers):
            logger.debug("loading_block", extra={"layer": i})
            blocks.append(TransformerBlock.load(store.scope(f"h.{i}"), config))

        ln_f = load_normalization(hidden_size, config.layer_norm_epsilon, store.scope("ln_f"))
        lm_head = load_linear(hidden_size, config.vocab_size, False, store.scope("lm_head"))

        model = cls(wte, wpe, blocks, ln_f, lm_head, config)
        model.eval()
        return model

    def _check_inputs(self, input_ids: torch.Tensor, position_ids: torch.Tensor) -> None:
        """Raise InvalidInput for anything the embeddings cannot index."""
        if position_ids.shape != input_ids.shape:
            raise InvalidInput(
                f"position_ids shape {tuple(position_ids.shape)} does not match "
                f"input_ids shape {tuple(input_ids.shape)}"
            )
        batch_size, seq_len = input_ids.shape
        if batch_size == 0 or seq_len == 0:
            raise InvalidInput(
                f"input must have batch and sequence length >= 1, got ({batch_size}, {seq_len})"
            )
        for name, ids in (("input_ids", input_ids), ("position_ids", position_ids)):
            if ids.dtype.is_floating_point or ids.dtype.is_complex or ids.dtype == torch.bool:
                raise InvalidInput(f"{name} must be an integer tensor, got {ids.dtype}")

        vocab_size = self._config.vocab_size
        if int(input_ids.min()) < 0 or int(input_ids.max()) >= vocab_size:
            raise InvalidInput(f"token ids must be in [0, {vocab_size})")

        max_positions = self._config.max_position_embeddings
        if int(position_ids.min()) < 0 or int(position_ids.max()) >= max_positions:
            raise InvalidInput(f"position ids must be in [0, {max_positions})")

    def forward(
        self,
        input_ids: torch.Tensor,
        position_ids: Optional[torch.Tensor] = None,
    ) -> torch.Tensor:
        """
        Compute next-token logits for the last position.

        Args:
            input_ids: Token IDs of shape (batch, seq_len).
            position_ids: Absolute positions of shape (batch, seq_len). If
                omitted, ``0 .. seq_len-1`` is used for every row.

        Returns:
            Logits tensor of shape (batch, vocab_size).

        Raises:
            InvalidInput: On malformed or out-of-range ids.
        """
        if input_ids.dim() != 2:
            raise InvalidInput(
                f"input_ids must be 2-D (batch, seq_len), got shape {tuple(input_ids.shape)}"
            )
        if position_ids is None:
            position_ids = torch.arange(
                input_ids.shape[1], device=input_ids.device
            ).unsqueeze(0).expand_as(input_ids)
        self._check_inputs(input_ids, position_ids)

        hidden_states = self.wte(input_ids) + self.wpe(position_ids)

        for block in self.h:
            hidden_states = block(hidden_states)

        hidden_states = self.ln_f(hidden_states)
        last = hidden_states[:, -1, :]
        return self.lm_head(last)

    def count_parameters(self) -> int:
        """Total number of loaded parameter elements."""
        return sum(p.numel() for p in self.parameters())
