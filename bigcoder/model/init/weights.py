# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Checkpoint layout and deterministic synthetic checkpoints.

``parameter_shapes`` is the single source of truth for which tensors a
GPT-BigCode checkpoint must contain and what shape each one has.

``synthetic_state_dict`` fills that layout from a seeded torch.Generator so
smoke tests and benchmarks can load a model without a real checkpoint. Every
call with the same config and seed produces identical tensors regardless of
the global random state.
"""

from typing import Literal

import torch

from bigcoder.model.config import GPTBigCodeConfig

NormNaming = Literal["weight", "gamma"]

_NORM_NAMES: dict[str, tuple[str, str]] = {
    "weight": ("weight", "bias"),
    "gamma": ("gamma", "beta"),
}


def _norm_shapes(prefix: str, hidden: int, naming: NormNaming) -> dict[str, tuple[int, ...]]:
    scale, shift = _NORM_NAMES[naming]
    return {f"{prefix}.{scale}": (hidden,), f"{prefix}.{shift}": (hidden,)}


def parameter_shapes(
    config: GPTBigCodeConfig,
    norm_naming: NormNaming = "weight",
) -> dict[str, tuple[int, ...]]:
    """
    Map every checkpoint tensor name to its expected shape.

    Args:
        config: Model hyperparameters.
        norm_naming: Which LayerNorm naming to emit ("weight" for
            weight/bias, "gamma" for gamma/beta).

    Returns:
        Ordered ``name -> shape`` dict, embeddings first, LM head last.
    """
    hidden = config.hidden_size
    packed = hidden + 2 * config.kv_dim
    inner = config.inner_dim

    shapes: dict[str, tuple[int, ...]] = {
        "wte.weight": (config.vocab_size, hidden),
        "wpe.weight": (config.max_position_embeddings, hidden),
    }
    for i in range(config.num_hidden_layers):
        layer = f"h.{i}"
        shapes.update(_norm_shapes(f"{layer}.ln_1", hidden, norm_naming))
        shapes[f"{layer}.attn.c_attn.weight"] = (packed, hidden)
        shapes[f"{layer}.attn.c_attn.bias"] = (packed,)
        shapes[f"{layer}.attn.c_proj.weight"] = (hidden, hidden)
        shapes[f"{layer}.attn.c_proj.bias"] = (hidden,)
        shapes.update(_norm_shapes(f"{layer}.ln_2", hidden, norm_naming))
        shapes[f"{layer}.mlp.c_fc.weight"] = (inner, hidden)
        shapes[f"{layer}.mlp.c_fc.bias"] = (inner,)
        shapes[f"{layer}.mlp.c_proj.weight"] = (hidden, inner)
        shapes[f"{layer}.mlp.c_proj.bias"] = (hidden,)
    shapes.update(_norm_shapes("ln_f", hidden, norm_naming))
    shapes["lm_head.weight"] = (config.vocab_size, hidden)
    return shapes


def synthetic_state_dict(
    config: GPTBigCodeConfig,
    seed: int = 42,
    init_std: float = 0.02,
    norm_naming: NormNaming = "weight",
    dtype: torch.dtype = torch.float32,
) -> dict[str, torch.Tensor]:
    """
    Build a deterministic checkpoint for ``config``.

    Matrices (embeddings, projection weights) are drawn from
    N(0, init_std). Norm scales are 1 and all shifts and biases are 0.

    Args:
        config: Model hyperparameters.
        seed: Seed for the dedicated Generator.
        init_std: Standard deviation for matrix entries.
        norm_naming: LayerNorm naming convention to emit.
        dtype: dtype of the returned tensors.

    Returns:
        A fresh ``name -> tensor`` dict; the caller owns it.
    """
    generator = torch.Generator()
    generator.manual_seed(seed)

    scale_name = _NORM_NAMES[norm_naming][0]
    state: dict[str, torch.Tensor] = {}
    for name, shape in parameter_shapes(config, norm_naming).items():
        if len(shape) >= 2:
            tensor = torch.empty(shape).normal_(0.0, init_std, generator=generator)
        elif name.endswith("." + scale_name):
            tensor = torch.ones(shape)
        else:
            tensor = torch.zeros(shape)
        state[name] = tensor.to(dtype)
    return state
