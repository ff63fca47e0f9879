# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Parameter loaders: materialize layers from a ParameterStore.

Each loader builds a standard torch layer on the meta device (no memory, no
random init) and then installs the tensors fetched from the store as frozen
parameters. A loader either returns a fully populated layer or raises; it
never returns a layer with default-initialized weights.

Checkpoint naming contract:
  - Linear and embedding layers live under ``weight`` (+ ``bias``).
  - LayerNorms live under ``weight``/``bias`` or, in checkpoints converted
    from older TF-style exports, ``gamma``/``beta``.
"""

import logging

import torch
import torch.nn as nn

from bigcoder.logging.logger import get_logger
from bigcoder.model.errors import ParameterError
from bigcoder.model.store import ParameterStore

logger: logging.Logger = get_logger(__name__)


def _frozen(tensor: torch.Tensor) -> nn.Parameter:
    return nn.Parameter(tensor, requires_grad=False)


def load_linear(
    in_features: int,
    out_features: int,
    has_bias: bool,
    store: ParameterStore,
) -> nn.Linear:
    """
    Load a linear projection ``y = x W^T + b``.

    Args:
        in_features: Input width.
        out_features: Output width.
        has_bias: Whether a ``bias`` tensor of shape (out,) is expected.
        store: View scoped at the layer (e.g. ``h.0.attn.c_attn``).

    Raises:
        MissingParameter: If ``weight`` (or ``bias`` when expected) is absent.
        ShapeMismatch: If ``weight`` is not (out, in) or ``bias`` not (out,).
    """
    weight = store.get((out_features, in_features), "weight")
    bias = store.get(out_features, "bias") if has_bias else None

    linear = nn.Linear(in_features, out_features, bias=has_bias, device="meta")
    linear.weight = _frozen(weight)
    if bias is not None:
        linear.bias = _frozen(bias)
    return linear


def load_embedding(cardinality: int, hidden: int, store: ParameterStore) -> nn.Embedding:
    """Load an embedding table of shape (cardinality, hidden) from ``weight``."""
    table = store.get((cardinality, hidden), "weight")
    return nn.Embedding.from_pretrained(table, freeze=True)


def load_normalization(hidden: int, epsilon: float, store: ParameterStore) -> nn.LayerNorm:
    """
    Load a LayerNorm, accepting either naming convention.

    ``weight``/``bias`` is tried first. If either is missing or misshapen,
    ``gamma``/``beta`` is tried at the same path. If that fails too, the
    error from the ``weight``/``bias`` attempt is raised so the message names
    the parameter the checkpoint was expected to hold.

    Args:
        hidden: Normalized feature width.
        epsilon: Variance epsilon.
        store: View scoped at the norm (e.g. ``h.0.ln_1``).

    Raises:
        MissingParameter / ShapeMismatch: From the primary naming.
    """
    try:
        weight = store.get(hidden, "weight")
        bias = store.get(hidden, "bias")
    except ParameterError as primary_err:
        try:
            weight = store.get(hidden, "gamma")
            bias = store.get(hidden, "beta")
        except ParameterError:
            raise primary_err
        logger.debug("norm_fallback_naming", extra={"path": store.prefix})

    norm = nn.LayerNorm(hidden, eps=epsilon, device="meta")
    norm.weight = _frozen(weight)
    norm.bias = _frozen(bias)
    return norm
