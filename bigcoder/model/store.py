# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Read-only, hierarchical parameter store.

A checkpoint is a flat mapping from dotted names (``h.3.attn.c_attn.weight``)
to tensors. The model never walks that mapping directly; every loader gets a
scoped view and asks for a tensor by its leaf name and expected shape:

    store = ParameterStore.from_state_dict(state_dict)
    block = store.scope("h.3")
    weight = block.scope("attn.c_attn").get((3 * 768, 768), "weight")

The store borrows the mapping. It never inserts, removes or modifies
entries, and every fetched tensor is a copy, so whatever is built from it
owns its storage outright.
"""

import logging
from typing import Iterator, Mapping, Optional, Sequence, Union

import torch

from bigcoder.logging.logger import get_logger
from bigcoder.model.errors import MissingParameter, ShapeMismatch

logger: logging.Logger = get_logger(__name__)

Shape = Union[int, Sequence[int]]

_DTYPES: dict[str, torch.dtype] = {
    "float32": torch.float32,
    "float16": torch.float16,
    "bfloat16": torch.bfloat16,
}


def resolve_dtype(dtype_str: str) -> torch.dtype:
    """Turn a config dtype name into the torch dtype."""
    if dtype_str not in _DTYPES:
        raise ValueError(
            f"Unknown dtype '{dtype_str}'. Available: {sorted(_DTYPES)}"
        )
    return _DTYPES[dtype_str]


def _normalize_shape(shape: Shape) -> tuple[int, ...]:
    if isinstance(shape, int):
        return (shape,)
    return tuple(int(dim) for dim in shape)


class ParameterStore:
    """
    A namespaced view over a flat ``name -> tensor`` mapping.

    Args:
        tensors: The backing mapping. Borrowed, never mutated.
        prefix: Dotted prefix this view is rooted at ("" for the root).
        dtype: If set, every fetched tensor is cast to this dtype.
        device: If set, every fetched tensor is moved to this device.
    """

    def __init__(
        self,
        tensors: Mapping[str, torch.Tensor],
        prefix: str = "",
        dtype: Optional[torch.dtype] = None,
        device: Optional[torch.device] = None,
    ) -> None:
        self._tensors = tensors
        self._prefix = prefix
        self._dtype = dtype
        self._device = device

    @classmethod
    def from_state_dict(
        cls,
        state_dict: Mapping[str, torch.Tensor],
        dtype: Union[torch.dtype, str, None] = None,
        device: Union[torch.device, str, None] = None,
    ) -> "ParameterStore":
        """
        Root a store at a state dict.

        ``dtype`` may be given by name (``"bfloat16"``) as it appears in
        the runtime config.
        """
        if isinstance(dtype, str):
            dtype = resolve_dtype(dtype)
        if isinstance(device, str):
            device = torch.device(device)
        return cls(state_dict, dtype=dtype, device=device)

    @property
    def prefix(self) -> str:
        return self._prefix

    def _path(self, name: str) -> str:
        if not self._prefix:
            return name
        if not name:
            return self._prefix
        return f"{self._prefix}.{name}"

    def scope(self, prefix: Union[str, int]) -> "ParameterStore":
        """Return a view rooted at ``<current prefix>.<prefix>``."""
        return ParameterStore(
            self._tensors,
            prefix=self._path(str(prefix)),
            dtype=self._dtype,
            device=self._device,
        )

    # Short alias, matching the usual "push prefix" name in checkpoint loaders.
    pp = scope

    def contains(self, name: str) -> bool:
        return self._path(name) in self._tensors

    def keys(self) -> Iterator[str]:
        """Yield full names of all tensors under this view's prefix."""
        if not self._prefix:
            yield from self._tensors.keys()
            return
        head = self._prefix + "."
        for key in self._tensors.keys():
            if key.startswith(head):
                yield key

    def get(self, shape: Shape, name: str) -> torch.Tensor:
        """
        Fetch a tensor and check its shape.

        Args:
            shape: Expected shape. An int means a 1-D tensor.
            name: Leaf name relative to this view.

        Returns:
            A copy of the tensor, cast and moved per the store's dtype/device.

        Raises:
            MissingParameter: If the path is absent.
            ShapeMismatch: If the stored shape differs from ``shape``.
        """
        path = self._path(name)
        tensor = self._tensors.get(path)
        if tensor is None:
            raise MissingParameter(path)

        expected = _normalize_shape(shape)
        actual = tuple(tensor.shape)
        if actual != expected:
            raise ShapeMismatch(path, expected, actual)

        # Always a fresh tensor: loaded parameters never alias the borrowed
        # checkpoint.
        if self._dtype is not None or self._device is not None:
            tensor = tensor.detach().to(device=self._device, dtype=self._dtype, copy=True)
        else:
            tensor = tensor.detach().clone()
        logger.debug("fetched_parameter", extra={"path": path, "shape": list(actual)})
        return tensor

    def __repr__(self) -> str:
        return f"ParameterStore(prefix={self._prefix!r}, tensors={len(self._tensors)})"
