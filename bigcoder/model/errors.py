# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Error taxonomy for the model core.

Every failure while loading parameters or running a forward pass surfaces as
one of these. Nothing is retried: a missing tensor or a malformed input is
fatal to the current operation.

Errors raised by PyTorch itself during the computation (dimension mismatches
in a matmul, device mismatches, ...) are not wrapped. They reach the caller
as the RuntimeError torch raised; ComputationError names that family.
"""

from typing import Sequence


class ModelError(Exception):
    """Base for all model-core errors."""


class ParameterError(ModelError):
    """A parameter could not be fetched from the store."""


class MissingParameter(ParameterError):
    """Raised when a path is absent from the parameter store."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Missing parameter: '{path}'")
        self.path = path


class ShapeMismatch(ParameterError):
    """Raised when a stored tensor's shape disagrees with the expected shape."""

    def __init__(self, path: str, expected: Sequence[int], actual: Sequence[int]) -> None:
        super().__init__(
            f"Shape mismatch for '{path}': expected {tuple(expected)}, got {tuple(actual)}"
        )
        self.path = path
        self.expected = tuple(expected)
        self.actual = tuple(actual)


class InvalidConfig(ModelError, ValueError):
    """Raised when a hyperparameter record is internally inconsistent."""


class InvalidInput(ModelError, ValueError):
    """Raised when forward-time token or position tensors are malformed."""


ComputationError = RuntimeError
