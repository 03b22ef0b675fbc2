# GitHub/ternaryint/quant/errors.py
"""
Contract violations raised by the integer layers.

Saturation and the zero-row RMSNorm bypass are regular outcomes, not errors.
"""

from __future__ import annotations


class KernelError(ValueError):
    """Base class for caller contract violations."""


class InvalidWeightError(KernelError):
    """A ternary weight grid holds an entry outside {-1, 0, +1}."""

    def __init__(self, num_invalid: int, example=None):
        self.num_invalid = num_invalid
        self.example = example
        msg = f"{num_invalid} weight entries outside {{-1, 0, 1}}"
        if example is not None:
            msg += f" (e.g. {example})"
        super().__init__(msg)


class ShapeMismatchError(KernelError):
    """Activation shape disagrees with the layer's feature count."""

    def __init__(self, expected: int, got, what: str = "activation features"):
        self.expected = expected
        self.got = got
        super().__init__(f"{what}: expected {expected}, got {got}")
