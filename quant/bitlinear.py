# GitHub/ternaryint/quant/bitlinear.py
"""
Integer-only BitLinear (1.58-bit) layer.

Applies a ternary weight grid W ∈ {-1, 0, +1}^(out x in) to int8 activations
without multiplying by the weights:

  acc[b, r] = sum(x[b, c] for W[r, c] == +1) - sum(x[b, c] for W[r, c] == -1)
  y[b, r]   = clamp_int8(acc[b, r] >> scale_shift)

The accumulator is int64 and the shift is arithmetic, applied before clamping.
"""

from __future__ import annotations

import operator

import torch
import torch.nn as nn

from .errors import InvalidWeightError, ShapeMismatchError
from .fixed_point import MAX_TENSOR_SHIFT, as_int8_matrix, clamp_int8_tensor


def _check_ternary(w: torch.Tensor) -> None:
    invalid = ~((w == -1) | (w == 0) | (w == 1))
    if bool(invalid.any()):
        raise InvalidWeightError(int(invalid.sum()), w[invalid][0].item())


class BitLinear(nn.Module):
    """
    Ternary weight x int8 activation layer with a power-of-two rescale.

    Weights are validated and frozen at construction; forward never mutates
    layer state and may be called concurrently.

    ``block_rows`` bounds how many output features are accumulated at once
    (the masked sums materialize a [batch, block_rows, in_features] view).
    It only affects memory, never results.
    """

    def __init__(self, weight, scale_shift: int = 0, block_rows: int = 64):
        super().__init__()
        w = weight if torch.is_tensor(weight) else torch.as_tensor(weight)
        if w.dim() != 2:
            raise ShapeMismatchError(2, w.dim(), what="weight grid rank")
        _check_ternary(w)

        shift = operator.index(scale_shift)
        if shift < 0:
            raise ValueError(f"scale_shift must be non-negative, got {shift}")
        if block_rows < 1:
            raise ValueError(f"block_rows must be positive, got {block_rows}")

        self.register_buffer("weight", w.to(dtype=torch.int8, copy=True))
        self.scale_shift = shift
        self.block_rows = block_rows

    @property
    def out_features(self) -> int:
        return self.weight.shape[0]

    @property
    def in_features(self) -> int:
        return self.weight.shape[1]

    @torch.no_grad()
    def forward(self, x) -> torch.Tensor:
        x = as_int8_matrix(x)
        if x.dim() != 2:
            raise ShapeMismatchError(2, x.dim(), what="activation rank")
        if x.shape[1] != self.in_features:
            raise ShapeMismatchError(self.in_features, x.shape[1])

        xw = x.to(device=self.weight.device, dtype=torch.int64).unsqueeze(1)
        zero = xw.new_zeros(())

        blocks = []
        for start in range(0, self.out_features, self.block_rows):
            stop = start + self.block_rows
            w = self.weight[start:stop]
            plus = torch.where(w == 1, xw, zero).sum(dim=-1)
            minus = torch.where(w == -1, xw, zero).sum(dim=-1)
            blocks.append(plus - minus)

        if blocks:
            acc = torch.cat(blocks, dim=1)
        else:
            acc = xw.new_zeros((x.shape[0], 0))

        # Shifts past 63 leave only the sign on an int64
        acc = acc >> min(self.scale_shift, MAX_TENSOR_SHIFT)
        return clamp_int8_tensor(acc)

    def _load_from_state_dict(self, state_dict, prefix, *args, **kwargs):
        w = state_dict.get(prefix + "weight")
        if w is not None:
            _check_ternary(torch.as_tensor(w))
        super()._load_from_state_dict(state_dict, prefix, *args, **kwargs)

    def extra_repr(self) -> str:
        return (
            f"in_features={self.in_features}, out_features={self.out_features}, "
            f"scale_shift={self.scale_shift}"
        )
