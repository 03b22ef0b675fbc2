# GitHub/ternaryint/quant/rmsnorm.py
"""
Pure integer RMSNorm, no floating-point operations.

Per row (rows are independent):
  sum_sq      = sum(x_i^2)                          int64
  mean_sq_q24 = (sum_sq << 24) / D                  Q24
  rms_sq_q24  = mean_sq_q24 + (eps_q32 >> 8)        Q32 eps -> Q24
  rms_q12     = integer_sqrt(rms_sq_q24)            sqrt halves the frac bits
  norm_q12    = (x_i << 24) / rms_q12               Q24 / Q12 = Q12
  weighted    = (norm_q12 * w_q16[i]) >> 12         Q12 x Q16 = Q28 -> Q16
  y_i         = clamp_int8((weighted * 64) >> 16)   64 = 1.0 on the output

Divisions truncate toward zero. A row whose rms_q12 is 0 is left all zero.
"""

from __future__ import annotations

import operator

import torch
import torch.nn as nn

from .errors import ShapeMismatchError
from .fixed_point import (
    DEFAULT_EPS_Q32,
    OUTPUT_SCALE,
    Q12_SHIFT,
    Q16_SHIFT,
    Q24_SHIFT,
    Q32_TO_Q24_SHIFT,
    as_int8_matrix,
    clamp_int8_tensor,
    div_trunc_tensor,
    integer_sqrt_tensor,
)

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1
_INT64_MAX = (1 << 63) - 1


def _check_weight_q16(w: torch.Tensor) -> None:
    if w.dim() != 1:
        raise ShapeMismatchError(1, w.dim(), what="weight vector rank")
    if w.dtype.is_floating_point or w.dtype.is_complex or w.dtype == torch.bool:
        raise TypeError(f"weight_q16 must hold Q16.16 integers, got {w.dtype}")
    if w.numel() and (int(w.min()) < _INT32_MIN or int(w.max()) > _INT32_MAX):
        raise ValueError("weight_q16 entries must fit in int32")


class RMSNorm(nn.Module):
    """
    Fixed-point RMSNorm over int8 rows.

    Parameters are pre-quantized: ``weight_q16`` is a Q16.16 int32 vector
    (65536 == 1.0) and ``eps_q32`` a Q32 scalar (429 ~= 1e-5).
    """

    def __init__(self, weight_q16, eps_q32: int = DEFAULT_EPS_Q32):
        super().__init__()
        w = weight_q16 if torch.is_tensor(weight_q16) else torch.as_tensor(weight_q16)
        _check_weight_q16(w)

        eps = operator.index(eps_q32)
        if eps < 0:
            raise ValueError(f"eps_q32 must be non-negative, got {eps}")
        if eps > _INT64_MAX:
            raise ValueError(f"eps_q32 must fit in int64, got {eps}")

        self.register_buffer("weight", w.to(dtype=torch.int32, copy=True))
        self.eps_q32 = eps

    @classmethod
    def from_quantized(cls, weight_q16, eps_q32: int) -> "RMSNorm":
        """Build from a pre-quantized Q16.16 weight vector and Q32 epsilon."""
        return cls(weight_q16, eps_q32)

    @property
    def dim(self) -> int:
        return self.weight.shape[0]

    @torch.no_grad()
    def forward(self, x) -> torch.Tensor:
        x = as_int8_matrix(x)
        if x.dim() != 2:
            raise ShapeMismatchError(2, x.dim(), what="activation rank")
        if x.shape[1] != self.dim:
            raise ShapeMismatchError(self.dim, x.shape[1])
        if self.dim == 0:
            return x.to(self.weight.device).clone()

        xw = x.to(device=self.weight.device, dtype=torch.int64)

        sum_sq = (xw * xw).sum(dim=1)
        mean_sq_q24 = div_trunc_tensor(sum_sq << Q24_SHIFT, torch.tensor(self.dim))
        rms_sq_q24 = mean_sq_q24 + (self.eps_q32 >> Q32_TO_Q24_SHIFT)
        rms_q12 = integer_sqrt_tensor(rms_sq_q24)

        live = rms_q12 != 0
        denom = torch.where(live, rms_q12, torch.ones_like(rms_q12)).unsqueeze(1)

        norm_q12 = div_trunc_tensor(xw << Q24_SHIFT, denom)
        weighted_q16 = (norm_q12 * self.weight.to(torch.int64)) >> Q12_SHIFT
        result = (weighted_q16 * OUTPUT_SCALE) >> Q16_SHIFT

        out = clamp_int8_tensor(result)
        return torch.where(live.unsqueeze(1), out, torch.zeros_like(out))

    def _load_from_state_dict(self, state_dict, prefix, *args, **kwargs):
        w = state_dict.get(prefix + "weight")
        if w is not None:
            _check_weight_q16(torch.as_tensor(w))
        super()._load_from_state_dict(state_dict, prefix, *args, **kwargs)

    def extra_repr(self) -> str:
        return f"dim={self.dim}, eps_q32={self.eps_q32}"
