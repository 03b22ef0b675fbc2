# GitHub/ternaryint/quant/fixed_point.py
"""
Fixed-point primitives shared by the integer layers.

Formats:
- Qm.n: integer scaled by 2^n (n fractional bits)
- RMSNorm weights: Q16.16 (1.0 = 65536)
- Epsilon: Q32 (1e-5 ~= 429)
- Intermediates: Q24 mean-square, Q12 rms / normalized values

Every helper comes in a scalar (Python int) and a tensor (torch int64) form.
The scalar forms back the reference backend; the tensor forms back the layers.
Both must agree bit-for-bit.

Rounding rules:
- ``>>`` is an arithmetic shift (rounds toward -inf) in Python and torch alike
- divisions truncate toward zero (``div_trunc``), never floor or round
"""

from __future__ import annotations

import torch

INT8_MIN = -128
INT8_MAX = 127

Q12_SHIFT = 12
Q16_SHIFT = 16
Q24_SHIFT = 24
Q32_TO_Q24_SHIFT = 8

Q16_ONE = 1 << Q16_SHIFT
DEFAULT_EPS_Q32 = 429  # 1e-5 * 2^32

# 1.0 == 64 on the int8 output, leaves headroom for |values| up to ~2
OUTPUT_SCALE = 64

# Largest shift that still means something on an int64 accumulator
MAX_TENSOR_SHIFT = 63


def clamp_int8(v: int) -> int:
    """Saturate an integer to [-128, 127]."""
    if v < INT8_MIN:
        return INT8_MIN
    if v > INT8_MAX:
        return INT8_MAX
    return v


def clamp_int8_tensor(t: torch.Tensor) -> torch.Tensor:
    return t.clamp(INT8_MIN, INT8_MAX).to(torch.int8)


def div_trunc(a: int, b: int) -> int:
    """
    Integer division rounding toward zero.

    Python's ``//`` floors, so -7 // 2 == -4 while div_trunc(-7, 2) == -3.
    """
    q = abs(a) // abs(b)
    return q if (a < 0) == (b < 0) else -q


def div_trunc_tensor(a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
    return torch.div(a, b, rounding_mode="trunc")


def integer_sqrt(n: int) -> int:
    """
    floor(sqrt(n)) by Newton-Raphson over the integers.

    x0 = n, x_{k+1} = (x_k + n // x_k) // 2, stop at the first x_{k+1} >= x_k.
    For x_k > floor(sqrt(n)) the next iterate is strictly smaller and never
    drops below floor(sqrt(n)), so the loop terminates on every n >= 0.
    """
    if n < 0:
        raise ValueError(f"integer_sqrt of negative value {n}")
    if n < 2:
        return n

    x = n
    y = (x + 1) // 2
    while y < x:
        x = y
        y = (x + n // x) // 2
    return x


def integer_sqrt_tensor(n: torch.Tensor) -> torch.Tensor:
    """
    Element-wise ``integer_sqrt`` on an integer tensor (returned as int64).

    Each element runs its own Newton sequence and is frozen at its first
    non-decrease, so results match the scalar form exactly.
    """
    n = n.to(torch.int64)
    if n.numel() and bool((n < 0).any()):
        raise ValueError("integer_sqrt_tensor of negative values")

    x = n.clone()
    active = n >= 2
    one = torch.ones_like(x)
    while bool(active.any()):
        q = torch.div(n, torch.where(active, x, one), rounding_mode="floor")
        # (x + q) // 2 without forming x + q (overflows near the int64 max)
        y = (x >> 1) + (q >> 1) + (((x & 1) + (q & 1)) >> 1)
        active = active & (y < x)
        x = torch.where(active, y, x)
    return x


def as_int8_matrix(x) -> torch.Tensor:
    """
    Coerce activations (tensor, ndarray or nested list) to an int8 tensor.

    Integer inputs of wider dtypes are accepted when every value fits int8.
    Rank is checked by the caller, which knows the expected feature count.
    """
    t = x if torch.is_tensor(x) else torch.as_tensor(x)
    if t.dtype == torch.int8:
        return t
    if t.dtype.is_floating_point or t.dtype.is_complex or t.dtype == torch.bool:
        raise TypeError(f"activations must be an integer tensor, got {t.dtype}")
    if t.numel():
        lo, hi = int(t.min()), int(t.max())
        if lo < INT8_MIN or hi > INT8_MAX:
            raise ValueError(
                f"activations must lie in [{INT8_MIN}, {INT8_MAX}], got [{lo}, {hi}]"
            )
    return t.to(torch.int8)
