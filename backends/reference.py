# GitHub/ternaryint/backends/reference.py
"""
Scalar reference kernels over plain Python ints.

Every value is a Python int (unbounded), every loop is explicit, and only the
scalar helpers of quant.fixed_point are used. No torch arithmetic is involved,
which makes these an independent oracle for the vectorized layers in quant/.

Inputs may be nested lists, ndarrays or tensors; outputs are nested lists.
"""

from __future__ import annotations

from typing import List, Sequence

from quant.fixed_point import (
    OUTPUT_SCALE,
    Q12_SHIFT,
    Q16_SHIFT,
    Q24_SHIFT,
    Q32_TO_Q24_SHIFT,
    clamp_int8,
    div_trunc,
    integer_sqrt,
)

Grid = List[List[int]]


def _to_rows(x) -> Grid:
    if hasattr(x, "tolist"):
        x = x.tolist()
    return [[int(v) for v in row] for row in x]


def ternary_matmul_reference(weight, x, scale_shift: int) -> Grid:
    """
    y[b][r] = clamp_int8((sum of +x / -x / 0 picked by W[r][c]) >> scale_shift)
    """
    w_rows = _to_rows(weight)
    x_rows = _to_rows(x)
    out: Grid = []

    for xr in x_rows:
        y_row = []
        for wr in w_rows:
            if len(wr) != len(xr):
                raise ValueError(f"row length mismatch: {len(wr)} vs {len(xr)}")
            acc = 0
            for w, v in zip(wr, xr):
                if w == 1:
                    acc += v
                elif w == -1:
                    acc -= v
                elif w != 0:
                    raise ValueError(f"non-ternary weight {w}")
            y_row.append(clamp_int8(acc >> scale_shift))
        out.append(y_row)
    return out


def rmsnorm_row_reference(weight_q16: Sequence[int], eps_q32: int, row: Sequence[int]) -> List[int]:
    dim = len(row)
    if dim == 0:
        return []

    sum_sq = 0
    for v in row:
        sum_sq += v * v

    mean_sq_q24 = div_trunc(sum_sq << Q24_SHIFT, dim)
    rms_sq_q24 = mean_sq_q24 + (eps_q32 >> Q32_TO_Q24_SHIFT)
    rms_q12 = integer_sqrt(rms_sq_q24)
    if rms_q12 == 0:
        return [0] * dim

    out = []
    for v, w in zip(row, weight_q16):
        norm_q12 = div_trunc(v << Q24_SHIFT, rms_q12)
        weighted_q16 = (norm_q12 * w) >> Q12_SHIFT
        result = (weighted_q16 * OUTPUT_SCALE) >> Q16_SHIFT
        out.append(clamp_int8(result))
    return out


def rmsnorm_reference(weight_q16, eps_q32: int, x) -> Grid:
    w = [int(v) for v in (weight_q16.tolist() if hasattr(weight_q16, "tolist") else weight_q16)]
    rows = _to_rows(x)
    for row in rows:
        if len(row) != len(w):
            raise ValueError(f"row length mismatch: {len(row)} vs {len(w)}")
    return [rmsnorm_row_reference(w, int(eps_q32), row) for row in rows]
