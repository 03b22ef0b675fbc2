# GitHub/ternaryint/conformance/cases.py
"""
Test-case generation shared by the golden exporter and the conformance check.

A case bundles layer parameters with an activation batch. ``expected`` is
filled from the scalar reference backend, never from the torch layers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

import torch

from backends.reference import rmsnorm_reference, ternary_matmul_reference
from quant.fixed_point import DEFAULT_EPS_Q32, INT8_MAX, INT8_MIN, Q16_ONE

Grid = List[List[int]]


@dataclass
class BitLinearCase:
    name: str
    weight: Grid
    scale_shift: int
    input: Grid
    expected: Optional[Grid] = None

    def fill_expected(self) -> "BitLinearCase":
        self.expected = ternary_matmul_reference(self.weight, self.input, self.scale_shift)
        return self


@dataclass
class RMSNormCase:
    name: str
    weight_q16: List[int]
    eps_q32: int
    input: Grid
    expected: Optional[Grid] = field(default=None)

    def fill_expected(self) -> "RMSNormCase":
        self.expected = rmsnorm_reference(self.weight_q16, self.eps_q32, self.input)
        return self


def set_seed(seed: int):
    import random
    import numpy as np

    random.seed(seed)
    torch.manual_seed(seed)
    np.random.seed(seed)


def fixed_bitlinear_cases() -> List[BitLinearCase]:
    return [
        BitLinearCase(
            name="mixed_4x4",
            weight=[
                [-1, 0, 1, -1],
                [1, -1, 0, 1],
                [0, 1, -1, 0],
                [1, 0, -1, 1],
            ],
            scale_shift=0,
            input=[[127, 127, 127, 127]],
        ).fill_expected(),
    ]


def fixed_rmsnorm_cases() -> List[RMSNormCase]:
    return [
        RMSNormCase(
            name="unit_weights_4",
            weight_q16=[Q16_ONE] * 4,
            eps_q32=DEFAULT_EPS_Q32,
            input=[[-127, -50, 0, 127]],
        ).fill_expected(),
        RMSNormCase(
            # Output differs from a floor-division implementation in channel 0
            name="truncating_division",
            weight_q16=[20 * 4096, Q16_ONE, Q16_ONE, Q16_ONE],
            eps_q32=DEFAULT_EPS_Q32,
            input=[[-127, -50, 0, 127]],
        ).fill_expected(),
        RMSNormCase(
            name="zero_row",
            weight_q16=[Q16_ONE] * 4,
            eps_q32=0,
            input=[[0, 0, 0, 0], [1, -1, 1, -1]],
        ).fill_expected(),
    ]


def random_bitlinear_case(
    name: str, batch: int, in_features: int, out_features: int, max_shift: int
) -> BitLinearCase:
    weight = torch.randint(-1, 2, (out_features, in_features))
    x = torch.randint(INT8_MIN, INT8_MAX + 1, (batch, in_features))
    shift = int(torch.randint(0, max_shift + 1, ()))
    return BitLinearCase(
        name=name, weight=weight.tolist(), scale_shift=shift, input=x.tolist()
    ).fill_expected()


def random_rmsnorm_case(name: str, batch: int, dim: int, eps_q32: int) -> RMSNormCase:
    # Weights span roughly [-2.0, 2.0] in Q16.16
    weight = torch.randint(-2 * Q16_ONE, 2 * Q16_ONE + 1, (dim,))
    x = torch.randint(INT8_MIN, INT8_MAX + 1, (batch, dim))
    # Lead with an all-zero row
    if batch > 1:
        x[0].zero_()
    return RMSNormCase(
        name=name, weight_q16=weight.tolist(), eps_q32=eps_q32, input=x.tolist()
    ).fill_expected()
