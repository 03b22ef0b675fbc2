# GitHub/ternaryint/tests/test_bitlinear.py
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
import torch

from backends.reference import ternary_matmul_reference
from quant.bitlinear import BitLinear
from quant.errors import InvalidWeightError, KernelError, ShapeMismatchError

MIXED_4X4 = [
    [-1, 0, 1, -1],
    [1, -1, 0, 1],
    [0, 1, -1, 0],
    [1, 0, -1, 1],
]


def test_single_row_no_saturation():
    layer = BitLinear([[1, -1, 0, 1]], scale_shift=0)
    out = layer(torch.tensor([[127, 127, 127, 127]], dtype=torch.int8))
    assert out.dtype == torch.int8
    assert out.tolist() == [[127]]


def test_mixed_4x4_end_to_end():
    layer = BitLinear(MIXED_4X4, scale_shift=0)
    out = layer(torch.full((1, 4), 127, dtype=torch.int8))
    # row sums: -127, 127, 0, 127; all already inside int8
    assert out.tolist() == [[-127, 127, 0, 127]]


def test_mixed_4x4_saturates_when_scaled_up():
    layer = BitLinear([row * 2 for row in MIXED_4X4], scale_shift=0)
    out = layer(torch.full((1, 8), 127, dtype=torch.int8))
    # row sums doubled: -254, 254, 0, 254
    assert out.tolist() == [[-128, 127, 0, 127]]


@pytest.mark.parametrize("bad", [2, -2, 3, 127])
def test_invalid_weight_rejected(bad):
    grid = [row[:] for row in MIXED_4X4]
    grid[2][1] = bad
    with pytest.raises(InvalidWeightError) as exc:
        BitLinear(grid, scale_shift=0)
    assert exc.value.num_invalid == 1


def test_invalid_float_weights_rejected():
    with pytest.raises(InvalidWeightError):
        BitLinear(torch.tensor([[1.0, 0.5], [0.0, -1.0]]), scale_shift=0)
    with pytest.raises(InvalidWeightError):
        BitLinear(torch.tensor([[float("nan"), 1.0]]), scale_shift=0)


def test_ternary_float_weights_accepted():
    layer = BitLinear(torch.tensor([[1.0, -1.0, 0.0]]), scale_shift=0)
    assert layer.weight.dtype == torch.int8
    assert layer([[10, 3, 100]]).tolist() == [[7]]


def test_errors_are_value_errors():
    assert issubclass(InvalidWeightError, KernelError)
    assert issubclass(ShapeMismatchError, ValueError)


def test_shape_mismatch():
    layer = BitLinear(MIXED_4X4, scale_shift=0)
    with pytest.raises(ShapeMismatchError):
        layer(torch.zeros(2, 3, dtype=torch.int8))
    with pytest.raises(ShapeMismatchError):
        layer(torch.zeros(4, dtype=torch.int8))


def test_bad_scale_shift():
    with pytest.raises(ValueError):
        BitLinear(MIXED_4X4, scale_shift=-1)
    with pytest.raises(TypeError):
        BitLinear(MIXED_4X4, scale_shift=1.5)


def test_shift_is_arithmetic_before_clamp():
    layer = BitLinear([[-1], [1]], scale_shift=1)
    out = layer([[127], [-3]])
    # -127 >> 1 == -64 (not -63); -3 >> 1 == -2
    assert out.tolist() == [[-64, 63], [1, -2]]


def test_shift_then_saturate():
    layer = BitLinear([[1] * 8], scale_shift=2)
    # 8 * 127 = 1016, >> 2 = 254 -> 127
    assert layer([[127] * 8]).tolist() == [[127]]
    assert layer([[-128] * 8]).tolist() == [[-128]]


def test_huge_shift_keeps_sign():
    layer = BitLinear([[1], [-1]], scale_shift=100)
    assert layer([[5]]).tolist() == [[0, -1]]


@pytest.mark.parametrize("block_rows", [1, 3, 64])
def test_matches_reference_randomized(block_rows):
    torch.manual_seed(1337)
    for _ in range(25):
        out_f = int(torch.randint(1, 20, ()))
        in_f = int(torch.randint(1, 40, ()))
        batch = int(torch.randint(1, 6, ()))
        shift = int(torch.randint(0, 9, ()))
        w = torch.randint(-1, 2, (out_f, in_f))
        x = torch.randint(-128, 128, (batch, in_f), dtype=torch.int8)

        layer = BitLinear(w, shift, block_rows=block_rows)
        got = layer(x).tolist()
        want = ternary_matmul_reference(w, x, shift)
        assert got == want, f"mismatch for W={w.tolist()} s={shift} X={x.tolist()}"


def test_numpy_input():
    layer = BitLinear(np.array(MIXED_4X4, dtype=np.int8), scale_shift=0)
    out = layer(np.array([[1, 2, 3, 4]], dtype=np.int8))
    assert out.tolist() == [[-2, 3, -1, 2]]


def test_empty_batch():
    layer = BitLinear(MIXED_4X4, scale_shift=0)
    out = layer(torch.zeros(0, 4, dtype=torch.int8))
    assert out.shape == (0, 4)


def test_parameters_are_frozen_copies():
    src = torch.tensor(MIXED_4X4, dtype=torch.int8)
    layer = BitLinear(src, scale_shift=0)
    src.zero_()
    x = torch.full((1, 4), 127, dtype=torch.int8)
    first = layer(x)
    second = layer(x)
    assert torch.equal(first, second)
    assert layer.weight.tolist() == MIXED_4X4


def test_concurrent_forward_calls():
    torch.manual_seed(0)
    layer = BitLinear(torch.randint(-1, 2, (16, 32)), scale_shift=2)
    xs = [torch.randint(-128, 128, (4, 32), dtype=torch.int8) for _ in range(16)]
    serial = [layer(x) for x in xs]
    with ThreadPoolExecutor(max_workers=8) as pool:
        parallel = list(pool.map(layer, xs))
    for a, b in zip(serial, parallel):
        assert torch.equal(a, b)


def test_repr_reports_shape():
    layer = BitLinear(MIXED_4X4, scale_shift=3)
    assert layer.in_features == 4 and layer.out_features == 4
    assert "scale_shift=3" in repr(layer)


def test_load_state_dict_applies_new_weights():
    layer = BitLinear([[1, -1]], scale_shift=0)
    layer.load_state_dict({"weight": torch.tensor([[-1, 1]], dtype=torch.int8)})
    x = [[10, 20]]
    assert layer(x).tolist() == ternary_matmul_reference(layer.weight, x, 0)
    assert layer(x).tolist() == [[10]]


def test_load_state_dict_rejects_non_ternary():
    layer = BitLinear([[1, -1], [0, 1]], scale_shift=0)
    with pytest.raises(InvalidWeightError):
        layer.load_state_dict({"weight": torch.tensor([[2, 5], [7, -3]])})
    assert layer.weight.tolist() == [[1, -1], [0, 1]]
