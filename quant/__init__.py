from .bitlinear import BitLinear as BitLinear
from .errors import (
    KernelError as KernelError,
    InvalidWeightError as InvalidWeightError,
    ShapeMismatchError as ShapeMismatchError,
)
from .fixed_point import (
    clamp_int8 as clamp_int8,
    div_trunc as div_trunc,
    integer_sqrt as integer_sqrt,
)
from .rmsnorm import RMSNorm as RMSNorm

__all__ = [
    "BitLinear",
    "RMSNorm",
    "KernelError",
    "InvalidWeightError",
    "ShapeMismatchError",
    "clamp_int8",
    "div_trunc",
    "integer_sqrt",
]
