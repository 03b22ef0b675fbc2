# GitHub/ternaryint/export/golden_export.py
"""
Export bit-exact golden vectors for other integer implementations.

Expected outputs come from the scalar reference backend. The JSON file holds
the fixed end-to-end examples plus seeded random cases for both layers.

Usage:
  python -m export.golden_export --out ./vectors/golden.json --seed 1337 --cases 8
"""

from __future__ import annotations

import argparse
import json
import os
from dataclasses import asdict, dataclass
from typing import Any, Dict

from conformance.cases import (
    fixed_bitlinear_cases,
    fixed_rmsnorm_cases,
    random_bitlinear_case,
    random_rmsnorm_case,
    set_seed,
)
from quant.fixed_point import DEFAULT_EPS_Q32

GOLDEN_FORMAT = "ternaryint-golden"
GOLDEN_VERSION = 1


@dataclass
class GoldenConfig:
    seed: int = 1337
    cases: int = 8  # random cases per layer, on top of the fixed examples
    batch: int = 4
    in_features: int = 16
    out_features: int = 8
    dim: int = 16
    max_shift: int = 4
    eps_q32: int = DEFAULT_EPS_Q32


def build_golden_cases(cfg: GoldenConfig) -> Dict[str, Any]:
    """
    Build the golden document: {"format", "version", "seed", "bitlinear", "rmsnorm"}.
    Same cfg -> same document.
    """
    set_seed(cfg.seed)

    bitlinear = fixed_bitlinear_cases()
    for i in range(cfg.cases):
        bitlinear.append(
            random_bitlinear_case(
                f"random_{i}", cfg.batch, cfg.in_features, cfg.out_features, cfg.max_shift
            )
        )

    rmsnorm = fixed_rmsnorm_cases()
    for i in range(cfg.cases):
        rmsnorm.append(random_rmsnorm_case(f"random_{i}", cfg.batch, cfg.dim, cfg.eps_q32))

    return {
        "format": GOLDEN_FORMAT,
        "version": GOLDEN_VERSION,
        "seed": cfg.seed,
        "bitlinear": [asdict(c) for c in bitlinear],
        "rmsnorm": [asdict(c) for c in rmsnorm],
    }


def write_golden(path: str, doc: Dict[str, Any]) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(doc, f, indent=1)


def load_golden(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        doc = json.load(f)
    if doc.get("format") != GOLDEN_FORMAT:
        raise ValueError(f"Not a golden vector file: {path}")
    if doc.get("version") != GOLDEN_VERSION:
        raise ValueError(f"Unsupported golden version: {doc.get('version')}")
    return doc


def main():
    parser = argparse.ArgumentParser(description="Export integer-layer golden vectors")
    parser.add_argument("--out", type=str, required=True, help="Output JSON path")
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--cases", type=int, default=8)
    parser.add_argument("--batch", type=int, default=4)
    parser.add_argument("--in-features", type=int, default=16)
    parser.add_argument("--out-features", type=int, default=8)
    parser.add_argument("--dim", type=int, default=16)
    parser.add_argument("--max-shift", type=int, default=4)
    parser.add_argument("--eps-q32", type=int, default=DEFAULT_EPS_Q32)
    args = parser.parse_args()

    cfg = GoldenConfig(
        seed=args.seed,
        cases=args.cases,
        batch=args.batch,
        in_features=args.in_features,
        out_features=args.out_features,
        dim=args.dim,
        max_shift=args.max_shift,
        eps_q32=args.eps_q32,
    )
    doc = build_golden_cases(cfg)
    write_golden(args.out, doc)
    print(
        f"Exported {len(doc['bitlinear'])} BitLinear + {len(doc['rmsnorm'])} RMSNorm "
        f"cases → {args.out}"
    )


if __name__ == "__main__":
    main()
