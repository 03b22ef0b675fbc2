# GitHub/ternaryint/conformance/check.py
"""
Differential conformance check: torch layers vs. the scalar reference.

Draws random well-formed BitLinear / RMSNorm cases, runs both paths and counts
cases whose outputs differ in any element. With --vectors, replays a golden
file written by export.golden_export instead.

Usage:
  python -m conformance.check --trials 200 --seed 1337
  python -m conformance.check --vectors ./vectors/golden.json
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List

import torch
from tqdm import tqdm
from rich.console import Console

from conformance.cases import (
    BitLinearCase,
    RMSNormCase,
    random_bitlinear_case,
    random_rmsnorm_case,
    set_seed,
)
from export.golden_export import load_golden
from quant.bitlinear import BitLinear
from quant.fixed_point import DEFAULT_EPS_Q32
from quant.rmsnorm import RMSNorm

console = Console()


@dataclass
class ConformanceConfig:
    trials: int = 100
    seed: int = 1337
    batch: int = 4
    max_in_features: int = 64
    max_out_features: int = 32
    max_dim: int = 64
    max_shift: int = 8
    eps_q32: int = DEFAULT_EPS_Q32
    block_rows: int = 16
    progress: bool = True


@dataclass
class ConformanceReport:
    checked: int = 0
    mismatches: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.mismatches


def _check_bitlinear(case, block_rows: int) -> bool:
    layer = BitLinear(case.weight, case.scale_shift, block_rows=block_rows)
    return layer(case.input).tolist() == case.expected


def _check_rmsnorm(case) -> bool:
    layer = RMSNorm(case.weight_q16, case.eps_q32)
    return layer(case.input).tolist() == case.expected


def run_conformance(cfg: ConformanceConfig) -> ConformanceReport:
    set_seed(cfg.seed)
    report = ConformanceReport()

    for i in tqdm(range(cfg.trials), desc="Conformance", leave=False, disable=not cfg.progress):
        in_f = int(torch.randint(1, cfg.max_in_features + 1, ()))
        out_f = int(torch.randint(1, cfg.max_out_features + 1, ()))
        dim = int(torch.randint(1, cfg.max_dim + 1, ()))

        bl = random_bitlinear_case(f"bitlinear_{i}", cfg.batch, in_f, out_f, cfg.max_shift)
        if not _check_bitlinear(bl, cfg.block_rows):
            report.mismatches.append(bl.name)

        rn = random_rmsnorm_case(f"rmsnorm_{i}", cfg.batch, dim, cfg.eps_q32)
        if not _check_rmsnorm(rn):
            report.mismatches.append(rn.name)

        report.checked += 2
    return report


def check_vectors(doc: Dict[str, Any], block_rows: int = 16) -> ConformanceReport:
    """Replay a golden document (see export.golden_export.load_golden)."""
    report = ConformanceReport()
    for raw in doc["bitlinear"]:
        case = BitLinearCase(**raw)
        if not _check_bitlinear(case, block_rows):
            report.mismatches.append(f"bitlinear/{case.name}")
        report.checked += 1
    for raw in doc["rmsnorm"]:
        case = RMSNormCase(**raw)
        if not _check_rmsnorm(case):
            report.mismatches.append(f"rmsnorm/{case.name}")
        report.checked += 1
    return report


def main():
    parser = argparse.ArgumentParser(
        description="ternaryint — layer vs. reference conformance check"
    )
    parser.add_argument("--trials", type=int, default=100)
    parser.add_argument("--seed", type=int, default=1337)
    parser.add_argument("--batch", type=int, default=4)
    parser.add_argument("--max-in-features", type=int, default=64)
    parser.add_argument("--max-out-features", type=int, default=32)
    parser.add_argument("--max-dim", type=int, default=64)
    parser.add_argument("--max-shift", type=int, default=8)
    parser.add_argument("--eps-q32", type=int, default=DEFAULT_EPS_Q32)
    parser.add_argument(
        "--block-rows", type=int, default=16, help="BitLinear output rows per block"
    )
    parser.add_argument(
        "--vectors", type=str, default=None, help="Replay a golden JSON file instead"
    )
    args = parser.parse_args()

    cfg = ConformanceConfig(
        trials=args.trials,
        seed=args.seed,
        batch=args.batch,
        max_in_features=args.max_in_features,
        max_out_features=args.max_out_features,
        max_dim=args.max_dim,
        max_shift=args.max_shift,
        eps_q32=args.eps_q32,
        block_rows=args.block_rows,
    )

    console.rule("[bold]ternaryint Conformance")
    if args.vectors:
        console.print(f"[cyan]Replaying[/] {args.vectors}")
        report = check_vectors(load_golden(args.vectors), block_rows=cfg.block_rows)
    else:
        console.print(cfg)
        report = run_conformance(cfg)

    if report.ok:
        console.print(f"[bold green]OK[/] {report.checked} cases bit-exact")
        return

    console.print(
        f"[bold red]MISMATCH[/] {len(report.mismatches)}/{report.checked} cases differ"
    )
    for name in report.mismatches:
        console.print(f"  [red]✗[/] {name}")
    sys.exit(1)


if __name__ == "__main__":
    main()
