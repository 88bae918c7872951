# -*- coding: utf-8 -*-
"""
This module provides reporting functions for finished decompositions.
"""
from __future__ import annotations
from typing import TYPE_CHECKING, Sequence
import numpy as np

if TYPE_CHECKING:
    from .local_partition import PartitionBundle


def format_decomposition_summary(bundles: Sequence["PartitionBundle"]) -> str:
    """
    Formats a per-partition table of a decomposition and its balance.
    """
    if not bundles:
        return "No partitions created."

    report = []
    report.append(f"\n{'--- Decomposition Summary ---':^80}")
    report.append(_format_partition_table(bundles))
    report.append(_format_balance(bundles))
    return "\n".join(report)


def _format_partition_table(bundles: Sequence["PartitionBundle"]) -> str:
    """Formats one row per partition."""
    lines = []
    lines.append(
        f"  {'Part':>5} {'Elements':>10} {'Nodes':>10} {'Internal':>10} "
        f"{'Boundary':>10} {'Neighbors':<20}"
    )
    lines.append(f"  {'-'*5} {'-'*10} {'-'*10} {'-'*10} {'-'*10} {'-'*20}")
    for bundle in bundles:
        lb = bundle.load_balance
        neighbors = ",".join(str(q) for q in lb.neighbor_ids) or "-"
        lines.append(
            f"  {bundle.partition_id:>5} {lb.element_count:>10} {bundle.n_nodes:>10} "
            f"{lb.internal_count:>10} {lb.boundary_count:>10} {neighbors:<20}"
        )
    return "\n".join(lines)


def _format_balance(bundles: Sequence["PartitionBundle"]) -> str:
    """Formats the element imbalance and the total shared-node volume."""
    counts = np.array([b.load_balance.element_count for b in bundles], dtype=float)
    mean = counts.mean()
    imbalance = counts.max() / mean if mean > 0 else 0.0
    shared = sum(sum(b.load_balance.shared_node_counts) for b in bundles)

    lines = []
    lines.append(f"\n{'--- Balance ---':^80}")
    lines.append(f"  {'Element imbalance (max/mean)':<30} {imbalance:>10.4f}")
    lines.append(f"  {'Shared node entries':<30} {shared:>10d}")
    return "\n".join(lines)


def print_decomposition_summary(bundles: Sequence["PartitionBundle"]) -> None:
    """Prints the decomposition summary."""
    print(format_decomposition_summary(bundles))
