#!/usr/bin/env python3
"""
Z-order Additivity Investigation: Where Does encode(a+b) = encode(a)+encode(b)?
==============================================================================

Adding two keys is not the same as adding their points: carries leak between
the interleaved axes. The cells where the identity survives form a
self-similar pattern over the (a, b) plane.

DIRECTIONS:
D1: x-axis plane: holds_x over [0, N]^2
D2: y-axis plane: holds_y over [0, N]^2
D3: Joint plane: both axes hold, vs the carry-free count a & b == 0
D4: Analytic predicate: mismatches between the grid and the carry rule
D5: Scale sweep: joint fraction as N = 2^k - 1 grows, vs (3/4)^k
"""

import sys
import time
import numpy as np
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from tools.curve_runner import Runner
from morton_curve_framework import count_carry_free_pairs, expected_joint_fraction

# ==============================================================
# CONFIG
# ==============================================================
BITS = 16
LIMIT = 255
SWEEP_K = [1, 2, 3, 4, 5, 6, 7]
N_WORKERS = 4

# ==============================================================
# DIRECTIONS
# ==============================================================

def direction_1_3(runner):
    """D1-D3: The three planes and the carry-free count."""
    print("\n" + "=" * 60)
    print("D1-D3: ADDITIVITY PLANES")
    print("=" * 60)

    with runner.timed(f"grid [0, {LIMIT}]^2"):
        grid = runner.additivity(LIMIT, n_workers=N_WORKERS)

    symmetric = all(np.array_equal(grid.plane(ax), grid.plane(ax).T)
                    for ax in range(grid.dims))
    joint = int(grid.joint().sum())
    expected = count_carry_free_pairs(LIMIT)
    for ax, label in enumerate("xy"[:grid.dims]):
        print(f"  holds_{label}: {grid.plane(ax).mean():.1%}")
    print(f"  joint: {joint} cells, carry-free pairs: {expected}")
    print(f"  symmetric in (a, b): {symmetric}")
    return dict(grid=grid, joint=joint, expected=expected, symmetric=symmetric)


def direction_4(runner, grid):
    """D4: Compare the grid with the analytic carry predicate."""
    print("\n" + "=" * 60)
    print("D4: ANALYTIC PREDICATE")
    print("=" * 60)

    predicted = runner.checker.predict_grid(LIMIT)
    mismatches = int(np.sum(predicted.holds != grid.holds))
    print(f"  mismatches: {mismatches} of {grid.holds.size}")
    return dict(mismatches=mismatches)


def direction_5(runner):
    """D5: Joint fraction vs domain size."""
    print("\n" + "=" * 60)
    print("D5: SCALE SWEEP")
    print("=" * 60)

    fractions, expected = [], []
    for k in SWEEP_K:
        limit = (1 << k) - 1
        grid = runner.checker.check(limit)
        fractions.append(float(grid.joint().mean()))
        expected.append(expected_joint_fraction(limit))
        print(f"  N={limit:4d}: joint={fractions[-1]:.4f}  "
              f"(3/4)^k={0.75 ** k:.4f}")
    return dict(fractions=fractions, expected=expected)


def make_figure(runner, d13, d4, d5):
    fig, axes = runner.create_figure(5, "Z-order Additivity")
    grid = d13['grid']

    runner.plot_grid(axes[0], grid.plane(0), "D1: holds_x")
    runner.plot_grid(axes[1], grid.plane(1), "D2: holds_y")
    runner.plot_grid(axes[2], grid.joint(),
                     f"D3: joint ({d13['joint']} cells)")

    runner.plot_bars(axes[3], ["grid vs rule"], [d4['mismatches']],
                     "D4: Predicate mismatches", ylabel="cells")

    runner.plot_line(axes[4], SWEEP_K, d5['fractions'], "D5: Joint fraction",
                     xlabel="k (N = 2^k - 1)", ylabel="fraction",
                     color='#e74c3c', label="grid")
    axes[4].plot(SWEEP_K, d5['expected'], 's--', color='#2ecc71',
                 label="carry-free")
    axes[4].set_yscale('log')
    axes[4].legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                   labelcolor='#cccccc')

    runner.save(fig, "zorder_additivity")

# ==============================================================
# MAIN
# ==============================================================
def main():
    t0 = time.time()
    runner = Runner("Z-order Additivity", bits=BITS, n_workers=N_WORKERS)

    print("=" * 60)
    print("Z-ORDER ADDITIVITY")
    print(f"bits={BITS}, domain=[0, {LIMIT}]^2")
    print("=" * 60)

    d13 = direction_1_3(runner)
    d4 = direction_4(runner, d13['grid'])
    d5 = direction_5(runner)

    make_figure(runner, d13, d4, d5)

    elapsed = time.time() - t0
    print(f"\nTotal: {elapsed:.0f}s ({elapsed / 60:.1f} min)")

    runner.print_summary({
        'D1': f"holds_x fraction = {d13['grid'].plane(0).mean():.3f}",
        'D2': f"holds_y fraction = {d13['grid'].plane(1).mean():.3f}",
        'D3': f"joint = {d13['joint']}, carry-free = {d13['expected']}, "
              f"symmetric = {d13['symmetric']}",
        'D4': f"{d4['mismatches']} mismatches vs carry rule",
        'D5': [f"k={k}: {f:.4f}" for k, f in zip(SWEEP_K, d5['fractions'])],
    })

if __name__ == "__main__":
    main()
