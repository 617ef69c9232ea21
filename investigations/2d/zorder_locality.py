#!/usr/bin/env python3
"""
Z-order Locality Investigation: How Far Apart Are Consecutive Keys?
===================================================================

The Morton curve keeps most consecutive keys adjacent in the plane, but
every so often it jumps between quadrants. How big are the jumps, where do
they happen, and how does the picture change with the bit width?

DIRECTIONS:
D1: Curve path: the first 256 keys drawn in the plane
D2: Distance trace: d(z) over a key window, strict spikes marked
D3: Distance distribution: mean vs tail (p90 / p99 / max)
D4: Bit-width sweep: full-range mean and p99 as B grows
D5: Metric comparison: euclidean vs manhattan vs chebyshev
D6: Trailing-zero profile: d(2^j) against j
"""

import sys
import time
import numpy as np
from pathlib import Path
from scipy import stats

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from tools.curve_runner import Runner
from morton_curve_framework import BitCodec, LocalityAnalyzer

# ==============================================================
# CONFIG
# ==============================================================
BITS = 32
WINDOW = 4096
PATH_KEYS = 256
SWEEP_BITS = [4, 6, 8, 10, 12, 14, 16, 18, 20]
METRICS = ['euclidean', 'manhattan', 'chebyshev']

# ==============================================================
# DIRECTIONS
# ==============================================================

def direction_2(runner):
    """D2: Distance trace over one window."""
    print("\n" + "=" * 60)
    print("D2: DISTANCE TRACE")
    print("=" * 60)

    with runner.timed(f"keys 0..{WINDOW}"):
        trace = runner.locality(0, WINDOW)
    spikes = trace.spike_keys()
    print(f"  spikes at {spikes}")
    print(f"  top-4 keys: {trace.top(4)}")
    return dict(trace=trace, spikes=spikes)


def direction_3(runner, trace):
    """D3: Distribution of the window's distances."""
    print("\n" + "=" * 60)
    print("D3: DISTANCE DISTRIBUTION")
    print("=" * 60)

    summary = trace.summary()
    print(f"  {summary}")
    adjacent = float(np.mean(trace.distances() <= 1.0))
    print(f"  adjacent steps (d <= 1): {adjacent:.1%}")
    return dict(summary=summary, adjacent=adjacent)


def direction_4(runner):
    """D4: Full-range mean and p99 as the bit width grows."""
    print("\n" + "=" * 60)
    print("D4: BIT-WIDTH SWEEP")
    print("=" * 60)

    means, p99s = [], []
    for bits in SWEEP_BITS:
        codec = BitCodec(bits=bits)
        trace = LocalityAnalyzer(codec).analyze(0, codec.key_limit - 1)
        means.append(trace.mean())
        p99s.append(trace.percentile(99))
        print(f"  B={bits:2d}: mean={means[-1]:.3f}  p99={p99s[-1]:.2f}  "
              f"max={trace.max():.1f}")

    fit = stats.linregress(SWEEP_BITS, np.log2(p99s))
    print(f"  log2(p99) ~ {fit.slope:.3f} * B + {fit.intercept:.2f} "
          f"(r={fit.rvalue:.3f})")
    return dict(means=means, p99s=p99s, slope=fit.slope)


def direction_5(runner):
    """D5: Same window under three distance metrics."""
    print("\n" + "=" * 60)
    print("D5: METRIC COMPARISON")
    print("=" * 60)

    results = {}
    for metric in METRICS:
        trace = LocalityAnalyzer(runner.codec, metric=metric).analyze(0, WINDOW)
        results[metric] = trace.mean()
        print(f"  {metric:10s} mean={results[metric]:.3f}  "
              f"p99={trace.percentile(99):.2f}")
    return dict(results=results)


def direction_6(runner):
    """D6: d(2^j) against j: the quadrant-boundary jumps."""
    print("\n" + "=" * 60)
    print("D6: TRAILING-ZERO PROFILE")
    print("=" * 60)

    js = list(range(1, runner.codec.bits))
    dists = []
    for j in js:
        trace = runner.locality((1 << j) - 1, 1 << j)
        dists.append(trace.max())
    for j, d in zip(js[:12], dists[:12]):
        print(f"  j={j:2d}: d(2^j) = {d:.2f}")
    return dict(js=js, dists=dists)


def make_figure(runner, d2, d3, d4, d5, d6):
    fig, axes = runner.create_figure(6, "Z-order Locality: Consecutive Keys")

    # D1: curve path
    runner.plot_curve(axes[0], 0, PATH_KEYS - 1, f"D1: First {PATH_KEYS} keys")

    # D2: trace with spikes
    runner.plot_distances(axes[1], d2['trace'], "D2: d(z) with spikes")

    # D3: distribution
    runner.plot_histogram(axes[2], d2['trace'], "D3: Distance distribution")

    # D4: bit-width sweep
    runner.plot_line(axes[3], SWEEP_BITS, d4['p99s'], "D4: p99 vs bit width",
                     xlabel="B (bits)", ylabel="p99 distance",
                     color='#e74c3c', label="p99")
    axes[3].plot(SWEEP_BITS, d4['means'], 's--', color='#2ecc71',
                 label="mean")
    axes[3].set_yscale('log', base=2)
    axes[3].legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                   labelcolor='#cccccc')

    # D5: metrics
    names5 = list(d5['results'].keys())
    runner.plot_bars(axes[4], names5, [d5['results'][n] for n in names5],
                     "D5: Mean distance by metric", ylabel="mean d(z)")

    # D6: profile
    runner.plot_line(axes[5], d6['js'], d6['dists'], "D6: d(2^j)",
                     xlabel="j", ylabel="distance", color='#3498db')
    axes[5].set_yscale('log', base=2)

    runner.save(fig, "zorder_locality")

# ==============================================================
# MAIN
# ==============================================================
def main():
    t0 = time.time()
    runner = Runner("Z-order Locality", bits=BITS)

    print("=" * 60)
    print("Z-ORDER LOCALITY: CONSECUTIVE KEYS")
    print(f"bits={BITS}, window={WINDOW}")
    print("=" * 60)

    d2 = direction_2(runner)
    d3 = direction_3(runner, d2['trace'])
    d4 = direction_4(runner)
    d5 = direction_5(runner)
    d6 = direction_6(runner)

    make_figure(runner, d2, d3, d4, d5, d6)

    elapsed = time.time() - t0
    print(f"\nTotal: {elapsed:.0f}s ({elapsed / 60:.1f} min)")

    runner.print_summary({
        'D1': f"Curve path drawn for keys 0..{PATH_KEYS - 1}",
        'D2': f"Spikes at {d2['spikes']}",
        'D3': f"mean={d3['summary'].metrics['mean']:.3f}, "
              f"p99={d3['summary'].metrics['p99']:.2f}, "
              f"adjacent={d3['adjacent']:.1%}",
        'D4': f"log2(p99) slope per bit = {d4['slope']:.3f}",
        'D5': [f"{m}: mean={v:.3f}" for m, v in d5['results'].items()],
        'D6': f"d(2^j) for j=1..{d6['js'][-1]}, max={max(d6['dists']):.1f}",
    })

if __name__ == "__main__":
    main()
