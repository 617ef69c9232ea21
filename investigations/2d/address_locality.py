#!/usr/bin/env python3
"""
Address Locality Investigation: Heap Addresses on the Z-order Plane
===================================================================

Do successive allocations land near each other once their addresses are
laid out on the Morton curve? Raw buffer addresses from numpy allocations
are the keys; the codec only computes points, the buffers stay ours.

DIRECTIONS:
D1: Allocation scatter: points of live buffer addresses
D2: Allocation order: distance between successive allocations vs random keys
D3: Size classes: mean step distance per allocation size
D4: Free / reallocate: how far a reallocated buffer moves
"""

import sys
import time
import numpy as np
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[2]))
from tools.curve_runner import Runner

# ==============================================================
# CONFIG
# ==============================================================
BITS = 32
ALIGN_BITS = 4          # 16-byte alignment carries no information
N_ALLOC = 2000
SIZE_CLASSES = [16, 64, 256, 1024, 4096, 65536]
SEED = 42


# ==============================================================
# ADDRESS PRODUCER
# ==============================================================

def buffer_address(buf):
    """Raw data pointer of a numpy buffer."""
    return buf.__array_interface__['data'][0]


def addresses_to_keys(addresses, bits):
    """Drop alignment bits and keep the low `bits` bits as curve keys.

    The truncation is explicit here, on the producer side: the codec itself
    rejects anything wider than its key width.
    """
    addrs = np.asarray(addresses, dtype=np.uint64) >> np.uint64(ALIGN_BITS)
    return addrs & np.uint64((1 << bits) - 1)


def allocate(sizes):
    """Allocate one buffer per size, returning (buffers, keys)."""
    buffers = [np.empty(int(s), dtype=np.uint8) for s in sizes]
    keys = addresses_to_keys([buffer_address(b) for b in buffers], BITS)
    return buffers, keys


def step_distances(runner, keys, out):
    """Distance between the points of successive keys, into a reused buffer."""
    points = runner.codec.encode_array(keys, out=out[:len(keys)])
    diffs = np.diff(points.astype(np.int64), axis=0).astype(float)
    return np.sqrt(np.sum(diffs ** 2, axis=1))

# ==============================================================
# DIRECTIONS
# ==============================================================

def direction_1_2(runner, out):
    """D1-D2: Allocation scatter and successive-step distances."""
    print("\n" + "=" * 60)
    print("D1-D2: ALLOCATION ORDER")
    print("=" * 60)

    sizes = runner.rng.choice(SIZE_CLASSES, N_ALLOC)
    buffers, keys = allocate(sizes)
    points = runner.codec.encode_array(keys, out=out[:len(keys)]).copy()
    alloc_steps = step_distances(runner, keys, out)
    rand_steps = step_distances(runner, runner.random_keys(N_ALLOC), out)

    print(f"  allocation steps: median={np.median(alloc_steps):.1f}  "
          f"mean={alloc_steps.mean():.1f}")
    print(f"  random steps:     median={np.median(rand_steps):.1f}  "
          f"mean={rand_steps.mean():.1f}")
    del buffers
    return dict(points=points, alloc_steps=alloc_steps, rand_steps=rand_steps)


def direction_3(runner, out):
    """D3: Mean step distance per size class."""
    print("\n" + "=" * 60)
    print("D3: SIZE CLASSES")
    print("=" * 60)

    results = {}
    for size in SIZE_CLASSES:
        with runner.timed(f"size={size}"):
            buffers, keys = allocate([size] * (N_ALLOC // 4))
            results[size] = float(np.median(step_distances(runner, keys, out)))
            del buffers
    for size, med in results.items():
        print(f"  {size:6d} B: median step = {med:.1f}")
    return dict(results=results)


def direction_4(runner, out):
    """D4: Free every other buffer, reallocate, measure displacement."""
    print("\n" + "=" * 60)
    print("D4: FREE / REALLOCATE")
    print("=" * 60)

    buffers, keys = allocate([256] * (N_ALLOC // 4))
    before = runner.codec.encode_array(keys[::2]).astype(np.int64)
    for i in range(0, len(buffers), 2):
        buffers[i] = None
    refill = [np.empty(256, dtype=np.uint8) for _ in range(len(before))]
    new_keys = addresses_to_keys([buffer_address(b) for b in refill], BITS)
    after = runner.codec.encode_array(new_keys).astype(np.int64)
    moved = np.sqrt(np.sum((after - before).astype(float) ** 2, axis=1))
    reused = float(np.mean(moved == 0))
    print(f"  reused slot: {reused:.1%}, median move: {np.median(moved):.1f}")
    del buffers, refill
    return dict(moved=moved, reused=reused)


def make_figure(runner, d12, d3, d4):
    fig, axes = runner.create_figure(4, "Address Locality on the Z-order Plane",
                                     rows=2, cols=2, figsize=(14, 12))

    pts = d12['points'].astype(float)
    axes[0].scatter(pts[:, 0], pts[:, 1], s=4, color='#3498db', alpha=0.7)
    axes[0].set_title("D1: Live allocations", fontsize=11)
    axes[0].set_xlabel("x", fontsize=10)
    axes[0].set_ylabel("y", fontsize=10)

    bins = np.logspace(0, np.log10(max(d12['rand_steps'].max(), 2)), 40)
    axes[1].hist(d12['alloc_steps'] + 1, bins=bins, color='#e74c3c',
                 alpha=0.7, label="allocation order")
    axes[1].hist(d12['rand_steps'] + 1, bins=bins, color='#2ecc71',
                 alpha=0.5, label="random keys")
    axes[1].set_xscale('log')
    axes[1].set_title("D2: Step distance", fontsize=11)
    axes[1].legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                   labelcolor='#cccccc')

    names3 = [str(s) for s in d3['results']]
    runner.plot_bars(axes[2], names3, list(d3['results'].values()),
                     "D3: Median step by size", ylabel="median distance")

    axes[3].hist(d4['moved'] + 1, bins=40, color='#9b59b6', alpha=0.85)
    axes[3].set_xscale('log')
    axes[3].set_title(f"D4: Reallocation move ({d4['reused']:.0%} reused)",
                      fontsize=11)

    runner.save(fig, "address_locality")

# ==============================================================
# MAIN
# ==============================================================
def main():
    t0 = time.time()
    runner = Runner("Address Locality", bits=BITS, seed=SEED)

    print("=" * 60)
    print("ADDRESS LOCALITY")
    print(f"bits={BITS}, align_bits={ALIGN_BITS}, allocations={N_ALLOC}")
    print("=" * 60)

    # one caller-owned coordinate buffer, reused by every encode
    out = np.empty((N_ALLOC, runner.codec.dims), dtype=np.uint64)

    d12 = direction_1_2(runner, out)
    d3 = direction_3(runner, out)
    d4 = direction_4(runner, out)

    make_figure(runner, d12, d3, d4)

    elapsed = time.time() - t0
    print(f"\nTotal: {elapsed:.0f}s ({elapsed / 60:.1f} min)")

    runner.print_summary({
        'D1': f"{len(d12['points'])} live allocations plotted",
        'D2': f"median step: allocation={np.median(d12['alloc_steps']):.1f}, "
              f"random={np.median(d12['rand_steps']):.1f}",
        'D3': [f"{s} B: {m:.1f}" for s, m in d3['results'].items()],
        'D4': f"reused={d4['reused']:.1%}",
    })

if __name__ == "__main__":
    main()
