#!/usr/bin/env python3
"""
Morton Curve Quickstart - Run this to verify the framework and see examples.

Usage:
    pip install -e .
    python quickstart.py
"""

import numpy as np

print("=" * 70)
print("MORTON CURVE FRAMEWORK - QUICKSTART")
print("=" * 70)

from morton_curve_framework import (
    BitCodec, LocalityAnalyzer, AlgebraicPropertyChecker,
    deinterleave_reference, count_carry_free_pairs,
)
print("\n[OK] Framework imported successfully")

codec = BitCodec(bits=8)
print(f"[OK] {codec}: {codec.stages} compaction stages, "
      f"masks={[hex(m) for m in codec.masks]}")

# Small keys against the bit-by-bit reference
print("\n" + "-" * 70)
print("ENCODE / DECODE (B=8)")
print("-" * 70)

print("\n{:>5} | {:>10} | {:>10} | {:>10} | {:>6}".format(
    "z", "binary", "encode", "reference", "decode"))
print("-" * 55)
for z in [0, 1, 2, 3, 5, 10, 255]:
    xy = codec.encode(z)
    ref = deinterleave_reference(z, dims=2, bits=8)
    print("{:>5} | {:>10} | {:>10} | {:>10} | {:>6}".format(
        z, format(z, '08b'), str(xy), str(ref), codec.decode(*xy)))

# Exhaustive round trip
keys = np.arange(codec.key_limit)
back = codec.decode_array(codec.encode_array(keys))
print(f"\n[OK] Round trip over all {codec.key_limit} keys: "
      f"{bool(np.array_equal(back, keys))}")

# Locality
print("\n" + "-" * 70)
print("LOCALITY OF CONSECUTIVE KEYS (B=32, keys 0..4096)")
print("-" * 70)

trace = LocalityAnalyzer(BitCodec(bits=32)).analyze(0, 4096)
print(f"  {trace.summary()}")
print(f"  spikes at {trace.spike_keys()}")

# Additivity
print("\n" + "-" * 70)
print("ADDITIVITY encode(a+b) == encode(a)+encode(b) (B=8, [0,15]^2)")
print("-" * 70)

grid = AlgebraicPropertyChecker(codec).check(15)
for axis, label in enumerate("xy"):
    print(f"  holds_{label}: {int(grid.plane(axis).sum())} / {grid.plane(axis).size}")
print(f"  joint: {int(grid.joint().sum())}, "
      f"carry-free pairs: {count_carry_free_pairs(15)}")

print("\nJoint plane (# = both axes hold):")
for row in grid.joint():
    print("  " + "".join('#' if v else '.' for v in row))

# What to explore next
print("\n" + "=" * 70)
print("NEXT STEPS")
print("=" * 70)
print("""
Run an investigation:
    python investigations/2d/zorder_locality.py     # Consecutive-key jumps
    python investigations/2d/zorder_additivity.py   # Carry leakage between axes
    python investigations/2d/address_locality.py    # Heap addresses as keys

Use the framework in your own code:
    from morton_curve_framework import BitCodec
    x, y = BitCodec(bits=32).encode(your_key)
""")

print("[OK] Quickstart complete!")
