"""
Morton Curve Framework for Locality and Additivity Analysis

A bit-exact Morton (Z-order / Lebesgue) codec plus two analyses built on it.
The codec maps one non-negative integer key to a tuple of coordinates by
de-interleaving its binary digits, and back by interleaving them.

COMPONENTS:

  Codec:
    - BitCodec: key <-> D-tuple of coordinates (D=2 by default), SWAR
      compaction/spreading with masks derived from (bits, dims)

  Analyses:
    - LocalityAnalyzer: distance between the points of consecutive keys,
      lazy LocalityTrace with mean / percentile / order-statistic reducers
    - AlgebraicPropertyChecker: does encode(a + b) == encode(a) + encode(b)
      per axis? Dense boolean AdditivityGrid over an (a, b) domain

REFERENCE ORACLES (independent of the SWAR code):
    - interleave_reference(coords, dims): literal bit-by-bit interleave
    - deinterleave_reference(z, dims, bits): literal bit-by-bit de-interleave
    - AlgebraicPropertyChecker.predict(a, b): analytic carry predicate
    - count_carry_free_pairs(limit): number of (a, b) with a & b == 0

Bit layout (D=2): key bit 2i -> x bit i, key bit 2i+1 -> y bit i.

    z = 0b0101 -> x = 0b11 = 3, y = 0   i.e. encode(5) == (3, 0)

Usage:
    from morton_curve_framework import BitCodec, LocalityAnalyzer

    codec = BitCodec(bits=32)
    x, y = codec.encode(5)
    z = codec.decode(x, y)

    # Vectorized, optionally into a caller-owned buffer
    out = np.empty((1024, 2), dtype=np.uint64)
    codec.encode_array(np.arange(1024), out=out)

    # Locality of consecutive keys
    trace = LocalityAnalyzer(codec).analyze(0, 4096)
    print(trace.mean(), trace.percentile(99), trace.spike_keys())
    print(trace.summary())

    # Additivity over [0, 15] x [0, 15]
    grid = AlgebraicPropertyChecker(BitCodec(bits=8)).check(15)
    print(grid.joint().sum())   # 81 == 3**4
"""

import math
import operator
import warnings
import numpy as np
from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Dict, Any, Iterator, Optional, Sequence, Tuple


# =============================================================================
# ERRORS
# =============================================================================

class CurveError(ValueError):
    """Base class for framework errors."""


class DomainError(CurveError):
    """A key or coordinate lies outside the range implied by the bit width."""


class ConfigurationError(CurveError):
    """Invalid codec or analyzer configuration (raised at construction)."""


# =============================================================================
# RESULT CLASSES
# =============================================================================

@dataclass
class CurveResult:
    """Summary metrics from one analysis."""
    name: str
    metrics: Dict[str, float]
    raw_data: Optional[Dict[str, Any]] = None

    def __repr__(self):
        metrics_str = ", ".join(f"{k}={v:.4f}" for k, v in self.metrics.items())
        return f"{self.name}: {metrics_str}"


# =============================================================================
# REFERENCE ORACLES
# =============================================================================

def interleave_reference(coords: Sequence[int], dims: int = 2) -> int:
    """
    Interleave coordinates one bit at a time.

    Bit i of coordinate j lands at key position i*dims + j. Slow and
    obviously correct; the SWAR codec must agree with it bit for bit.
    """
    if len(coords) != dims:
        raise DomainError(f"Expected {dims} coordinates, got {len(coords)}")
    z = 0
    for j, c in enumerate(coords):
        c = operator.index(c)
        if c < 0:
            raise DomainError(f"Coordinate {c} on axis {j} is negative")
        i = 0
        while c:
            z |= (c & 1) << (i * dims + j)
            c >>= 1
            i += 1
    return z


def deinterleave_reference(z: int, dims: int = 2, bits: int = 32) -> Tuple[int, ...]:
    """Split key bits round-robin over `dims` coordinates, one bit at a time."""
    z = operator.index(z)
    coords = [0] * dims
    for pos in range(bits):
        coords[pos % dims] |= ((z >> pos) & 1) << (pos // dims)
    return tuple(coords)


def count_carry_free_pairs(limit: int) -> int:
    """
    Count pairs (a, b) in [0, limit]^2 with a & b == 0.

    These are exactly the pairs whose addition produces no carry at all,
    i.e. the cells where every axis of the additivity grid holds. Digit DP
    from the most significant bit, tracking whether a and b are still
    pinned to the prefix of `limit`. Gives 3^k when limit == 2^k - 1.
    """
    limit = operator.index(limit)
    if limit < 0:
        return 0
    counts = Counter({(True, True): 1})
    for pos in reversed(range(limit.bit_length())):
        bit = (limit >> pos) & 1
        nxt = Counter()
        for (tight_a, tight_b), ways in counts.items():
            for da, db in ((0, 0), (0, 1), (1, 0)):
                if (tight_a and da > bit) or (tight_b and db > bit):
                    continue
                nxt[(tight_a and da == bit, tight_b and db == bit)] += ways
        counts = nxt
    return sum(counts.values())


# =============================================================================
# BIT CODEC
# =============================================================================

def _lane_mask(axis_bits: int, dims: int, group: int) -> int:
    """Positions of one axis' bits laid out in runs of `group`, runs spaced
    group*dims apart. group=1 is the interleaved layout; group >= axis_bits
    is the compact one."""
    mask = 0
    for i in range(axis_bits):
        mask |= 1 << ((i // group) * group * dims + i % group)
    return mask


class BitCodec:
    """
    Morton codec between a B-bit key and a D-tuple of (B/D)-bit coordinates.

    The core (`compact`, `spread`) is a fixed sequence of shift-and-merge
    stages. At stage k an axis' bits sit in runs of 2^k spaced 2^k*D apart;
    compaction shifts the odd runs down by 2^k*(D-1) onto the even runs and
    masks to runs of 2^(k+1). Spreading runs the same stages backwards.
    Every stage runs regardless of the input value.

    `encode`/`decode` validate at the boundary and raise DomainError rather
    than truncate. `compact`/`spread` do no checking.

    Instances hold only immutable configuration and are safe to share
    between threads.
    """

    MAX_BITS = 64  # width of the uint64 array path
    DEFAULT_BITS = 32

    def __init__(self, bits: int = DEFAULT_BITS, dims: int = 2):
        if isinstance(bits, bool) or not isinstance(bits, (int, np.integer)):
            raise ConfigurationError(f"bits must be an integer, got {bits!r}")
        if isinstance(dims, bool) or not isinstance(dims, (int, np.integer)):
            raise ConfigurationError(f"dims must be an integer, got {dims!r}")
        bits, dims = int(bits), int(dims)
        if dims < 2:
            raise ConfigurationError(f"dims must be >= 2, got {dims}")
        if bits <= 0 or bits > self.MAX_BITS:
            raise ConfigurationError(
                f"bits must be in 1..{self.MAX_BITS}, got {bits}")
        if bits % dims:
            raise ConfigurationError(
                f"bits={bits} does not split evenly over {dims} axes")

        self._bits = bits
        self._dims = dims
        self._axis_bits = bits // dims

        groups = [1]
        while groups[-1] < self._axis_bits:
            groups.append(groups[-1] * 2)
        self._shifts = tuple(g * (dims - 1) for g in groups[:-1])
        self._lanes = tuple(_lane_mask(self._axis_bits, dims, g) for g in groups)
        self._np_shifts = tuple(np.uint64(s) for s in self._shifts)
        self._np_lanes = tuple(np.uint64(m) for m in self._lanes)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------
    @property
    def bits(self) -> int:
        return self._bits

    @property
    def dims(self) -> int:
        return self._dims

    @property
    def axis_bits(self) -> int:
        return self._axis_bits

    @property
    def key_limit(self) -> int:
        """Exclusive upper bound of keys (2^B)."""
        return 1 << self._bits

    @property
    def coord_limit(self) -> int:
        """Exclusive upper bound of each coordinate (2^(B/D))."""
        return 1 << self._axis_bits

    @property
    def stages(self) -> int:
        """Number of shift/merge stages, ceil(log2(B/D))."""
        return len(self._shifts)

    @property
    def masks(self) -> Tuple[int, ...]:
        """Lane masks from the interleaved layout to the compact one."""
        return self._lanes

    def __repr__(self):
        return f"BitCodec(bits={self._bits}, dims={self._dims})"

    def __eq__(self, other):
        if not isinstance(other, BitCodec):
            return NotImplemented
        return (self._bits, self._dims) == (other._bits, other._dims)

    def __hash__(self):
        return hash((BitCodec, self._bits, self._dims))

    # ------------------------------------------------------------------
    # Boundary validation
    # ------------------------------------------------------------------
    def validate_key(self, z) -> int:
        """Return z as int, or raise DomainError if it is not a B-bit key."""
        z = operator.index(z)
        if z < 0 or z >= self.key_limit:
            raise DomainError(
                f"Key {z} outside [0, 2^{self._bits} - 1] = [0, {self.key_limit - 1}]")
        return z

    def validate_coords(self, coords: Sequence[int]) -> Tuple[int, ...]:
        if len(coords) != self._dims:
            raise DomainError(
                f"Expected {self._dims} coordinates, got {len(coords)}")
        out = []
        for axis, c in enumerate(coords):
            c = operator.index(c)
            if c < 0 or c >= self.coord_limit:
                raise DomainError(
                    f"Coordinate {c} on axis {axis} outside "
                    f"[0, 2^{self._axis_bits} - 1] = [0, {self.coord_limit - 1}]")
            out.append(c)
        return tuple(out)

    def _as_uint64(self, values, limit: int, what: str) -> np.ndarray:
        """Validate an integer array against [0, limit) and view it as uint64."""
        arr = np.asarray(values)
        if arr.dtype == object and arr.size:
            # Python ints too wide for a fixed-width dtype land here
            try:
                ints = [operator.index(v) for v in arr.reshape(-1).tolist()]
            except TypeError:
                raise DomainError(
                    f"{what} must be an integer array, got non-integer objects") from None
            lo, hi = min(ints), max(ints)
            if lo < 0:
                raise DomainError(f"{what} {lo} is negative")
            if hi >= limit:
                raise DomainError(f"{what} {hi} outside [0, {limit - 1}]")
            return np.array(ints, dtype=np.uint64).reshape(arr.shape)
        if arr.dtype.kind not in "iu":
            if arr.size == 0:
                return arr.astype(np.uint64)
            raise DomainError(f"{what} must be an integer array, got dtype {arr.dtype}")
        if arr.dtype.kind == "i" and arr.size and arr.min() < 0:
            raise DomainError(f"{what} {int(arr.min())} is negative")
        arr = arr.astype(np.uint64, copy=False)
        if limit <= np.iinfo(np.uint64).max and arr.size:
            hi = arr.max()
            if hi >= np.uint64(limit):
                raise DomainError(
                    f"{what} {int(hi)} outside [0, {limit - 1}]")
        return arr

    # ------------------------------------------------------------------
    # Unchecked core
    # ------------------------------------------------------------------
    def compact(self, value: int) -> int:
        """Gather the bits at positions 0, D, 2D, ... into a contiguous value."""
        lanes = self._lanes
        value &= lanes[0]
        for k, shift in enumerate(self._shifts):
            value = (value | (value >> shift)) & lanes[k + 1]
        return value

    def spread(self, value: int) -> int:
        """Scatter the low B/D bits of value to positions 0, D, 2D, ..."""
        lanes = self._lanes
        value &= lanes[-1]
        for k in reversed(range(len(self._shifts))):
            value = (value | (value << self._shifts[k])) & lanes[k]
        return value

    def _compact_array(self, arr: np.ndarray) -> np.ndarray:
        lanes = self._np_lanes
        arr = arr & lanes[0]
        for k, shift in enumerate(self._np_shifts):
            arr = (arr | (arr >> shift)) & lanes[k + 1]
        return arr

    def _spread_array(self, arr: np.ndarray) -> np.ndarray:
        lanes = self._np_lanes
        arr = arr & lanes[-1]
        for k in reversed(range(len(self._np_shifts))):
            arr = (arr | (arr << self._np_shifts[k])) & lanes[k]
        return arr

    # ------------------------------------------------------------------
    # Scalar API
    # ------------------------------------------------------------------
    def encode(self, z) -> Tuple[int, ...]:
        """Key -> coordinate tuple (x, y, ...)."""
        z = self.validate_key(z)
        return tuple(self.compact(z >> axis) for axis in range(self._dims))

    def decode(self, *coords) -> int:
        """Coordinate tuple -> key. Call as decode(x, y) for D=2."""
        coords = self.validate_coords(coords)
        z = 0
        for axis, c in enumerate(coords):
            z |= self.spread(c) << axis
        return z

    # ------------------------------------------------------------------
    # Array API
    # ------------------------------------------------------------------
    def _encode_array_unchecked(self, keys: np.ndarray,
                                out: Optional[np.ndarray] = None) -> np.ndarray:
        if out is None:
            out = np.empty((keys.shape[0], self._dims), dtype=np.uint64)
        for axis in range(self._dims):
            out[:, axis] = self._compact_array(keys >> np.uint64(axis))
        return out

    def encode_array(self, keys, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Vectorized encode.

        Parameters
        ----------
        keys : array-like of int, shape (n,)
        out : np.ndarray of uint64, shape (n, dims), optional
            Caller-owned buffer, filled in place and returned.

        Returns
        -------
        np.ndarray of uint64, shape (n, dims)
        """
        keys = self._as_uint64(keys, self.key_limit, "Key").reshape(-1)
        if out is not None:
            self._check_out(out, (keys.shape[0], self._dims))
        return self._encode_array_unchecked(keys, out)

    def decode_array(self, coords, out: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Vectorized decode.

        Parameters
        ----------
        coords : array-like of int, shape (n, dims)
        out : np.ndarray of uint64, shape (n,), optional
            Caller-owned buffer, filled in place and returned.

        Returns
        -------
        np.ndarray of uint64, shape (n,)
        """
        coords = self._as_uint64(coords, self.coord_limit, "Coordinate")
        if coords.ndim != 2 or coords.shape[1] != self._dims:
            raise DomainError(
                f"Expected coordinates of shape (n, {self._dims}), got {coords.shape}")
        n = coords.shape[0]
        if out is None:
            out = np.zeros(n, dtype=np.uint64)
        else:
            self._check_out(out, (n,))
            out[...] = 0
        for axis in range(self._dims):
            out |= self._spread_array(coords[:, axis]) << np.uint64(axis)
        return out

    @staticmethod
    def _check_out(out: np.ndarray, shape: Tuple[int, ...]):
        if not isinstance(out, np.ndarray) or out.dtype != np.uint64 or out.shape != shape:
            got = (getattr(out, "shape", None), getattr(out, "dtype", type(out)))
            raise ValueError(f"out must be a uint64 array of shape {shape}, got {got}")

    def coordinates(self, z_min: int, z_max: int) -> np.ndarray:
        """Coordinates of keys z_min..z_max inclusive, shape (n, dims)."""
        z_min, z_max = self.validate_key(z_min), self.validate_key(z_max)
        if z_max < z_min:
            return np.empty((0, self._dims), dtype=np.uint64)
        keys = np.arange(z_max - z_min + 1, dtype=np.uint64) + np.uint64(z_min)
        return self._encode_array_unchecked(keys)


# =============================================================================
# ANALYZER BASE
# =============================================================================

class CurveAnalyzer(ABC):
    """Base class for analyses that consume a BitCodec."""

    def __init__(self, codec: Optional[BitCodec] = None):
        self.codec = codec if codec is not None else BitCodec()

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name of this analysis."""
        pass

    @property
    def description(self) -> str:
        """What this analysis measures."""
        return ""


# =============================================================================
# LOCALITY ANALYZER
# =============================================================================

def _euclidean(diff: np.ndarray) -> np.ndarray:
    return np.sqrt(np.sum(diff.astype(float) ** 2, axis=1))


def _manhattan(diff: np.ndarray) -> np.ndarray:
    return np.abs(diff).sum(axis=1).astype(float)


def _chebyshev(diff: np.ndarray) -> np.ndarray:
    return np.abs(diff).max(axis=1).astype(float)


DISTANCE_METRICS = {
    'euclidean': _euclidean,
    'manhattan': _manhattan,
    'chebyshev': _chebyshev,
}


class LocalityTrace:
    """
    Distance samples (z, d(z)) for z in (z_min, z_max].

    Lazy and restartable: every iteration re-encodes the range chunk by
    chunk through the array path. Reducers materialize what they need.
    """

    def __init__(self, codec: BitCodec, z_min: int, z_max: int,
                 metric: str = 'euclidean', chunk_size: int = 1 << 16):
        self.codec = codec
        self.z_min = z_min
        self.z_max = z_max
        self.metric = metric
        self.chunk_size = chunk_size
        self._distance = DISTANCE_METRICS[metric]
        # len() is capped at sys.maxsize; a 64-bit range can exceed it
        self.n = max(0, z_max - z_min)

    def __len__(self):
        return self.n

    def __repr__(self):
        return (f"LocalityTrace({self.codec!r}, z=({self.z_min}, {self.z_max}], "
                f"metric={self.metric!r})")

    def _chunks(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        start = self.z_min + 1
        while start <= self.z_max:
            stop = min(start + self.chunk_size, self.z_max + 1)
            # include the predecessor of the first key
            keys = np.arange(stop - start + 1, dtype=np.uint64) + np.uint64(start - 1)
            coords = self.codec._encode_array_unchecked(keys).astype(np.int64)
            yield keys[1:], self._distance(np.diff(coords, axis=0))
            start = stop

    def __iter__(self) -> Iterator[Tuple[int, float]]:
        for keys, dists in self._chunks():
            yield from zip(keys.tolist(), dists.tolist())

    def keys(self) -> np.ndarray:
        if self.n == 0:
            return np.empty(0, dtype=np.uint64)
        return np.arange(self.n, dtype=np.uint64) + np.uint64(self.z_min + 1)

    def distances(self) -> np.ndarray:
        parts = [d for _, d in self._chunks()]
        return np.concatenate(parts) if parts else np.empty(0, dtype=float)

    # ------------------------------------------------------------------
    # Reducers
    # ------------------------------------------------------------------
    def _empty(self, reducer: str) -> float:
        warnings.warn(f"{reducer}() of an empty locality trace is nan",
                      RuntimeWarning, stacklevel=3)
        return float('nan')

    def mean(self) -> float:
        if self.n == 0:
            return self._empty("mean")
        total = 0.0
        for _, dists in self._chunks():
            total += float(dists.sum())
        return total / self.n

    def max(self) -> float:
        if self.n == 0:
            return self._empty("max")
        return max(float(d.max()) for _, d in self._chunks())

    def percentile(self, q: float) -> float:
        """q-th percentile (0..100) of the distances, linear interpolation."""
        if not 0 <= q <= 100:
            raise ValueError(f"Percentile must be in [0, 100], got {q}")
        if self.n == 0:
            return self._empty("percentile")
        return float(np.percentile(self.distances(), q))

    def order_statistic(self, k: int) -> float:
        """k-th smallest distance (0-based)."""
        n = self.n
        if not 0 <= k < n:
            raise ValueError(f"Order statistic k={k} outside [0, {n - 1}]")
        return float(np.partition(self.distances(), k)[k])

    def top(self, n: int) -> List[int]:
        """Keys of the n largest distances, ties broken by lower key."""
        if self.n == 0 or n <= 0:
            return []
        dists = self.distances()
        keys = self.keys()
        order = np.lexsort((keys, -dists))
        return [int(k) for k in keys[order[:n]]]

    def spike_keys(self) -> List[int]:
        """Keys whose distance strictly exceeds every earlier distance."""
        if self.n == 0:
            return []
        dists = self.distances()
        running = np.maximum.accumulate(dists)
        prev = np.concatenate(([-np.inf], running[:-1]))
        return [int(k) for k in self.keys()[dists > prev]]

    def summary(self) -> CurveResult:
        """Distribution of the distances as a CurveResult."""
        from scipy.stats import skew as scipy_skew, kurtosis as scipy_kurtosis

        name = f"Z-order locality ({self.metric})"
        if self.n == 0:
            self._empty("summary")
            return CurveResult(name=name, metrics={}, raw_data={"n": 0})
        d = self.distances()
        with warnings.catch_warnings():
            # constant traces have undefined skew/kurtosis
            warnings.simplefilter('ignore', RuntimeWarning)
            skewness = float(scipy_skew(d)) if len(d) > 2 else float('nan')
            kurt = float(scipy_kurtosis(d, fisher=True)) if len(d) > 3 else float('nan')
        return CurveResult(
            name=name,
            metrics={
                "mean": float(np.mean(d)),
                "std": float(np.std(d)),
                "median": float(np.median(d)),
                "p90": float(np.percentile(d, 90)),
                "p99": float(np.percentile(d, 99)),
                "max": float(np.max(d)),
                "skewness": skewness,
                "kurtosis": kurt,
            },
            raw_data={
                "n": len(d),
                "z_range": (self.z_min, self.z_max),
                "spike_keys": self.spike_keys(),
            },
        )


class LocalityAnalyzer(CurveAnalyzer):
    """
    Locality of the Z-order curve: how far apart are the points of keys
    z-1 and z?

    z and z-1 differ exactly in bits 0..v2(z), so d(z) depends only on the
    trailing-zero count of z. The strict spikes sit at z = 1 and
    z = 2*4^m, where the curve jumps between self-similar quadrants.
    """

    def __init__(self, codec: Optional[BitCodec] = None, metric: str = 'euclidean',
                 chunk_size: int = 1 << 16):
        super().__init__(codec)
        if metric not in DISTANCE_METRICS:
            raise ConfigurationError(
                f"Unknown metric '{metric}'. Use one of: {sorted(DISTANCE_METRICS)}")
        if chunk_size < 1:
            raise ConfigurationError(f"chunk_size must be >= 1, got {chunk_size}")
        self.metric = metric
        self.chunk_size = chunk_size

    @property
    def name(self) -> str:
        return "Z-order locality"

    @property
    def description(self) -> str:
        return ("Distance between the coordinates of consecutive keys. Spikes "
                "mark jumps between quadrants of the curve.")

    def analyze(self, z_min: int, z_max: int) -> LocalityTrace:
        """Distance samples for z in (z_min, z_max]; empty if z_max <= z_min."""
        z_min = self.codec.validate_key(z_min)
        z_max = self.codec.validate_key(z_max)
        return LocalityTrace(self.codec, z_min, z_max,
                             metric=self.metric, chunk_size=self.chunk_size)


# =============================================================================
# ALGEBRAIC PROPERTY CHECKER
# =============================================================================

@dataclass
class AdditivityGrid:
    """
    holds[axis, i, j] == (encode(a+b)[axis] == encode(a)[axis] + encode(b)[axis])
    with a = a_values[i], b = b_values[j].
    """
    a_values: np.ndarray
    b_values: np.ndarray
    holds: np.ndarray = field(repr=False)

    @property
    def dims(self) -> int:
        return self.holds.shape[0]

    @property
    def shape(self) -> Tuple[int, ...]:
        return self.holds.shape

    def plane(self, axis: int) -> np.ndarray:
        return self.holds[axis]

    def joint(self) -> np.ndarray:
        """Cells where every axis holds."""
        return np.all(self.holds, axis=0)

    def cells(self) -> Iterator[Tuple[int, int, int, bool]]:
        """Yield (a, b, axis, holds) for every cell."""
        for axis in range(self.dims):
            for i, a in enumerate(self.a_values.tolist()):
                row = self.holds[axis, i]
                for j, b in enumerate(self.b_values.tolist()):
                    yield a, b, axis, bool(row[j])

    @classmethod
    def concat(cls, grids: Sequence['AdditivityGrid']) -> 'AdditivityGrid':
        """Stack row blocks (same b_values) along the a axis."""
        if not grids:
            raise ValueError("Nothing to concatenate")
        b_values = grids[0].b_values
        for g in grids[1:]:
            if not np.array_equal(g.b_values, b_values):
                raise ValueError("Row blocks must share b_values")
        return cls(
            a_values=np.concatenate([g.a_values for g in grids]),
            b_values=b_values,
            holds=np.concatenate([g.holds for g in grids], axis=1),
        )


def _majority(p, q, c):
    return (p & q) | (c & (p | q))


class AlgebraicPropertyChecker(CurveAnalyzer):
    """
    Is the codec additive, encode(a + b) == encode(a) + encode(b)?

    Generally not: a carry out of one axis' bit passes through the other
    axes' columns before reaching that axis' next bit, and those columns
    can swallow it (both bits 0) or inject one of their own (both bits 1).
    Axis j holds iff neither happens at any of its carry boundaries and its
    own sum does not overflow. All axes hold together iff a & b == 0, which
    gives a self-similar pattern over the (a, b) plane.
    """

    @property
    def name(self) -> str:
        return "Z-order additivity"

    @property
    def description(self) -> str:
        return ("Per-axis test of encode(a+b) == encode(a) + encode(b). Fails "
                "where carries cross between interleaved axes.")

    def _block_values(self, values, what: str) -> np.ndarray:
        return self.codec._as_uint64(values, self.codec.key_limit, what).reshape(-1)

    def _check_sum_range(self, a: np.ndarray, b: np.ndarray):
        if a.size and b.size:
            top = int(a.max()) + int(b.max())
            if top >= self.codec.key_limit:
                raise DomainError(
                    f"a + b reaches {top}, outside [0, {self.codec.key_limit - 1}]")

    def check_block(self, a_values, b_values) -> AdditivityGrid:
        """Evaluate the grid on a rectangular block of the (a, b) domain."""
        a = self._block_values(a_values, "a")
        b = self._block_values(b_values, "b")
        self._check_sum_range(a, b)

        codec = self.codec
        enc_a = codec.encode_array(a)
        enc_b = codec.encode_array(b)
        sums = (a[:, None] + b[None, :]).reshape(-1)
        enc_sum = codec.encode_array(sums).reshape(len(a), len(b), codec.dims)

        holds = enc_sum == (enc_a[:, None, :] + enc_b[None, :, :])
        return AdditivityGrid(a_values=a, b_values=b,
                              holds=np.moveaxis(holds, -1, 0))

    def check(self, limit: int) -> AdditivityGrid:
        """Dense grid over [0, limit] x [0, limit]."""
        limit = operator.index(limit)
        if limit < 0:
            raise DomainError(f"Domain limit {limit} is negative")
        values = np.arange(limit + 1, dtype=np.uint64)
        return self.check_block(values, values)

    # ------------------------------------------------------------------
    # Analytic oracle
    # ------------------------------------------------------------------
    def _carry_predicate(self, a: np.ndarray, b: np.ndarray, axis: int) -> np.ndarray:
        """Axis `axis` holds, computed from raw key bits without the codec."""
        dims, n = self.codec.dims, self.codec.axis_bits
        one = np.uint64(1)

        def bit(v, pos):
            return (v >> np.uint64(pos)) & one

        ok = np.ones(np.broadcast(a, b).shape, dtype=bool)

        # columns below the axis' first bit must not inject a carry
        chain = np.zeros_like(ok, dtype=np.uint64)
        for pos in range(axis):
            chain = _majority(bit(a, pos), bit(b, pos), chain)
        ok &= chain == 0

        carry = np.zeros_like(ok, dtype=np.uint64)
        for level in range(n):
            pos = level * dims + axis
            carry = _majority(bit(a, pos), bit(b, pos), carry)
            if level == n - 1:
                break
            chain = carry
            for other in range(pos + 1, pos + dims):
                chain = _majority(bit(a, other), bit(b, other), chain)
            ok &= chain == carry
        # overflow of the axis sum past its B/D bits
        ok &= carry == 0
        return ok

    def predict(self, a: int, b: int) -> Tuple[bool, ...]:
        """Predicted holds per axis for one (a, b) pair."""
        a = self.codec.validate_key(a)
        b = self.codec.validate_key(b)
        if a + b >= self.codec.key_limit:
            raise DomainError(
                f"a + b = {a + b} outside [0, {self.codec.key_limit - 1}]")
        ua, ub = np.uint64(a), np.uint64(b)
        return tuple(bool(self._carry_predicate(ua, ub, axis))
                     for axis in range(self.codec.dims))

    def predict_grid(self, limit: int) -> AdditivityGrid:
        """Analytic counterpart of check(limit)."""
        limit = operator.index(limit)
        if limit < 0:
            raise DomainError(f"Domain limit {limit} is negative")
        values = np.arange(limit + 1, dtype=np.uint64)
        self._check_sum_range(values, values)
        a, b = values[:, None], values[None, :]
        holds = np.stack([self._carry_predicate(a, b, axis)
                          for axis in range(self.codec.dims)])
        return AdditivityGrid(a_values=values, b_values=values, holds=holds)


def expected_joint_fraction(limit: int) -> float:
    """Fraction of [0, limit]^2 where all axes hold (carry-free pairs)."""
    total = (operator.index(limit) + 1) ** 2
    return count_carry_free_pairs(limit) / total if total > 0 else math.nan
