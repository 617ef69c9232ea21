"""
Curve Runner: shared boilerplate for Morton curve investigations.

Collects the repeated parts of the investigation scripts (timing, figure
theming, curve / locality / grid plots, parallel grid evaluation) so each
script only provides its own directions.

Usage:
    from tools.curve_runner import Runner

    runner = Runner("Z-order Locality", bits=16)

    trace = runner.locality(0, 4096)
    grid = runner.additivity(63, n_workers=4)

    fig, axes = runner.create_figure(4, "Z-order Locality")
    runner.plot_curve(axes[0], 0, 255, "Curve path")
    runner.plot_distances(axes[1], trace, "Consecutive distance")
    runner.plot_grid(axes[2], grid.plane(0), "x additivity")
    runner.save(fig, "zorder_locality")
"""

import multiprocessing
import sys
import time
import warnings
import numpy as np
from pathlib import Path

# Framework imports
_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_ROOT))
from morton_curve_framework import (
    AdditivityGrid, AlgebraicPropertyChecker, BitCodec, LocalityAnalyzer,
)

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
from matplotlib import gridspec

warnings.filterwarnings('ignore', category=RuntimeWarning)


# ----------------------------------------------------------
# Parallel grid helpers (module-level for pickling)
# ----------------------------------------------------------
_worker_checker = None


def _worker_init(bits, dims):
    """Initialize a per-process AlgebraicPropertyChecker."""
    global _worker_checker
    _worker_checker = AlgebraicPropertyChecker(BitCodec(bits=bits, dims=dims))


def _worker_block(block):
    """Evaluate one row block using the per-process checker."""
    a_values, b_values = block
    return _worker_checker.check_block(a_values, b_values)


def _parallel_check(blocks, bits, dims, n_workers):
    """Evaluate row blocks in parallel using a process pool."""
    with multiprocessing.Pool(
        processes=n_workers,
        initializer=_worker_init,
        initargs=(bits, dims),
    ) as pool:
        return pool.map(_worker_block, blocks)


class Runner:
    """Reusable investigation runner with all boilerplate baked in."""

    def __init__(self, name, bits=32, dims=2, metric='euclidean', seed=42,
                 n_workers=1, fig_dir=None):
        self.name = name
        self.seed = seed
        self.n_workers = n_workers
        self.codec = BitCodec(bits=bits, dims=dims)
        self.locality_analyzer = LocalityAnalyzer(self.codec, metric=metric)
        self.checker = AlgebraicPropertyChecker(self.codec)
        self.fig_dir = Path(fig_dir) if fig_dir is not None else _ROOT / "figures"
        self.fig_dir.mkdir(parents=True, exist_ok=True)

        self.rng = np.random.default_rng(seed)

        print(f"Runner: {name}")
        print(f"  bits={bits}, dims={dims}, metric={metric}"
              + (f", workers={n_workers}" if n_workers > 1 else ""))

    # ----------------------------------------------------------
    # Analyses
    # ----------------------------------------------------------
    def locality(self, z_min, z_max):
        """LocalityTrace for keys (z_min, z_max]."""
        return self.locality_analyzer.analyze(z_min, z_max)

    @staticmethod
    def row_blocks(limit, n_blocks):
        """Split a values 0..limit into n_blocks contiguous row blocks."""
        values = np.arange(limit + 1, dtype=np.uint64)
        n_blocks = max(1, min(n_blocks, len(values)))
        return [(rows, values) for rows in np.array_split(values, n_blocks)]

    def additivity(self, limit, n_workers=None):
        """AdditivityGrid over [0, limit]^2.

        When n_workers > 1 the a axis is split into row blocks evaluated in
        a process pool; each worker builds its own checker from (bits, dims).
        """
        n_workers = n_workers or self.n_workers
        if n_workers <= 1 or limit < 1:
            return self.checker.check(limit)
        # validate the whole domain before fanning out
        self.checker.check_block([limit], [limit])
        blocks = self.row_blocks(limit, n_workers)
        grids = _parallel_check(blocks, self.codec.bits, self.codec.dims,
                                n_workers)
        return AdditivityGrid.concat(grids)

    def random_keys(self, n, z_max=None):
        """n uniformly random keys below z_max (default: whole key range)."""
        hi = self.codec.key_limit if z_max is None else z_max + 1
        return self.rng.integers(0, hi, n, dtype=np.uint64, endpoint=False)

    # ----------------------------------------------------------
    # Timing
    # ----------------------------------------------------------
    def timed(self, label):
        """Context manager for timing blocks."""
        return _Timer(label)

    # ----------------------------------------------------------
    # Figure helpers
    # ----------------------------------------------------------
    @staticmethod
    def _apply_dark_theme():
        plt.rcParams.update({
            'figure.facecolor': '#181818',
            'axes.facecolor': '#181818',
            'axes.edgecolor': '#444444',
            'axes.labelcolor': 'white',
            'text.color': 'white',
            'xtick.color': '#cccccc',
            'ytick.color': '#cccccc',
        })

    @staticmethod
    def dark_ax(ax):
        """Apply dark theme to a single axis."""
        ax.set_facecolor('#181818')
        for spine in ax.spines.values():
            spine.set_color('#444444')
        ax.tick_params(colors='#cccccc', labelsize=7)
        return ax

    def create_figure(self, n_panels, title=None, rows=2, cols=3,
                      figsize=(20, 14)):
        """Create a dark-themed figure with gridspec panels."""
        self._apply_dark_theme()
        fig = plt.figure(figsize=figsize, facecolor='#181818')
        gs = gridspec.GridSpec(rows, cols, figure=fig, hspace=0.35,
                               wspace=0.35, left=0.06, right=0.97,
                               top=0.93, bottom=0.06)
        fig.suptitle(title or self.name, fontsize=15, fontweight='bold',
                     color='white')

        axes = []
        for i in range(min(n_panels, rows * cols)):
            r, c = divmod(i, cols)
            ax = fig.add_subplot(gs[r, c])
            self.dark_ax(ax)
            axes.append(ax)
        return fig, axes

    def plot_curve(self, ax, z_min, z_max, title, color='#3498db'):
        """Draw the curve path through keys z_min..z_max (first two axes)."""
        coords = self.codec.coordinates(z_min, z_max).astype(float)
        ax.plot(coords[:, 0], coords[:, 1], '-', color=color, linewidth=1.2,
                alpha=0.9)
        ax.scatter(coords[:1, 0], coords[:1, 1], color='#2ecc71', s=25,
                   zorder=3, label=f"z={z_min}")
        ax.scatter(coords[-1:, 0], coords[-1:, 1], color='#e74c3c', s=25,
                   zorder=3, label=f"z={z_max}")
        ax.set_aspect('equal')
        ax.invert_yaxis()
        ax.set_xlabel("x", fontsize=10)
        ax.set_ylabel("y", fontsize=10)
        ax.set_title(title, fontsize=11)
        ax.legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                  labelcolor='#cccccc')

    def plot_distances(self, ax, trace, title, color='#e74c3c',
                       mark_spikes=True):
        """Plot d(z) against z, optionally marking strict spikes."""
        keys = trace.keys().astype(float)
        dists = trace.distances()
        ax.plot(keys, dists, '-', color=color, linewidth=0.6, alpha=0.85)
        if mark_spikes and len(trace):
            spikes = trace.spike_keys()
            idx = (np.asarray(spikes, dtype=np.uint64)
                   - np.uint64(trace.z_min + 1)).astype(int)
            ax.scatter(np.asarray(spikes, dtype=float), dists[idx],
                       color='#f1c40f', s=18, zorder=3, label="spikes")
            for z, d in zip(spikes, dists[idx]):
                ax.annotate(str(z), (z, d), textcoords="offset points",
                            xytext=(0, 6), ha='center', fontsize=7,
                            color='white')
            ax.legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                      labelcolor='#cccccc')
        ax.set_xlabel("key z", fontsize=10)
        ax.set_ylabel(f"d(z) ({trace.metric})", fontsize=10)
        ax.set_title(title, fontsize=11)

    def plot_histogram(self, ax, trace, title, bins=40, color='#9b59b6'):
        """Log-scaled histogram of distances with mean / p99 markers."""
        dists = trace.distances()
        ax.hist(dists, bins=bins, color=color, alpha=0.85)
        ax.set_yscale('log')
        if len(dists):
            ax.axvline(trace.mean(), color='#2ecc71', linestyle='--',
                       linewidth=1.2, label=f"mean={trace.mean():.2f}")
            p99 = trace.percentile(99)
            ax.axvline(p99, color='#f1c40f', linestyle=':', linewidth=1.2,
                       label=f"p99={p99:.2f}")
            ax.legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                      labelcolor='#cccccc')
        ax.set_xlabel("distance", fontsize=10)
        ax.set_title(title, fontsize=11)

    def plot_grid(self, ax, plane, title, extent=None):
        """Show a boolean (a, b) plane: a down, b across."""
        ax.imshow(plane, cmap='magma', vmin=0, vmax=1,
                  interpolation='nearest', extent=extent)
        ax.set_xlabel("b", fontsize=10)
        ax.set_ylabel("a", fontsize=10)
        frac = float(np.mean(plane)) if plane.size else 0.0
        ax.set_title(f"{title} ({frac:.1%} hold)", fontsize=11)

    def plot_bars(self, ax, names, values, title, ylabel='', colors=None):
        """Plot a bar chart with value labels."""
        if colors is None:
            colors = plt.cm.Set2(np.linspace(0, 1, len(names)))
        bars = ax.bar(range(len(names)), values, color=colors, alpha=0.85)
        ax.set_xticks(range(len(names)))
        ax.set_xticklabels(names, fontsize=8, rotation=20)
        ax.set_ylabel(ylabel)
        ax.set_title(title, fontsize=11)
        for bar, val in zip(bars, values):
            ax.text(bar.get_x() + bar.get_width() / 2,
                    bar.get_height(),
                    f"{val:.3g}", ha='center', va='bottom', fontsize=9,
                    color='white')

    def plot_line(self, ax, x, y, title, xlabel='', ylabel='',
                  color='#e74c3c', label=None):
        """Plot a line chart."""
        ax.plot(x, y, 'o-', color=color, markersize=5, linewidth=2,
                label=label)
        ax.fill_between(x, y, alpha=0.12, color=color)
        ax.set_xlabel(xlabel, fontsize=10)
        ax.set_ylabel(ylabel, fontsize=10)
        ax.set_title(title, fontsize=11)
        if label:
            ax.legend(fontsize=8, facecolor='#222222', edgecolor='#444444',
                      labelcolor='#cccccc')

    def save(self, fig, name=None):
        """Save figure to the figures directory."""
        name = name or self.name.lower().replace(' ', '_')
        out = self.fig_dir / f"{name}.png"
        fig.savefig(out, dpi=180, facecolor='#181818')
        plt.close(fig)
        print(f"\nFigure saved: {out}")
        return out

    # ----------------------------------------------------------
    # Summary printer
    # ----------------------------------------------------------
    def print_summary(self, results):
        """Print a standardized summary from a results dict.

        results: dict with keys like 'D1', 'D2', etc.
            Each value is a string or list of strings to print.
        """
        print("\n" + "=" * 60)
        print("SUMMARY")
        print("=" * 60)
        for key in sorted(results.keys()):
            val = results[key]
            if isinstance(val, list):
                for line in val:
                    print(f"{key}: {line}")
            else:
                print(f"{key}: {val}")


class _Timer:
    """Simple timing context manager."""
    def __init__(self, label):
        self.label = label

    def __enter__(self):
        self.t0 = time.time()
        print(f"  {self.label}...", end=" ", flush=True)
        return self

    def __exit__(self, *args):
        elapsed = time.time() - self.t0
        print(f"{elapsed:.1f}s")
        self.elapsed = elapsed
