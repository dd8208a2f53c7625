from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from typing import Protocol

import numpy as np


class NearestPointIndex(Protocol):
    """Nearest-neighbour lookup over a fixed 2D point set (Euclidean, data space).

    Ties resolve to the lowest input index so every implementation agrees.
    """

    def nearest(self, x: float, y: float) -> tuple[int, float] | None: ...


IndexFactory = Callable[[Sequence[float], Sequence[float]], NearestPointIndex]


class BruteForceIndex:
    """Scan every point per query. Fine for a few hundred points x a few hundred cells."""

    def __init__(self, xs: Sequence[float], ys: Sequence[float]) -> None:
        self._xs = np.asarray(xs, dtype="float64")
        self._ys = np.asarray(ys, dtype="float64")
        if self._xs.shape != self._ys.shape:
            raise ValueError("xs and ys must have the same length")

    def __len__(self) -> int:
        return int(self._xs.size)

    def nearest(self, x: float, y: float) -> tuple[int, float] | None:
        if self._xs.size == 0:
            return None
        dist = np.hypot(self._xs - x, self._ys - y)
        idx = int(np.argmin(dist))
        return idx, float(dist[idx])


class BucketIndex:
    """
    Uniform grid bucketing over the points' bounding box.

    Queries scan rings of buckets outward from the query's bucket and stop once
    no unscanned bucket can hold a strictly closer point.
    """

    def __init__(self, xs: Sequence[float], ys: Sequence[float], *, buckets_per_side: int | None = None) -> None:
        self._xs = np.asarray(xs, dtype="float64")
        self._ys = np.asarray(ys, dtype="float64")
        if self._xs.shape != self._ys.shape:
            raise ValueError("xs and ys must have the same length")

        n = int(self._xs.size)
        self._side = buckets_per_side or max(1, int(math.ceil(math.sqrt(n))))
        self._buckets: dict[tuple[int, int], list[int]] = {}
        if n == 0:
            self._x0 = self._y0 = 0.0
            self._bw = self._bh = 1.0
            return

        self._x0 = float(self._xs.min())
        self._y0 = float(self._ys.min())
        x_span = float(self._xs.max()) - self._x0
        y_span = float(self._ys.max()) - self._y0
        self._bw = x_span / self._side if x_span > 0 else 1.0
        self._bh = y_span / self._side if y_span > 0 else 1.0
        for idx in range(n):
            key = self._bucket_of(float(self._xs[idx]), float(self._ys[idx]))
            self._buckets.setdefault(key, []).append(idx)

    def __len__(self) -> int:
        return int(self._xs.size)

    def _bucket_of(self, x: float, y: float) -> tuple[int, int]:
        bx = int((x - self._x0) // self._bw)
        by = int((y - self._y0) // self._bh)
        return min(max(bx, 0), self._side - 1), min(max(by, 0), self._side - 1)

    def _ring(self, cx: int, cy: int, r: int) -> list[tuple[int, int]]:
        if r == 0:
            return [(cx, cy)]
        cells: list[tuple[int, int]] = []
        for bx in range(cx - r, cx + r + 1):
            cells.append((bx, cy - r))
            cells.append((bx, cy + r))
        for by in range(cy - r + 1, cy + r):
            cells.append((cx - r, by))
            cells.append((cx + r, by))
        return [(bx, by) for bx, by in cells if 0 <= bx < self._side and 0 <= by < self._side]

    def nearest(self, x: float, y: float) -> tuple[int, float] | None:
        if self._xs.size == 0:
            return None

        cx, cy = self._bucket_of(x, y)
        step = min(self._bw, self._bh)
        best_idx = -1
        best_dist = math.inf
        for r in range(self._side + 1):
            for key in self._ring(cx, cy, r):
                for idx in self._buckets.get(key, ()):
                    dist = float(np.hypot(self._xs[idx] - x, self._ys[idx] - y))
                    if dist < best_dist or (dist == best_dist and idx < best_idx):
                        best_idx, best_dist = idx, dist
            # Anything in ring r+1 or beyond is at least r bucket widths away.
            if best_idx >= 0 and best_dist < r * step:
                break
        return best_idx, best_dist


INDEX_FACTORIES: dict[str, IndexFactory] = {
    "brute_force": BruteForceIndex,
    "bucket": BucketIndex,
}


def build_index(name: str, xs: Sequence[float], ys: Sequence[float]) -> NearestPointIndex:
    try:
        factory = INDEX_FACTORIES[name]
    except KeyError as exc:
        raise ValueError(f"Unknown nearest-point index {name!r} (use {'|'.join(sorted(INDEX_FACTORIES))})") from exc
    return factory(xs, ys)
