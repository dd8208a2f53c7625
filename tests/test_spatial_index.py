from __future__ import annotations

import numpy as np
import pytest

from options_heatmap.analysis.spatial_index import BruteForceIndex, BucketIndex, build_index


def test_bucket_index_matches_brute_force() -> None:
    rng = np.random.default_rng(7)
    xs = rng.uniform(60_000.0, 140_000.0, size=250)
    ys = rng.uniform(0.0, 12_000.0, size=250)
    brute = BruteForceIndex(xs, ys)
    bucket = BucketIndex(xs, ys)

    queries = np.column_stack([rng.uniform(40_000.0, 160_000.0, 400), rng.uniform(-1_000.0, 14_000.0, 400)])
    for qx, qy in queries:
        b_idx, b_dist = brute.nearest(float(qx), float(qy))
        k_idx, k_dist = bucket.nearest(float(qx), float(qy))
        assert k_idx == b_idx
        assert k_dist == pytest.approx(b_dist)


def test_bucket_index_clustered_points() -> None:
    xs = [1.0, 1.001, 1.002, 500.0, 1_000.0]
    ys = [1.0, 1.0, 1.0, 2.0, 3.0]
    brute = BruteForceIndex(xs, ys)
    for buckets in (1, 2, 5, 50):
        bucket = BucketIndex(xs, ys, buckets_per_side=buckets)
        for qx, qy in [(0.0, 0.0), (250.0, 1.5), (750.0, 2.5), (2_000.0, -5.0), (1.0015, 1.0)]:
            assert bucket.nearest(qx, qy)[0] == brute.nearest(qx, qy)[0]


def test_ties_resolve_to_lowest_index() -> None:
    xs = [10.0, 10.0, 0.0]
    ys = [5.0, 5.0, 0.0]
    for index in (BruteForceIndex(xs, ys), BucketIndex(xs, ys)):
        idx, dist = index.nearest(10.0, 5.0)
        assert idx == 0
        assert dist == 0.0


def test_collinear_points_do_not_break_bucketing() -> None:
    xs = [100.0, 100.0, 100.0]
    ys = [1.0, 2.0, 3.0]
    assert BucketIndex(xs, ys).nearest(0.0, 2.2) == BruteForceIndex(xs, ys).nearest(0.0, 2.2)


def test_empty_index_returns_none() -> None:
    assert BruteForceIndex([], []).nearest(1.0, 1.0) is None
    assert BucketIndex([], []).nearest(1.0, 1.0) is None


def test_mismatched_lengths_rejected() -> None:
    with pytest.raises(ValueError):
        BruteForceIndex([1.0, 2.0], [1.0])
    with pytest.raises(ValueError):
        BucketIndex([1.0], [])


def test_build_index_by_name() -> None:
    assert isinstance(build_index("brute_force", [1.0], [1.0]), BruteForceIndex)
    assert isinstance(build_index("bucket", [1.0], [1.0]), BucketIndex)
    with pytest.raises(ValueError, match="Unknown nearest-point index"):
        build_index("kd_tree", [1.0], [1.0])
