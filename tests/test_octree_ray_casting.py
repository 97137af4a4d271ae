from __future__ import annotations

import math

import pytest
import torch

from octogrid import BoundaryHitError, OcTreeBase, OctreeConfig, OutOfBoundsError
from octogrid.ray_casting import iter_ray


def test_ray_from_point_to_itself_is_empty() -> None:
    tree = OcTreeBase(0.1)
    ray = tree.compute_ray((1.0, 2.0, 3.0), (1.0, 2.0, 3.0))
    assert ray.shape == (0, 3)
    assert ray.dtype == torch.float64


def test_ray_within_single_voxel_is_empty() -> None:
    tree = OcTreeBase(0.5)
    assert tree.compute_ray((0.01, 0.01, 0.01), (0.49, 0.3, 0.2)).shape == (0, 3)
    assert tree.compute_ray_keys((0.01, 0.01, 0.01), (0.49, 0.3, 0.2)).shape == (0, 3)


def test_single_axis_ray_steps_by_resolution() -> None:
    tree = OcTreeBase(0.5)
    origin = (0.25, 0.25, 0.25)
    end = (3.1, 0.25, 0.25)

    ray = tree.compute_ray(origin, end)
    expected = torch.tensor(
        [[x, 0.25, 0.25] for x in (0.75, 1.25, 1.75, 2.25, 2.75)],
        dtype=torch.float64,
    )
    assert torch.equal(ray, expected)
    steps = ray[1:, 0] - ray[:-1, 0]
    assert torch.all(steps == 0.5)


def test_single_axis_ray_negative_direction() -> None:
    tree = OcTreeBase(0.5)
    ray = tree.compute_ray((0.25, 0.25, 0.25), (-2.1, 0.25, 0.25))
    assert ray[:, 0].tolist() == [-0.25, -0.75, -1.25, -1.75]
    assert torch.all(ray[:, 1:] == 0.25)


def test_end_voxel_is_excluded_when_its_center_lies_beyond_end() -> None:
    tree = OcTreeBase(0.5)
    end = (3.1, 0.25, 0.25)
    end_center = tree.gen_vals(tree.gen_keys(end))
    ray = tree.compute_ray((0.25, 0.25, 0.25), end)
    assert end_center == (3.25, 0.25, 0.25)
    assert end_center not in [tuple(row) for row in ray.tolist()]


def test_diagonal_tie_prefers_lower_axis() -> None:
    tree = OcTreeBase(0.5)
    # origin at a cell center; x and y borders are equally far along the ray
    keys = tree.compute_ray_keys((0.25, 0.25, 0.25), (1.25, 1.25, 0.25))
    assert keys.tolist() == [
        [32769, 32768, 32768],
        [32769, 32769, 32768],
        [32770, 32769, 32768],
        [32770, 32770, 32768],
    ]


def test_triple_tie_prefers_x_then_y_then_z() -> None:
    tree = OcTreeBase(0.5)
    keys = tree.compute_ray_keys((0.25, 0.25, 0.25), (1.25, 1.25, 1.25))
    assert keys[:3].tolist() == [
        [32769, 32768, 32768],
        [32769, 32769, 32768],
        [32769, 32769, 32769],
    ]


def test_ray_visits_face_connected_voxels() -> None:
    tree = OcTreeBase(0.1)
    origin = (0.03, -0.71, 1.27)
    end = (2.49, 1.13, -0.52)
    keys = tree.compute_ray_keys(origin, end)
    ray = tree.compute_ray(origin, end)

    assert keys.shape[0] == ray.shape[0] > 0
    # every step moves exactly one axis by exactly one cell
    deltas = (keys[1:] - keys[:-1]).abs()
    assert torch.all(deltas.sum(dim=1) == 1)
    first_step = (keys[0] - torch.tensor(tree.gen_keys(origin))).abs()
    assert int(first_step.sum()) == 1

    # centers are the cell centers of the keys, and no farther than the end
    for key_row, center_row in zip(keys.tolist(), ray.tolist()):
        assert tuple(center_row) == tree.gen_vals(key_row)
    length = math.dist(origin, end)
    dists = torch.linalg.norm(ray - torch.tensor(origin, dtype=torch.float64), dim=1)
    assert torch.all(dists <= length + 1e-12)


def test_ray_never_revisits_or_includes_origin_voxel() -> None:
    tree = OcTreeBase(0.25)
    a = (-1.1, 0.4, 0.9)
    b = (1.3, -0.2, 0.1)
    for origin, end in ((a, b), (b, a)):
        keys = [tuple(k) for k in tree.compute_ray_keys(origin, end).tolist()]
        assert len(keys) > 0
        assert len(set(keys)) == len(keys)
        assert tree.gen_keys(origin) not in keys


def test_ray_out_of_bounds_endpoint() -> None:
    tree = OcTreeBase(0.1)
    with pytest.raises(OutOfBoundsError) as info:
        tree.compute_ray((0.0, 0.0, 0.0), (0.0, 0.0, 1e9))
    assert info.value.axis == 2
    assert "end" in info.value.operation

    with pytest.raises(OutOfBoundsError) as info:
        tree.compute_ray((0.0, -1e9, 0.0), (0.0, 0.0, 0.0))
    assert info.value.axis == 1
    assert "origin" in info.value.operation


def test_ray_hitting_the_key_boundary() -> None:
    tree = OcTreeBase(1.0)
    # origin in key 65534, end in key 65535 (the last valid one); the next
    # step along +x would leave the key range before the end is passed.
    origin = (32766.5, 0.5, 0.5)
    end = (32767.9, 0.5, 0.5)
    with pytest.raises(BoundaryHitError) as info:
        tree.compute_ray(origin, end)
    assert info.value.axis == 0
    assert info.value.n_visited == 1


def test_iter_ray_yields_before_boundary_failure() -> None:
    tree = OcTreeBase(1.0)
    walk = iter_ray(tree, (32766.5, 0.5, 0.5), (32767.9, 0.5, 0.5))
    key, center = next(walk)
    assert key == (65535, 32768, 32768)
    assert center == (32767.5, 0.5, 0.5)
    with pytest.raises(BoundaryHitError):
        next(walk)


def test_ray_uses_configured_dtype() -> None:
    tree = OcTreeBase(config=OctreeConfig(resolution=0.5, precision="single"))
    ray = tree.compute_ray((0.25, 0.25, 0.25), (3.1, 0.25, 0.25))
    assert ray.dtype == torch.float32
    assert ray.shape == (5, 3)
