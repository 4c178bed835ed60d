import numpy as np
import pytest

from tvflip import TVTriangulation
from tvflip.core.energy import EnergyModel


STEP_IMAGE = np.array([
    [0,   0,   0],
    [0,   0, 255],
    [0, 255, 255],
], dtype=float)


def make_step_session(**kw):
    return TVTriangulation.from_image(STEP_IMAGE, **kw)


def assert_cache_consistent(tvt):
    for f in range(tvt.surface.nb_faces()):
        expected = tvt.calculus.norm_y(tvt.calculus.grad(f, tvt.u))
        assert tvt.energy_tv(f) == pytest.approx(expected, abs=1e-9)
    assert tvt.get_energy_tv() == pytest.approx(np.sum(tvt.energy.per_face), abs=1e-7)


def test_step_image_initial_energy():
    tvt = make_step_session()
    assert tvt.surface.nb_vertices() == 9
    assert tvt.surface.nb_faces() == 8
    per_face = [tvt.energy_tv(f) for f in range(8)]
    assert per_face[:2] == pytest.approx([0.0, 0.0])
    assert per_face[2:] == pytest.approx([127.5] * 6)
    assert tvt.get_energy_tv() == pytest.approx(765.0)
    assert_cache_consistent(tvt)


def test_grid_faces_are_counter_clockwise():
    from tvflip.core.geometry import triangles_signed_areas
    tvt = make_step_session()
    areas = triangles_signed_areas(tvt.surface.points, tvt.surface.triangles)
    assert np.allclose(areas, 0.5)


def test_virtual_triangle_energy_is_not_cached():
    tvt = make_step_session()
    before = tvt.energy.per_face.copy()
    e = tvt.energy.compute_energy_tv_vertices(2, 5, 4, tvt.u)
    assert e == pytest.approx(127.5 * np.sqrt(2.0))
    assert np.array_equal(tvt.energy.per_face, before)


def test_compute_energy_tv_single_face_keeps_total():
    tvt = make_step_session()
    tvt.u[5] = 0.0
    e = tvt.compute_energy_tv(2)
    assert tvt.energy_tv(2) == pytest.approx(e)
    assert tvt.get_energy_tv() == pytest.approx(np.sum(tvt.energy.per_face))
    total = tvt.compute_energy_tv()
    assert total == pytest.approx(tvt.get_energy_tv())
    assert_cache_consistent(tvt)


def test_energy_model_resize_and_adjust():
    tvt = make_step_session()
    model = EnergyModel(tvt.calculus, 2)
    model.set_face(1, 4.0)
    model.adjust_total(4.0)
    model.resize(5)
    assert len(model) == 5
    assert model.energy_tv(1) == 4.0
    assert model.energy_tv(4) == 0.0
    assert model.total == 4.0


def test_power_changes_energy():
    tvt = make_step_session(power=1.0)
    # (127.5^2)^1 per non flat face
    assert tvt.get_energy_tv() == pytest.approx(6 * 127.5 ** 2)
