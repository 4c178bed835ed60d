import numpy as np
import pytest
from scipy.spatial import Delaunay

from tvflip.core.calculus import DiscreteCalculus, NormKind
from tvflip.core.surface import TriangulatedSurface
from tvflip.core.geometry import triangles_signed_areas


def make_surface(points, triangles):
    surf = TriangulatedSurface()
    for p in points:
        surf.add_vertex(p)
    for t in triangles:
        surf.add_triangle(*t)
    assert surf.build()
    return surf


def make_square_surface():
    pts = np.array([[0,0],[1,0],[1,1],[0,1]], dtype=float)
    return make_surface(pts, [[0,1,2],[0,2,3]])


def linear_values(points, a, b):
    v = a * points[:, 0] + b * points[:, 1]
    return np.repeat(v[:, None], 3, axis=1)


def test_grad_of_linear_function_is_area_weighted():
    surf = make_square_surface()
    calc = DiscreteCalculus(surf, NormKind.COLOR)
    u = linear_values(surf.points, 3.0, 5.0)
    for f in range(surf.nb_faces()):
        G = calc.grad(f, u)
        assert np.allclose(G[0], 1.5)
        assert np.allclose(G[1], 2.5)


def test_grad_all_matches_per_face_grad():
    pts = np.random.RandomState(2).rand(25, 2)
    T = Delaunay(pts).simplices.copy()
    neg = triangles_signed_areas(pts, T) < 0
    T[neg] = T[neg][:, [0, 2, 1]]
    surf = make_surface(pts, T)
    calc = DiscreteCalculus(surf, NormKind.COLOR)
    u = np.random.RandomState(5).rand(surf.nb_vertices(), 3) * 255
    G = calc.grad_all(u)
    assert G.shape == (surf.nb_faces(), 2, 3)
    for f in range(surf.nb_faces()):
        assert np.allclose(G[f], calc.grad(f, u))


def test_div_is_negative_adjoint_of_grad():
    pts = np.random.RandomState(4).rand(30, 2)
    T = Delaunay(pts).simplices.copy()
    neg = triangles_signed_areas(pts, T) < 0
    T[neg] = T[neg][:, [0, 2, 1]]
    surf = make_surface(pts, T)
    calc = DiscreteCalculus(surf, NormKind.COLOR)
    rng = np.random.RandomState(0)
    u = rng.randn(surf.nb_vertices(), 3)
    G = rng.randn(surf.nb_faces(), 2, 3)
    lhs = np.sum(calc.grad_all(u) * G)
    rhs = -np.sum(u * calc.div(G))
    assert lhs == pytest.approx(rhs, rel=1e-10, abs=1e-10)


def test_grayscale_uses_first_channel_only():
    surf = make_square_surface()
    calc = DiscreteCalculus(surf, NormKind.GRAYSCALE)
    assert calc.channels == 1
    u = np.random.RandomState(1).rand(4, 3)
    G = calc.grad_all(u)
    assert np.all(G[:, :, 1:] == 0.0)
    S = calc.div(np.ones((2, 2, 3)))
    assert np.all(S[:, 1:] == 0.0)


def test_norm_variants():
    surf = make_square_surface()
    G = np.array([[1.5, 1.5, 1.5], [2.5, 2.5, 2.5]])
    joint = DiscreteCalculus(surf, NormKind.COLOR).norm_y(G)
    separable = DiscreteCalculus(surf, NormKind.COLOR_SEPARABLE).norm_y(G)
    gray = DiscreteCalculus(surf, NormKind.GRAYSCALE).norm_y(G)
    assert joint == pytest.approx(np.sqrt(3 * 8.5))
    assert separable == pytest.approx(3 * np.sqrt(8.5))
    assert gray == pytest.approx(np.sqrt(8.5))
    calc = DiscreteCalculus(surf, NormKind.COLOR, power=1.0)
    assert calc.norm_x([1.0, 2.0, 2.0]) == pytest.approx(9.0)
    assert DiscreteCalculus(surf, NormKind.GRAYSCALE).norm_x([-3.0, 10.0, 10.0]) == pytest.approx(3.0)


def test_vectorized_norm_matches_scalar_norm():
    surf = make_square_surface()
    field = np.random.RandomState(3).randn(7, 2, 3)
    for kind in NormKind:
        calc = DiscreteCalculus(surf, kind, power=0.7)
        expected = [calc.norm_y(g) for g in field]
        assert np.allclose(calc.norm(field), expected)


def test_operators_follow_flips():
    surf = make_square_surface()
    calc = DiscreteCalculus(surf, NormKind.COLOR)
    u = np.array([[0, 0, 0], [0, 0, 0], [255, 255, 255], [0, 0, 0]], dtype=float)
    calc.grad_all(u)
    surf.flip(surf.arc(0, 2))
    G = calc.grad_all(u)
    for f in range(surf.nb_faces()):
        assert np.allclose(G[f], calc.grad(f, u))


def test_norm_kind_parse():
    assert NormKind.parse(None, color=True) is NormKind.COLOR
    assert NormKind.parse(None, color=False) is NormKind.GRAYSCALE
    assert NormKind.parse('color_separable') is NormKind.COLOR_SEPARABLE
    assert NormKind.parse('GRAYSCALE') is NormKind.GRAYSCALE
    with pytest.raises(ValueError):
        NormKind.parse('l1')


def test_malformed_shapes_raise():
    calc = DiscreteCalculus(make_square_surface())
    with pytest.raises(ValueError):
        calc.grad_all(np.zeros((4, 2)))
    with pytest.raises(ValueError):
        calc.div(np.zeros((2, 3, 3)))
