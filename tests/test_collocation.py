import numpy as np
import pytest

from infinitecontrol import collocation


rng = np.random.default_rng()


@pytest.mark.parametrize('n', [-1, 0])
def test_make_lgr_small_n(n):
    with pytest.raises(ValueError):
        collocation.make_lgr_nodes(n)


@pytest.mark.parametrize('n', [-1, 0, 1])
def test_make_radau_element_small_n(n):
    with pytest.raises(ValueError):
        collocation.make_radau_element(n)


@pytest.mark.parametrize('n', [0, 1])
def test_make_diff_matrix_small_tau(n):
    with pytest.raises(ValueError):
        collocation.make_diff_matrix(rng.uniform(size=n))


@pytest.mark.parametrize('n', range(1, 13))
def test_lgr_integrate(n):
    """
    LGR should be able to integrate a polynomial of degree `2 * n - 2` to
    machine precision.
    """
    tau = collocation.make_lgr_nodes(n)
    assert tau.shape == (n,)
    assert tau[0] == -1.
    assert np.all(np.diff(tau) > 0.) and tau[-1] < 1.

    degree = 2 * n - 2
    P = np.polynomial.polynomial.Polynomial(rng.normal(size=degree + 1))
    expected_integral = P.integ(lbnd=-1.)(1.)

    w = collocation.make_lgr_weights(tau)
    np.testing.assert_allclose(np.dot(w, P(tau)), expected_integral)
    np.testing.assert_allclose(np.sum(w), 2.)


def test_radau_element_three_nodes():
    """Three nodes per element gives the two stage Radau IIA method, with
    stages at 1/3 and 1 and weights 3/4 and 1/4 on [0, 1]."""
    tau, w, D = collocation.make_radau_element(3)
    np.testing.assert_allclose((tau + 1.) / 2., [0., 1. / 3., 1.])
    np.testing.assert_allclose(w / 2., [0., 0.75, 0.25])


def test_radau_element_two_nodes():
    """Two nodes per element gives implicit Euler."""
    tau, w, D = collocation.make_radau_element(2)
    np.testing.assert_allclose(tau, [-1., 1.])
    np.testing.assert_allclose(w, [0., 2.])
    np.testing.assert_allclose(D, [[-0.5, 0.5], [-0.5, 0.5]])


@pytest.mark.parametrize('n', range(2, 13))
def test_radau_element(n):
    """
    Element weights should integrate polynomials of degree `2 * n - 4` and the
    differentiation matrix should differentiate polynomials of degree `n - 1`
    to machine precision.
    """
    tau, w, D = collocation.make_radau_element(n)
    assert tau.shape == w.shape == (n,)
    assert D.shape == (n, n)
    assert tau[0] == -1. and tau[-1] == 1.
    assert np.all(np.diff(tau) > 0.)
    assert w[0] == 0. and np.all(w[1:] > 0.)

    degree = 2 * n - 4
    P = np.polynomial.polynomial.Polynomial(rng.normal(size=degree + 1))
    np.testing.assert_allclose(np.dot(w, P(tau)), P.integ(lbnd=-1.)(1.))

    poly = np.polynomial.polynomial.Polynomial(rng.normal(size=n))
    np.testing.assert_allclose(np.matmul(D, poly(tau)), poly.deriv()(tau),
                               atol=1e-10)
    np.testing.assert_allclose(np.sum(D, axis=1), 0., atol=1e-10)


@pytest.mark.parametrize('n_nodes', [2, 3, 4])
def test_make_mesh(n_nodes):
    boundaries = np.sort(np.concatenate(([0., 10.],
                                         rng.uniform(0., 10., size=5))))
    t, is_boundary, w, D = collocation.make_mesh(boundaries, n_nodes)

    n_el = boundaries.shape[0] - 1
    assert t.shape == w.shape == (n_el * (n_nodes - 1) + 1,)
    assert D.shape == (t.shape[0] - 1, t.shape[0])
    assert np.all(np.diff(t) > 0.)
    np.testing.assert_array_equal(t[is_boundary], boundaries)

    # Each row differentiates polynomials of degree n_nodes - 1 exactly at the
    # non-initial nodes
    poly = np.polynomial.polynomial.Polynomial(rng.normal(size=n_nodes))
    np.testing.assert_allclose(D @ poly(t), poly.deriv()(t[1:]), rtol=1e-08,
                               atol=1e-08)

    # Composite quadrature is exact for degree 2 * n_nodes - 4 on each element
    assert w[0] == 0.
    np.testing.assert_allclose(np.sum(w), 10.)
    P = np.polynomial.polynomial.Polynomial(rng.normal(size=2 * n_nodes - 3))
    np.testing.assert_allclose(np.dot(w, P(t)), P.integ(lbnd=0.)(10.),
                               rtol=1e-08, atol=1e-06)


def test_make_mesh_backward_euler():
    """Two nodes per element gives backward differences."""
    boundaries = np.array([0., 0.5, 2., 3.])
    t, is_boundary, w, D = collocation.make_mesh(boundaries, 2)

    np.testing.assert_array_equal(t, boundaries)
    assert np.all(is_boundary)
    np.testing.assert_allclose(w, [0., 0.5, 1.5, 1.])

    x = rng.normal(size=t.shape)
    np.testing.assert_allclose(D @ x, np.diff(x) / np.diff(t))


@pytest.mark.parametrize('boundaries', [[0.], [1., 0.], [0., 1., 1.]])
def test_make_mesh_bad_boundaries(boundaries):
    with pytest.raises(ValueError):
        collocation.make_mesh(boundaries, 3)
