import numpy as np
from scipy import sparse
from scipy.special import legendre, roots_jacobi


def make_lgr_nodes(n):
    r"""
    Constructs collocation points for Legendre-Gauss-Radau (LGR) quadrature.
    These are the roots of $P_n(\tau) + P_{n-1}(\tau)$, where $P_n$ is the
    `n`th order Legendre polynomial. One can show that
    $P_n(\tau) + P_{n-1}(\tau) = (1 + \tau) P^{(0,1)}_{n-1} (\tau)$, where
    $P^{(0,1)}_{n-1}$ is the (`n - 1`)th order Jacobi polynomial with
    $\alpha = 0, \beta = 1$.

    Parameters
    ----------
    n : int
        Number of collocation nodes. Must be `n >= 1`.

    Returns
    -------
    tau : (n,) array
        LGR collocation nodes on [-1, 1), sorted in ascending order.
    """
    n = _check_size_n(n, low=1)
    if n == 1:
        return np.array([-1.])
    tau, _ = roots_jacobi(n - 1, alpha=0, beta=1)
    return np.concatenate(([-1.], np.sort(tau)))


def make_lgr_weights(tau):
    """
    Constructs the LGR quadrature weights, `w`. The entries of `w` are given by
    ```
    w[0] = 2 / n ** 2
    ```
    and
    ```
    w[i] = (1 - tau[i]) / (n * legendre(n - 1)(tau[i])) ** 2,
    ```
    for `i = 1, ..., n - 1` where `n = tau.shape[0]` is the number of
    collocation points.

    Parameters
    ----------
    tau : (n_nodes,) array
        LGR collocation nodes on [-1, 1).

    Returns
    -------
    w : (n_nodes,) array
        LGR quadrature weights corresponding to the collocation points `tau`.
    """
    tau = np.asarray(tau, dtype=float)
    n = _check_size_n(tau.shape[0], low=1)
    legendre_eval = legendre(n - 1)(tau)

    w = np.empty_like(tau)
    w[0] = 2. / n ** 2
    w[1:] = (1. - tau[1:]) / (n * legendre_eval[1:]) ** 2
    return w


def make_diff_matrix(tau):
    """
    Constructs the differentiation matrix `D` of the Lagrange interpolating
    polynomial through the nodes `tau`, so that `D @ x` is the derivative of the
    interpolant of `x` at `tau`. The entries are computed in barycentric form,
    ```
    D[i, j] = (b[j] / b[i]) / (tau[i] - tau[j])
    ```
    for `i != j`, where `b[j] = 1 / prod(tau[j] - tau[k], k != j)`, and the
    diagonal is chosen so that each row sums to zero.

    Parameters
    ----------
    tau : (n_nodes,) array
        Distinct collocation nodes, `n_nodes >= 2`.

    Returns
    -------
    D : (n_nodes, n_nodes) array
        Differentiation matrix corresponding to the collocation points `tau`.
    """
    tau = np.asarray(tau, dtype=float)
    _check_size_n(tau.shape[0])

    diff = tau[:, None] - tau[None, :]
    np.fill_diagonal(diff, 1.)
    b = 1. / np.prod(diff, axis=1)

    D = (b[None, :] / b[:, None]) / diff
    np.fill_diagonal(D, 0.)
    np.fill_diagonal(D, -np.sum(D, axis=1))
    return D


def make_radau_element(n_nodes):
    """
    Constructs the nodes, quadrature weights, and differentiation matrix of a
    Radau IIA collocation element on [-1, 1]. The nodes are the initial point
    -1 followed by the `n_nodes - 1` flipped LGR points, which include the final
    point 1. Collocation at the non-initial nodes with these weights is the
    Radau IIA method of order `2 * n_nodes - 3`; with `n_nodes = 2` it is
    implicit Euler.

    Parameters
    ----------
    n_nodes : int
        Number of nodes per element, including both endpoints. Must be
        `n_nodes >= 2`.

    Returns
    -------
    tau : (n_nodes,) array
        Element nodes on [-1, 1], sorted in ascending order.
    w : (n_nodes,) array
        Quadrature weights, zero at the initial node. These sum to 2 and
        integrate polynomials of degree `2 * n_nodes - 4` exactly.
    D : (n_nodes, n_nodes) array
        Differentiation matrix corresponding to the nodes `tau`.
    """
    n_nodes = _check_size_n(n_nodes)

    lgr = make_lgr_nodes(n_nodes - 1)
    lgr_w = make_lgr_weights(lgr)

    tau = np.concatenate(([-1.], -lgr[::-1]))
    w = np.concatenate(([0.], lgr_w[::-1]))
    D = make_diff_matrix(tau)

    return tau, w, D


def make_mesh(boundaries, n_nodes):
    """
    Build a finite element collocation mesh. Each pair of consecutive
    `boundaries` defines an element, into which `n_nodes - 2` internal Radau
    nodes are inserted. Neighboring elements share their common boundary node.

    Parameters
    ----------
    boundaries : (n_elements + 1,) array
        Strictly increasing element boundaries.
    n_nodes : int
        Number of nodes per element, including both endpoints.

    Returns
    -------
    t : (n_points,) array
        All mesh points, `n_points = n_elements * (n_nodes - 1) + 1`.
    is_boundary : (n_points,) bool array
        True for points which are element boundaries.
    w : (n_points,) array
        Composite Radau quadrature weights, summing to
        `boundaries[-1] - boundaries[0]`. Zero at the first point.
    D : (n_points - 1, n_points) sparse array
        Global differentiation operator. Row `k` gives the derivative of the
        element interpolant at `t[k + 1]`, using only the nodes of the element
        which `t[k + 1]` belongs to (as a non-initial node).
    """
    boundaries = np.asarray(boundaries, dtype=float).reshape(-1)
    h = np.diff(boundaries)
    if h.size < 1 or np.any(h <= 0.):
        raise ValueError("boundaries must be strictly increasing with at least "
                         "two entries")

    tau, w_ref, D_ref = make_radau_element(n_nodes)
    n_el, m = h.shape[0], n_nodes - 1

    t = boundaries[:-1, None] + 0.5 * (tau[None, :] + 1.) * h[:, None]
    t = np.concatenate((t[:, :-1].reshape(-1), boundaries[-1:]))

    is_boundary = np.zeros(t.shape[0], dtype=bool)
    is_boundary[::m] = True
    t[is_boundary] = boundaries

    # Element e has nodes at global indices e * m, ..., e * m + m
    nodes = np.arange(n_el)[:, None] * m + np.arange(n_nodes)[None, :]
    w = np.zeros(t.shape[0])
    np.add.at(w, nodes.reshape(-1), (0.5 * h[:, None] * w_ref).reshape(-1))

    # Collocation equations are imposed at the non-initial nodes j = 1, ..., m
    e, j, k = np.meshgrid(np.arange(n_el), np.arange(1, n_nodes),
                          np.arange(n_nodes), indexing='ij')
    rows = (e * m + j - 1).reshape(-1)
    cols = (e * m + k).reshape(-1)
    data = (2. / h[e] * D_ref[j, k]).reshape(-1)

    D = sparse.csr_matrix((data, (rows, cols)), shape=(t.shape[0] - 1,
                                                       t.shape[0]))

    return t, is_boundary, w, D


def _check_size_n(n_nodes, low=2):
    """
    Checks that the number of collocation nodes is at least `low`.

    Parameters
    ----------
    n_nodes : int
        Number of collocation nodes.
    low : int, default=2
        Smallest allowed number of nodes.

    Returns
    -------
    n_nodes : int
        Number of collocation nodes, only returned if `n_nodes >= low`.

    Raises
    ------
    ValueError
        If `n_nodes < low`.
    """
    n_nodes = int(n_nodes)
    if n_nodes < low:
        raise ValueError(f"Number of nodes must be at least n_nodes >= {low}.")
    return n_nodes
