"""
Support generation: realize each infinite domain of a `Registry` as a finite,
ordered `SupportSet`. Time supports are an equidistant grid merged with any
extra requested points, refined with internal collocation nodes; uncertainty
supports are (quasi-)random samples with equal probability weights.
"""

import numpy as np
from scipy.stats import qmc

from .collocation import make_mesh
from .domains import Registry
from .errors import ConfigurationError


__all__ = ['SupportSet', 'Supports', 'generate_supports',
           'generate_time_supports', 'generate_uncertainty_supports',
           'trapezoid_weights']


# Relative tolerance (with respect to the interval span) within which two time
# points are considered to be the same support
_merge_rtol = 1e-09


class SupportSet:
    """
    Read-only ordered set of support points realizing an infinite domain.

    Parameters
    ----------
    name : str
        Name of the domain, `'t'` or `'xi'`.
    values : (n_supports,) array
        Support point values.
    weights : (n_supports,) array
        Quadrature weights (time) or probability weights (uncertainty).
    public : (n_supports,) bool array, optional
        Flags for user-facing supports. Internal collocation nodes are not
        public. Defaults to all True.
    """
    def __init__(self, name, values, weights, public=None):
        self.name = name
        self.values = _read_only(np.asarray(values, dtype=float).reshape(-1))
        self.weights = _read_only(np.asarray(weights, dtype=float).reshape(-1))
        if public is None:
            public = np.ones(self.values.shape, dtype=bool)
        self.public = _read_only(np.asarray(public, dtype=bool).reshape(-1))

        if not self.values.shape == self.weights.shape == self.public.shape:
            raise ConfigurationError("values, weights, and public must have "
                                     "the same shape")

    @property
    def size(self):
        """int. Number of supports."""
        return self.values.shape[0]

    def __len__(self):
        return self.size

    def __iter__(self):
        return iter(self.values)

    def __getitem__(self, idx):
        return self.values[idx]

    def index_of(self, value, atol=0.):
        """
        Find the position of a support value.

        Raises
        ------
        ConfigurationError
            If `value` is not a support point.
        """
        idx = np.flatnonzero(np.abs(self.values - value) <= atol)
        if idx.size != 1:
            raise ConfigurationError(f"{value} is not a support of "
                                     f"'{self.name}'")
        return int(idx[0])

    def __eq__(self, other):
        if not isinstance(other, SupportSet):
            return NotImplemented
        return (self.name == other.name
                and np.array_equal(self.values, other.values)
                and np.array_equal(self.weights, other.weights)
                and np.array_equal(self.public, other.public))

    def __repr__(self):
        return f"SupportSet('{self.name}', size={self.size})"


class Supports:
    """
    Output of the support generation stage.

    Parameters
    ----------
    registry : `Registry`
        The registry the supports were generated from.
    time : `SupportSet`
        Time supports, including internal collocation nodes.
    uncertainty : `SupportSet` or None
        Uncertainty samples, or None for deterministic problems.
    diff_matrix : (n_t - 1, n_t) sparse array
        Collocation differentiation operator on the time supports. See
        `collocation.make_mesh`.
    """
    def __init__(self, registry, time, uncertainty, diff_matrix):
        self.registry = registry
        self.time = time
        self.uncertainty = uncertainty
        self.diff_matrix = diff_matrix

    @property
    def n_t(self):
        """int. Number of time supports."""
        return self.time.size

    @property
    def n_xi(self):
        """int. Number of uncertainty samples (1 if deterministic)."""
        if self.uncertainty is None:
            return 1
        return self.uncertainty.size

    @property
    def xi(self):
        """(n_xi,) array. Uncertainty sample values (NaN if
        deterministic)."""
        if self.uncertainty is None:
            return np.full(1, np.nan)
        return self.uncertainty.values

    @property
    def probabilities(self):
        """(n_xi,) array. Probability weights of the uncertainty samples."""
        if self.uncertainty is None:
            return np.ones(1)
        return self.uncertainty.weights

    def __getitem__(self, name):
        if name == 't':
            return self.time
        if name == 'xi' and self.uncertainty is not None:
            return self.uncertainty
        raise KeyError(name)


def generate_supports(registry):
    """
    Realize all domains of a `Registry` as `SupportSet`s.

    Parameters
    ----------
    registry : `Registry`
        Domains and discretization directives.

    Returns
    -------
    supports : `Supports`
        Time and uncertainty supports and the collocation differentiation
        operator.

    Raises
    ------
    ConfigurationError
        If any domain or discretization directive is invalid.
    """
    if not isinstance(registry, Registry):
        raise ConfigurationError("registry must be a Registry")

    time, diff_matrix = generate_time_supports(registry.time,
                                               registry.time_discretization)

    if registry.uncertainty is None:
        uncertainty = None
    else:
        uncertainty = generate_uncertainty_supports(
            registry.uncertainty, registry.sample_discretization)

    return Supports(registry, time, uncertainty, diff_matrix)


def generate_time_supports(interval, discretization):
    """
    Generate time supports for an `Interval`. The public supports are
    `discretization.num_points` equally spaced points on `[t0, tf]` merged with
    `discretization.extra_points`, deduplicated and sorted. Each pair of
    consecutive public supports bounds a finite element into which
    `nodes_per_element - 2` internal collocation nodes are inserted.

    Parameters
    ----------
    interval : `Interval`
        Time domain.
    discretization : `TimeDiscretization`
        Discretization directive.

    Returns
    -------
    supports : `SupportSet`
        Time supports with quadrature weights summing to `tf - t0`. With two
        nodes per element these are the trapezoid rule weights. With more
        nodes they are the composite Radau weights matching the collocation
        scheme, see `collocation.make_mesh`.
    diff_matrix : (n_t - 1, n_t) sparse array
        Collocation differentiation operator.

    Raises
    ------
    ConfigurationError
        If an extra point lies outside of `[t0, tf]`.
    """
    t0, tf = interval.t0, interval.tf

    extra = discretization.extra_points
    outside = ~interval.contains(extra)
    if np.any(outside):
        raise ConfigurationError(f"Extra time points {extra[outside]} lie "
                                 f"outside of [{t0}, {tf}]")

    grid = np.linspace(t0, tf, discretization.num_points)
    points = np.sort(np.concatenate((grid, np.clip(extra, t0, tf))))

    # Merge points closer than the tolerance, keeping the first of each cluster
    tol = _merge_rtol * interval.span
    keep = np.concatenate(([True], np.diff(points) > tol))
    points = points[keep]
    # The grid contains both endpoints, so these are always the first and last
    # clusters. Represent them exactly.
    points[0], points[-1] = t0, tf

    t, public, weights, diff_matrix = make_mesh(
        points, discretization.nodes_per_element)
    if discretization.nodes_per_element == 2:
        weights = trapezoid_weights(t)

    supports = SupportSet('t', t, weights, public=public)
    return supports, diff_matrix


def generate_uncertainty_supports(distribution, discretization):
    """
    Sample an uncertain parameter `Distribution`. Each sample has probability
    weight `1 / num_samples`.

    Parameters
    ----------
    distribution : `Distribution`
        Uncertainty domain.
    discretization : `SampleDiscretization`
        Number of samples, sampling method, and seed.

    Returns
    -------
    supports : `SupportSet`
        Samples in the order they were drawn.
    """
    n = discretization.num_samples
    rng = np.random.default_rng(discretization.seed)

    if discretization.method == 'random':
        values = distribution.sample(n, rng)
    else:
        if discretization.method == 'sobol':
            engine = qmc.Sobol(d=1, scramble=True, seed=rng)
        else:
            engine = qmc.LatinHypercube(d=1, seed=rng)
        values = distribution.ppf(engine.random(n).reshape(-1))

    if not np.all(np.isfinite(values)):
        raise ConfigurationError(f"Sampling {distribution} produced non-finite "
                                 f"values")

    return SupportSet('xi', values, np.full(n, 1. / n))


def trapezoid_weights(t):
    """
    Trapezoid rule quadrature weights on a sorted grid, such that
    `np.dot(trapezoid_weights(t), f(t))` approximates the integral of `f` over
    `[t[0], t[-1]]`. The weights sum to `t[-1] - t[0]`.

    Parameters
    ----------
    t : (n_points,) array
        Sorted grid points, `n_points >= 2`.

    Returns
    -------
    w : (n_points,) array
        Quadrature weights.
    """
    t = np.asarray(t, dtype=float).reshape(-1)
    if t.shape[0] < 2:
        raise ConfigurationError("At least two time points are needed for "
                                 "quadrature")
    h = np.diff(t)
    w = np.zeros_like(t)
    w[:-1] += 0.5 * h
    w[1:] += 0.5 * h
    return w


def _read_only(array):
    array = np.array(array)
    array.flags.writeable = False
    return array
