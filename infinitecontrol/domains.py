"""
Infinite domains over which decision variables are defined, and the directives
used to discretize them. A `Registry` bundles the time domain, the uncertainty
domain, and their discretizations; it is the first stage of the transcription
pipeline and the input to `supports.generate_supports`.
"""

import numpy as np
from scipy import stats

from .errors import ConfigurationError
from .utilities import check_int_input, check_float_input


__all__ = ['InfiniteDomain', 'Interval', 'Distribution', 'UniformDistribution',
           'NormalDistribution', 'TimeDiscretization', 'SampleDiscretization',
           'Registry']


class InfiniteDomain:
    """Base class for immutable infinite domains."""
    __slots__ = ()

    def __setattr__(self, name, value):
        raise AttributeError(f"{type(self).__name__} is immutable")

    def _set(self, **attrs):
        for name, value in attrs.items():
            object.__setattr__(self, name, value)

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return all(getattr(self, a) == getattr(other, a)
                   for a in self.__slots__)

    def __hash__(self):
        return hash((type(self),) + tuple(getattr(self, a)
                                          for a in self.__slots__))


class Interval(InfiniteDomain):
    """
    Closed interval `[t0, tf]`, typically the time horizon.

    Parameters
    ----------
    t0 : float
        Initial time.
    tf : float
        Final time. Must have `tf > t0`.
    """
    __slots__ = ('t0', 'tf')

    def __init__(self, t0, tf):
        t0 = check_float_input(t0, 't0')
        tf = check_float_input(tf, 'tf')
        if not tf > t0:
            raise ConfigurationError(f"Interval must have positive span, got "
                                     f"[{t0}, {tf}]")
        self._set(t0=t0, tf=tf)

    @property
    def span(self):
        """float. Length of the interval, `tf - t0`."""
        return self.tf - self.t0

    def contains(self, t, rtol=1e-12):
        """Check which points `t` lie in the interval, up to a tolerance
        relative to the span."""
        tol = rtol * self.span
        t = np.asarray(t)
        return np.logical_and(t >= self.t0 - tol, t <= self.tf + tol)

    def __repr__(self):
        return f"Interval({self.t0}, {self.tf})"


class Distribution(InfiniteDomain):
    """
    Probability distribution of an uncertain parameter, backed by
    `scipy.stats`.

    Parameters
    ----------
    kind : {'uniform', 'normal'}
        Distribution family.
    **params : dict
        Family parameters. For 'uniform', `lb` and `ub` with `ub > lb`. For
        'normal', `loc` and `scale` with `scale > 0`.
    """
    __slots__ = ('kind', 'params')

    _kinds = {'uniform': ('lb', 'ub'), 'normal': ('loc', 'scale')}

    def __init__(self, kind, **params):
        if kind not in self._kinds:
            raise ConfigurationError(f"kind = {kind} is not recognized. Valid "
                                     f"options are {list(self._kinds)}")

        names = self._kinds[kind]
        if set(params) != set(names):
            raise ConfigurationError(f"A '{kind}' distribution requires "
                                     f"parameters {names}, got {list(params)}")

        params = {k: check_float_input(params[k], k) for k in names}

        if kind == 'uniform' and not params['ub'] > params['lb']:
            raise ConfigurationError(f"Uniform distribution must have positive "
                                     f"span, got [{params['lb']}, "
                                     f"{params['ub']}]")
        if kind == 'normal' and not params['scale'] > 0.:
            raise ConfigurationError("Normal distribution must have scale > 0")

        self._set(kind=kind, params=tuple(params.items()))

    def __getattr__(self, name):
        for key, val in object.__getattribute__(self, 'params'):
            if key == name:
                return val
        raise AttributeError(name)

    @property
    def frozen(self):
        """The corresponding frozen `scipy.stats` distribution."""
        p = dict(self.params)
        if self.kind == 'uniform':
            return stats.uniform(loc=p['lb'], scale=p['ub'] - p['lb'])
        return stats.norm(loc=p['loc'], scale=p['scale'])

    def sample(self, n_samples, rng):
        """Draw `n_samples` independent samples using a numpy `Generator`."""
        p = dict(self.params)
        if self.kind == 'uniform':
            return rng.uniform(low=p['lb'], high=p['ub'], size=n_samples)
        return rng.normal(loc=p['loc'], scale=p['scale'], size=n_samples)

    def ppf(self, q):
        """Inverse cumulative distribution function."""
        return self.frozen.ppf(q)

    def __repr__(self):
        params = ', '.join(f"{k}={v}" for k, v in self.params)
        return f"Distribution('{self.kind}', {params})"


def UniformDistribution(lb, ub):
    """Continuous uniform distribution on `[lb, ub]`."""
    return Distribution('uniform', lb=lb, ub=ub)


def NormalDistribution(loc, scale):
    """Normal distribution with mean `loc` and standard deviation `scale`."""
    return Distribution('normal', loc=loc, scale=scale)


class TimeDiscretization:
    """
    Discretization directive for a time `Interval`.

    Parameters
    ----------
    num_points : int, default=101
        Number of equally spaced points on `[t0, tf]`. Must be at least 2.
    nodes_per_element : int, default=2
        Number of Radau collocation nodes per finite element, including both
        element endpoints. `nodes_per_element - 2` internal nodes are added to
        each element. The default of 2 gives implicit Euler.
    extra_points : array_like, default=()
        Additional time points to merge into the grid.
    """
    def __init__(self, num_points=101, nodes_per_element=2, extra_points=()):
        self.num_points = check_int_input(num_points, 'num_points', low=2)
        self.nodes_per_element = check_int_input(nodes_per_element,
                                                 'nodes_per_element', low=2)
        extra_points = np.asarray(extra_points, dtype=float).reshape(-1)
        if not np.all(np.isfinite(extra_points)):
            raise ConfigurationError("extra_points must be finite")
        self.extra_points = extra_points

    def __repr__(self):
        return (f"TimeDiscretization(num_points={self.num_points}, "
                f"nodes_per_element={self.nodes_per_element}, "
                f"extra_points={self.extra_points.tolist()})")


class SampleDiscretization:
    """
    Discretization directive for an uncertain parameter `Distribution`. Each
    sample receives equal probability weight `1 / num_samples`.

    Parameters
    ----------
    num_samples : int, default=10
        Number of samples. Must be at least 1.
    method : {'random', 'sobol', 'latin_hypercube'}, default='random'
        Sampling method. 'random' draws independent pseudo-random samples with
        `numpy.random.default_rng(seed)`. The quasi-random methods use
        `scipy.stats.qmc` and map the unit samples through the inverse CDF.
    seed : int, optional
        Random seed. Fixing the seed makes support generation reproducible.
    """
    _methods = ('random', 'sobol', 'latin_hypercube')

    def __init__(self, num_samples=10, method='random', seed=None):
        self.num_samples = check_int_input(num_samples, 'num_samples', low=1)
        if method not in self._methods:
            raise ConfigurationError(f"method = {method} is not recognized. "
                                     f"Valid options are {self._methods}")
        self.method = method
        if seed is not None:
            seed = check_int_input(seed, 'seed', low=0)
        self.seed = seed

    def __repr__(self):
        return (f"SampleDiscretization(num_samples={self.num_samples}, "
                f"method='{self.method}', seed={self.seed})")


class Registry:
    """
    Holds the infinite domains of a problem together with their discretization
    directives. Domains are referred to by the names `'t'` (time) and `'xi'`
    (uncertain parameter).

    Parameters
    ----------
    time : `Interval`
        Time horizon.
    uncertainty : `Distribution`, optional
        Distribution of the uncertain parameter. If omitted the problem is
        deterministic and only time-indexed variables may be declared.
    time_discretization : `TimeDiscretization`, optional
        Defaults to `TimeDiscretization()`.
    sample_discretization : `SampleDiscretization`, optional
        Defaults to `SampleDiscretization()`.
    """
    def __init__(self, time, uncertainty=None, time_discretization=None,
                 sample_discretization=None):
        if not isinstance(time, Interval):
            raise ConfigurationError("time must be an Interval")
        if uncertainty is not None and not isinstance(uncertainty,
                                                      Distribution):
            raise ConfigurationError("uncertainty must be a Distribution")

        self.time = time
        self.uncertainty = uncertainty

        if time_discretization is None:
            time_discretization = TimeDiscretization()
        if sample_discretization is None:
            sample_discretization = SampleDiscretization()

        self.set_time_discretization(time_discretization)
        self.set_sample_discretization(sample_discretization)

    @property
    def domains(self):
        """dict. Maps domain names to the registered domains."""
        domains = {'t': self.time}
        if self.uncertainty is not None:
            domains['xi'] = self.uncertainty
        return domains

    def set_time_discretization(self, discretization):
        if not isinstance(discretization, TimeDiscretization):
            raise ConfigurationError("time discretization must be a "
                                     "TimeDiscretization")
        self.time_discretization = discretization

    def set_sample_discretization(self, discretization):
        if not isinstance(discretization, SampleDiscretization):
            raise ConfigurationError("sample discretization must be a "
                                     "SampleDiscretization")
        self.sample_discretization = discretization

    def add_time_points(self, points):
        """Merge additional explicit time points into the time
        discretization."""
        d = self.time_discretization
        extra = np.concatenate((d.extra_points,
                                np.asarray(points, dtype=float).reshape(-1)))
        self.time_discretization = TimeDiscretization(
            num_points=d.num_points, nodes_per_element=d.nodes_per_element,
            extra_points=extra)

    def __repr__(self):
        return (f"Registry(time={self.time!r}, "
                f"uncertainty={self.uncertainty!r}, "
                f"time_discretization={self.time_discretization!r}, "
                f"sample_discretization={self.sample_discretization!r})")
