"""
Plain descriptions of infinite variables, constraints, and objectives. These
carry no state about any particular discretization; the transcriber expands
them over the supports.

Constraint and objective functions are evaluated on whole support grids at
once. They are called as `fun(v, t, xi)`, where

* `v` is a dict mapping variable names to arrays which broadcast against shape
    `(n_t, n_xi)`: variables over `('t', 'xi')` have shape `(n_t, n_xi)`,
    time-only variables `(n_t, 1)`, and uncertainty-only variables
    `(1, n_xi)`;
* `t` is a `(n_t, 1)` array of time supports;
* `xi` is a `(1, n_xi)` array of uncertainty samples.

Functions must be pointwise: the output at `[j, k]` may only depend on inputs
at `[j, k]` (after broadcasting). Partial derivatives, if supplied, are given by
`jac(v, t, xi)` returning a dict mapping each name in `depends_on` to an array
of partials with the same broadcasting rules. If `jac` is None, partials are
approximated by finite differences.
"""

import numpy as np

from ..errors import ConfigurationError
from ..utilities import approx_partials


_valid_domains = (('t',), ('xi',), ('t', 'xi'))


def _check_domains(domains, name):
    domains = tuple(domains)
    if domains not in _valid_domains:
        raise ConfigurationError(f"{name}: domains must be one of "
                                 f"{_valid_domains}, got {domains}")
    return domains


class InfiniteVariable:
    """
    A decision variable which is a function over one or more infinite domains.

    Parameters
    ----------
    name : str
        Unique variable name.
    domains : tuple, default=('t', 'xi')
        Domains the variable is indexed by; one of `('t',)`, `('xi',)`, or
        `('t', 'xi')`.
    lb : float, optional
        Lower bound, applied at every support.
    ub : float, optional
        Upper bound, applied at every support.
    start : float, optional
        Initial guess, applied at every support.
    """
    def __init__(self, name, domains=('t', 'xi'), lb=None, ub=None,
                 start=None):
        if not isinstance(name, str) or not name:
            raise ConfigurationError("Variable name must be a non-empty str")
        self.name = name
        self.domains = _check_domains(domains, name)
        self.lb = -np.inf if lb is None else float(lb)
        self.ub = np.inf if ub is None else float(ub)
        if self.lb > self.ub:
            raise ConfigurationError(f"{name}: lb = {self.lb} > ub = {self.ub}")
        self.start = start

    def __repr__(self):
        return (f"InfiniteVariable('{self.name}', domains={self.domains}, "
                f"lb={self.lb}, ub={self.ub})")


class _PointwiseFunction:
    """Mixin evaluating a pointwise function and its partial derivatives."""
    _fin_diff_method = '3-point'

    def _set_function(self, fun, depends_on, jac):
        if not callable(fun):
            raise ConfigurationError(f"{self.name}: fun must be callable")
        if jac is not None and not callable(jac):
            raise ConfigurationError(f"{self.name}: jac must be callable")
        if isinstance(depends_on, str):
            depends_on = (depends_on,)
        self.depends_on = tuple(depends_on)
        self._fun = fun
        self._jac = jac

    def evaluate(self, v, t, xi):
        return np.asarray(self._fun(v, t, xi), dtype=float)

    def partials(self, v, t, xi, f0=None):
        """
        Partial derivatives of the function with respect to each variable in
        `depends_on`, as a dict of arrays.
        """
        if self._jac is not None:
            partials = self._jac(v, t, xi)
            return {name: np.asarray(partials.get(name, 0.), dtype=float)
                    for name in self.depends_on}

        partials = dict()
        for name in self.depends_on:
            def fun(x):
                return self._fun({**v, name: x}, t, xi)
            partials[name] = approx_partials(fun, v[name], f0=f0,
                                             method=self._fin_diff_method)
        return partials


class Constraint:
    """
    Base class for constraints. Each constraint has a unique name and is
    universally quantified over `domains`, which determines how many scalar
    constraints it expands into.
    """
    kind = None

    def __init__(self, name, domains):
        if not isinstance(name, str) or not name:
            raise ConfigurationError("Constraint name must be a non-empty str")
        self.name = name
        self.domains = _check_domains(domains, name)

    def __repr__(self):
        return f"{type(self).__name__}('{self.name}', domains={self.domains})"


class DerivativeConstraint(Constraint, _PointwiseFunction):
    """
    Differential equation `d(state)/dt = rhs(v, t, xi)`, imposed for all time
    supports after the first (at collocation nodes) and all samples in the
    domains of `state`.

    Parameters
    ----------
    name : str
        Constraint name.
    state : `InfiniteVariable`
        Differentiated variable. Must be indexed by time.
    rhs : callable
        Right hand side, `rhs(v, t, xi)`.
    depends_on : tuple of str
        Names of variables `rhs` depends on.
    jac : callable, optional
        Partial derivatives of `rhs`.
    """
    kind = 'derivative'

    def __init__(self, name, state, rhs, depends_on, jac=None):
        if 't' not in state.domains:
            raise ConfigurationError(f"{name}: cannot differentiate "
                                     f"'{state.name}' which is not indexed by "
                                     f"time")
        super().__init__(name, state.domains)
        self.state = state.name
        self._set_function(rhs, depends_on, jac)


class PointConstraint(Constraint, _PointwiseFunction):
    """
    Pointwise constraint `lb <= fun(v, t, xi) <= ub`, imposed at every support
    in `domains`. Set `lb == ub` for an equality.

    Parameters
    ----------
    name : str
        Constraint name.
    fun : callable
        Constraint function, `fun(v, t, xi)`.
    depends_on : tuple of str
        Names of variables `fun` depends on.
    lb : float, default=-inf
        Lower bound.
    ub : float, default=inf
        Upper bound.
    domains : tuple, default=('t', 'xi')
        Domains the constraint is quantified over.
    jac : callable, optional
        Partial derivatives of `fun`.
    """
    kind = 'point'

    def __init__(self, name, fun, depends_on, lb=-np.inf, ub=np.inf,
                 domains=('t', 'xi'), jac=None):
        super().__init__(name, domains)
        self.lb, self.ub = float(lb), float(ub)
        if self.lb > self.ub or (np.isinf(self.lb) and np.isinf(self.ub)):
            raise ConfigurationError(f"{name}: invalid bounds [{self.lb}, "
                                     f"{self.ub}]")
        self._set_function(fun, depends_on, jac)


class InitialCondition(Constraint):
    """
    Pin a time-indexed variable at the initial time, `state(t0, xi) = value`,
    for every sample.

    Parameters
    ----------
    name : str
        Constraint name.
    state : `InfiniteVariable`
        Pinned variable. Must be indexed by time.
    value : float or callable
        Initial value, or a function `value(xi)` of the `(n_xi,)` samples.
    """
    kind = 'initial'

    def __init__(self, name, state, value):
        if 't' not in state.domains:
            raise ConfigurationError(f"{name}: '{state.name}' is not indexed "
                                     f"by time")
        super().__init__(name, state.domains)
        self.state = state.name
        self.value = value

    def evaluate(self, xi):
        """Initial values for `(n_xi,)` samples `xi`."""
        xi = np.asarray(xi, dtype=float).reshape(-1)
        if callable(self.value):
            value = self.value(xi)
        else:
            value = self.value
        return np.broadcast_to(np.asarray(value, dtype=float), xi.shape)


class ExpectationConstraint(Constraint, _PointwiseFunction):
    """
    Bound on a weighted average of `fun(v, t, xi)` over one domain,
    `lb <= E[fun] <= ub`, imposed for every support of the other domain.

    With `over='xi'` the average uses the sample probabilities, giving one
    scalar constraint per time support. With `over='t'` it is the time average
    `(1 / (tf - t0)) * sum(w * fun)` with the time quadrature weights `w`,
    giving one scalar constraint per sample.

    Parameters
    ----------
    name : str
        Constraint name.
    fun : callable
        Integrand, `fun(v, t, xi)`.
    depends_on : tuple of str
        Names of variables `fun` depends on.
    over : {'xi', 't'}, default='xi'
        Domain to average over.
    lb : float, default=-inf
        Lower bound.
    ub : float, default=inf
        Upper bound.
    jac : callable, optional
        Partial derivatives of `fun`.
    """
    kind = 'expectation'

    def __init__(self, name, fun, depends_on, over='xi', lb=-np.inf,
                 ub=np.inf, jac=None):
        if over not in ('xi', 't'):
            raise ConfigurationError(f"{name}: over must be 'xi' or 't'")
        super().__init__(name, ('t', 'xi'))
        self.over = over
        self.lb, self.ub = float(lb), float(ub)
        if self.lb > self.ub or (np.isinf(self.lb) and np.isinf(self.ub)):
            raise ConfigurationError(f"{name}: invalid bounds [{self.lb}, "
                                     f"{self.ub}]")
        self._set_function(fun, depends_on, jac)


class IntegralObjective(_PointwiseFunction):
    """
    Objective `E_xi[integral of integrand(v, t, xi) dt]` to be minimized.

    Parameters
    ----------
    integrand : callable
        Running cost, `integrand(v, t, xi)`.
    depends_on : tuple of str
        Names of variables `integrand` depends on.
    jac : callable, optional
        Partial derivatives of `integrand`.
    """
    name = 'objective'

    def __init__(self, integrand, depends_on, jac=None):
        self._set_function(integrand, depends_on, jac)
