import numpy as np

from infinitecontrol.domains import Interval, UniformDistribution
from infinitecontrol.problem import (InfiniteProblem, InfiniteVariable,
                                     DerivativeConstraint, PointConstraint,
                                     InitialCondition, ExpectationConstraint,
                                     IntegralObjective)


class ScalarLQ(InfiniteProblem):
    """
    Deterministic scalar linear-quadratic problem
    ```
    minimize    integral of x ** 2 + u ** 2 dt over [0, tf]
    subject to  dx/dt = u,  x(0) = x0,  u_lb <= u <= u_ub.
    ```
    With inactive control bounds the solution is
    `x(t) = x0 * cosh(tf - t) / cosh(tf)` with optimal cost
    `x0 ** 2 * tanh(tf)`. No analytic partials are given, so the transcription
    falls back on finite differences. If `x_max` is set, `x <= x_max` is
    imposed at every time.
    """
    _required_parameters = {'x0': 1., 'tf': 1.}
    _optional_parameters = {'u_lb': -2., 'u_ub': 2., 'x_max': None}

    @property
    def time_domain(self):
        return Interval(0., self.parameters.tf)

    @property
    def variables(self):
        return [InfiniteVariable('x', domains=('t',)),
                InfiniteVariable('u', domains=('t',), lb=self.parameters.u_lb,
                                 ub=self.parameters.u_ub)]

    @property
    def constraints(self):
        x, _ = self.variables
        constraints = [
            DerivativeConstraint('x_constr', x, lambda v, t, xi: v['u'],
                                 ('u',)),
            InitialCondition('x_init', x, self.parameters.x0)]
        if self.parameters.x_max is not None:
            constraints.append(PointConstraint(
                'x_max_constr', lambda v, t, xi: v['x'], ('x',),
                ub=self.parameters.x_max, domains=('t',)))
        return constraints

    @property
    def objective(self):
        return IntegralObjective(lambda v, t, xi: v['x'] ** 2 + v['u'] ** 2,
                                 ('x', 'u'))

    def optimal_cost(self):
        return self.parameters.x0 ** 2 * np.tanh(self.parameters.tf)


class UncertainLQ(InfiniteProblem):
    """
    Scalar linear-quadratic problem with an uncertain initial condition,
    `x(0, xi) = xi`, `xi ~ U[0.5, 1.5]`, and a time-only control shared by all
    samples. A bound on the expected state is imposed at every time.
    """
    _required_parameters = {'tf': 1., 'x_mean_max': 10.}

    @property
    def time_domain(self):
        return Interval(0., self.parameters.tf)

    @property
    def uncertainty(self):
        return UniformDistribution(0.5, 1.5)

    @property
    def variables(self):
        return [InfiniteVariable('x'),
                InfiniteVariable('u', domains=('t',), lb=-2., ub=2.)]

    @property
    def constraints(self):
        x, _ = self.variables
        return [
            DerivativeConstraint('x_constr', x,
                                 lambda v, t, xi: v['u'] - 0.5 * v['x'],
                                 ('u', 'x')),
            InitialCondition('x_init', x, lambda xi: xi),
            ExpectationConstraint('x_mean', lambda v, t, xi: v['x'], ('x',),
                                  ub=self.parameters.x_mean_max)]

    @property
    def objective(self):
        return IntegralObjective(lambda v, t, xi: v['x'] ** 2 + v['u'] ** 2,
                                 ('x', 'u'))
