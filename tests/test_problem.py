import numpy as np
import pytest

from infinitecontrol.errors import ConfigurationError
from infinitecontrol.domains import Interval, TimeDiscretization
from infinitecontrol.problem import (ProblemParameters, InfiniteProblem,
                                     InfiniteVariable, DerivativeConstraint,
                                     PointConstraint, InitialCondition,
                                     ExpectationConstraint, IntegralObjective,
                                     SEIRProblem)
from infinitecontrol.utilities import approx_partials

from ._problems import ScalarLQ, UncertainLQ


rng = np.random.default_rng()


def _random_grid(problem, n_t=7, n_xi=4):
    t = np.sort(rng.uniform(0., 200., size=n_t)).reshape(-1, 1)
    xi = rng.uniform(0.1, 0.6, size=(1, n_xi))
    v = dict()
    for var in problem.variables:
        shape = (n_t if 't' in var.domains else 1,
                 n_xi if 'xi' in var.domains else 1)
        v[var.name] = rng.uniform(0., 1., size=shape)
    return v, t, xi


def test_problem_parameters():
    params = ProblemParameters(required=['a'], a=1., b=None)
    assert params.a == 1. and params.b is None
    assert params.as_dict() == {'a': 1., 'b': None}

    params.update(b=2.)
    assert params.b == 2.

    with pytest.raises(ConfigurationError):
        params.update(a=None)
    assert params.a == 1.
    assert 'a' in params and params['b'] == 2.

    with pytest.raises(TypeError):
        ProblemParameters(update_fun='not callable')


def test_problem_parameters_rollback():
    """A rejected update leaves all parameters and derived attributes as they
    were."""
    problem = SEIRProblem()
    x0 = problem.parameters.x0.copy()
    with pytest.raises(ConfigurationError):
        problem.parameters.update(N=1e3, gamma=-1.)
    assert problem.parameters.N == 1e5
    assert problem.parameters['gamma'] == 0.303
    np.testing.assert_array_equal(problem.parameters.x0, x0)


def test_seir_defaults():
    problem = SEIRProblem()
    p = problem.parameters
    assert p.gamma == 0.303 and p.beta == 0.727 and p.N == 1e5
    assert p.i_max == 0.02 and p.eps == 0.005
    np.testing.assert_allclose(p.x0, [1. - 1e-05, 1e-05, 0., 0.])
    assert problem.time_domain == Interval(0., 200.)
    assert problem.uncertainty.lb == 0.1 and problem.uncertainty.ub == 0.6

    u = [var for var in problem.variables if var.name == 'u'][0]
    assert u.domains == ('t',)
    assert u.lb == 0. and u.ub == 0.8

    problem.validate()
    problem.validate(problem.make_registry())


@pytest.mark.parametrize('params', [{'xi_min': 0.7}, {'gamma': 0.},
                                    {'tf': -1.}, {'u_ub': 1.5},
                                    {'expectation': 'sample'},
                                    {'N': np.nan}])
def test_seir_bad_parameters(params):
    with pytest.raises(ConfigurationError):
        SEIRProblem(**params)

    problem = SEIRProblem()
    with pytest.raises(ConfigurationError):
        problem.parameters.update(**params)


def test_seir_parameter_update():
    """Declarations are rebuilt from the current parameters."""
    problem = SEIRProblem()
    problem.parameters.update(eps=0.01, i_max=0.05)
    constraints = {con.name: con for con in problem.constraints}
    assert constraints['eps_constr'].ub == 0.01
    assert constraints['imax_constr'].ub == 0.05


@pytest.mark.parametrize('expectation', ['uncertainty', 'time'])
def test_seir_declarations(expectation):
    problem = SEIRProblem(expectation=expectation)
    variables = {var.name: var for var in problem.variables}
    constraints = {con.name: con for con in problem.constraints}

    assert set(variables) == {'s', 'e', 'i', 'r', 'si', 'u', 'y'}
    for name in ('s', 'e', 'i', 'r'):
        assert variables[name].lb == 0.
        assert constraints[f'{name}_constr'].kind == 'derivative'
        assert constraints[f'{name}0'].kind == 'initial'

    if expectation == 'time':
        assert variables['y'].domains == ('t',)
        assert constraints['eps_constr'].over == 't'
    else:
        assert variables['y'].domains == ('t', 'xi')
        assert constraints['eps_constr'].over == 'xi'

    problem.validate()


@pytest.mark.parametrize('expectation', ['uncertainty', 'time'])
def test_seir_partials(expectation):
    """Compare analytic partials of all constraints to finite differences."""
    problem = SEIRProblem(expectation=expectation)
    v, t, xi = _random_grid(problem)

    functions = [con for con in problem.constraints
                 if not isinstance(con, InitialCondition)]
    functions.append(problem.objective)

    for fun in functions:
        partials = fun.partials(v, t, xi)
        assert set(partials) == set(fun.depends_on)
        for name in fun.depends_on:
            def f(x):
                return fun.evaluate({**v, name: x}, t, xi)

            expected = approx_partials(f, v[name])
            shape = np.broadcast(f(v[name]), partials[name]).shape
            np.testing.assert_allclose(
                np.broadcast_to(partials[name], shape),
                np.broadcast_to(expected, shape), rtol=1e-06, atol=1e-09)


def test_seir_rhs_matches_dynamics():
    problem = SEIRProblem()
    v, t, xi = _random_grid(problem)
    constraints = {con.name: con for con in problem.constraints}

    x = np.stack([v[name] for name in problem.state_names])
    v['si'] = v['s'] * v['i']
    dxdt = problem.dynamics(x, v['u'], xi)

    for k, name in enumerate(problem.state_names):
        rhs = constraints[f'{name}_constr'].evaluate(v, t, xi)
        np.testing.assert_allclose(np.broadcast_to(rhs, dxdt[k].shape),
                                   dxdt[k])


def test_seir_simulate():
    problem = SEIRProblem()
    t = np.linspace(0., 200., 21)
    xi = np.array([0.1, 0.35, 0.6])
    x = problem.simulate(t, xi, u=0.)

    assert x.shape == (4, 21, 3)
    np.testing.assert_allclose(x[:, 0], problem.parameters.x0[:, None] *
                               np.ones((1, 3)))
    # The population is conserved
    np.testing.assert_allclose(np.sum(x, axis=0), 1., atol=1e-06)
    # Without intervention the epidemic overshoots the threshold
    assert np.max(x[2]) > problem.parameters.i_max


@pytest.mark.parametrize('expectation', ['uncertainty', 'time'])
def test_seir_initial_guess(expectation):
    problem = SEIRProblem(expectation=expectation)
    t = np.linspace(0., 200., 11)
    xi = np.array([0.2, 0.4])
    guess = problem.initial_guess(t, xi)

    for name in ('s', 'e', 'i', 'r', 'si'):
        assert guess[name].shape == (11, 2)
    assert guess['u'].shape == (11, 1)
    np.testing.assert_allclose(guess['u'], problem.parameters.u_start)
    np.testing.assert_allclose(guess['si'], guess['s'] * guess['i'])
    assert np.all(guess['y'] >= 0.)
    if expectation == 'time':
        assert guess['y'].shape == (11, 1)
    else:
        assert guess['y'].shape == (11, 2)


def test_default_initial_guess():
    problem = ScalarLQ(u_lb=0.5, u_ub=1.5)
    guess = problem.initial_guess(np.linspace(0., 1., 3), np.full(1, np.nan))
    assert guess['x'] == 0.
    assert guess['u'] == 1.


def test_make_registry():
    problem = SEIRProblem()
    registry = problem.make_registry(TimeDiscretization(num_points=11))
    np.testing.assert_array_equal(registry.time_discretization.extra_points,
                                  problem.parameters.extra_ts)
    assert registry.time_discretization.num_points == 11
    assert 'xi' in registry.domains

    registry = ScalarLQ().make_registry()
    assert 'xi' not in registry.domains


class _DeclarationProblem(InfiniteProblem):
    """Problem whose declarations are supplied directly, for validation
    tests."""
    def __init__(self, variables, constraints, objective, uncertain=True):
        self._variables = variables
        self._constraints = constraints
        self._objective = objective
        self._uncertain = uncertain
        super().__init__()

    @property
    def time_domain(self):
        return Interval(0., 1.)

    @property
    def uncertainty(self):
        if self._uncertain:
            return UncertainLQ().uncertainty
        return None

    @property
    def variables(self):
        return self._variables

    @property
    def constraints(self):
        return self._constraints

    @property
    def objective(self):
        return self._objective


def _zero(v, t, xi):
    return 0. * t


def test_validate_duplicate_variable():
    x = InfiniteVariable('x')
    problem = _DeclarationProblem([x, InfiniteVariable('x', domains=('t',))],
                                  [], IntegralObjective(_zero, ()))
    with pytest.raises(ConfigurationError):
        problem.validate()


def test_validate_duplicate_constraint():
    x = InfiniteVariable('x')
    problem = _DeclarationProblem(
        [x], [InitialCondition('c', x, 0.), InitialCondition('c', x, 1.)],
        IntegralObjective(_zero, ()))
    with pytest.raises(ConfigurationError):
        problem.validate()


def test_validate_unknown_variable():
    x = InfiniteVariable('x')
    problem = _DeclarationProblem(
        [x], [PointConstraint('c', _zero, ('z',), ub=0.)],
        IntegralObjective(_zero, ()))
    with pytest.raises(ConfigurationError):
        problem.validate()

    problem = _DeclarationProblem([x], [], IntegralObjective(_zero, ('z',)))
    with pytest.raises(ConfigurationError):
        problem.validate()


def test_validate_domain_mismatch():
    """A time-only constraint cannot involve a variable indexed by the
    uncertain parameter."""
    x = InfiniteVariable('x')
    problem = _DeclarationProblem(
        [x], [PointConstraint('c', _zero, ('x',), ub=0., domains=('t',))],
        IntegralObjective(_zero, ()))
    with pytest.raises(ConfigurationError):
        problem.validate()


def test_validate_unregistered_domain():
    x = InfiniteVariable('x')
    problem = _DeclarationProblem([x], [], IntegralObjective(_zero, ()),
                                  uncertain=False)
    with pytest.raises(ConfigurationError):
        problem.validate()


def test_declaration_errors():
    x = InfiniteVariable('x', domains=('xi',))
    with pytest.raises(ConfigurationError):
        InfiniteVariable('x', domains=('xi', 't'))
    with pytest.raises(ConfigurationError):
        InfiniteVariable('x', lb=1., ub=0.)
    with pytest.raises(ConfigurationError):
        InfiniteVariable('')
    with pytest.raises(ConfigurationError):
        DerivativeConstraint('c', x, _zero, ())
    with pytest.raises(ConfigurationError):
        InitialCondition('c', x, 0.)
    with pytest.raises(ConfigurationError):
        PointConstraint('c', _zero, ())
    with pytest.raises(ConfigurationError):
        PointConstraint('c', 'not callable', (), ub=0.)
    with pytest.raises(ConfigurationError):
        ExpectationConstraint('c', _zero, (), over='s', ub=0.)


def test_finite_difference_partials():
    """Without analytic partials, finite differences are used."""
    con = PointConstraint('c', lambda v, t, xi: v['a'] ** 2 * xi + t * v['b'],
                          ('a', 'b'), ub=0.)
    t = np.linspace(0., 1., 5).reshape(-1, 1)
    xi = np.array([[1., 2., 3.]])
    v = {'a': rng.normal(size=(5, 3)), 'b': rng.normal(size=(5, 1))}

    partials = con.partials(v, t, xi)
    np.testing.assert_allclose(partials['a'], 2. * v['a'] * xi, rtol=1e-06)
    np.testing.assert_allclose(partials['b'], np.broadcast_to(t, (5, 3)),
                               atol=1e-08)


def test_initial_condition_callable():
    x = InfiniteVariable('x')
    ic = InitialCondition('x0', x, lambda xi: 2. * xi)
    np.testing.assert_allclose(ic.evaluate([1., 2.]), [2., 4.])

    ic = InitialCondition('x0', x, 3.)
    np.testing.assert_allclose(ic.evaluate([1., 2.]), [3., 3.])
