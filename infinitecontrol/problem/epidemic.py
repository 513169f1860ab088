import numpy as np
from scipy.integrate import solve_ivp

from ..domains import Interval, UniformDistribution
from ..errors import ConfigurationError
from ..utilities import check_float_input
from .declarations import (InfiniteVariable, DerivativeConstraint,
                           PointConstraint, InitialCondition,
                           ExpectationConstraint, IntegralObjective)
from .problem import InfiniteProblem


class SEIRProblem(InfiniteProblem):
    r"""
    Stochastic optimal control of a SEIR epidemic by social distancing. The
    population is split into susceptible ($s$), exposed ($e$), infectious ($i$),
    and recovered ($r$) fractions, which evolve as
    ```
    ds/dt = -(1 - u) * beta * si
    de/dt = (1 - u) * beta * si - xi * e
    di/dt = xi * e - gamma * i
    dr/dt = gamma * i
    ```
    where `si = s * i` is an auxiliary variable, `u(t)` is the social distancing
    policy, and the incubation rate `xi` is uncertain, uniformly distributed on
    `[xi_min, xi_max]`. The policy is chosen to minimize its total time
    integral while keeping the expected excess of infections over `i_max`
    below `eps`. The excess is modeled by an auxiliary variable `y >= 0` with
    `i - i_max <= y`, and `E[y] <= eps`.

    Parameters
    ----------
    gamma : float, default=0.303
        Recovery rate.
    beta : float, default=0.727
        Infection rate.
    N : float, default=1e5
        Population size. Initially one person is exposed.
    xi_min : float, default=0.1
        Lower bound of the incubation rate distribution.
    xi_max : float, default=0.6
        Upper bound of the incubation rate distribution.
    i_max : float, default=0.02
        Infection threshold.
    eps : float, default=0.005
        Bound on the expected excess infections.
    t0 : float, default=0.
        Initial time.
    tf : float, default=200.
        Final time.
    u_lb : float, default=0.
        Lower bound on the social distancing policy.
    u_ub : float, default=0.8
        Upper bound on the social distancing policy.
    u_start : float, default=0.2
        Initial guess for the policy.
    expectation : {'uncertainty', 'time'}, default='uncertainty'
        If 'uncertainty', `y(t, xi)` and `E_xi[y(t, xi)] <= eps` at each time.
        If 'time', `y(t)` bounds the excess for all samples and its time
        average satisfies `E_t[y(t)] <= eps` (imposed once per sample).
    extra_ts : array_like
        Time points added to the supports to resolve the early epidemic.
    """
    _required_parameters = {'gamma': 0.303, 'beta': 0.727, 'N': 1e5,
                            'xi_min': 0.1, 'xi_max': 0.6,
                            'i_max': 0.02, 'eps': 0.005,
                            't0': 0., 'tf': 200.}
    _optional_parameters = {'u_lb': 0., 'u_ub': 0.8, 'u_start': 0.2,
                            'expectation': 'uncertainty',
                            'extra_ts': [0.001, 0.002, 0.004, 0.008, 0.02,
                                         0.04, 0.08, 0.2, 0.4, 0.8]}

    state_names = ('s', 'e', 'i', 'r')

    @staticmethod
    def _parameter_update_fun(obj, **new_params):
        for key in ('gamma', 'beta'):
            setattr(obj, key, check_float_input(getattr(obj, key), key, low=0.,
                                                strict=True))
        obj.N = check_float_input(obj.N, 'N', low=1.)
        obj.xi_min = check_float_input(obj.xi_min, 'xi_min', low=0.)
        obj.xi_max = check_float_input(obj.xi_max, 'xi_max', low=obj.xi_min,
                                       strict=True)
        obj.i_max = check_float_input(obj.i_max, 'i_max', low=0., high=1.)
        obj.eps = check_float_input(obj.eps, 'eps', low=0.)
        obj.t0 = check_float_input(obj.t0, 't0')
        obj.tf = check_float_input(obj.tf, 'tf', low=obj.t0, strict=True)
        obj.u_lb = check_float_input(obj.u_lb, 'u_lb', low=0., high=1.)
        obj.u_ub = check_float_input(obj.u_ub, 'u_ub', low=obj.u_lb, high=1.)
        obj.u_start = np.clip(check_float_input(obj.u_start, 'u_start'),
                              obj.u_lb, obj.u_ub)

        if obj.expectation not in ('uncertainty', 'time'):
            raise ConfigurationError(f"expectation = {obj.expectation} is not "
                                     f"recognized. Valid options are "
                                     f"'uncertainty' and 'time'")

        obj.extra_ts = np.asarray(obj.extra_ts, dtype=float).reshape(-1)

        obj.x0 = np.array([1. - 1. / obj.N, 1. / obj.N, 0., 0.])

    @property
    def time_domain(self):
        return Interval(self.parameters.t0, self.parameters.tf)

    @property
    def uncertainty(self):
        return UniformDistribution(self.parameters.xi_min,
                                   self.parameters.xi_max)

    @property
    def default_extra_time_points(self):
        return self.parameters.extra_ts

    @property
    def _y_domains(self):
        if self.parameters.expectation == 'time':
            return ('t',)
        return ('t', 'xi')

    @property
    def variables(self):
        p = self.parameters
        variables = [InfiniteVariable(name, lb=0., start=x0)
                     for name, x0 in zip(self.state_names, p.x0)]
        variables.append(InfiniteVariable('si', start=p.x0[0] * p.x0[2]))
        variables.append(InfiniteVariable('u', domains=('t',), lb=p.u_lb,
                                          ub=p.u_ub, start=p.u_start))
        variables.append(InfiniteVariable('y', domains=self._y_domains, lb=0.,
                                          start=0.))
        return variables

    @property
    def constraints(self):
        p = self.parameters
        variables = {var.name: var for var in self.variables}
        s, e, i, r = [variables[name] for name in self.state_names]

        def s_rhs(v, t, xi):
            return -(1. - v['u']) * p.beta * v['si']

        def s_jac(v, t, xi):
            return {'u': p.beta * v['si'], 'si': -(1. - v['u']) * p.beta}

        def e_rhs(v, t, xi):
            return (1. - v['u']) * p.beta * v['si'] - xi * v['e']

        def e_jac(v, t, xi):
            return {'u': -p.beta * v['si'], 'si': (1. - v['u']) * p.beta,
                    'e': -xi}

        def i_rhs(v, t, xi):
            return xi * v['e'] - p.gamma * v['i']

        def i_jac(v, t, xi):
            return {'e': xi, 'i': -p.gamma}

        def r_rhs(v, t, xi):
            return p.gamma * v['i']

        def r_jac(v, t, xi):
            return {'i': p.gamma}

        def si_fun(v, t, xi):
            return v['si'] - v['s'] * v['i']

        def si_jac(v, t, xi):
            return {'si': 1., 's': -v['i'], 'i': -v['s']}

        def excess_fun(v, t, xi):
            return v['i'] - v['y']

        def excess_jac(v, t, xi):
            return {'i': 1., 'y': -1.}

        def y_fun(v, t, xi):
            return v['y']

        def y_jac(v, t, xi):
            return {'y': 1.}

        over = 't' if p.expectation == 'time' else 'xi'

        constraints = [
            DerivativeConstraint('s_constr', s, s_rhs, ('u', 'si'), jac=s_jac),
            DerivativeConstraint('e_constr', e, e_rhs, ('u', 'si', 'e'),
                                 jac=e_jac),
            DerivativeConstraint('i_constr', i, i_rhs, ('e', 'i'), jac=i_jac),
            DerivativeConstraint('r_constr', r, r_rhs, ('i',), jac=r_jac),
            PointConstraint('si_constr', si_fun, ('si', 's', 'i'), lb=0.,
                            ub=0., jac=si_jac),
            PointConstraint('imax_constr', excess_fun, ('i', 'y'),
                            ub=p.i_max, jac=excess_jac),
            ExpectationConstraint('eps_constr', y_fun, ('y',), over=over,
                                  ub=p.eps, jac=y_jac)
        ]

        for var, x0 in zip((s, e, i, r), p.x0):
            constraints.append(InitialCondition(f'{var.name}0', var, x0))

        return constraints

    @property
    def objective(self):
        def integrand(v, t, xi):
            return v['u']

        def integrand_jac(v, t, xi):
            return {'u': 1.}

        return IntegralObjective(integrand, ('u',), jac=integrand_jac)

    def dynamics(self, x, u, xi):
        """
        Evaluate the SEIR vector field.

        Parameters
        ----------
        x : (4,) or (4, n_points) array
            States `(s, e, i, r)`.
        u : float or (n_points,) array
            Social distancing policy.
        xi : float or (n_points,) array
            Incubation rate.

        Returns
        -------
        dxdt : (4,) or (4, n_points) array
            Time derivatives of `(s, e, i, r)`.
        """
        p = self.parameters
        s, e, i, r = x
        infection = (1. - u) * p.beta * s * i
        return np.stack((-infection,
                         infection - xi * e,
                         xi * e - p.gamma * i,
                         p.gamma * i))

    def simulate(self, t, xi, u=None, rtol=1e-08, atol=1e-10):
        """
        Integrate the SEIR dynamics for each sample with a constant policy.

        Parameters
        ----------
        t : (n_t,) array
            Sorted time points at which to return the states.
        xi : (n_xi,) array
            Incubation rate samples.
        u : float, default=`parameters.u_start`
            Constant social distancing policy.
        rtol : float, default=1e-08
            Relative tolerance for `scipy.integrate.solve_ivp`.
        atol : float, default=1e-10
            Absolute tolerance for `scipy.integrate.solve_ivp`.

        Returns
        -------
        x : (4, n_t, n_xi) array
            States `(s, e, i, r)` at times `t` for each sample.
        """
        p = self.parameters
        if u is None:
            u = p.u_start
        t = np.asarray(t, dtype=float).reshape(-1)
        xi = np.asarray(xi, dtype=float).reshape(-1)

        x = np.empty((4, t.shape[0], xi.shape[0]))
        for k, xi_k in enumerate(xi):
            ode_sol = solve_ivp(lambda _, x: self.dynamics(x, u, xi_k),
                                [t[0], t[-1]], p.x0, t_eval=t, method='LSODA',
                                rtol=rtol, atol=atol)
            if not ode_sol.success:
                raise RuntimeError(f"Simulation failed for xi = {xi_k}: "
                                   f"{ode_sol.message}")
            x[..., k] = ode_sol.y
        return x

    def initial_guess(self, t, xi):
        """
        Initial guess obtained by simulating the epidemic with the constant
        policy `u_start`. The auxiliary variables are set consistently,
        `si = s * i` and `y = max(i - i_max, 0)`.
        """
        p = self.parameters
        x = np.maximum(self.simulate(t, xi), 0.)
        guess = dict(zip(self.state_names, x))
        guess['si'] = x[0] * x[2]
        guess['u'] = np.full((x.shape[1], 1), p.u_start)

        excess = np.maximum(x[2] - p.i_max, 0.)
        if p.expectation == 'time':
            excess = np.max(excess, axis=1, keepdims=True)
        guess['y'] = excess

        return guess
