import time

import numpy as np
from scipy.optimize import minimize, NonlinearConstraint
from scipy.sparse.linalg import LinearOperator

from ..errors import InfeasibleProblem, ConvergenceFailure, NumericalError
from .assemble import NLP


__all__ = ['NLPResult', 'solve_nlp']


_status_options = ('optimal', 'infeasible', 'iteration_limit',
                   'numerical_error', 'interrupted')

# Finite difference step for Hessian-vector products
_hess_step = np.sqrt(np.finfo(float).eps)


class NLPResult:
    """
    Outcome of a solve attempt.

    Parameters
    ----------
    x : (n,) array
        Final (or best available) decision vector.
    status : {'optimal', 'infeasible', 'iteration_limit', 'numerical_error',
              'interrupted'}
        Reason for termination.
    message : str
        Human-readable description of `status`.
    objective : float
        Objective value at `x`.
    n_iter : int
        Number of solver iterations.
    max_violation : float
        Largest constraint or bound violation at `x`.
    worst_constraint : tuple, optional
        `(name, supports, violation)` of the most violated constraint row, see
        `NLP.worst_constraint`.
    """
    def __init__(self, x, status, message, objective, n_iter, max_violation,
                 worst_constraint=None):
        if status not in _status_options:
            raise ValueError(f"status = {status} is not recognized. Valid "
                             f"options are {_status_options}")
        self.x = np.asarray(x, dtype=float)
        self.status = status
        self.message = str(message)
        self.objective = float(objective)
        self.n_iter = int(n_iter)
        self.max_violation = float(max_violation)
        self.worst_constraint = worst_constraint

    @property
    def success(self):
        """bool. True if `status == 'optimal'`."""
        return self.status == 'optimal'

    def _describe(self):
        msg = f"{self.status}: {self.message}"
        if self.worst_constraint is not None and self.worst_constraint[0]:
            name, supports, violation = self.worst_constraint
            msg += (f" (largest violation {violation:1.2e} in '{name}' at "
                    f"supports {supports})")
        return msg

    def raise_for_status(self):
        """
        Raise the exception corresponding to a non-optimal `status`.

        Returns
        -------
        self : `NLPResult`
            If `status == 'optimal'`.

        Raises
        ------
        InfeasibleProblem
            If `status == 'infeasible'`.
        ConvergenceFailure
            If `status` is `'iteration_limit'` or `'interrupted'`.
        NumericalError
            If `status == 'numerical_error'`.
        """
        if self.status == 'optimal':
            return self
        if self.status == 'infeasible':
            raise InfeasibleProblem(self._describe(), result=self)
        if self.status in ('iteration_limit', 'interrupted'):
            raise ConvergenceFailure(self._describe(), result=self)
        raise NumericalError(self._describe(), result=self)

    def __repr__(self):
        return (f"NLPResult(status='{self.status}', objective="
                f"{self.objective:1.6e}, n_iter={self.n_iter}, max_violation="
                f"{self.max_violation:1.2e})")


class _TimeBudgetExceeded(Exception):
    pass


class _NonFiniteValue(Exception):
    pass


def solve_nlp(nlp, x0=None, method='SLSQP', tol=1e-06, feas_tol=1e-06,
              max_iter=500, max_time=None, verbose=0):
    """
    Solve an assembled `NLP` with `scipy.optimize.minimize`.

    Parameters
    ----------
    nlp : `NLP`
        The nonlinear program to solve.
    x0 : (n,) array, default=`nlp.z0`
        Initial guess. Clipped into the variable bounds.
    method : {'SLSQP', 'trust-constr'}, default='SLSQP'
        Sequential least squares quadratic programming (dense) or the
        trust-region interior point method (sparse). Use 'trust-constr' for
        large problems.
    tol : float, default=1e-06
        Convergence tolerance passed to the optimizer.
    feas_tol : float, default=1e-06
        Largest constraint violation for which a point is considered feasible.
    max_iter : int, default=500
        Maximum number of optimizer iterations.
    max_time : float, optional
        Wall-clock budget in seconds. When exceeded the solve stops with status
        `'iteration_limit'` and the last iterate is returned.
    verbose : {0, 1, 2}, default=0
        Level of algorithm's verbosity:

            * 0 (default) : work silently.
            * 1 : display a termination report.
            * 2 : display progress during iterations.

    Returns
    -------
    result : `NLPResult`
        The status should be checked before trusting `result.x`, or use
        `result.raise_for_status()`.
    """
    if not isinstance(nlp, NLP):
        raise TypeError("nlp must be an NLP")
    if method not in ('SLSQP', 'trust-constr'):
        raise ValueError(f"method = {method} is not recognized. Valid options "
                         f"are 'SLSQP' and 'trust-constr'")

    if x0 is None:
        x0 = nlp.z0
    x0 = np.asarray(x0, dtype=float).reshape(-1)
    if x0.shape[0] != nlp.n:
        raise ValueError(f"x0 must have size {nlp.n}, got {x0.shape[0]}")
    x0 = np.clip(x0, nlp.lb, nlp.ub)

    # Most recent iterate, updated by the callback so it survives interruption
    state = {'x': np.copy(x0), 'n_iter': 0}
    start_time = time.perf_counter()

    def check_time():
        if max_time is not None and time.perf_counter() - start_time > max_time:
            raise _TimeBudgetExceeded

    def obj_fun(z):
        check_time()
        f, g = nlp.objective(z)
        if not (np.isfinite(f) and np.all(np.isfinite(g))):
            raise _NonFiniteValue("objective")
        return f, g

    def finite(fun, name):
        def checked_fun(z):
            c = fun(z)
            if not np.all(np.isfinite(c)):
                raise _NonFiniteValue(name)
            return c
        return checked_fun

    eq_fun = finite(nlp.eq_fun, 'equality constraints')
    ineq_fun = finite(nlp.ineq_fun, 'inequality constraints')

    def callback(xk, *args):
        state['x'] = np.copy(xk)
        state['n_iter'] += 1
        if verbose >= 2 and method == 'SLSQP':
            print(f"Iteration {state['n_iter']:d}: objective = "
                  f"{nlp.objective(xk)[0]:1.6e}, max violation = "
                  f"{nlp.max_violation(xk):1.2e}")
        check_time()

    if method == 'SLSQP':
        constraints = []
        if nlp.n_eq:
            constraints.append({'type': 'eq', 'fun': eq_fun,
                                'jac': lambda z: nlp.eq_jac(z).toarray()})
        if nlp.n_ineq:
            # SLSQP expects inequalities in the form fun(z) >= 0
            constraints.append({'type': 'ineq',
                                'fun': lambda z: -ineq_fun(z),
                                'jac': lambda z: -nlp.ineq_jac(z).toarray()})
        options = {'maxiter': max_iter, 'disp': verbose >= 2}
        hessp = None
    else:
        constraints = []
        if nlp.n_eq:
            constraints.append(NonlinearConstraint(
                eq_fun, 0., 0., jac=nlp.eq_jac,
                hess=_make_constraint_hess(nlp.eq_jac, nlp.n)))
        if nlp.n_ineq:
            constraints.append(NonlinearConstraint(
                ineq_fun, -np.inf, 0., jac=nlp.ineq_jac,
                hess=_make_constraint_hess(nlp.ineq_jac, nlp.n)))
        options = {'maxiter': max_iter, 'verbose': verbose}
        hessp = _make_objective_hessp(nlp.objective)

    if verbose >= 1:
        print(f"Solving {nlp} with {method}...")

    try:
        minimize_result = minimize(obj_fun, x0, method=method, jac=True,
                                   hessp=hessp, bounds=nlp.bounds,
                                   constraints=constraints, tol=tol,
                                   callback=callback, options=options)
        x = minimize_result.x
        n_iter = max(int(getattr(minimize_result, 'nit', 0)), state['n_iter'])
        status, message = _interpret_status(minimize_result, method, nlp, x,
                                            feas_tol)
    except _TimeBudgetExceeded:
        x, n_iter = state['x'], state['n_iter']
        status = 'iteration_limit'
        message = f"Time budget of {max_time} seconds exceeded"
    except KeyboardInterrupt:
        x, n_iter = state['x'], state['n_iter']
        status = 'interrupted'
        message = "Solve interrupted by user"
    except _NonFiniteValue as err:
        x, n_iter = state['x'], state['n_iter']
        status = 'numerical_error'
        message = f"Non-finite values encountered in {err}"
    except np.linalg.LinAlgError as err:
        x, n_iter = state['x'], state['n_iter']
        status = 'numerical_error'
        message = f"Linear algebra failure: {err}"

    objective = nlp.objective(x)[0]
    max_violation = nlp.max_violation(x)
    worst = None if status == 'optimal' else nlp.worst_constraint(x)

    if status == 'optimal' and not np.isfinite(objective):
        status, message = 'numerical_error', "Objective is not finite"

    if verbose >= 1:
        print(f"Solver terminated with status '{status}': {message}")
        print(f"Objective = {objective:1.6e}, max violation = "
              f"{max_violation:1.2e}, iterations = {n_iter:d}, time = "
              f"{time.perf_counter() - start_time:.1f} sec")

    return NLPResult(x, status, message, objective, n_iter, max_violation,
                     worst_constraint=worst)


def _interpret_status(minimize_result, method, nlp, x, feas_tol):
    """Map `scipy.optimize.minimize` termination codes to a status."""
    code = int(minimize_result.status)
    message = str(minimize_result.message)
    violation = nlp.max_violation(x)
    feasible = violation <= feas_tol

    if not np.isfinite(violation):
        return 'numerical_error', "Non-finite constraint values at solution"

    if method == 'SLSQP':
        if code == 0:
            return ('optimal' if feasible else 'infeasible'), message
        if code == 9:
            return 'iteration_limit', message
        if code == 4 or (code == 8 and not feasible):
            return 'infeasible', message
        return 'numerical_error', message

    if code == 1 or (code == 2 and feasible):
        return ('optimal' if feasible else 'infeasible'), message
    if code == 2:
        return 'infeasible', message
    if code in (0, 3):
        return 'iteration_limit', message
    return 'numerical_error', message


def _make_constraint_hess(jac, n):
    """
    Hessian of the Lagrangian term `v @ c(z)` as a `LinearOperator`, computed by
    finite differences of `jac(z).T @ v`. This avoids forming dense
    quasi-Newton approximations.
    """
    def hess(z, v):
        Jv = jac(z).T @ v

        def matvec(p):
            p = np.reshape(p, -1)
            h = _hess_step * max(1., np.linalg.norm(z)) / max(
                np.linalg.norm(p), _hess_step)
            return (jac(z + h * p).T @ v - Jv) / h

        return LinearOperator((n, n), matvec=matvec, dtype=float)

    return hess


def _make_objective_hessp(objective):
    """Objective Hessian-vector product by finite differences of the
    gradient."""
    def hessp(z, p):
        h = _hess_step * max(1., np.linalg.norm(z)) / max(np.linalg.norm(p),
                                                         _hess_step)
        return (objective(z + h * p)[1] - objective(z)[1]) / h

    return hessp
