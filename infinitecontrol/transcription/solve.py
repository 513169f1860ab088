import time
import warnings

import numpy as np
from tqdm import tqdm

from ..domains import Registry
from ..errors import ConfigurationError
from ..problem.problem import InfiniteProblem
from ..supports import generate_supports
from .transcribe import transcribe
from .assemble import assemble
from .solve_nlp import solve_nlp
from .solution import reconstruct


__all__ = ['TranscriptionContext', 'solve', 'solve_sweep']


class TranscriptionContext:
    """
    Holds the products of each pipeline stage for one solve. The context is
    created by `solve`, threaded through the stages, and attached to the
    returned `Solution` as `sol.context` for inspection.

    Attributes
    ----------
    problem : `InfiniteProblem`
    registry : `Registry`
    supports : `Supports` or None
    transcribed : `TranscribedProblem` or None
    nlp : `NLP` or None
    result : `NLPResult` or None
    timings : dict
        Wall-clock seconds spent in each stage.
    """
    def __init__(self, problem, registry):
        self.problem = problem
        self.registry = registry
        self.supports = None
        self.transcribed = None
        self.nlp = None
        self.result = None
        self.timings = dict()

    def _run_stage(self, name, fun, *args, verbose=0, **kwargs):
        if verbose >= 2:
            print(f"Running stage '{name}'...")
        start_time = time.perf_counter()
        output = fun(*args, **kwargs)
        self.timings[name] = time.perf_counter() - start_time
        if verbose >= 2:
            print(f"Stage '{name}' finished in {self.timings[name]:.2f} sec")
        return output

    def generate_supports(self, verbose=0):
        self.supports = self._run_stage('supports', generate_supports,
                                        self.registry, verbose=verbose)
        if verbose >= 2:
            print(f"Time supports: {self.supports.n_t}, uncertainty samples: "
                  f"{self.supports.n_xi}")
        return self.supports

    def transcribe(self, verbose=0):
        self.transcribed = self._run_stage('transcribe', transcribe,
                                           self.problem, self.supports,
                                           verbose=verbose)
        return self.transcribed

    def assemble(self, verbose=0):
        self.nlp = self._run_stage('assemble', assemble, self.transcribed,
                                   verbose=verbose)
        if verbose >= 2:
            print(f"Assembled {self.nlp}")
        return self.nlp

    def solve(self, verbose=0, **solver_kwargs):
        self.result = self._run_stage(
            'solve', lambda nlp: solve_nlp(nlp, verbose=verbose,
                                           **solver_kwargs),
            self.nlp, verbose=verbose)
        return self.result

    def reconstruct(self, verbose=0):
        sol = self._run_stage('reconstruct', reconstruct, self.transcribed,
                              self.result, verbose=verbose)
        sol.context = self
        return sol


def solve(problem, registry=None, time_discretization=None,
          sample_discretization=None, x0=None, method='trust-constr',
          tol=1e-06, feas_tol=1e-06, max_iter=500, max_time=None,
          raise_on_failure=False, verbose=0):
    """
    Transcribe and solve an infinite-dimensional optimal control problem. The
    problem's domains are discretized into supports, variables and constraints
    are transcribed over the supports by orthogonal collocation and quadrature,
    and the resulting nonlinear program is solved with
    `scipy.optimize.minimize`.

    Parameters
    ----------
    problem : `InfiniteProblem`
        The problem to solve.
    registry : `Registry`, optional
        Domains and discretization directives. Defaults to
        `problem.make_registry(time_discretization, sample_discretization)`.
    time_discretization : `TimeDiscretization`, optional
        Time discretization used when `registry` is not given.
    sample_discretization : `SampleDiscretization`, optional
        Uncertainty discretization used when `registry` is not given.
    x0 : (n,) array, optional
        Initial guess for the flat decision vector. Defaults to
        `problem.initial_guess` on the supports.
    method : {'trust-constr', 'SLSQP'}, default='trust-constr'
        NLP solver, see `solve_nlp`.
    tol : float, default=1e-06
        Convergence tolerance for the optimizer.
    feas_tol : float, default=1e-06
        Largest constraint violation accepted as feasible.
    max_iter : int, default=500
        Maximum number of optimizer iterations.
    max_time : float, optional
        Wall-clock budget in seconds for the optimizer.
    raise_on_failure : bool, default=False
        If True, raise `InfeasibleProblem`, `ConvergenceFailure`, or
        `NumericalError` when the solve is not optimal. If False, a warning is
        issued and the non-optimal solution is returned.
    verbose : {0, 1, 2}, default=0
        Level of algorithm's verbosity:

            * 0 (default) : work silently.
            * 1 : display a termination report.
            * 2 : display progress of each stage and during iterations.

    Returns
    -------
    sol : `Solution`
        Solution on the supports. Should only be trusted if
        `sol.status == 'optimal'`. The pipeline stages are available as
        `sol.context`.

    Raises
    ------
    ConfigurationError
        If the problem, domains, or discretizations are invalid. Raised before
        the optimizer is invoked.
    """
    if not isinstance(problem, InfiniteProblem):
        raise ConfigurationError("problem must be an InfiniteProblem")

    if registry is None:
        registry = problem.make_registry(
            time_discretization=time_discretization,
            sample_discretization=sample_discretization)
    elif not isinstance(registry, Registry):
        raise ConfigurationError("registry must be a Registry")

    context = TranscriptionContext(problem, registry)
    return _run_pipeline(context, x0=x0, raise_on_failure=raise_on_failure,
                         verbose=verbose, method=method, tol=tol,
                         feas_tol=feas_tol, max_iter=max_iter,
                         max_time=max_time)


def solve_sweep(problem, name, values, warm_start=True, registry=None,
                time_discretization=None, sample_discretization=None,
                raise_on_failure=False, verbose=0, **solver_kwargs):
    """
    Solve a problem for a sequence of values of one model parameter.

    Parameters
    ----------
    problem : `InfiniteProblem`
        The problem to solve. Its parameter `name` is updated for each solve
        and restored to its original value afterwards.
    name : str
        Name of the parameter to sweep, e.g. `'eps'`.
    values : array_like
        Parameter values to solve for, in order.
    warm_start : bool, default=True
        If True, initialize each solve with the decision vector of the previous
        solve, provided it was optimal or stopped at the iteration limit and the
        transcription size has not changed.
    registry : `Registry`, optional
        Shared domains and discretization directives. By default a registry is
        made from the problem for every value, so that parameters which change
        the domains are swept correctly.
    time_discretization : `TimeDiscretization`, optional
    sample_discretization : `SampleDiscretization`, optional
    raise_on_failure : bool, default=False
        See `solve`.
    verbose : {0, 1, 2}, default=0
        See `solve`.
    **solver_kwargs : dict
        Keyword arguments passed to `solve_nlp`.

    Returns
    -------
    sols : list of `Solution`s
        One solution for each entry in `values`.
    """
    if not isinstance(problem, InfiniteProblem):
        raise ConfigurationError("problem must be an InfiniteProblem")

    if name not in problem.parameters:
        raise ConfigurationError(f"'{name}' is not a parameter of "
                                 f"{type(problem).__name__}")
    original_value = problem.parameters[name]

    sols, x0 = [], None
    try:
        for value in tqdm(np.atleast_1d(values)):
            problem.parameters.update(**{name: value})

            _registry = registry
            if _registry is None:
                _registry = problem.make_registry(
                    time_discretization=time_discretization,
                    sample_discretization=sample_discretization)

            context = TranscriptionContext(problem, _registry)
            sol = _run_pipeline(context, x0=x0,
                                raise_on_failure=raise_on_failure,
                                verbose=verbose, **solver_kwargs)
            sols.append(sol)

            if warm_start and sol.status in ('optimal', 'iteration_limit'):
                x0 = sol.x
            else:
                x0 = None
    finally:
        problem.parameters.update(**{name: original_value})

    return sols


def _run_pipeline(context, x0=None, raise_on_failure=False, verbose=0,
                  **solver_kwargs):
    context.generate_supports(verbose=verbose)
    context.transcribe(verbose=verbose)
    nlp = context.assemble(verbose=verbose)

    if x0 is not None and np.shape(x0) != (nlp.n,):
        if verbose >= 2:
            print("Discarding initial guess of the wrong size")
        x0 = None

    result = context.solve(x0=x0, verbose=verbose, **solver_kwargs)

    if raise_on_failure:
        result.raise_for_status()
    elif not result.success:
        warnings.warn(f"Solve did not converge to an optimal solution: "
                      f"{result._describe()}", RuntimeWarning)

    return context.reconstruct(verbose=verbose)
