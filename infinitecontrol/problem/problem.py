import numpy as np

from ..domains import Interval, Registry
from ..errors import ConfigurationError
from .parameters import ProblemParameters
from .declarations import (InfiniteVariable, Constraint, DerivativeConstraint,
                           InitialCondition, IntegralObjective)


class InfiniteProblem:
    """
    Template superclass defining an infinite-dimensional optimal control
    problem: decision variables which are functions of time and of an uncertain
    parameter, differential, pointwise, initial, and expectation constraints,
    and an integral objective.

    Subclasses declare the problem by implementing the `variables`,
    `constraints`, and `objective` properties, and the `time_domain` and
    `uncertainty` properties defining the infinite domains. Model constants are
    not hard-coded, but stored in a `ProblemParameters` instance attached to the
    problem.
    """
    # Dicts of default model parameters, separated into required and optional
    # parameters. To be overwritten by subclass implementations.
    _required_parameters = {}
    _optional_parameters = {}

    def __init__(self, **problem_parameters):
        """
        Parameters
        ----------
        problem_parameters : dict, default={}
            Model parameters. If empty, defaults defined by the subclass will be
            used.
        """
        problem_parameters = {**self._required_parameters,
                              **self._optional_parameters,
                              **problem_parameters}
        # type(self) is used here in case subclass implementations forget to
        # make _parameter_update_fun a staticmethod.
        self.parameters = ProblemParameters(
            required=self._required_parameters.keys(),
            update_fun=type(self)._parameter_update_fun)
        """`ProblemParameters`. Model constants."""
        self.parameters.update(**problem_parameters)

    @staticmethod
    def _parameter_update_fun(obj, **new_params):
        """
        Performs operations on `self.parameters` during initialization and each
        time `self.parameters.update` is called. This is used for checking
        parameter values and performing other needed calculations.

        Parameters
        ----------
        obj : `ProblemParameters`
            In standard use, `obj` refers to `self.parameters`.
        **new_params : dict
            Parameters which are being set or changing.
        """
        pass

    @property
    def time_domain(self):
        """`Interval`. The time horizon."""
        raise NotImplementedError

    @property
    def uncertainty(self):
        """`Distribution` or None. Distribution of the uncertain parameter."""
        return None

    @property
    def default_extra_time_points(self):
        """(n_extra,) array. Time points which should always be supports."""
        return np.empty(0)

    @property
    def variables(self):
        """list of `InfiniteVariable`s."""
        raise NotImplementedError

    @property
    def constraints(self):
        """list of `Constraint`s."""
        raise NotImplementedError

    @property
    def objective(self):
        """`IntegralObjective` to minimize."""
        raise NotImplementedError

    def initial_guess(self, t, xi):
        """
        Initial guess for all variables on the support grid. The default uses
        each variable's `start` value, falling back to the midpoint of its
        bounds, or to zero, clipped to the bounds.

        Parameters
        ----------
        t : (n_t,) array
            Time supports.
        xi : (n_xi,) array
            Uncertainty samples.

        Returns
        -------
        guess : dict
            Maps variable names to arrays which broadcast against
            `(n_t, n_xi)`.
        """
        guess = dict()
        for var in self.variables:
            if var.start is not None:
                start = float(var.start)
            elif np.isfinite(var.lb) and np.isfinite(var.ub):
                start = (var.lb + var.ub) / 2.
            else:
                start = 0.
            guess[var.name] = np.clip(start, var.lb, var.ub)
        return guess

    def make_registry(self, time_discretization=None,
                      sample_discretization=None):
        """
        Build a `Registry` for the problem's domains. The problem's
        `default_extra_time_points` are merged into the time discretization.

        Parameters
        ----------
        time_discretization : `TimeDiscretization`, optional
        sample_discretization : `SampleDiscretization`, optional

        Returns
        -------
        registry : `Registry`
        """
        registry = Registry(self.time_domain, uncertainty=self.uncertainty,
                            time_discretization=time_discretization,
                            sample_discretization=sample_discretization)
        extra = np.asarray(self.default_extra_time_points, dtype=float)
        if extra.size:
            registry.add_time_points(extra)
        return registry

    def validate(self, registry=None):
        """
        Check that the problem declarations are consistent: variable and
        constraint names are unique, referenced variables exist, variable
        domains are registered, and each constraint is quantified over all
        domains of the variables it involves.

        Parameters
        ----------
        registry : `Registry`, optional
            Registry to check domains against. Defaults to the problem's own
            domains.

        Raises
        ------
        ConfigurationError
            If any declaration is inconsistent.
        """
        if registry is None:
            domains = {'t'} if self.uncertainty is None else {'t', 'xi'}
        else:
            if not isinstance(registry.time, Interval):
                raise ConfigurationError("registry has no time domain")
            domains = set(registry.domains)

        variables = dict()
        for var in self.variables:
            if not isinstance(var, InfiniteVariable):
                raise ConfigurationError(f"{var} is not an InfiniteVariable")
            if var.name in variables:
                raise ConfigurationError(f"Duplicate variable '{var.name}'")
            if not set(var.domains) <= domains:
                raise ConfigurationError(f"Variable '{var.name}' is indexed by "
                                         f"unregistered domains {var.domains}")
            variables[var.name] = var

        names = set()
        for con in self.constraints:
            if not isinstance(con, Constraint):
                raise ConfigurationError(f"{con} is not a Constraint")
            if con.name in names:
                raise ConfigurationError(f"Duplicate constraint '{con.name}'")
            names.add(con.name)

            if not set(con.domains) <= domains:
                raise ConfigurationError(f"Constraint '{con.name}' is "
                                         f"quantified over unregistered "
                                         f"domains {con.domains}")

            if isinstance(con, (DerivativeConstraint, InitialCondition)):
                refs = (con.state,) + getattr(con, 'depends_on', ())
            else:
                refs = con.depends_on

            for ref in refs:
                if ref not in variables:
                    raise ConfigurationError(f"Constraint '{con.name}' refers "
                                             f"to unknown variable '{ref}'")
                if not set(variables[ref].domains) <= set(con.domains):
                    raise ConfigurationError(
                        f"Constraint '{con.name}' over {con.domains} cannot "
                        f"involve '{ref}' indexed by "
                        f"{variables[ref].domains}")

        obj = self.objective
        if not isinstance(obj, IntegralObjective):
            raise ConfigurationError("objective must be an IntegralObjective")
        for ref in obj.depends_on:
            if ref not in variables:
                raise ConfigurationError(f"Objective refers to unknown "
                                         f"variable '{ref}'")
