import numpy as np
import pandas as pd
from scipy.interpolate import make_interp_spline

from .transcribe import TranscribedProblem
from .solve_nlp import NLPResult


__all__ = ['Solution', 'reconstruct']


class Solution:
    """
    Object containing the solution of a transcribed infinite-dimensional
    problem. Each variable is stored on the supports of its domains, as a
    `(n_t, n_xi)` array for variables over time and uncertainty, `(n_t,)` for
    time-only variables, and `(n_xi,)` for uncertainty-only variables.
    """
    def __init__(self, t, xi, time_weights, probabilities, public, values,
                 domains, status, message, objective, index=None, x=None):
        self.t = np.asarray(t)
        """(n_t,) array. Time supports, including internal collocation
        nodes."""
        self.xi = np.asarray(xi)
        """(n_xi,) array. Uncertainty samples."""
        self.time_weights = np.asarray(time_weights)
        """(n_t,) array. Time quadrature weights."""
        self.probabilities = np.asarray(probabilities)
        """(n_xi,) array. Probability weights of the samples."""
        self.public = np.asarray(public, dtype=bool)
        """(n_t,) bool array. False for internal collocation nodes."""
        self.values = dict(values)
        """dict. Maps variable names to arrays of solved values."""
        self.domains = dict(domains)
        """dict. Maps variable names to the domains they are indexed by."""
        self.status = status
        """str. Reason for solver termination, see `NLPResult.status`."""
        self.message = str(message)
        """str. Human-readable description of `status`."""
        self.objective = float(objective)
        """float. Objective value."""
        self._index = index
        self.x = x
        """(n,) array. The flat solved decision vector."""

    @property
    def variable_names(self):
        return list(self.values.keys())

    def __getitem__(self, name):
        return self.values[name]

    def __contains__(self, name):
        return name in self.values

    def mean(self, name):
        """
        Probability-weighted mean over the uncertainty samples.

        Parameters
        ----------
        name : str
            Variable name.

        Returns
        -------
        mean : (n_t,) array or float
            Mean at each time support for variables over time and uncertainty,
            a scalar for uncertainty-only variables. Time-only variables are
            returned unchanged.
        """
        value = self.values[name]
        if 'xi' not in self.domains[name]:
            return value
        return np.dot(value, self.probabilities)

    def std(self, name):
        """Probability-weighted standard deviation over the uncertainty
        samples. Zero for time-only variables."""
        value = self.values[name]
        if 'xi' not in self.domains[name]:
            return np.zeros_like(value)
        mean = np.dot(value, self.probabilities)
        var = np.dot((value - np.expand_dims(mean, -1)) ** 2,
                     self.probabilities)
        return np.sqrt(np.maximum(var, 0.))

    def quantile(self, name, q):
        """
        Empirical quantile(s) over the uncertainty samples. Since samples have
        equal probability weights, this uses `numpy.quantile`.

        Parameters
        ----------
        name : str
            Variable name.
        q : float or array_like
            Quantile(s) in `[0, 1]`.
        """
        value = self.values[name]
        if 'xi' not in self.domains[name]:
            return value
        return np.quantile(value, q, axis=-1)

    def public_values(self, name):
        """Values of a variable at the public time supports only, dropping
        internal collocation nodes."""
        value = self.values[name]
        if 't' not in self.domains[name]:
            return value
        return value[self.public]

    @property
    def public_t(self):
        """(n_public,) array. Public time supports."""
        return self.t[self.public]

    def __call__(self, t, name=None):
        """
        Linearly interpolate the solution at new times `t`.

        Parameters
        ----------
        t : float or (n_points,) array
            Time points in `[t0, tf]`.
        name : str or list of str, optional
            Variable(s) to interpolate. Defaults to all time-indexed variables.

        Returns
        -------
        values : array or dict
            If `name` is a str, interpolated values shaped `(n_points, n_xi)` or
            `(n_points,)`. Otherwise, a dict of these.
        """
        t = np.asarray(t, dtype=float)
        if isinstance(name, str):
            return self._interpolate(name, t)

        if name is None:
            name = [key for key in self.values if 't' in self.domains[key]]
        return {key: self._interpolate(key, t) for key in name}

    def _interpolate(self, name, t):
        if 't' not in self.domains[name]:
            raise ValueError(f"'{name}' is not indexed by time")
        spline = make_interp_spline(self.t, self.values[name], k=1, axis=0)
        return spline(t)

    def to_dataframe(self, public_only=False):
        """
        Flatten the solution into a table with one row per `(t, xi)` support
        pair, columns `'t_index'`, `'xi_index'`, `'t'`, `'xi'`, `'public'`, and
        one column per variable. Time-only variables are repeated over samples.

        Parameters
        ----------
        public_only : bool, default=False
            Drop rows at internal collocation nodes.

        Returns
        -------
        table : DataFrame
        """
        n_t, n_xi = self.t.shape[0], self.xi.shape[0]
        j, k = np.meshgrid(np.arange(n_t), np.arange(n_xi), indexing='ij')
        j, k = j.reshape(-1), k.reshape(-1)

        table = {'t_index': j, 'xi_index': k, 't': self.t[j], 'xi': self.xi[k],
                 'public': self.public[j]}
        for name, value in self.values.items():
            value = np.asarray(value)
            shape = (n_t if 't' in self.domains[name] else 1,
                     n_xi if 'xi' in self.domains[name] else 1)
            value = np.broadcast_to(value.reshape(shape), (n_t, n_xi))
            table[name] = value.reshape(-1)

        table = pd.DataFrame(table)
        if public_only:
            table = table[table['public']].reset_index(drop=True)
        return table

    def index_of(self, name, support):
        """
        Position of a transcribed variable in the flat decision vector.

        Parameters
        ----------
        name : str
            Variable name.
        support : tuple of ints
            Support indices in the order of the variable's domains.

        Returns
        -------
        idx : int
        """
        if self._index is None:
            raise ValueError("This solution does not carry a variable index")
        return self._index.index(name, support)

    def summary(self):
        """Short human-readable report of the solution."""
        lines = [f"Status: {self.status} ({self.message})",
                 f"Objective: {self.objective:1.6e}",
                 f"Time supports: {self.t.shape[0]} "
                 f"({int(np.sum(self.public))} public) on "
                 f"[{self.t[0]}, {self.t[-1]}]",
                 f"Uncertainty samples: {self.xi.shape[0]}"]
        return "\n".join(lines)


def reconstruct(transcribed, result):
    """
    Map a solved decision vector back to per-variable arrays on the supports.

    Parameters
    ----------
    transcribed : `TranscribedProblem`
        The transcription the NLP was assembled from.
    result : `NLPResult`
        Output of `solve_nlp`.

    Returns
    -------
    sol : `Solution`
    """
    if not isinstance(transcribed, TranscribedProblem):
        raise TypeError("transcribed must be a TranscribedProblem")
    if not isinstance(result, NLPResult):
        raise TypeError("result must be an NLPResult")

    index = transcribed.index
    supports = transcribed.supports

    values, domains = dict(), dict()
    for name, value in index.unpack(result.x).items():
        var_domains = index.variables[name].domains
        domains[name] = var_domains
        value = np.array(value)
        # Drop broadcast axes
        if var_domains == ('t',):
            value = value[:, 0]
        elif var_domains == ('xi',):
            value = value[0]
        values[name] = value

    return Solution(supports.time.values, supports.xi, supports.time.weights,
                    supports.probabilities, supports.time.public, values,
                    domains, result.status, result.message, result.objective,
                    index=index, x=np.copy(result.x))
