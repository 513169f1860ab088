import numpy as np
from scipy import sparse
from scipy.optimize import Bounds

from .transcribe import TranscribedProblem


__all__ = ['NLP', 'assemble']


class NLP:
    """
    Flat nonlinear program
    ```
    minimize    f(z)
    subject to  c_eq(z) == 0,
                c_in(z) <= 0,
                lb <= z <= ub.
    ```
    Equality constraints collect all `ConstraintBlock`s with `lb == ub`, shifted
    so that the right hand side is zero. Inequality constraints collect one row
    for each finite bound of the remaining blocks: `g(z) - ub` for upper bounds
    and `lb - g(z)` for lower bounds.

    Parameters
    ----------
    transcribed : `TranscribedProblem`
        Output of the transcription stage.
    """
    def __init__(self, transcribed):
        if not isinstance(transcribed, TranscribedProblem):
            raise TypeError("transcribed must be a TranscribedProblem")

        self.transcribed = transcribed
        self.n = transcribed.n_variables
        """int. Size of the decision vector."""
        self.lb = transcribed.lb
        """(n,) array. Lower bounds of the decision variables."""
        self.ub = transcribed.ub
        """(n,) array. Upper bounds of the decision variables."""
        self.z0 = transcribed.z0
        """(n,) array. Default initial guess."""

        self._eq_blocks = []
        # Tuples (block, sign, bound) for c_in = sign * (g - bound) <= 0
        self._ineq_parts = []
        for block in transcribed.blocks:
            if block.is_equality:
                self._eq_blocks.append(block)
                continue
            if np.isfinite(block.ub):
                self._ineq_parts.append((block, 1., block.ub))
            if np.isfinite(block.lb):
                self._ineq_parts.append((block, -1., block.lb))

        self.n_eq = sum(block.n_rows for block in self._eq_blocks)
        """int. Number of equality constraints."""
        self.n_ineq = sum(block.n_rows for block, _, _ in self._ineq_parts)
        """int. Number of inequality constraints."""

    @property
    def bounds(self):
        """`scipy.optimize.Bounds` on the decision vector."""
        return Bounds(self.lb, self.ub)

    def objective(self, z):
        """Objective value and its (n,) gradient."""
        return self.transcribed.objective(z)

    def eq_fun(self, z):
        """(n_eq,) array. Equality constraint residuals `c_eq(z)`."""
        if not self._eq_blocks:
            return np.empty(0)
        return np.concatenate([block.fun(z) - block.lb
                               for block in self._eq_blocks])

    def eq_jac(self, z):
        """(n_eq, n) sparse array. Jacobian of `c_eq`."""
        if not self._eq_blocks:
            return sparse.csr_matrix((0, self.n))
        return sparse.vstack([block.jac(z) for block in self._eq_blocks],
                             format='csr')

    def ineq_fun(self, z):
        """(n_ineq,) array. Inequality constraint values `c_in(z)`, feasible
        when non-positive."""
        if not self._ineq_parts:
            return np.empty(0)
        return np.concatenate([sign * (block.fun(z) - bound)
                               for block, sign, bound in self._ineq_parts])

    def ineq_jac(self, z):
        """(n_ineq, n) sparse array. Jacobian of `c_in`."""
        if not self._ineq_parts:
            return sparse.csr_matrix((0, self.n))
        return sparse.vstack([sign * block.jac(z)
                              for block, sign, _ in self._ineq_parts],
                             format='csr')

    def max_violation(self, z):
        """
        Largest violation of any constraint or variable bound at `z`. Returns
        `inf` if any constraint evaluates to a non-finite value.
        """
        violations = [np.zeros(1),
                      np.maximum(self.lb - z, 0.), np.maximum(z - self.ub, 0.),
                      np.abs(self.eq_fun(z)), np.maximum(self.ineq_fun(z), 0.)]
        violations = np.concatenate(violations)
        if not np.all(np.isfinite(violations)):
            return np.inf
        return float(np.max(violations))

    def worst_constraint(self, z):
        """
        Locate the most violated constraint row at `z`.

        Returns
        -------
        name : str
            Name of the constraint block.
        supports : dict
            Support indices of the row, `{'t': j, 'xi': k}`, omitting domains
            the row is not associated with.
        violation : float
            Amount by which the row violates its bounds.
        """
        worst = (None, dict(), 0.)
        for block in self.transcribed.blocks:
            violation = block.violation(z)
            violation = np.where(np.isfinite(violation), violation, np.inf)
            if violation.size and np.max(violation) > worst[2]:
                row = int(np.argmax(violation))
                worst = (block.name, self.describe_row(block, row),
                         float(violation[row]))
        return worst

    @staticmethod
    def describe_row(block, row):
        """Support indices of a row of a `ConstraintBlock`."""
        j, k = block.row_supports[row]
        supports = dict()
        if j >= 0:
            supports['t'] = int(j)
        if k >= 0:
            supports['xi'] = int(k)
        return supports

    def __repr__(self):
        return f"NLP(n={self.n}, n_eq={self.n_eq}, n_ineq={self.n_ineq})"


def assemble(transcribed):
    """
    Collect a transcribed problem into a flat `NLP`.

    Parameters
    ----------
    transcribed : `TranscribedProblem`

    Returns
    -------
    nlp : `NLP`
    """
    return NLP(transcribed)
