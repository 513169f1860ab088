"""
Expand infinite variables and constraints over the supports. Each
`InfiniteVariable` becomes one scalar decision variable per support tuple of its
domains, and each constraint becomes a `ConstraintBlock` of scalar constraints
with a sparse Jacobian. Derivatives are transcribed by orthogonal collocation on
finite elements, and expectations by weighted sums over the supports.
"""

import numpy as np
from scipy import sparse

from ..errors import ConfigurationError
from ..problem.declarations import (DerivativeConstraint, PointConstraint,
                                    InitialCondition, ExpectationConstraint)


__all__ = ['VariableIndex', 'ConstraintBlock', 'TranscribedProblem',
           'transcribe']


class VariableIndex:
    """
    Layout of the transcribed decision vector. Variables are stored in
    declaration order as contiguous blocks. Within a block the entries are
    arranged by (time, sample) in C (row-major) order, so the scalar variable
    for support tuple `(j, k)` of a variable over `('t', 'xi')` sits at
    `start + j * n_xi + k`.

    Parameters
    ----------
    variables : list of `InfiniteVariable`s
        Declared variables.
    n_t : int
        Number of time supports.
    n_xi : int
        Number of uncertainty samples.
    """
    def __init__(self, variables, n_t, n_xi):
        self.variables = {var.name: var for var in variables}
        self.n_t, self.n_xi = n_t, n_xi

        self._blocks = dict()
        start = 0
        for var in variables:
            shape = (n_t if 't' in var.domains else 1,
                     n_xi if 'xi' in var.domains else 1)
            self._blocks[var.name] = (start, shape)
            start += shape[0] * shape[1]
        self.size = start

    def __len__(self):
        return self.size

    def __contains__(self, name):
        return name in self._blocks

    def _check_name(self, name):
        if name not in self._blocks:
            raise ConfigurationError(f"Unknown variable '{name}'")

    def shape(self, name):
        """Broadcastable `(n_t or 1, n_xi or 1)` shape of a variable."""
        self._check_name(name)
        return self._blocks[name][1]

    def count(self, name):
        """Number of scalar decision variables transcribing `name`."""
        shape = self.shape(name)
        return shape[0] * shape[1]

    def slice(self, name):
        """Slice of the decision vector holding variable `name`."""
        self._check_name(name)
        start, shape = self._blocks[name]
        return slice(start, start + shape[0] * shape[1])

    def indices(self, name):
        """Decision vector indices of variable `name`, arranged in its
        broadcastable shape."""
        _slice = self.slice(name)
        return np.arange(_slice.start, _slice.stop).reshape(self.shape(name))

    def index(self, name, support):
        """
        Position of a single transcribed variable in the decision vector.

        Parameters
        ----------
        name : str
            Variable name.
        support : tuple of ints
            Support indices, one per domain of the variable, in the order of
            `variable.domains`.

        Returns
        -------
        idx : int
        """
        domains = self.variables[name].domains if name in self else ()
        support = tuple(np.atleast_1d(support))
        if len(support) != len(domains):
            raise ConfigurationError(f"'{name}' is indexed by {domains}, got "
                                     f"support {support}")
        j = support[domains.index('t')] if 't' in domains else 0
        k = support[domains.index('xi')] if 'xi' in domains else 0
        shape = self.shape(name)
        if not (0 <= j < shape[0] and 0 <= k < shape[1]):
            raise ConfigurationError(f"Support {support} out of range for "
                                     f"'{name}'")
        return int(self._blocks[name][0] + j * shape[1] + k)

    def locate(self, idx):
        """
        Inverse of `index`: find the variable name and support tuple of a
        decision vector entry.
        """
        idx = int(idx)
        for name, (start, shape) in self._blocks.items():
            if start <= idx < start + shape[0] * shape[1]:
                j, k = divmod(idx - start, shape[1])
                domains = self.variables[name].domains
                support = tuple(j if d == 't' else k for d in domains)
                return name, support
        raise IndexError(f"index {idx} out of range for decision vector of "
                         f"size {self.size}")

    def keys(self):
        """Iterate over `(name, support)` of all transcribed variables, in
        decision vector order."""
        for name in self._blocks:
            for idx in range(self.slice(name).start, self.slice(name).stop):
                yield self.locate(idx)

    def unpack(self, z):
        """Split a decision vector into a dict of broadcastable arrays."""
        return {name: z[start:start + shape[0] * shape[1]].reshape(shape)
                for name, (start, shape) in self._blocks.items()}

    def pack(self, values):
        """
        Assemble a decision vector from a dict of arrays, each broadcast to the
        variable's shape.
        """
        z = np.empty(self.size)
        for name, (start, shape) in self._blocks.items():
            if name not in values:
                raise ConfigurationError(f"Missing value for variable "
                                         f"'{name}'")
            try:
                val = np.broadcast_to(values[name], shape)
            except ValueError:
                raise ConfigurationError(
                    f"Value for '{name}' with shape {np.shape(values[name])} "
                    f"cannot be broadcast to {shape}")
            z[start:start + shape[0] * shape[1]] = val.reshape(-1)
        return z


class ConstraintBlock:
    """
    The scalar constraints `lb <= fun(z) <= ub` obtained by transcribing one
    infinite constraint.

    Parameters
    ----------
    name : str
        Name of the infinite constraint.
    kind : str
        Constraint kind, see `Constraint.kind`.
    fun : callable
        `fun(z)` returning the `(n_rows,)` constraint values.
    jac : callable
        `jac(z)` returning the `(n_rows, z.size)` sparse Jacobian.
    lb : float
        Lower bound, common to all rows.
    ub : float
        Upper bound, common to all rows.
    row_supports : (n_rows, 2) int array
        Time and sample support indices of each row; -1 where the row is not
        associated with a particular support of that domain.
    """
    def __init__(self, name, kind, fun, jac, lb, ub, row_supports):
        self.name = name
        self.kind = kind
        self.fun = fun
        self.jac = jac
        self.lb, self.ub = lb, ub
        self.row_supports = np.asarray(row_supports, dtype=int).reshape(-1, 2)

    @property
    def n_rows(self):
        return self.row_supports.shape[0]

    @property
    def is_equality(self):
        return self.lb == self.ub

    def violation(self, z):
        """(n_rows,) array. Amount by which each row violates its bounds."""
        g = self.fun(z)
        return np.maximum(np.maximum(self.lb - g, g - self.ub), 0.)

    def __repr__(self):
        return (f"ConstraintBlock('{self.name}', kind='{self.kind}', "
                f"n_rows={self.n_rows})")


class TranscribedProblem:
    """
    Output of the transcription stage: the decision vector layout, variable
    bounds, initial guess, constraint blocks, and the transcribed objective.

    Attributes
    ----------
    problem : `InfiniteProblem`
    supports : `Supports`
    index : `VariableIndex`
    lb, ub : (n_variables,) arrays
        Variable bounds.
    z0 : (n_variables,) array
        Initial guess, within the bounds.
    blocks : list of `ConstraintBlock`s
    objective : callable
        `objective(z)` returning the objective value and its gradient.
    """
    def __init__(self, problem, supports, index, lb, ub, z0, blocks,
                 objective):
        self.problem = problem
        self.supports = supports
        self.index = index
        self.lb, self.ub = lb, ub
        self.z0 = z0
        self.blocks = blocks
        self.objective = objective

    @property
    def n_variables(self):
        return self.index.size

    @property
    def n_constraints(self):
        return sum(block.n_rows for block in self.blocks)

    def block(self, name):
        """Get the `ConstraintBlock` transcribing constraint `name`."""
        for block in self.blocks:
            if block.name == name:
                return block
        raise KeyError(name)


def transcribe(problem, supports):
    """
    Transcribe an `InfiniteProblem` over the given supports.

    Parameters
    ----------
    problem : `InfiniteProblem`
        The problem to transcribe.
    supports : `Supports`
        Output of `supports.generate_supports`.

    Returns
    -------
    transcribed : `TranscribedProblem`

    Raises
    ------
    ConfigurationError
        If the problem declarations are inconsistent with the supports, or if
        the initial time is not a time support.
    """
    registry = supports.registry
    problem.validate(registry)

    t0_idx = supports.time.index_of(registry.time.t0)
    if t0_idx != 0:
        raise ConfigurationError("The initial time must be the first time "
                                 "support")

    n_t, n_xi = supports.n_t, supports.n_xi
    t = supports.time.values.reshape(-1, 1)
    xi = supports.xi.reshape(1, -1)

    variables = problem.variables
    index = VariableIndex(variables, n_t, n_xi)

    lb = index.pack({var.name: var.lb for var in variables})
    ub = index.pack({var.name: var.ub for var in variables})

    guess = problem.initial_guess(supports.time.values, supports.xi)
    z0 = np.clip(index.pack(guess), lb, ub)

    blocks = []
    for con in problem.constraints:
        if isinstance(con, DerivativeConstraint):
            block = _derivative_block(con, index, t, xi, supports.diff_matrix)
        elif isinstance(con, PointConstraint):
            block = _point_block(con, index, t, xi)
        elif isinstance(con, InitialCondition):
            block = _initial_block(con, index, supports.xi, t0_idx)
        elif isinstance(con, ExpectationConstraint):
            block = _expectation_block(con, index, t, xi, supports)
        else:
            raise ConfigurationError(f"Unsupported constraint {con}")
        blocks.append(block)

    objective = _make_objective(problem.objective, index, t, xi, supports)

    return TranscribedProblem(problem, supports, index, lb, ub, z0, blocks,
                              objective)


def _constraint_shape(domains, n_t, n_xi):
    return (n_t if 't' in domains else 1, n_xi if 'xi' in domains else 1)


def _support_grid(shape, domains):
    """(n_rows, 2) support indices of the rows of an array of `shape` flattened
    in C order."""
    j, k = np.meshgrid(np.arange(shape[0]), np.arange(shape[1]),
                       indexing='ij')
    if 't' not in domains:
        j = np.full_like(j, -1)
    if 'xi' not in domains:
        k = np.full_like(k, -1)
    return np.stack((j.reshape(-1), k.reshape(-1)), axis=1)


def _evaluate(con, v, t, xi, shape):
    try:
        return np.broadcast_to(con.evaluate(v, t, xi), shape)
    except ValueError:
        raise ConfigurationError(f"'{con.name}' does not evaluate to an array "
                                 f"broadcastable to {shape}")


def _sparse_partials(con, index, v, t, xi, shape, scale=None, rows=None,
                     row_slice=slice(None)):
    """
    Collect the partial derivatives of a pointwise function in coordinate
    format. Entry `[j, k]` of each broadcast partial derivative array is placed
    in row `rows[j, k]` and the column of the variable at `[j, k]`.
    """
    if not con.depends_on:
        return np.empty(0), np.empty(0, dtype=int), np.empty(0, dtype=int)

    partials = con.partials(v, t, xi)
    data, cols = [], []
    for name in con.depends_on:
        d = np.broadcast_to(partials[name], shape)
        if scale is not None:
            d = d * scale
        data.append(d[row_slice].reshape(-1))
        cols.append(np.broadcast_to(index.indices(name),
                                    shape)[row_slice].reshape(-1))

    if rows is None:
        rows = np.arange(data[0].shape[0])
    else:
        rows = np.broadcast_to(rows, shape)[row_slice].reshape(-1)

    n_deps = len(con.depends_on)
    return (np.concatenate(data), np.tile(rows, n_deps),
            np.concatenate(cols))


def _point_block(con, index, t, xi):
    shape = _constraint_shape(con.domains, index.n_t, index.n_xi)
    n_rows = shape[0] * shape[1]

    def fun(z):
        v = index.unpack(z)
        return _evaluate(con, v, t, xi, shape).reshape(-1)

    def jac(z):
        v = index.unpack(z)
        data, rows, cols = _sparse_partials(con, index, v, t, xi, shape)
        return sparse.csr_matrix((data, (rows, cols)),
                                 shape=(n_rows, index.size))

    return ConstraintBlock(con.name, con.kind, fun, jac, con.lb, con.ub,
                           _support_grid(shape, con.domains))


def _derivative_block(con, index, t, xi, D):
    """
    Collocation equations `D @ x - rhs(x) == 0` at all time supports after the
    first, where `D` is the finite element differentiation operator.
    """
    shape = index.shape(con.state)
    n_c = shape[1]
    n_rows = (shape[0] - 1) * n_c

    # Linear part of the Jacobian, kron(D, I) acting on the state block
    linear_part = sparse.kron(D, sparse.identity(n_c), format='coo')
    linear_data = linear_part.data
    linear_rows = linear_part.row
    linear_cols = linear_part.col + index.slice(con.state).start

    def fun(z):
        v = index.unpack(z)
        f = _evaluate(con, v, t, xi, shape)
        return (D @ v[con.state] - f[1:]).reshape(-1)

    def jac(z):
        v = index.unpack(z)
        data, rows, cols = _sparse_partials(con, index, v, t, xi, shape,
                                            scale=-1., row_slice=slice(1, None))
        data = np.concatenate((linear_data, data))
        rows = np.concatenate((linear_rows, rows))
        cols = np.concatenate((linear_cols, cols))
        return sparse.csr_matrix((data, (rows, cols)),
                                 shape=(n_rows, index.size))

    row_supports = _support_grid(shape, con.domains)[n_c:]

    return ConstraintBlock(con.name, con.kind, fun, jac, 0., 0., row_supports)


def _initial_block(con, index, xi, t0_idx):
    cols = index.indices(con.state)[t0_idx]
    n_rows = cols.shape[0]

    if 'xi' not in con.domains:
        xi = xi[:1]
    value = con.evaluate(xi)

    A = sparse.csr_matrix((np.ones(n_rows), (np.arange(n_rows), cols)),
                          shape=(n_rows, index.size))

    def fun(z):
        return z[cols] - value

    def jac(z):
        return A

    row_supports = np.stack((np.full(n_rows, t0_idx),
                             np.arange(n_rows) if 'xi' in con.domains
                             else np.full(n_rows, -1)), axis=1)

    return ConstraintBlock(con.name, con.kind, fun, jac, 0., 0., row_supports)


def _expectation_block(con, index, t, xi, supports):
    shape = (index.n_t, index.n_xi)

    if con.over == 'xi':
        weights = supports.probabilities.reshape(1, -1)
        rows = np.arange(index.n_t).reshape(-1, 1)
        n_rows = index.n_t
        axis = 1
        row_supports = np.stack((np.arange(n_rows), np.full(n_rows, -1)),
                                axis=1)
    else:
        span = supports.registry.time.span
        weights = supports.time.weights.reshape(-1, 1) / span
        rows = np.arange(index.n_xi).reshape(1, -1)
        n_rows = index.n_xi
        axis = 0
        row_supports = np.stack((np.full(n_rows, -1), np.arange(n_rows)),
                                axis=1)

    def fun(z):
        v = index.unpack(z)
        g = _evaluate(con, v, t, xi, shape)
        return np.sum(weights * g, axis=axis)

    def jac(z):
        v = index.unpack(z)
        data, rows_, cols = _sparse_partials(con, index, v, t, xi, shape,
                                             scale=weights, rows=rows)
        return sparse.csr_matrix((data, (rows_, cols)),
                                 shape=(n_rows, index.size))

    return ConstraintBlock(con.name, con.kind, fun, jac, con.lb, con.ub,
                           row_supports)


def _make_objective(objective, index, t, xi, supports):
    """
    Quadrature of the integral objective,
    `sum_j sum_k w[j] * p[k] * integrand(t[j], xi[k])`, where `w` are the
    time quadrature weights and `p` the sample probabilities.
    """
    shape = (index.n_t, index.n_xi)
    weights = np.outer(supports.time.weights, supports.probabilities)

    def obj_fun(z):
        v = index.unpack(z)
        L = _evaluate(objective, v, t, xi, shape)
        cost = np.sum(weights * L)

        data, _, cols = _sparse_partials(objective, index, v, t, xi, shape,
                                         scale=weights)
        grad = np.bincount(cols, weights=data, minlength=index.size)

        return cost, grad

    return obj_fun
