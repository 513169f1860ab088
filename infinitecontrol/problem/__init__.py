"""
The `problem` module implements the `InfiniteProblem` class which serves as a
standard template for subclasses implementing specific infinite-dimensional
optimal control problems. Model constants are not hard-coded in the problem
classes; instead these are stored in a `ProblemParameters` instance which is
attached to the problem, initialized with defaults attached to the class, and
can be updated afterwards (e.g. for parameter sweeps).

---

* [`InfiniteProblem`](problem/problem#InfiniteProblem):
    Base superclass used to declare problems.

* [`SEIRProblem`](problem/epidemic#SEIRProblem):
    Epidemic mitigation under an uncertain incubation rate.

* [`ProblemParameters`](problem/parameters#ProblemParameters):
    Class housing model constants for `InfiniteProblem` instances.

* [`declarations`](problem/declarations):
    `InfiniteVariable`, constraint, and objective declarations.
"""

from .parameters import ProblemParameters
from .declarations import (InfiniteVariable, Constraint, DerivativeConstraint,
                           PointConstraint, InitialCondition,
                           ExpectationConstraint, IntegralObjective)
from .problem import InfiniteProblem
from .epidemic import SEIRProblem
