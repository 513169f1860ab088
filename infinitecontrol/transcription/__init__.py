"""
The `transcription` module turns an `InfiniteProblem` and its `Supports` into a
finite nonlinear program, solves it, and maps the solution back onto the
supports.

---

* [`transcribe`](transcription/transcribe#transcribe):
    Expand variables and constraints over the supports.

* [`assemble`](transcription/assemble#assemble):
    Collect the transcription into a flat `NLP`.

* [`solve_nlp`](transcription/solve_nlp#solve_nlp):
    Solve an `NLP` with `scipy.optimize.minimize`.

* [`reconstruct`](transcription/solution#reconstruct):
    Build a `Solution` from the solved decision vector.

* [`solve`](transcription/solve#solve):
    Run the whole pipeline.

* [`solve_sweep`](transcription/solve#solve_sweep):
    Run the pipeline for a sequence of parameter values.
"""

from .transcribe import (VariableIndex, ConstraintBlock, TranscribedProblem,
                         transcribe)
from .assemble import NLP, assemble
from .solve_nlp import NLPResult, solve_nlp
from .solution import Solution, reconstruct
from .solve import TranscriptionContext, solve, solve_sweep
