"""
`infinitecontrol` poses and solves optimal control problems whose decision
variables are functions over a continuous time interval and over the support of
an uncertain parameter. Such infinite-dimensional problems are transcribed into
finite nonlinear programs (NLPs) by orthogonal collocation in time and sample
averaging over the uncertain parameter, and the resulting NLP is handed to
`scipy.optimize.minimize`.

The package is organized as a sequence of stages, each a pure transformation of
the output of the one before:

* [`domains`](domains): Infinite domains (`Interval`, `Distribution`) and their
    discretization directives (`TimeDiscretization`, `SampleDiscretization`),
    collected in a `Registry`.

* [`supports`](supports): Generate the finite time grid and uncertainty samples
    (`SupportSet`s) realizing each domain.

* [`problem`](problem): The `InfiniteProblem` template class declaring
    infinite variables, constraints, and the objective, and the stochastic
    `SEIRProblem` for epidemic mitigation.

* [`transcription`](transcription): Expand infinite variables and constraints
    over the supports, assemble the NLP, solve it, and reconstruct the
    solution.
"""

__version__ = '0.1.0'
