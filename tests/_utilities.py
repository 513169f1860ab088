import numpy as np
from scipy import sparse
from scipy.optimize._numdiff import approx_derivative

from infinitecontrol.domains import TimeDiscretization, SampleDiscretization
from infinitecontrol.supports import generate_supports
from infinitecontrol.transcription import transcribe


def compare_finite_difference(x, jac, fun, method='3-point',
                              rtol=1e-06, atol=1e-12):
    if sparse.issparse(jac):
        jac = jac.toarray()
    expected_jac = approx_derivative(fun, x, method=method)
    np.testing.assert_allclose(jac, np.reshape(expected_jac, np.shape(jac)),
                               rtol=rtol, atol=atol)


def make_transcription(problem, num_points=11, nodes_per_element=2,
                       num_samples=3, seed=123):
    """Generate supports for a small discretization and transcribe
    `problem` over them."""
    registry = problem.make_registry(
        time_discretization=TimeDiscretization(
            num_points=num_points, nodes_per_element=nodes_per_element),
        sample_discretization=SampleDiscretization(num_samples=num_samples,
                                                   seed=seed))
    supports = generate_supports(registry)
    return transcribe(problem, supports)
