import argparse as ap
import os

import numpy as np

from infinitecontrol import utilities
from infinitecontrol.domains import TimeDiscretization, SampleDiscretization
from infinitecontrol.problem import SEIRProblem
from infinitecontrol.transcription import solve, solve_sweep

from examples.epidemic import example_config as config


parser = ap.ArgumentParser()
parser.add_argument('-v', '--verbose', type=int, default=1, choices=[0, 1, 2],
                    help="Solver verbosity.")
parser.add_argument('--sweep', action='store_true',
                    help="Also solve for each eps in config.eps_sweep.")
args = parser.parse_args()

problem = SEIRProblem(**config.params)

time_discretization = TimeDiscretization(
    num_points=config.num_points, nodes_per_element=config.nodes_per_element)
sample_discretization = SampleDiscretization(
    num_samples=config.num_samples, method=config.sampling_method,
    seed=config.random_seed)

sol = solve(problem, time_discretization=time_discretization,
            sample_discretization=sample_discretization, verbose=args.verbose,
            **config.solver_kwargs)

print("\n" + "+" * 80 + "\n")
print(sol.summary())

# Statistics of the infectious fraction across incubation rate samples
i_mean, i_std = sol.mean('i'), sol.std('i')
k = np.argmax(i_mean)
print(f"\nPeak mean infections: {i_mean[k]:.4f} +/- {i_std[k]:.4f} at "
      f"t = {sol.t[k]:.1f}")
print(f"Infection threshold: {problem.parameters.i_max:.4f}")
print(f"Total social distancing: {sol.objective:.4f}")

utilities.save_data(sol.to_dataframe(public_only=True),
                    os.path.join(config.data_dir, 'solution.csv'))

if args.sweep:
    print("\n" + "+" * 80 + "\n")
    print(f"Sweeping eps over {config.eps_sweep}...")

    sols = solve_sweep(problem, 'eps', config.eps_sweep,
                       time_discretization=time_discretization,
                       sample_discretization=sample_discretization,
                       **config.solver_kwargs)

    for eps, _sol in zip(config.eps_sweep, sols):
        print(f"eps = {eps:.4f}: status = {_sol.status}, objective = "
              f"{_sol.objective:.4f}")

    utilities.save_data([_sol.to_dataframe(public_only=True) for _sol in sols],
                        os.path.join(config.data_dir, 'eps_sweep.csv'))
