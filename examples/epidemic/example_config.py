import os

import numpy as np


# Directory where solution data will be saved
main_dir = os.path.join('examples', 'epidemic')
data_dir = os.path.join(main_dir, 'data')

os.makedirs(data_dir, exist_ok=True)

# Changes to default problem parameters
params = {'expectation': 'uncertainty'}

# Time grid: equally spaced points, refined near the start of the epidemic by
# the problem's default extra time points
num_points = 101
nodes_per_element = 2

# Uncertainty samples of the incubation rate
num_samples = 10
sampling_method = 'random'
random_seed = 123

# Keyword arguments for the NLP solver
solver_kwargs = {'method': 'trust-constr', 'tol': 1e-06, 'max_iter': 1000,
                 'max_time': 3600.}

# Values of eps for the optional sweep
eps_sweep = np.array([0.0025, 0.005, 0.01, 0.02])
