import gc
import pprint
import sys
import time

import numpy as np

from sfpca import FunctionalDataGenerator, PenalizedSVDFPCA
from sfpca.fpca import SmoothingParameterSearchParams, orthonormal_polynomials


def benchmark_fpca_ssvd(y, argvals, alpha_params):
    """Benchmark one PenalizedSVDFPCA fit."""
    gc.collect()  # Clear garbage collector to avoid interference
    start_time = time.time_ns()
    model = PenalizedSVDFPCA(alpha_params=alpha_params).fit(y, argvals=argvals)
    elapsed_time = time.time_ns() - start_time
    n_iter = model.n_iter_
    del model  # Free memory
    return elapsed_time, n_iter


if __name__ == "__main__":
    n, m = 200, 400
    argvals = np.linspace(0.0, 1.0, m)
    fdg = FunctionalDataGenerator(
        argvals,
        lambda t: np.sin(2.0 * np.pi * t),
        orthonormal_polynomials(argvals, 3),
        np.exp(-np.linspace(0.0, 1.0, 3)),
        error_var=0.05,
    )
    searches = {
        "grid": SmoothingParameterSearchParams(method="grid"),
        "bounded": SmoothingParameterSearchParams(method="bounded"),
    }

    print("Python Information:\n", sys.version)
    np.show_config()

    num_replications = 10
    run_times = dict()
    iterations = dict()
    for name, alpha_params in searches.items():
        run_times[name] = []
        iterations[name] = []
        for i in range(num_replications):
            y, _ = fdg.generate(n, seed=i)
            elapsed_time, n_iter = benchmark_fpca_ssvd(y, argvals, alpha_params)
            run_times[name].append(elapsed_time)
            iterations[name].append(n_iter.tolist())

    for name in searches:
        # remove fastest and slowest
        run_times_remove = np.sort(run_times[name])[1:-1]
        print(
            f"Average time (remove fastest and slowest) for {num_replications} replications with {n} curves on {m} grid points "
            + f"for PenalizedSVDFPCA ({name} search): {np.mean(run_times_remove) / 1e9:.6f} seconds"
        )
        print(f"Standard deviation of run times: {np.std(run_times_remove) / 1e9:.6f} seconds")

    for name, n_iter in iterations.items():
        print(f"search - {name}, power iterations per component:")
        pprint.pprint(n_iter)
