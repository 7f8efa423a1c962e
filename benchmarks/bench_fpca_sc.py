import gc
import pprint
import sys
import time

import numpy as np

from sfpca import FunctionalDataGenerator, SmoothedCovarianceFPCA
from sfpca.fpca import CovarianceSmoothingParams, orthonormal_polynomials


def benchmark_fpca_sc(y, argvals, cov_params):
    """Benchmark one SmoothedCovarianceFPCA fit."""
    gc.collect()  # Clear garbage collector to avoid interference
    start_time = time.time_ns()
    model = SmoothedCovarianceFPCA(cov_params=cov_params).fit(y, argvals=argvals)
    elapsed_time = time.time_ns() - start_time
    stage_times = model.elapsed_time_
    del model  # Free memory
    return elapsed_time, stage_times


if __name__ == "__main__":
    n, m = 200, 100
    argvals = np.linspace(0.0, 1.0, m)
    fdg = FunctionalDataGenerator(
        argvals,
        lambda t: np.sin(2.0 * np.pi * t),
        orthonormal_polynomials(argvals, 3),
        np.exp(-np.linspace(0.0, 1.0, 3)),
        error_var=0.05,
    )
    settings = {
        "two-step": CovarianceSmoothingParams(),
        "two-step, symmetric": CovarianceSmoothingParams(use_symm=True),
        "direct": CovarianceSmoothingParams(cov_est_method=1),
    }

    print("Python Information:\n", sys.version)
    np.show_config()

    num_replications = 10
    run_times = dict()
    last_stage_times = dict()
    for name, cov_params in settings.items():
        run_times[name] = []
        for i in range(num_replications):
            y, _ = fdg.generate(n, seed=i)
            y = FunctionalDataGenerator.make_missing(y, 0.1, seed=i)
            elapsed_time, last_stage_times[name] = benchmark_fpca_sc(y, argvals, cov_params)
            run_times[name].append(elapsed_time)

    for name in settings:
        # remove fastest and slowest
        run_times_remove = np.sort(run_times[name])[1:-1]
        print(
            f"Average time (remove fastest and slowest) for {num_replications} replications with {n} curves on {m} grid points "
            + f"for SmoothedCovarianceFPCA ({name}): {np.mean(run_times_remove) / 1e9:.6f} seconds"
        )
        print(f"Standard deviation of run times: {np.std(run_times_remove) / 1e9:.6f} seconds")

    for name, stage_times in last_stage_times.items():
        print(f"setting - {name}, stage times of the last run:")
        pprint.pprint(stage_times)
