"""
Index-preserving map over a Batch using a bounded thread pool.

The pool lives for exactly one call. Indices are split into contiguous,
disjoint slices, one per worker, and every worker writes straight into its
own slots of a pre-sized output list, so no merge lock is needed and
output[i] always belongs to batch[i] whatever order the workers finish in.
"""
import os
from concurrent.futures import ThreadPoolExecutor

from .errors import ParallelComputationError


def default_workers():
    return 2 * (os.cpu_count() or 1)


def partition(size, workers):
    # contiguous [start, end) slices, sizes differing by at most one
    workers = max(1, min(workers, size))
    step, extra = divmod(size, workers)
    slices = []
    start = 0
    for w in range(workers):
        end = start + step + (1 if w < extra else 0)
        slices.append((start, end))
        start = end
    return slices


def parallel_map(func, batch, max_workers=None):
    """
    Compute func(index, vector) for every example of batch.

    Returns a list ordered like the batch. If any example raises, the
    remaining work still runs to completion, no result is returned and a
    single ParallelComputationError naming the failing indices is raised.
    """
    size = len(batch)
    workers = default_workers() if max_workers is None else int(max_workers)
    if workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {max_workers}")

    results = [None] * size

    def run_slice(start, end):
        failures = []
        for index in range(start, end):
            try:
                results[index] = func(index, batch[index])
            except Exception as exc:
                failures.append((index, exc))
        return failures

    slices = partition(size, workers)
    if len(slices) == 1:
        failures = run_slice(*slices[0])
    else:
        with ThreadPoolExecutor(max_workers=len(slices)) as pool:
            futures = [pool.submit(run_slice, start, end) for start, end in slices]
            failures = []
            for future in futures:
                failures.extend(future.result())

    if failures:
        error = ParallelComputationError(failures)
        raise error from error.failures[0][1]
    return results
