"""Fork-join execution of row kernels over contiguous chunks.

Every stage of the solver is written as a numba kernel with the signature
``kernel(start, stop, *args)`` that updates the rows ``start <= i < stop`` of a
single output buffer and reads only buffers that no worker writes during the
same pass. ``ChunkedExecutor`` splits a row range into contiguous chunks, runs
one chunk per worker thread and blocks until every chunk has finished.

Kernels are compiled with ``nogil=True`` so the threads run concurrently. Since
each output cell is a pure function of buffers that are not written during the
pass, results do not depend on the number of workers or on scheduling order.
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor, wait

import numpy as np

logger = logging.getLogger(__name__)


class ChunkedExecutor:
    """Thread pool dispatching row kernels chunk by chunk.

    Parameters
    ----------
    n_workers : int, optional
        Number of worker threads. Defaults to ``os.cpu_count()``. With a single
        worker kernels run inline in the calling thread.
    """

    def __init__(self, n_workers=None):
        if n_workers is None:
            n_workers = os.cpu_count() or 1
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        self.n_workers = int(n_workers)
        self._pool = None
        if self.n_workers > 1:
            self._pool = ThreadPoolExecutor(
                max_workers=self.n_workers, thread_name_prefix="mac-worker"
            )
        logger.debug("ChunkedExecutor started with %d worker(s)", self.n_workers)

    def partition(self, lo, hi):
        """Split ``[lo, hi)`` into at most ``n_workers`` contiguous chunks.

        Chunk sizes differ by at most one row; empty ranges give no chunks.
        """
        n_rows = hi - lo
        if n_rows <= 0:
            return []
        n_chunks = min(self.n_workers, n_rows)
        base, extra = divmod(n_rows, n_chunks)
        chunks = []
        start = lo
        for c in range(n_chunks):
            stop = start + base + (1 if c < extra else 0)
            chunks.append((start, stop))
            start = stop
        return chunks

    def map_rows(self, kernel, lo, hi, *args):
        """Run ``kernel(start, stop, *args)`` on every chunk of ``[lo, hi)``.

        Returns the per-chunk return values in chunk order. Exceptions raised by
        a worker are re-raised here after all chunks have completed.
        """
        chunks = self.partition(lo, hi)
        if self._pool is None or len(chunks) <= 1:
            return [kernel(start, stop, *args) for start, stop in chunks]

        futures = [self._pool.submit(kernel, start, stop, *args) for start, stop in chunks]
        wait(futures)  # barrier
        return [f.result() for f in futures]

    def max_rows(self, kernel, lo, hi, *args):
        """``map_rows`` followed by a max-reduction of the chunk results.

        A NaN chunk result makes the reduction NaN.
        """
        results = self.map_rows(kernel, lo, hi, *args)
        return float(np.max(results)) if results else 0.0

    def close(self):
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
