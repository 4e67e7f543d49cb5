import threading

import numpy as np
import pytest

from mac.core.parallel import ChunkedExecutor


def test_partition_contiguous():
    with ChunkedExecutor(n_workers=3) as ex:
        assert ex.partition(0, 10) == [(0, 4), (4, 7), (7, 10)]
        assert ex.partition(1, 3) == [(1, 2), (2, 3)]
        assert ex.partition(5, 5) == []


def test_map_rows_returns_chunk_order():
    def kernel(start, stop, scale):
        return [scale * i for i in range(start, stop)]

    with ChunkedExecutor(n_workers=4) as ex:
        results = ex.map_rows(kernel, 0, 9, 2)
    assert [x for chunk in results for x in chunk] == [2 * i for i in range(9)]


def test_max_rows():
    with ChunkedExecutor(n_workers=2) as ex:
        assert ex.max_rows(lambda start, stop: float(stop), 0, 6) == 6.0
        assert ex.max_rows(lambda start, stop: float(stop), 3, 3) == 0.0


def test_max_rows_propagates_nan():
    def kernel(start, stop):
        return float("nan") if start == 2 else float(stop)

    with ChunkedExecutor(n_workers=3) as ex:
        assert np.isnan(ex.max_rows(kernel, 0, 6))


def test_worker_exception_propagates():
    def kernel(start, stop):
        if start > 0:
            raise RuntimeError("boom")
        return start

    with ChunkedExecutor(n_workers=3) as ex:
        with pytest.raises(RuntimeError, match="boom"):
            ex.map_rows(kernel, 0, 9)


def test_single_worker_runs_inline():
    seen = []

    def kernel(start, stop):
        seen.append(threading.current_thread())

    with ChunkedExecutor(n_workers=1) as ex:
        ex.map_rows(kernel, 0, 5)
    assert seen == [threading.current_thread()]


def test_invalid_worker_count():
    with pytest.raises(ValueError):
        ChunkedExecutor(n_workers=0)


def test_default_worker_count():
    with ChunkedExecutor() as ex:
        assert ex.n_workers >= 1
