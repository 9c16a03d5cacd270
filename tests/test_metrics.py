"""
Tests for run diagnostics and the JSON / CSV helpers.
"""
import math
import pytest
import numpy as np
import sys
import tempfile
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from respmat.eval.metrics import (
    relative_l2_error, eigenvalue_error_pcm, evaluate_result, ResponseMetrics,
)
from respmat.data.schema import ResponseResult
from respmat.utils.io_utils import save_json, load_json, save_csv


def make_result(flux_error, inners, status, eigenvalues=(1.01,)):
    m = len(status)
    return ResponseResult(
        coef=np.zeros((4, m, m)),
        R=np.zeros((4 * m, 4 * m)),
        eigenvalues=np.asarray(eigenvalues, dtype=np.complex128),
        mode_flux_error=np.asarray(flux_error, dtype=np.float64),
        mode_total_inners=np.asarray(inners, dtype=np.int64),
        mode_status=list(status),
        failed_modes=[k for k, s in enumerate(status) if s == "failed"],
    )


class TestErrors:
    def test_relative_l2_perfect(self):
        a = np.arange(6.0).reshape(2, 3)
        assert relative_l2_error(a, a) == pytest.approx(0.0, abs=1e-12)

    def test_relative_l2_known(self):
        assert relative_l2_error(np.zeros(4), np.ones(4)) == pytest.approx(1.0)

    def test_relative_zero_denominator(self):
        # eps keeps the ratio finite
        assert math.isfinite(relative_l2_error(np.ones(3), np.zeros(3)))

    def test_pcm(self):
        assert eigenvalue_error_pcm(1.001, 1.0) == pytest.approx(100.0)
        assert eigenvalue_error_pcm(0.99, 1.0) == pytest.approx(-1000.0)


class TestEvaluateResult:
    def test_all_converged(self):
        result = make_result([1e-10, 3e-10], [4, 6], ["converged", "converged"])
        m = evaluate_result(result, reference_keff=1.0)
        assert isinstance(m, ResponseMetrics)
        assert m.number_modes == 2
        assert m.converged_modes == 2
        assert m.failed_modes == 0
        assert m.max_flux_error == pytest.approx(3e-10)
        assert m.mean_total_inners == pytest.approx(5.0)
        assert m.dominant_eigenvalue == pytest.approx(1.01)
        assert m.eigenvalue_error_pcm == pytest.approx(1000.0)

    def test_failed_modes_excluded(self):
        result = make_result([np.nan, 1e-9, 2e-9], [-1, 8, 10],
                             ["failed", "converged", "max_iterations"])
        m = evaluate_result(result)
        assert m.failed_modes == 1
        assert m.converged_modes == 1
        assert m.max_flux_error == pytest.approx(2e-9)
        assert m.mean_total_inners == pytest.approx(9.0)
        assert math.isnan(m.eigenvalue_error_pcm)

    def test_no_eigenvalues(self):
        result = make_result([1e-9], [3], ["converged"], eigenvalues=())
        m = evaluate_result(result, reference_keff=1.0)
        assert math.isnan(m.dominant_eigenvalue)
        assert math.isnan(m.eigenvalue_error_pcm)

    def test_to_dict(self):
        d = evaluate_result(make_result([1e-9], [3], ["converged"])).to_dict()
        assert set(d) >= {"number_modes", "max_flux_error", "dominant_eigenvalue"}


class TestIOUtils:
    def test_json_numpy_values(self):
        data = {"arr": np.arange(3), "n": np.int64(4), "x": np.float32(0.5),
                "k": np.complex128(1.0 + 2.0j)}
        with tempfile.TemporaryDirectory() as tmpdir:
            path = str(Path(tmpdir) / "sub" / "out.json")
            save_json(data, path)
            back = load_json(path)
        assert back["arr"] == [0, 1, 2]
        assert back["n"] == 4
        assert back["x"] == pytest.approx(0.5)
        assert back["k"] == {"real": 1.0, "imag": 2.0}

    def test_csv_columns(self):
        rows = [{"mode": 0, "status": "converged"}, {"mode": 1, "status": "failed", "note": "budget"}]
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "modes.csv"
            save_csv(rows, str(path))
            lines = path.read_text().splitlines()
        assert lines[0] == "mode,status,note"
        assert lines[1] == "0,converged,"
        assert lines[2] == "1,failed,budget"

    def test_csv_empty_writes_nothing(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "empty.csv"
            save_csv([], str(path))
            assert not path.exists()
