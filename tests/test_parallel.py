"""Tests for parallel infrastructure."""

import numpy as np
import pytest

from mm4core.forcefields import ForceEvaluator
from mm4core.parallel import ParallelBackend, SerialBackend
from mm4core.parallel.backends.multiprocessing_backend import MultiprocessingBackend


def _square(x):
    return x * x


class TestSerialBackend:
    """Tests for serial backend."""

    def test_serial_backend_properties(self):
        """Test serial backend basic properties."""
        backend = SerialBackend()

        assert backend.name == "serial"
        assert backend.n_workers == 1

    def test_serial_parallel_map(self):
        """Test that map preserves order."""
        backend = SerialBackend()

        assert backend.parallel_map(_square, [3, 1, 2]) == [9, 1, 4]

    def test_serial_reduce_forces(self):
        """Test reduce_forces in serial."""
        backend = SerialBackend()
        forces = np.array([[1.0, 0.0, 0.0], [0.0, 1.0, 0.0]])

        result = backend.reduce_forces([forces, 2.0 * forces], n_atoms=2)
        np.testing.assert_array_equal(result, 3.0 * forces)


class TestMultiprocessingBackend:
    """Tests for multiprocessing backend."""

    def test_multiprocessing_properties(self):
        """Test multiprocessing backend properties."""
        backend = MultiprocessingBackend(n_workers=2)

        assert backend.name == "multiprocessing"
        assert backend.n_workers == 2

    def test_invalid_worker_count(self):
        """Test that a zero worker count is rejected."""
        with pytest.raises(ValueError, match="n_workers"):
            MultiprocessingBackend(n_workers=0)

    def test_multiprocessing_parallel_map(self):
        """Test parallel map."""
        with MultiprocessingBackend(n_workers=2) as backend:
            results = backend.parallel_map(_square, [1, 2, 3, 4, 5])

        assert results == [1, 4, 9, 16, 25]

    def test_multiprocessing_parallel_map_empty(self):
        """Test parallel map with empty list."""
        backend = MultiprocessingBackend(n_workers=2)

        assert backend.parallel_map(_square, []) == []

    def test_matches_serial_evaluation(self, butane, butane_parameters):
        """Test that worker count does not change forces or energy."""
        _, _, positions = butane
        serial = ForceEvaluator.from_parameters(
            butane_parameters, backend=SerialBackend()
        )
        forces_serial, energy_serial = serial.compute_with_energy(positions)

        with MultiprocessingBackend(n_workers=3) as backend:
            parallel = ForceEvaluator.from_parameters(
                butane_parameters, backend=backend
            )
            forces_parallel, energy_parallel = parallel.compute_with_energy(positions)

        assert energy_parallel == energy_serial
        np.testing.assert_array_equal(forces_parallel, forces_serial)


class TestEvaluatorBackend:
    """Test how the evaluator picks its backend."""

    def test_default_is_private_serial(self, butane_parameters):
        """Test that each evaluator owns its own serial backend."""
        a = ForceEvaluator.from_parameters(butane_parameters)
        b = ForceEvaluator.from_parameters(butane_parameters)

        assert isinstance(a.backend, SerialBackend)
        assert a.backend is not b.backend

    def test_explicit_backend(self, butane_parameters):
        """Test that a passed backend is used as is."""
        backend = SerialBackend()
        evaluator = ForceEvaluator.from_parameters(butane_parameters, backend=backend)

        assert evaluator.backend is backend


class TestParallelBackendInterface:
    """Test that backends implement the full interface."""

    @pytest.fixture
    def backends(self):
        """Get list of backends to test."""
        return [
            SerialBackend(),
            MultiprocessingBackend(n_workers=2),
        ]

    def test_all_backends_have_name(self, backends):
        """Test all backends have name property."""
        for backend in backends:
            assert isinstance(backend.name, str)
            assert len(backend.name) > 0

    def test_all_backends_have_n_workers(self, backends):
        """Test all backends have n_workers property."""
        for backend in backends:
            assert isinstance(backend.n_workers, int)
            assert backend.n_workers >= 1

    def test_all_backends_are_parallel_backend(self, backends):
        """Test all backends inherit from ParallelBackend."""
        for backend in backends:
            assert isinstance(backend, ParallelBackend)
