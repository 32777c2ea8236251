"""
Unit tests for sowfaview.computations module.
"""

import unittest
import warnings
import numpy as np
from sowfaview.computations import (
    turbulence_intensity,
    moving_average,
    window_sample_count,
    nominal_time_step,
    check_time_range,
    filter_time_range,
    smooth_velocity,
    sweep_intervals,
    update_session_sweep,
    session_sweep,
    smooth_session,
    parse_interval_list,
    format_interval_list,
    parse_time_range,
    parse_probe_id,
    location_bounds,
    nearest_probe
)
from sowfaview.exceptions import DegenerateComputationWarning, InvalidParameterError
from sowfaview.structs import AnalysisSession, ProbeDataset


def make_dataset(num_steps=200, num_probes=2, dt=0.1, seed=1):
    rng = np.random.default_rng(seed)
    time = np.arange(num_steps) * dt
    velocities = rng.normal(0.0, 1.0, size=(num_steps, 3, num_probes)).astype(np.float32)
    velocities[:, 0, :] += 10.0
    locations = np.zeros((num_probes, 3))
    return ProbeDataset(time, locations, velocities)


class TestTurbulenceIntensity(unittest.TestCase):
    """Test cases for turbulence_intensity function."""

    def test_constant_signal(self):
        self.assertEqual(turbulence_intensity(np.array([5.0, 5.0, 5.0, 5.0, 5.0])), 0.0)

    def test_known_value(self):
        """std uses N-1 normalisation: std([1, 2, 3]) = 1, mean = 2."""
        self.assertAlmostEqual(turbulence_intensity(np.array([1.0, 2.0, 3.0])), 50.0)

    def test_order_independent(self):
        rng = np.random.default_rng(3)
        x = rng.normal(8.0, 1.0, size=500)
        self.assertAlmostEqual(turbulence_intensity(x), turbulence_intensity(rng.permutation(x)), places=10)

    def test_zero_mean(self):
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            result = turbulence_intensity(np.array([-1.0, 1.0]))
        self.assertTrue(np.isinf(result))
        self.assertTrue(any(issubclass(w.category, DegenerateComputationWarning) for w in caught))

    def test_empty(self):
        with self.assertRaises(InvalidParameterError):
            turbulence_intensity(np.array([]))


class TestMovingAverage(unittest.TestCase):
    """Test cases for moving_average function."""

    def test_window_of_one_is_identity(self):
        x = np.array([3.0, -1.0, 4.0, 1.0, 5.0])
        np.testing.assert_array_equal(moving_average(x, 1), x)

    def test_output_length(self):
        x = np.arange(8, dtype=float)
        for window in range(1, 20):
            self.assertEqual(len(moving_average(x, window)), len(x))

    def test_odd_window(self):
        """Window 3: interior points are 3-sample centered means, the ends shrink."""
        x = np.arange(1, 9, dtype=float)
        result = moving_average(x, 3)
        self.assertEqual(len(result), 8)
        self.assertEqual(result[1], 2.0)  # mean(1, 2, 3)
        np.testing.assert_array_almost_equal(result, [1.5, 2, 3, 4, 5, 6, 7, 7.5])

    def test_even_window(self):
        """Window 4 covers two samples before and one after."""
        x = np.arange(1, 9, dtype=float)
        np.testing.assert_array_almost_equal(moving_average(x, 4),
                                             [1.5, 2, 2.5, 3.5, 4.5, 5.5, 6.5, 7])

    def test_window_longer_than_signal(self):
        x = np.array([1.0, 2.0, 3.0])
        np.testing.assert_array_almost_equal(moving_average(x, 10), [2.0, 2.0, 2.0])

    def test_keeps_single_precision(self):
        x = np.arange(10, dtype=np.float32)
        self.assertEqual(moving_average(x, 3).dtype, np.float32)

    def test_integer_input(self):
        self.assertEqual(moving_average(np.array([1, 2, 3]), 2).dtype, np.float64)

    def test_invalid_window(self):
        for window in (0, -2, 2.5):
            with self.assertRaises(InvalidParameterError):
                moving_average(np.arange(5.0), window)


class TestWindowSampleCount(unittest.TestCase):
    """Test cases for window_sample_count function."""

    def test_rounds_half_away_from_zero(self):
        self.assertEqual(window_sample_count(0.625, 0.25), 3)

    def test_short_interval_is_one_sample(self):
        self.assertEqual(window_sample_count(0.1, 0.25), 1)

    def test_regular(self):
        self.assertEqual(window_sample_count(1.0, 0.25), 4)

    def test_non_positive_interval(self):
        for interval in (0.0, -1.0, float('nan')):
            with self.assertRaises(InvalidParameterError):
                window_sample_count(interval, 0.1)

    def test_nominal_time_step(self):
        self.assertEqual(nominal_time_step(np.array([0.0, 0.1001, 0.2002, 0.3003])), 0.1)


class TestTimeRange(unittest.TestCase):
    """Test cases for time range validation and filtering."""

    def setUp(self):
        self.data = make_dataset(num_steps=50)

    def test_valid_range(self):
        self.assertEqual(check_time_range((1.0, 2.0), self.data.time), (1.0, 2.0))

    def test_inverted_range(self):
        with self.assertRaises(InvalidParameterError):
            check_time_range((2.0, 1.0), self.data.time)

    def test_empty_range(self):
        with self.assertRaises(InvalidParameterError):
            check_time_range((1.0, 1.0), self.data.time)

    def test_non_numeric_values(self):
        for time_range in (("a", 2.0), (1.0, None), ([1.0], 2.0)):
            with self.assertRaises(InvalidParameterError):
                check_time_range(time_range, self.data.time)

    def test_out_of_bounds(self):
        with self.assertRaises(InvalidParameterError):
            check_time_range((-1.0, 2.0), self.data.time)
        with self.assertRaises(InvalidParameterError):
            check_time_range((1.0, 100.0), self.data.time)

    def test_filter(self):
        time, velocity = filter_time_range(self.data, 2, (1.0, 2.0))
        self.assertTrue(np.all((time >= 1.0) & (time <= 2.0)))
        self.assertEqual(velocity.shape, (len(time), 3))
        np.testing.assert_array_equal(velocity[:, 0], self.data.velocities[(self.data.time >= 1.0) & (self.data.time <= 2.0), 0, 1])

    def test_invalid_probe_index(self):
        for probe_index in (0, 3, 1.0, "1"):
            with self.assertRaises(InvalidParameterError):
                filter_time_range(self.data, probe_index, (1.0, 2.0))


class TestSmoothVelocity(unittest.TestCase):
    """Test cases for smooth_velocity function."""

    def test_short_interval_returns_raw(self):
        data = make_dataset()
        result = smooth_velocity(data, 1, data.time_span(), 0.01)
        self.assertEqual(result.window_samples, 1)
        np.testing.assert_array_equal(result.smoothed, result.raw)

    def test_smoothing_all_components(self):
        data = make_dataset()
        result = smooth_velocity(data, 1, data.time_span(), 0.5)
        self.assertEqual(result.window_samples, 5)
        for comp in range(3):
            np.testing.assert_array_almost_equal(result.smoothed[:, comp],
                                                 moving_average(result.raw[:, comp], 5))
        self.assertEqual(result.u.shape, result.time.shape)


class TestSweepIntervals(unittest.TestCase):
    """Test cases for sweep_intervals function."""

    def setUp(self):
        self.data = make_dataset()
        self.time_range = self.data.time_span()

    def test_sorted_results(self):
        results = sweep_intervals(self.data, 1, self.time_range, [5.0, 0.01, 1.0])
        self.assertEqual([interval for interval, _ in results], [0.01, 1.0, 5.0])

    def test_short_interval_matches_baseline(self):
        results = sweep_intervals(self.data, 1, self.time_range, [0.01])
        baseline = turbulence_intensity(self.data.velocities[:, 0, 0])
        self.assertAlmostEqual(results[0][1], baseline)

    def test_smoothing_reduces_intensity(self):
        results = sweep_intervals(self.data, 1, self.time_range, [0.01, 2.0])
        self.assertLess(results[1][1], results[0][1])

    def test_empty_interval_list(self):
        with self.assertRaises(InvalidParameterError):
            sweep_intervals(self.data, 1, self.time_range, [])

    def test_non_positive_interval(self):
        for intervals in ([0.0], [1.0, -2.0]):
            with self.assertRaises(InvalidParameterError):
                sweep_intervals(self.data, 1, self.time_range, intervals)


class TestSessionOperations(unittest.TestCase):
    """Test cases for session-level sweep and smoothing."""

    def setUp(self):
        self.data = make_dataset()
        self.session = AnalysisSession.for_dataset(self.data, 2)

    def test_update_session_sweep(self):
        results = update_session_sweep(self.data, self.session)
        self.assertEqual(len(results), len(self.session.intervals))
        self.assertIs(self.session.sweep_results, results)
        self.assertAlmostEqual(self.session.baseline_intensity,
                               turbulence_intensity(self.data.velocities[:, 0, 1]))

    def test_time_range_change_invalidates_cache(self):
        update_session_sweep(self.data, self.session)
        self.session.set_time_range((2.0, 10.0), self.data.time)
        self.assertIsNone(self.session.sweep_results)
        results = session_sweep(self.data, self.session)
        self.assertIsNotNone(self.session.sweep_results)
        self.assertEqual(results, self.session.sweep_results)

    def test_smooth_session(self):
        self.session.set_averaging_window(0.3)
        result = smooth_session(self.data, self.session)
        self.assertEqual(result.window_samples, 3)
        self.assertFalse(self.session.busy)

    def test_reentrant_computation_rejected(self):
        with self.session.computing():
            with self.assertRaises(RuntimeError):
                update_session_sweep(self.data, self.session)


class TestInputParsing(unittest.TestCase):
    """Test cases for text input parsing."""

    def setUp(self):
        self.time = np.linspace(0.0, 10.0, 101)

    def test_parse_interval_list(self):
        self.assertEqual(parse_interval_list("5, 1,2"), [1.0, 2.0, 5.0])

    def test_parse_interval_list_invalid(self):
        for text in ("1,a", "1,-2", "0", "", "1,,2"):
            with self.assertRaises(InvalidParameterError):
                parse_interval_list(text)

    def test_format_interval_list(self):
        self.assertEqual(format_interval_list([1.0, 2.5, 10.0]), "1,2.5,10")

    def test_parse_time_range(self):
        self.assertEqual(parse_time_range("1.5, 8", self.time), (1.5, 8.0))

    def test_parse_time_range_invalid(self):
        for text in ("1", "1,2,3", "a,b", "5,2", "0,20"):
            with self.assertRaises(InvalidParameterError):
                parse_time_range(text, self.time)

    def test_parse_probe_id(self):
        self.assertEqual(parse_probe_id(" 3 ", 5), 3)

    def test_parse_probe_id_invalid(self):
        for text in ("0", "6", "2.5", "x", ""):
            with self.assertRaises(InvalidParameterError):
                parse_probe_id(text, 5)


class TestProbeGeometry(unittest.TestCase):
    """Test cases for location_bounds and nearest_probe."""

    def setUp(self):
        self.locations = np.array([[0.0, 0.0, 0.0], [10.0, 0.0, 5.0], [4.0, 2.0, 1.0]])

    def test_location_bounds(self):
        min_loc, max_loc, center, max_range = location_bounds(self.locations)
        np.testing.assert_array_equal(min_loc, [0.0, 0.0, 0.0])
        np.testing.assert_array_equal(max_loc, [10.0, 2.0, 5.0])
        np.testing.assert_array_equal(center, [5.0, 1.0, 2.5])
        self.assertEqual(max_range, 10.0)

    def test_coincident_probes(self):
        _, _, _, max_range = location_bounds(np.ones((3, 3)))
        self.assertEqual(max_range, 1.0)

    def test_nearest_probe(self):
        probe_id, distance = nearest_probe(self.locations, [9.0, 0.0, 5.0])
        self.assertEqual(probe_id, 2)
        self.assertAlmostEqual(distance, 1.0)


if __name__ == '__main__':
    unittest.main()
