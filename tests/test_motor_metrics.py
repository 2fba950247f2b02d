"""
Step Response and Performance Index Tests
=========================================

The example motor is overdamped (poles near -2 and -10), settles in about
2 s at ~0.1 rad/s per volt, and therefore misses the 1 % steady-state error
requirement for a unit speed command.
"""

import math
import unittest

import numpy as np

from motor import BASE_PARAMS
from motor_metrics import (
    DesignRequirements,
    evaluate_requirements,
    step_info,
    step_response,
    steady_state_error,
)
from motor_models import build_transfer_function


class TestStepResponse(unittest.TestCase):
    """Open-loop voltage step on the example motor."""

    @classmethod
    def setUpClass(cls):
        cls.t, cls.w, cls.i = step_response(BASE_PARAMS, voltage=1.0, sim_time=3.0, dt=0.001)

    def test_time_axis(self):
        self.assertEqual(len(self.t), 3001)
        self.assertEqual(self.t[0], 0.0)
        self.assertAlmostEqual(self.t[-1], 3.0)
        self.assertEqual(len(self.w), len(self.t))
        self.assertEqual(len(self.i), len(self.t))

    def test_starts_at_rest(self):
        self.assertEqual(self.w[0], 0.0)
        self.assertEqual(self.i[0], 0.0)

    def test_final_speed_matches_dc_gain(self):
        gain = build_transfer_function(BASE_PARAMS).dc_gain()
        self.assertAlmostEqual(self.w[-1], gain, delta=0.01 * gain)

    def test_monotonic_speed(self):
        """Overdamped: speed never decreases."""
        self.assertTrue(np.all(np.diff(self.w) >= 0))

    def test_voltage_scales_response(self):
        t, w5, _ = step_response(BASE_PARAMS, voltage=5.0, sim_time=3.0, dt=0.001)
        np.testing.assert_allclose(w5, 5.0 * self.w, rtol=1e-9, atol=1e-15)

    def test_step_info_against_dc_gain(self):
        gain = build_transfer_function(BASE_PARAMS).dc_gain()
        info = step_info(self.t, self.w, final_value=gain)
        self.assertGreater(info.rise_time, 0.5)
        self.assertLess(info.rise_time, 1.5)
        self.assertEqual(info.overshoot, 0.0)
        self.assertGreater(info.settling_time, 1.5)
        self.assertLess(info.settling_time, 2.5)

    def test_indices_use_final_speed_not_command(self):
        """A 1 V step gives ~0.1 rad/s; transient indices are still finite."""
        report = evaluate_requirements(self.t, self.w, target=1.0)
        self.assertEqual(report.info.final_value, self.w[-1])
        self.assertFalse(math.isnan(report.info.rise_time))
        self.assertFalse(math.isnan(report.info.settling_time))
        self.assertGreater(report.info.settling_time, 1.5)
        self.assertLess(report.info.settling_time, 2.5)
        self.assertTrue(report.overshoot_ok)
        # far from a 1 rad/s command
        self.assertGreater(report.steady_state_error, 85.0)
        self.assertFalse(report.steady_state_ok)
        self.assertFalse(report.passed)


class TestStepInfo(unittest.TestCase):
    """Rise time, overshoot and settling time on known signals."""

    def test_first_order_response(self):
        """y = 1 - exp(-t): rise ln(9), settling -ln(0.02)."""
        t = np.arange(0, 10, 0.001)
        y = 1.0 - np.exp(-t)
        info = step_info(t, y, final_value=1.0)
        self.assertAlmostEqual(info.rise_time, math.log(9.0), delta=0.002)
        self.assertEqual(info.overshoot, 0.0)
        self.assertAlmostEqual(info.settling_time, -math.log(0.02), delta=0.002)

    def test_scale_free(self):
        """Same indices whatever the final level, measured from the last sample."""
        t = np.arange(0, 10, 0.001)
        y = 0.1 * (1.0 - np.exp(-t))
        info = step_info(t, y)
        self.assertEqual(info.final_value, y[-1])
        self.assertAlmostEqual(info.rise_time, math.log(9.0), delta=0.002)
        self.assertAlmostEqual(info.settling_time, -math.log(0.02), delta=0.005)

    def test_overshoot(self):
        t = np.linspace(0, 4, 5)
        y = np.array([0.0, 0.5, 1.2, 1.0, 1.0])
        info = step_info(t, y)
        self.assertAlmostEqual(info.overshoot, 20.0)
        self.assertEqual(info.settling_time, 3.0)
        self.assertEqual((info.peak, info.peak_time), (1.2, 2.0))

    def test_negative_step_mirrored(self):
        t = np.linspace(0, 4, 5)
        y = np.array([0.0, -0.5, -1.2, -1.0, -1.0])
        info = step_info(t, y)
        self.assertAlmostEqual(info.overshoot, 20.0)
        self.assertEqual(info.rise_time, 1.0)
        self.assertEqual(info.peak, -1.2)

    def test_not_settled(self):
        """Short of an explicit final value at the last sample."""
        t = np.linspace(0, 1, 11)
        y = np.linspace(0, 0.5, 11)
        info = step_info(t, y, final_value=1.0)
        self.assertTrue(math.isnan(info.settling_time))
        self.assertTrue(math.isnan(info.rise_time))

    def test_flat_response(self):
        t = np.linspace(0, 1, 11)
        y = np.ones(11)
        info = step_info(t, y)
        self.assertTrue(math.isnan(info.rise_time))
        self.assertEqual(info.overshoot, 0.0)
        self.assertEqual(info.settling_time, 0.0)

    def test_too_short(self):
        info = step_info([0.0], [0.0])
        self.assertTrue(math.isnan(info.rise_time))
        self.assertEqual(info.overshoot, 0.0)
        self.assertTrue(math.isnan(info.settling_time))


class TestRequirements(unittest.TestCase):
    """Settling < 2 s, overshoot < 5 %, steady-state error < 1 %."""

    def test_defaults(self):
        req = DesignRequirements()
        self.assertEqual((req.settling_time, req.overshoot, req.steady_state_error), (2.0, 5.0, 1.0))

    def test_steady_state_error(self):
        self.assertAlmostEqual(steady_state_error([0.0, 0.5, 0.99], 1.0), 1.0)
        self.assertAlmostEqual(steady_state_error([0.0, 2.2], 2.0), 10.0)
        self.assertAlmostEqual(steady_state_error([0.0, 0.01], 0.0), 1.0)

    def test_fast_response_passes(self):
        t = np.arange(0, 3, 0.001)
        y = 1.0 - np.exp(-5.0 * t)
        report = evaluate_requirements(t, y, target=1.0)
        self.assertTrue(report.passed)
        self.assertLess(report.info.settling_time, 1.0)

    def test_custom_requirements(self):
        t = np.arange(0, 3, 0.001)
        y = 1.0 - np.exp(-5.0 * t)
        strict = DesignRequirements(settling_time=0.5)
        report = evaluate_requirements(t, y, target=1.0, requirements=strict)
        self.assertFalse(report.settling_ok)
        self.assertFalse(report.passed)


if __name__ == "__main__":
    unittest.main()
