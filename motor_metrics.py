"""
Open-loop step response of the motor and the usual time-domain indices.

Speed-loop requirements for a unit step command:
  - settling time < 2 s
  - overshoot < 5 %
  - steady-state error < 1 %
The bare motor settles at ~0.1 rad/s per volt, so it fails the last one.
"""

import logging
from dataclasses import dataclass

import numpy as np

from motor import DCMotorParams, DCMotorSim

logger = logging.getLogger(__name__)


def step_response(params: DCMotorParams, voltage=1.0, sim_time=3.0, dt=0.001):
    """Speed and current after a voltage step at t=0, motor initially at rest."""
    plant = DCMotorSim(params, dt=dt)
    plant.reset(0.0, 0.0)

    steps = int(round(sim_time / dt))
    t = np.arange(steps + 1) * dt
    w_hist = np.zeros(steps + 1)
    i_hist = np.zeros(steps + 1)

    for k in range(1, steps + 1):
        w_hist[k], i_hist[k] = plant.step(voltage)

    logger.debug("step response: %d samples, final speed %.6g rad/s", len(t), w_hist[-1])
    return t, w_hist, i_hist


@dataclass(frozen=True)
class StepInfo:
    """Time-domain indices of one step response, relative to its final value."""
    rise_time: float       # s, 10 % -> 90 % of the change
    overshoot: float       # % of the change, past the final value
    settling_time: float   # s, NaN when the last sample is outside the band
    peak: float
    peak_time: float
    final_value: float


def step_info(t, y, final_value=None, settling_band=0.02) -> StepInfo:
    """
    Rise time, overshoot and settling time of a sampled step response.

    The reference level is the response's own final value (the last sample
    unless `final_value` is given), so a plant with any DC gain gets finite
    indices. Settling time is the first sample after which the response
    stays within ±settling_band of the change for good.
    """
    t = np.asarray(t, dtype=float)
    y = np.asarray(y, dtype=float)
    nan = float("nan")
    if len(t) < 2:
        return StepInfo(nan, 0.0, nan, nan, nan, nan if final_value is None else float(final_value))

    y0 = y[0]
    final = float(y[-1] if final_value is None else final_value)
    change = final - y0
    # measure along the direction of the step, so a negative step is mirrored
    sign = -1.0 if change < 0 else 1.0
    rel = sign * (y - y0)
    size = abs(change)

    k_peak = int(np.argmax(rel))
    peak, peak_time = float(y[k_peak]), float(t[k_peak])

    rise = nan
    overshoot = 0.0
    if size > 1e-12 * max(abs(final), abs(y0), 1.0):
        above10 = np.nonzero(rel >= 0.1 * size)[0]
        above90 = np.nonzero(rel >= 0.9 * size)[0]
        if above10.size and above90.size:
            rise = float(t[above90[0]] - t[above10[0]])
        overshoot = max((rel[k_peak] - size) / size * 100.0, 0.0)
        band = settling_band * size
    else:
        band = settling_band * abs(final)

    outside = np.nonzero(np.abs(y - final) > band)[0]
    if not outside.size:
        settle = float(t[0])
    elif outside[-1] < len(t) - 1:
        settle = float(t[outside[-1] + 1])
    else:
        settle = nan

    return StepInfo(rise, overshoot, settle, peak, peak_time, final)


def steady_state_error(y, target):
    """Percent error of the last sample with respect to target."""
    target = float(target)
    final = float(np.asarray(y, dtype=float)[-1])
    if target == 0:
        return abs(final) * 100.0
    return abs(target - final) / abs(target) * 100.0


@dataclass(frozen=True)
class DesignRequirements:
    settling_time: float = 2.0        # s
    overshoot: float = 5.0            # %
    steady_state_error: float = 1.0   # %


@dataclass(frozen=True)
class RequirementsReport:
    info: StepInfo
    target: float
    steady_state_error: float
    settling_ok: bool
    overshoot_ok: bool
    steady_state_ok: bool

    @property
    def passed(self) -> bool:
        return self.settling_ok and self.overshoot_ok and self.steady_state_ok


def evaluate_requirements(t, y, target=1.0, requirements=DesignRequirements(), settling_band=0.02):
    """
    Check a response against the design requirements. Transient indices come
    from the response itself; only the steady-state error uses `target`.
    """
    info = step_info(t, y, settling_band=settling_band)
    sse = steady_state_error(y, target)
    report = RequirementsReport(
        info=info,
        target=float(target),
        steady_state_error=sse,
        # NaN (never settled) compares False
        settling_ok=bool(info.settling_time < requirements.settling_time),
        overshoot_ok=bool(info.overshoot < requirements.overshoot),
        steady_state_ok=bool(sse < requirements.steady_state_error),
    )
    logger.debug("requirements report: %s", report)
    return report
