"""
DC motor speed model from the command line.

    motor-model                       # example motor
    motor-model --K 0.02 --L 0.25     # override some of them
    motor-model --config motor.json --step --plot step.html
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

import numpy as np
import plotly.graph_objects as go

from motor import BASE_PARAMS, DCMotorParams, InvalidParameterError
from motor_metrics import evaluate_requirements, step_response
from motor_models import MotorModelBuilder, state_space_to_transfer_function

logger = logging.getLogger("motor_model")

PARAM_NAMES = ("J", "b", "K", "R", "L")

PARAM_HELP = {
    "J": "rotor inertia [kg·m²]",
    "b": "viscous friction [N·m·s]",
    "K": "torque / back-emf constant [N·m/A]",
    "R": "armature resistance [Ω]",
    "L": "armature inductance [H]",
}


class ConfigError(Exception):
    pass


class SettingsError(Exception):
    pass


# =======================
# LOGGING
# =======================
def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configures the 'motor_model' logger and the library module loggers.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
    """
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, mode='w', encoding='utf-8'))
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    for name in ("motor_model", "motor", "motor_models", "motor_metrics"):
        log = logging.getLogger(name)
        log.setLevel(level)
        # avoid duplicate output when main() runs more than once
        for old in list(log.handlers):
            log.removeHandler(old)
            old.close()
        for handler in handlers:
            log.addHandler(handler)
        log.propagate = False


# =======================
# CONFIG
# =======================
def load_config(path) -> dict:
    """Parameter overrides from a JSON object, e.g. {"J": 0.02, "L": 0.4}."""
    try:
        with open(path, encoding="utf-8") as fh:
            data = json.load(fh)
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"config file {path} is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must hold a JSON object")
    unknown = sorted(set(data) - set(PARAM_NAMES))
    if unknown:
        raise ConfigError(f"unknown parameter(s) in {path}: {', '.join(unknown)}")
    return data


def resolve_params(args) -> DCMotorParams:
    """Defaults, then the config file, then command-line flags."""
    overrides = {}
    if args.config:
        overrides.update(load_config(args.config))
    for name in PARAM_NAMES:
        value = getattr(args, name)
        if value is not None:
            overrides[name] = value
    return replace(BASE_PARAMS, **overrides)


def check_settings(args) -> None:
    """Simulation settings must be usable before anything is printed."""
    for flag, value in (("--dt", args.dt), ("--sim-time", args.sim_time)):
        if not value > 0:
            raise SettingsError(f"{flag} must be > 0, got {value:g}")


# =======================
# HELPERS
# =======================
def fmt_speed(w):
    """rad/s with the RPM equivalent."""
    return f"{w:.4g} rad/s ({w * 30.0 / np.pi:.1f} RPM)"


def fmt_time(x, missing="n/a"):
    return missing if np.isnan(x) else f"{x:.3f} s"


def fmt_pole(p):
    if p.imag == 0:
        return f"{p.real:.4g}"
    return f"{p.real:.4g}{p.imag:+.4g}j"


def fmt_check(ok):
    return "ok" if ok else "FAIL"


def step_figure(t, w_hist, i_hist, voltage):
    fig = go.Figure()
    fig.add_trace(go.Scatter(
        x=t, y=w_hist,
        mode="lines",
        name="Speed (rad/s)",
    ))
    fig.add_trace(go.Scatter(
        x=t, y=i_hist,
        mode="lines",
        name="Current (A)",
        line=dict(dash="dash"),
        yaxis="y2",
    ))
    fig.update_layout(
        title=f"Open-loop Step Response ({voltage:g} V)",
        xaxis_title="Time (s)",
        yaxis_title="Speed (rad/s)",
        yaxis2=dict(title="Current (A)", overlaying="y", side="right"),
        height=420,
    )
    return fig


def report(params: DCMotorParams, show_step: bool, plot_path, voltage, sim_time, dt) -> None:
    tf, ss = MotorModelBuilder(params).models()

    print("Parameters: " + ", ".join(f"{k}={v:g}" for k, v in params.as_dict().items()))
    print()
    print("Transfer function (speed / voltage):")
    print(tf)
    print()
    print("State space, x = [speed, current]:")
    print(ss)
    print()
    print("Poles: " + ", ".join(fmt_pole(p) for p in np.sort_complex(tf.poles())))
    print(f"DC gain: {tf.dc_gain():.4g} rad/s per V")

    if not state_space_to_transfer_function(ss).is_equivalent(tf):
        logger.warning("state-space and transfer-function models disagree")

    if not (show_step or plot_path):
        return

    t, w_hist, i_hist = step_response(params, voltage=voltage, sim_time=sim_time, dt=dt)

    if show_step:
        rep = evaluate_requirements(t, w_hist, target=voltage)
        info = rep.info
        print()
        print(f"Step response ({voltage:g} V):")
        print(f"  final speed     {fmt_speed(info.final_value)}")
        print(f"  peak            {fmt_speed(info.peak)} at {fmt_time(info.peak_time)}")
        print(f"  rise time       {fmt_time(info.rise_time)}")
        print(f"  overshoot       {info.overshoot:.2f} %  [{fmt_check(rep.overshoot_ok)}]")
        print(f"  settling (±2%)  {fmt_time(info.settling_time, 'not settled')}"
              f"  [{fmt_check(rep.settling_ok)}]")
        print(f"  ss error        {rep.steady_state_error:.2f} % of {voltage:g} rad/s"
              f"  [{fmt_check(rep.steady_state_ok)}]")

    if plot_path:
        fig = step_figure(t, w_hist, i_hist, voltage)
        fig.write_html(str(plot_path))
        logger.info("Step response written to %s", plot_path)


# =======================
# CLI
# =======================
def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="motor-model",
        description="Transfer-function and state-space models of a DC motor (speed output).",
    )
    for name in PARAM_NAMES:
        parser.add_argument(
            f"--{name}", type=float, default=None,
            help=f"{PARAM_HELP[name]} (default {getattr(BASE_PARAMS, name):g})",
        )
    parser.add_argument("--config", type=Path, help="JSON file with parameter values")
    parser.add_argument("--step", action="store_true",
                        help="print open-loop step response metrics")
    parser.add_argument("--plot", type=Path, metavar="FILE.html",
                        help="write the step response figure to an HTML file")
    parser.add_argument("--voltage", type=float, default=1.0, help="step amplitude [V]")
    parser.add_argument("--sim-time", type=float, default=3.0, help="simulation time [s]")
    parser.add_argument("--dt", type=float, default=0.001, help="time step [s]")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    parser.add_argument("--log-file", help="also write logs to this file")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)

    try:
        params = resolve_params(args)
        check_settings(args)
        report(params, args.step, args.plot, args.voltage, args.sim_time, args.dt)
    except (InvalidParameterError, ConfigError, SettingsError) as e:
        logger.debug("aborting", exc_info=True)
        print(f"error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
