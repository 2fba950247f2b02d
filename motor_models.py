"""
Transfer-function and state-space models of the DC motor.

Both are derived from the same two equations (rotor torque balance and
armature voltage loop):

    J dω/dt + b ω = K i
    L di/dt + R i = V - K ω

with input V (armature voltage) and output ω (shaft speed):

    P(s) = K / ((J s + b)(L s + R) + K²)

    d/dt [ω, i] = [[-b/J, K/J], [-K/L, -R/L]] [ω, i] + [0, 1/L] V
    y = [1, 0] [ω, i]
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

import control as ct
import numpy as np

from motor import BASE_PARAMS, DCMotorParams

logger = logging.getLogger(__name__)

# leading numerator coefficients smaller than this, relative to the largest
# coefficient of num or den, are rounding residue from the conversions
_ZERO_TOL = 1e-10


def _trim_leading_zeros(coeffs: np.ndarray, scale: float) -> np.ndarray:
    if scale == 0.0:
        return np.zeros(1)
    nonzero = np.nonzero(np.abs(coeffs) > _ZERO_TOL * scale)[0]
    if not nonzero.size:
        return np.zeros(1)
    return coeffs[nonzero[0]:]


def _poly_str(coeffs: Sequence[float], var: str = "s") -> str:
    n = len(coeffs) - 1
    terms = []
    for k, c in enumerate(coeffs):
        if c == 0:
            continue
        power = n - k
        mag = abs(c)
        if power == 0:
            body = f"{mag:.4g}"
        else:
            coef = "" if mag == 1 else f"{mag:.4g} "
            body = f"{coef}{var}" if power == 1 else f"{coef}{var}^{power}"
        if not terms:
            terms.append(f"-{body}" if c < 0 else body)
        else:
            terms.append(f"- {body}" if c < 0 else f"+ {body}")
    return " ".join(terms) if terms else "0"


@dataclass(frozen=True)
class TransferFunction:
    """Rational function num(s)/den(s), coefficients highest power first."""
    num: Tuple[float, ...]
    den: Tuple[float, ...]

    def __post_init__(self):
        num = tuple(float(c) for c in np.atleast_1d(self.num))
        den = tuple(float(c) for c in np.atleast_1d(self.den))
        if not num:
            raise ValueError("numerator must have at least one coefficient")
        if not den or den[0] == 0:
            raise ValueError(f"denominator needs a non-zero leading coefficient, got {den}")
        object.__setattr__(self, "num", num)
        object.__setattr__(self, "den", den)

    @property
    def order(self) -> int:
        return len(self.den) - 1

    def evaluate(self, s: complex) -> complex:
        return complex(np.polyval(self.num, s) / np.polyval(self.den, s))

    def poles(self) -> np.ndarray:
        return np.roots(self.den)

    def dc_gain(self) -> float:
        """Value at s = 0 once common roots at the origin are cancelled."""
        num = np.asarray(self.num)
        den = np.asarray(self.den)
        if not num.any():
            return 0.0
        origin = min(len(num) - len(np.trim_zeros(num, "b")),
                     len(den) - len(np.trim_zeros(den, "b")))
        if origin:
            num, den = num[:-origin], den[:-origin]
        if den[-1] == 0:
            return math.inf
        return float(num[-1] / den[-1])

    def normalized(self) -> "TransferFunction":
        """Monic denominator, leading numerator zeros dropped."""
        num = np.asarray(self.num) / self.den[0]
        den = np.asarray(self.den) / self.den[0]
        scale = max(np.max(np.abs(num)), np.max(np.abs(den)))
        return TransferFunction(tuple(_trim_leading_zeros(num, scale)), tuple(den))

    def to_control(self) -> ct.TransferFunction:
        return ct.tf(list(self.num), list(self.den))

    @classmethod
    def from_control(cls, sys: ct.TransferFunction) -> "TransferFunction":
        """Coefficients of a SISO python-control transfer function."""
        return cls(tuple(sys.num[0][0]), tuple(sys.den[0][0]))

    def is_equivalent(self, other: "TransferFunction", rtol: float = 1e-9) -> bool:
        """Same rational function up to a common scale factor on num and den."""
        a, b = self.normalized(), other.normalized()
        if not any(a.num) and not any(b.num):
            # 0/den is zero whatever the denominator
            return True
        if len(a.num) != len(b.num) or len(a.den) != len(b.den):
            return False
        coeffs_a = np.concatenate([a.num, a.den])
        coeffs_b = np.concatenate([b.num, b.den])
        atol = rtol * np.max(np.abs(coeffs_b))
        return bool(np.allclose(coeffs_a, coeffs_b, rtol=rtol, atol=atol))

    def __str__(self):
        top = _poly_str(self.num)
        bottom = _poly_str(self.den)
        width = max(len(top), len(bottom))
        return "\n".join([
            "  " + top.center(width),
            "  " + "-" * width,
            "  " + bottom.center(width),
        ])


def _matrix_str(name: str, M: np.ndarray, rows: Sequence[str], cols: Sequence[str]) -> str:
    cells = [[f"{v:.4g}" for v in row] for row in M]
    row_w = max(len(r) for r in rows)
    col_w = max([len(c) for c in cols] + [len(v) for row in cells for v in row])
    lines = [f"  {name} =", "    " + " " * row_w + "".join(f"  {c:>{col_w}}" for c in cols)]
    for label, row in zip(rows, cells):
        lines.append(f"    {label:<{row_w}}" + "".join(f"  {v:>{col_w}}" for v in row))
    return "\n".join(lines)


@dataclass(frozen=True, eq=False)
class StateSpaceModel:
    """
    Single-input single-output realization
      dx/dt = A x + B u
      y     = C x + D u
    Matrices are stored as read-only float arrays.
    """
    A: np.ndarray
    B: np.ndarray
    C: np.ndarray
    D: np.ndarray
    state_names: Optional[Tuple[str, ...]] = None
    input_name: str = "voltage"
    output_name: str = "speed"

    def __post_init__(self):
        A = np.array(self.A, dtype=float, ndmin=2)
        n = A.shape[0]
        if A.shape != (n, n) or n == 0:
            raise ValueError(f"A must be square, got shape {A.shape}")
        B = np.array(self.B, dtype=float).reshape(-1, 1) if np.size(self.B) == n else None
        C = np.array(self.C, dtype=float).reshape(1, -1) if np.size(self.C) == n else None
        D = np.array(self.D, dtype=float).reshape(1, 1) if np.size(self.D) == 1 else None
        if B is None or C is None or D is None:
            raise ValueError(
                f"B, C, D must be {n}x1, 1x{n}, 1x1; got "
                f"{np.shape(self.B)}, {np.shape(self.C)}, {np.shape(self.D)}"
            )
        names = self.state_names or tuple(f"x{k + 1}" for k in range(n))
        if len(names) != n:
            raise ValueError(f"expected {n} state names, got {len(names)}")
        for name, M in (("A", A), ("B", B), ("C", C), ("D", D)):
            M.setflags(write=False)
            object.__setattr__(self, name, M)
        object.__setattr__(self, "state_names", tuple(names))

    @property
    def order(self) -> int:
        return self.A.shape[0]

    def evaluate(self, s: complex) -> complex:
        """C (sI - A)^-1 B + D at the complex frequency s."""
        sI_A = s * np.eye(self.order) - self.A
        return complex((self.C @ np.linalg.solve(sI_A, self.B) + self.D)[0, 0])

    def poles(self) -> np.ndarray:
        return np.linalg.eigvals(self.A)

    def dc_gain(self) -> float:
        return state_space_to_transfer_function(self).dc_gain()

    def to_control(self) -> ct.StateSpace:
        return ct.ss(self.A, self.B, self.C, self.D,
                     inputs=[self.input_name],
                     outputs=[self.output_name],
                     states=list(self.state_names))

    @classmethod
    def from_control(cls, sys: ct.StateSpace, state_names=None,
                     input_name="voltage", output_name="speed") -> "StateSpaceModel":
        return cls(sys.A, sys.B, sys.C, sys.D, state_names=state_names,
                   input_name=input_name, output_name=output_name)

    def __str__(self):
        states = self.state_names
        return "\n\n".join([
            _matrix_str("A", self.A, states, states),
            _matrix_str("B", self.B, states, [self.input_name]),
            _matrix_str("C", self.C, [self.output_name], states),
            _matrix_str("D", self.D, [self.output_name], [self.input_name]),
        ])


# =======================
# BUILDERS
# =======================
def build_transfer_function(params: DCMotorParams) -> TransferFunction:
    """P(s) = K / ((Js+b)(Ls+R) + K²), expanded in powers of s."""
    p = params.validate()
    num = (p.K,)
    den = (p.J * p.L, p.J * p.R + p.b * p.L, p.b * p.R + p.K ** 2)
    logger.debug("transfer function num=%s den=%s", num, den)
    return TransferFunction(num, den)


def build_state_space(params: DCMotorParams) -> StateSpaceModel:
    """State x = [speed, current], input armature voltage, output speed."""
    p = params.validate()
    A = np.array([[-p.b / p.J,  p.K / p.J],
                  [-p.K / p.L, -p.R / p.L]], dtype=float)
    B = np.array([[0.0],
                  [1.0 / p.L]], dtype=float)
    C = np.array([[1.0, 0.0]], dtype=float)
    D = np.zeros((1, 1))
    states = ("speed", "current")
    sys = ct.ss(A, B, C, D, inputs=["voltage"], outputs=["speed"], states=list(states))
    logger.debug("state space A=%s B=%s", A.tolist(), B.ravel().tolist())
    return StateSpaceModel.from_control(sys, state_names=states)


# =======================
# CONVERSIONS
# =======================
def transfer_function_to_state_space(tf: TransferFunction) -> StateSpaceModel:
    """Controllable canonical form (companion A, B = e1), full order."""
    tf = tf.normalized()
    if tf.order < 1:
        raise ValueError("transfer function is a static gain, it has no state")
    if len(tf.num) > len(tf.den):
        raise ValueError(
            f"improper transfer function: deg num {len(tf.num) - 1} > deg den {tf.order}"
        )

    if any(tf.num):
        sys = ct.tf2ss(tf.to_control(), method="scipy")
    else:
        # control reduces 0/den to a static zero, realize 1/den and drop the output
        sys = ct.tf2ss(ct.tf([1.0], list(tf.den)), method="scipy")
        sys = ct.ss(sys.A, sys.B, np.zeros_like(sys.C), np.zeros_like(sys.D))
    return StateSpaceModel.from_control(sys)


def state_space_to_transfer_function(ss: StateSpaceModel) -> TransferFunction:
    """C (sI - A)^-1 B + D as num/den, monic denominator."""
    sys = ct.ss2tf(ss.to_control())
    return TransferFunction.from_control(sys).normalized()


class MotorModelBuilder:
    """Both views of the motor's linear dynamics from one parameter set."""

    def __init__(self, params: DCMotorParams = BASE_PARAMS):
        self.params = params.validate()

    def transfer_function(self) -> TransferFunction:
        return build_transfer_function(self.params)

    def state_space(self) -> StateSpaceModel:
        return build_state_space(self.params)

    def models(self) -> Tuple[TransferFunction, StateSpaceModel]:
        return self.transfer_function(), self.state_space()
