import logging
import math
import numbers
from dataclasses import dataclass, fields

logger = logging.getLogger(__name__)


class InvalidParameterError(ValueError):
    """Raised when a physical parameter makes the motor model ill-posed."""

    def __init__(self, name: str, value, reason: str):
        self.name = name
        self.value = value
        super().__init__(f"invalid parameter {name}={value!r}: {reason}")


@dataclass(frozen=True)
class DCMotorParams:
    J: float = 0.01   # rotor inertia [kg·m²]
    b: float = 0.1    # viscous friction [N·m·s]
    K: float = 0.01   # torque / back-emf constant, Kt = Ke in SI [N·m/A]
    R: float = 1.0    # armature resistance [Ω]
    L: float = 0.5    # armature inductance [H]

    def validate(self) -> "DCMotorParams":
        # J and L divide the state equations, the rest only need to be physical
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise InvalidParameterError(f.name, value, "must be a real number")
            if not math.isfinite(value):
                raise InvalidParameterError(f.name, value, "must be finite")
        if self.J <= 0:
            raise InvalidParameterError("J", self.J, "rotor inertia must be > 0")
        if self.L <= 0:
            raise InvalidParameterError("L", self.L, "armature inductance must be > 0")
        for name in ("b", "K", "R"):
            value = getattr(self, name)
            if value < 0:
                raise InvalidParameterError(name, value, "must be >= 0")
        return self

    def as_dict(self) -> dict:
        return {f.name: getattr(self, f.name) for f in fields(self)}


# Example motor (J=0.01, b=0.1, K=0.01, R=1, L=0.5)
BASE_PARAMS = DCMotorParams()


class DCMotorSim:
    """
    Continuous-time:
      dω/dt = (K*i - b*ω)/J
      di/dt = (V - R*i - K*ω)/L
    Discretized with forward Euler.
    """
    def __init__(self, params: DCMotorParams, dt: float = 0.001):
        if not dt > 0:
            raise ValueError(f"dt must be > 0, got {dt}")
        self.p = params.validate()
        self.dt = dt
        self.reset()
        logger.debug("DCMotorSim dt=%g params=%s", dt, params)

    def reset(self, w0: float = 0.0, i0: float = 0.0):
        self.w = w0  # rad/s
        self.i = i0  # A

    def step(self, V: float):
        p, dt = self.p, self.dt
        dw = (p.K * self.i - p.b * self.w) / p.J
        di = (V - p.R * self.i - p.K * self.w) / p.L
        self.w += dt * dw
        self.i += dt * di
        return self.w, self.i
