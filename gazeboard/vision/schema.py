"""
Value types shared by feature extraction, calibration and prediction.

The regression model is stored only in memory; it is rebuilt by every
calibration and never persisted.
"""

from dataclasses import dataclass, asdict, field
from typing import List, Dict, Any, Tuple
import numpy as np


# Polynomial expansion: [1, rx, ry, hx, hy, nx, ny, ey, rx*ry, rx^2, ry^2]
NUM_COEFFICIENTS = 11


@dataclass(frozen=True)
class GazeFeatures:
    """
    Per-frame gaze and head features.

    rx, ry: iris position relative to the eye corners
    hx, hy: nose tip relative to the inner eye corners (head rotation)
    nx, ny: raw nose tip position (head translation)
    ey: eyelid aperture relative to eye width
    """

    rx: float
    ry: float
    hx: float
    hy: float
    nx: float
    ny: float
    ey: float

    def to_dict(self) -> Dict[str, float]:
        """Convert to dictionary."""
        return asdict(self)

    def to_array(self) -> np.ndarray:
        """Convert to numpy array in field order."""
        return np.array(
            [self.rx, self.ry, self.hx, self.hy, self.nx, self.ny, self.ey],
            dtype=np.float64,
        )

    @classmethod
    def from_array(cls, values) -> "GazeFeatures":
        """Create from a 7-element sequence in field order."""
        rx, ry, hx, hy, nx, ny, ey = (float(v) for v in values)
        return cls(rx=rx, ry=ry, hx=hx, hy=hy, nx=nx, ny=ny, ey=ey)


def polynomial_features(features: GazeFeatures) -> np.ndarray:
    """
    Expand 7 features into the 11-d regression vector.

    Returns:
        [1, rx, ry, hx, hy, nx, ny, ey, rx*ry, rx^2, ry^2]
    """
    f = features
    return np.array(
        [
            1.0,
            f.rx,
            f.ry,
            f.hx,
            f.hy,
            f.nx,
            f.ny,
            f.ey,
            f.rx * f.ry,
            f.rx * f.rx,
            f.ry * f.ry,
        ],
        dtype=np.float64,
    )


@dataclass(frozen=True)
class CalibrationSample:
    """Averaged features observed while the user looked at a screen target."""

    features: GazeFeatures
    screen_x: float
    screen_y: float

    def validate(self) -> bool:
        """
        Validate sample data.

        Returns:
            True if valid, raises ValueError if invalid
        """
        values = np.append(self.features.to_array(), [self.screen_x, self.screen_y])
        if not np.all(np.isfinite(values)):
            raise ValueError("Calibration sample contains non-finite values")

        return True


@dataclass(frozen=True)
class RegressionModel:
    """
    Fitted per-axis ridge model.

    Index 0 of mean/std is unused (bias column is never normalized);
    it is stored as mean 0, std 1.
    """

    coeffs_x: np.ndarray
    coeffs_y: np.ndarray
    mean: np.ndarray
    std: np.ndarray

    def __post_init__(self):
        for name in ("coeffs_x", "coeffs_y", "mean", "std"):
            array = np.array(getattr(self, name), dtype=np.float64)
            if array.shape != (NUM_COEFFICIENTS,):
                raise ValueError(
                    f"{name} must have shape ({NUM_COEFFICIENTS},), got {array.shape}"
                )
            array.setflags(write=False)
            object.__setattr__(self, name, array)

    def normalize(self, vector: np.ndarray) -> np.ndarray:
        """Apply stored z-score normalization to an expanded feature vector."""
        normalized = (vector - self.mean) / self.std
        normalized[..., 0] = 1.0
        return normalized

    def predict_raw(self, features: GazeFeatures) -> Tuple[float, float]:
        """Unsmoothed screen prediction for one feature set."""
        vector = self.normalize(polynomial_features(features))
        return (float(vector @ self.coeffs_x), float(vector @ self.coeffs_y))


@dataclass(frozen=True)
class PointResidual:
    """Residual of one calibration sample under the final model."""

    target_x: float
    target_y: float
    predicted_x: float
    predicted_y: float
    error_px: float
    used: bool  # False if rejected as an outlier

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class CalibrationDiagnostics:
    """
    Read-only quality report of one calibration.

    Informational only: a poor fit never blocks activation.
    """

    mean_error_px: float
    max_error_px: float
    r2_x: float
    r2_y: float

    # Predicted range / target range per axis (1.0 = full screen reach)
    coverage_x: float
    coverage_y: float

    samples_total: int
    samples_used: int
    residuals: List[PointResidual] = field(default_factory=list)

    @property
    def samples_rejected(self) -> int:
        return self.samples_total - self.samples_used

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for display or export."""
        return {
            "mean_error_px": self.mean_error_px,
            "max_error_px": self.max_error_px,
            "r2_x": self.r2_x,
            "r2_y": self.r2_y,
            "coverage_x": self.coverage_x,
            "coverage_y": self.coverage_y,
            "samples_total": self.samples_total,
            "samples_used": self.samples_used,
            "residuals": [r.to_dict() for r in self.residuals],
        }

    def summary(self) -> str:
        """One-line human readable summary."""
        return (
            f"mean={self.mean_error_px:.1f}px max={self.max_error_px:.1f}px "
            f"R2=({self.r2_x:.3f}, {self.r2_y:.3f}) "
            f"coverage=({self.coverage_x:.2f}, {self.coverage_y:.2f}) "
            f"used={self.samples_used}/{self.samples_total}"
        )
