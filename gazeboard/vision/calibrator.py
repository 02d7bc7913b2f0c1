"""
Calibration engine: ridge regression from gaze features to screen pixels.

Fits one polynomial ridge model per screen axis, rejects badly fitting
calibration samples, and reports fit diagnostics.
"""

import warnings
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
from scipy import linalg

from gazeboard.core.config import CalibrationConfig
from gazeboard.vision.schema import (
    GazeFeatures,
    CalibrationSample,
    RegressionModel,
    CalibrationDiagnostics,
    PointResidual,
    NUM_COEFFICIENTS,
    polynomial_features,
)
from gazeboard.utils.logger import get_logger

logger = get_logger(__name__)


# Pivot magnitude below which the normal equations are singular
SINGULAR_PIVOT = 1e-12

# Feature columns with less spread than this are left unscaled
MIN_COLUMN_STD = 1e-9


class CalibrationError(Exception):
    """Calibration failed; any previous model stays in effect."""

    pass


class InsufficientSamplesError(CalibrationError):
    """Fewer samples than free coefficients per axis."""

    pass


class SingularRegressionError(CalibrationError):
    """Normal equations could not be solved."""

    pass


@dataclass
class CalibrationBatch:
    """Raw frames collected for one calibration target."""

    frames: List[GazeFeatures]
    screen_x: float
    screen_y: float


def design_matrix(samples: Sequence[CalibrationSample]) -> np.ndarray:
    """
    Expanded (unnormalized) design matrix.

    Returns:
        Array of shape (N, 11)
    """
    return np.vstack([polynomial_features(s.features) for s in samples])


def target_matrix(samples: Sequence[CalibrationSample]) -> np.ndarray:
    """Screen targets as an array of shape (N, 2)."""
    return np.array([[s.screen_x, s.screen_y] for s in samples], dtype=np.float64)


def _normalization(raw: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Per-column z-score parameters over the batch.

    Column 0 (bias) gets mean 0, std 1 so it passes through unchanged.
    """
    mean = raw.mean(axis=0)
    std = raw.std(axis=0)

    mean[0] = 0.0
    std[0] = 1.0
    std[std < MIN_COLUMN_STD] = 1.0

    return mean, std


def _solve_ridge(design: np.ndarray, targets: np.ndarray, ridge_lambda: float) -> np.ndarray:
    """
    Solve (X^T X + lambda * D) W = X^T Y by LU with partial pivoting.

    D is the identity with D[0, 0] = 0: the bias weight is not penalized,
    so predictions are not pulled toward pixel 0.

    Args:
        design: Normalized design matrix (N, 11)
        targets: Target matrix (N, 2)
        ridge_lambda: Penalty on coefficients 1..10

    Returns:
        Coefficients of shape (11, 2), one column per axis

    Raises:
        SingularRegressionError: If a pivot vanishes
    """
    penalty = np.eye(NUM_COEFFICIENTS) * ridge_lambda
    penalty[0, 0] = 0.0

    normal = design.T @ design + penalty
    rhs = design.T @ targets

    # lu_factor only warns on exact singularity; the pivot check below decides
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", linalg.LinAlgWarning)
        lu, piv = linalg.lu_factor(normal)

    min_pivot = float(np.min(np.abs(np.diag(lu))))
    if not np.isfinite(min_pivot) or min_pivot < SINGULAR_PIVOT:
        raise SingularRegressionError(f"Normal equations are singular (pivot={min_pivot:.3e})")

    return linalg.lu_solve((lu, piv), rhs)


def fit_ridge_model(
    samples: Sequence[CalibrationSample],
    ridge_lambda: float,
    min_samples: int = 10,
) -> RegressionModel:
    """
    Fit the per-axis ridge model on one batch of samples.

    Args:
        samples: Calibration samples
        ridge_lambda: Ridge penalty
        min_samples: Minimum number of samples

    Returns:
        RegressionModel with normalization computed over this batch

    Raises:
        InsufficientSamplesError: If fewer than min_samples samples
        SingularRegressionError: If the system cannot be solved
        CalibrationError: If a sample is invalid
    """
    if len(samples) < min_samples:
        raise InsufficientSamplesError(
            f"Need at least {min_samples} calibration samples, got {len(samples)}"
        )

    for i, sample in enumerate(samples):
        try:
            sample.validate()
        except ValueError as e:
            raise CalibrationError(f"Invalid calibration sample {i}: {e}") from e

    raw = design_matrix(samples)
    mean, std = _normalization(raw)

    design = (raw - mean) / std
    design[:, 0] = 1.0

    coeffs = _solve_ridge(design, target_matrix(samples), ridge_lambda)

    return RegressionModel(
        coeffs_x=coeffs[:, 0],
        coeffs_y=coeffs[:, 1],
        mean=mean,
        std=std,
    )


def predict_samples(model: RegressionModel, samples: Sequence[CalibrationSample]) -> np.ndarray:
    """Raw model predictions for samples, shape (N, 2)."""
    design = model.normalize(design_matrix(samples))
    return np.column_stack([design @ model.coeffs_x, design @ model.coeffs_y])


def sample_residuals(model: RegressionModel, samples: Sequence[CalibrationSample]) -> np.ndarray:
    """Euclidean pixel error of each sample under the model."""
    predicted = predict_samples(model, samples)
    return np.linalg.norm(predicted - target_matrix(samples), axis=1)


def fit_with_outlier_rejection(
    samples: Sequence[CalibrationSample],
    config: CalibrationConfig,
) -> Tuple[RegressionModel, np.ndarray]:
    """
    Fit, drop samples far from the fit, and refit.

    A sample is dropped if its residual exceeds
    max(outlier_multiplier * median residual, outlier_floor_px).
    Nothing is dropped if fewer than min_samples would remain.

    Returns:
        (model, kept_mask)

    Raises:
        CalibrationError: See fit_ridge_model
    """
    model = fit_ridge_model(samples, config.ridge_lambda, config.min_samples)

    residuals = sample_residuals(model, samples)
    median = float(np.median(residuals))
    threshold = max(config.outlier_multiplier * median, config.outlier_floor_px)

    kept = residuals <= threshold
    rejected = int(np.count_nonzero(~kept))

    if rejected == 0:
        return model, kept

    if int(np.count_nonzero(kept)) < config.min_samples:
        logger.info(
            f"Outlier pass would leave {int(np.count_nonzero(kept))} samples; "
            f"keeping the initial fit"
        )
        return model, np.ones(len(samples), dtype=bool)

    logger.info(
        f"Rejected {rejected} calibration samples "
        f"(threshold={threshold:.1f}px, median={median:.1f}px)"
    )

    reduced = [s for s, keep in zip(samples, kept) if keep]
    model = fit_ridge_model(reduced, config.ridge_lambda, config.min_samples)

    return model, kept


def _r_squared(predicted: np.ndarray, actual: np.ndarray) -> float:
    ss_res = float(np.sum((actual - predicted) ** 2))
    ss_tot = float(np.sum((actual - actual.mean()) ** 2))
    if ss_tot < 1e-12:
        return 1.0 if ss_res < 1e-12 else 0.0
    return 1.0 - ss_res / ss_tot


def _range_ratio(predicted: np.ndarray, actual: np.ndarray) -> float:
    actual_range = float(np.ptp(actual))
    if actual_range < 1e-9:
        return 0.0
    return float(np.ptp(predicted)) / actual_range


def compute_diagnostics(
    model: RegressionModel,
    samples: Sequence[CalibrationSample],
    kept: np.ndarray,
) -> CalibrationDiagnostics:
    """
    Evaluate the final model on the calibration samples.

    Errors, R^2 and coverage use the samples that were kept; the residual
    table lists every sample.
    """
    predicted = predict_samples(model, samples)
    targets = target_matrix(samples)
    errors = np.linalg.norm(predicted - targets, axis=1)

    residuals = [
        PointResidual(
            target_x=float(targets[i, 0]),
            target_y=float(targets[i, 1]),
            predicted_x=float(predicted[i, 0]),
            predicted_y=float(predicted[i, 1]),
            error_px=float(errors[i]),
            used=bool(kept[i]),
        )
        for i in range(len(samples))
    ]

    used_pred = predicted[kept]
    used_targets = targets[kept]
    used_errors = errors[kept]

    return CalibrationDiagnostics(
        mean_error_px=float(np.mean(used_errors)),
        max_error_px=float(np.max(used_errors)),
        r2_x=_r_squared(used_pred[:, 0], used_targets[:, 0]),
        r2_y=_r_squared(used_pred[:, 1], used_targets[:, 1]),
        coverage_x=_range_ratio(used_pred[:, 0], used_targets[:, 0]),
        coverage_y=_range_ratio(used_pred[:, 1], used_targets[:, 1]),
        samples_total=len(samples),
        samples_used=int(np.count_nonzero(kept)),
        residuals=residuals,
    )


def reduce_frames(
    frames: Sequence[GazeFeatures],
    settle_frames: int,
    outlier_std: float,
) -> GazeFeatures:
    """
    Reduce the frames collected for one target to a single feature set.

    1. Drop the first settle_frames frames (unless nothing would remain)
    2. Per feature, drop values further than outlier_std standard
       deviations from the mean
    3. Average what is left

    Raises:
        ValueError: If frames is empty
    """
    if not frames:
        raise ValueError("Cannot reduce an empty frame batch")

    values = np.vstack([f.to_array() for f in frames])
    if len(values) > settle_frames:
        values = values[settle_frames:]

    reduced = []
    for column in values.T:
        if len(column) >= 3:
            mean = column.mean()
            std = column.std()
            if std > MIN_COLUMN_STD:
                column = column[np.abs(column - mean) <= outlier_std * std]
        reduced.append(float(column.mean()))

    return GazeFeatures.from_array(reduced)


class CalibrationEngine:
    """
    Owner of the fitted regression model.

    The model is absent until the first successful calibration and is
    replaced as a whole by each later one. A failed calibration leaves the
    previous model and diagnostics untouched.
    """

    def __init__(self, config: CalibrationConfig):
        """
        Initialize engine.

        Args:
            config: Calibration configuration
        """
        self._config = config
        self._model: Optional[RegressionModel] = None
        self._diagnostics: Optional[CalibrationDiagnostics] = None
        self._last_error: Optional[CalibrationError] = None

        logger.info(
            f"CalibrationEngine initialized: lambda={config.ridge_lambda}, "
            f"min_samples={config.min_samples}"
        )

    def calibrate(self, samples: Sequence[CalibrationSample]) -> bool:
        """
        Fit a new model from calibration samples.

        Args:
            samples: Ordered calibration samples

        Returns:
            True if a new model was stored, False otherwise
        """
        samples = list(samples)

        try:
            model, kept = fit_with_outlier_rejection(samples, self._config)
            diagnostics = compute_diagnostics(model, samples, kept)
        except CalibrationError as e:
            self._last_error = e
            logger.warning(f"Calibration rejected: {e}")
            return False

        self._model = model
        self._diagnostics = diagnostics
        self._last_error = None

        logger.info(f"Calibration succeeded: {diagnostics.summary()}")
        for i, r in enumerate(diagnostics.residuals):
            logger.debug(
                f"  point {i}: target=({r.target_x:.0f}, {r.target_y:.0f}) "
                f"predicted=({r.predicted_x:.0f}, {r.predicted_y:.0f}) "
                f"error={r.error_px:.1f}px{'' if r.used else ' [rejected]'}"
            )

        return True

    def calibrate_batches(self, batches: Sequence[CalibrationBatch]) -> bool:
        """
        Reduce per-target frame batches to samples and calibrate.

        Empty batches are skipped.

        Args:
            batches: One batch per calibration target, in order

        Returns:
            True if a new model was stored
        """
        samples = []
        for batch in batches:
            if not batch.frames:
                logger.warning(
                    f"Skipping empty batch for target ({batch.screen_x:.0f}, {batch.screen_y:.0f})"
                )
                continue

            features = reduce_frames(
                batch.frames,
                self._config.settle_frames,
                self._config.frame_outlier_std,
            )
            samples.append(
                CalibrationSample(
                    features=features,
                    screen_x=batch.screen_x,
                    screen_y=batch.screen_y,
                )
            )

        return self.calibrate(samples)

    def reset(self):
        """Discard the model and diagnostics."""
        self._model = None
        self._diagnostics = None
        self._last_error = None
        logger.info("Calibration reset")

    @property
    def model(self) -> Optional[RegressionModel]:
        """Current model, or None if uncalibrated."""
        return self._model

    @property
    def diagnostics(self) -> Optional[CalibrationDiagnostics]:
        """Diagnostics of the current model."""
        return self._diagnostics

    @property
    def last_error(self) -> Optional[CalibrationError]:
        """Error of the most recent failed calibration."""
        return self._last_error

    @property
    def is_calibrated(self) -> bool:
        return self._model is not None
