"""
GazeBoard - Gaze-driven communication board core.

Turns per-frame facial landmarks into a stable on-screen gaze point and
discrete selection events (double blink, sustained eye closure) for users
who cannot operate a keyboard or mouse.

Designed around atypical faces:
- Jaw held open permanently (features avoid forehead-chin baselines)
- Reduced eyelid control (eyelid aperture used as a vertical gaze signal)

Pipeline:
- FeatureExtractor -> BlinkDetector -> TrackingStateMachine -> GazePredictor
- CalibrationEngine fits the per-axis ridge model used by the predictor
"""

__version__ = "0.1.0"
__author__ = "GazeBoard Team"
__license__ = "MIT"
