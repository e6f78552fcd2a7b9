from perspectivekit.config import (
    ConfigValidationError,
    CorrectionConfig,
    load_correction_config,
    parse_correction_config,
)
from perspectivekit.modifier import (
    CoordinateCallbackList,
    Modifier,
    PerspectiveCorrection,
    PerspectiveCorrectionError,
    compute_perspective_correction,
)
from perspectivekit.pose import PoseAngles, PoseEstimate, ReferenceConfigurationError, estimate_pose
from perspectivekit.remap import CoefficientBundle, perspective_remap, radial_remap

__all__ = [
    "CorrectionConfig",
    "ConfigValidationError",
    "load_correction_config",
    "parse_correction_config",
    "Modifier",
    "CoordinateCallbackList",
    "PerspectiveCorrection",
    "PerspectiveCorrectionError",
    "compute_perspective_correction",
    "PoseAngles",
    "PoseEstimate",
    "ReferenceConfigurationError",
    "estimate_pose",
    "CoefficientBundle",
    "perspective_remap",
    "radial_remap",
]
