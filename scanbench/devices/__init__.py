"""
==============================================================================
Devices Package - Capture Subsystem
==============================================================================

Camera enumeration and acquisition.

Classes:
--------
- CaptureSubsystem: Protocol consumed by engines and the session controller
- OpenCVCaptureSubsystem: cv2.VideoCapture implementation
- ConstraintCandidate / DeviceSelector / DeviceInfo: value objects

==============================================================================
"""

from .models import ConstraintCandidate, DeviceCapabilities, DeviceInfo, DeviceSelector, Facing
from .base import CaptureHandle, CaptureSubsystem
from .opencv_capture import OpenCVCaptureHandle, OpenCVCaptureSubsystem, choose_device, infer_facing

__all__ = [
    "CaptureHandle",
    "CaptureSubsystem",
    "ConstraintCandidate",
    "DeviceCapabilities",
    "DeviceInfo",
    "DeviceSelector",
    "Facing",
    "OpenCVCaptureHandle",
    "OpenCVCaptureSubsystem",
    "choose_device",
    "infer_facing",
]
