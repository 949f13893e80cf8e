"""
VIN Image Preprocessing Module
==============================

Binarization pipelines for the OCR path.

Classes:
    VINPreprocessor: Screen/document classification and processing
    FrameClass: Capture source classification

Usage:
    from vin_scanner.preprocessing import VINPreprocessor

    preprocessor = VINPreprocessor()
    binary = preprocessor.process(frame)
"""

from .vin_preprocessor import (
    VINPreprocessor,
    FrameClass,
    reduce_moire,
    adjust_image_params,
    sharpen,
    apply_clahe,
    adaptive_threshold,
    reduce_noise,
)

__all__ = [
    'VINPreprocessor',
    'FrameClass',
    'reduce_moire',
    'adjust_image_params',
    'sharpen',
    'apply_clahe',
    'adaptive_threshold',
    'reduce_noise',
]
