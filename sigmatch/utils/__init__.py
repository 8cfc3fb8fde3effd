"""Utility functions for image loading and logging"""
from .image import (
    ImageSource,
    ImageProcessingError,
    ImageDecodeError,
    RenderContextError,
    decode_image,
    encode_data_uri,
    load_image,
    read_image_bytes
)
from .logger import setup_logging

__all__ = [
    'ImageSource',
    'ImageProcessingError',
    'ImageDecodeError',
    'RenderContextError',
    'decode_image',
    'encode_data_uri',
    'load_image',
    'read_image_bytes',
    'setup_logging'
]
