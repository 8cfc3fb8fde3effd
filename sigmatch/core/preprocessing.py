"""Signature image preprocessing.

Turns an arbitrary decoded raster into the fixed-size single-channel tensor
the feature extractor was trained on.
"""

import cv2
import numpy as np

from ..utils.image import ImageSource, RenderContextError, load_image

IMG_SIZE = 128

# Luminosity weights in RGB order
LUMA_WEIGHTS = (0.299, 0.587, 0.114)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert a BGR/BGRA/gray uint8 raster to luminosity in [0, 1].

    Args:
        image: Raster as decoded by OpenCV (H, W), (H, W, 1), (H, W, 3) or (H, W, 4).

    Returns:
        Float32 array (H, W) with values in [0, 1].

    Raises:
        RenderContextError: If the channel layout is not supported.
    """
    pixels = image.astype(np.float32)
    if pixels.ndim == 3 and pixels.shape[2] == 1:
        pixels = pixels[:, :, 0]

    if pixels.ndim == 2:
        gray = pixels / 255.0
    elif pixels.ndim == 3 and pixels.shape[2] in (3, 4):
        # OpenCV stores channels as B, G, R[, A]; alpha is dropped
        r_weight, g_weight, b_weight = LUMA_WEIGHTS
        gray = (
            r_weight * pixels[:, :, 2]
            + g_weight * pixels[:, :, 1]
            + b_weight * pixels[:, :, 0]
        ) / 255.0
    else:
        raise RenderContextError(f"Unsupported image layout: {image.shape}")

    return np.clip(gray, 0.0, 1.0).astype(np.float32)


def preprocess(source: ImageSource, size: int = IMG_SIZE, timeout: float = 10.0) -> np.ndarray:
    """Preprocess a signature image into a model input tensor.

    The image is stretched to ``size`` x ``size`` without keeping its aspect
    ratio, converted to grayscale and scaled to [0, 1].

    Args:
        source: Any image reference accepted by ``load_image``.
        size: Side of the square model input.
        timeout: Network timeout for URL sources.

    Returns:
        Read-only float32 tensor of shape (1, size, size, 1).

    Raises:
        ImageDecodeError: If the image cannot be loaded or decoded.
        RenderContextError: If the raster cannot be resized or converted.
    """
    image = load_image(source, timeout=timeout)

    if image.ndim < 2 or image.shape[0] == 0 or image.shape[1] == 0:
        raise RenderContextError(f"Cannot rasterize image of shape {image.shape}")

    if image.dtype != np.uint8:
        if image.dtype == np.uint16:
            image = (image // 257).astype(np.uint8)
        else:
            image = np.clip(image, 0, 255).astype(np.uint8)

    try:
        resized = cv2.resize(image, (size, size), interpolation=cv2.INTER_LINEAR)
    except cv2.error as e:
        raise RenderContextError(f"Failed to resize image: {str(e)}")

    gray = to_grayscale(resized)
    tensor = np.ascontiguousarray(gray.reshape(1, size, size, 1), dtype=np.float32)
    tensor.flags.writeable = False
    return tensor
