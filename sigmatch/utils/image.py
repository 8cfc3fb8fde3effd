"""Image loading utilities.

This module resolves the image references the service accepts (data URIs,
bare base64 payloads, file paths, HTTP URLs, raw bytes or already decoded
arrays) into OpenCV rasters.
"""

import base64
import binascii
import urllib.request
from pathlib import Path
from typing import Union

import cv2
import numpy as np

ImageSource = Union[str, Path, bytes, np.ndarray]


class ImageProcessingError(Exception):
    """Base exception for image processing errors."""
    pass


class ImageDecodeError(ImageProcessingError):
    """Exception raised when an image cannot be loaded or decoded."""
    pass


class RenderContextError(ImageProcessingError):
    """Exception raised when a raster surface cannot be produced from an image."""
    pass


def _is_data_uri(source: str) -> bool:
    return source.startswith('data:')


def _is_url(source: str) -> bool:
    return source.startswith(('http://', 'https://'))


def decode_base64_payload(base64_string: str) -> bytes:
    """Decode a base64 string to raw bytes.

    Args:
        base64_string: Base64 encoded image string, optionally with data URL prefix.
            Example formats:
            - "data:image/png;base64,iVBORw0KGgo..."
            - "iVBORw0KGgo..." (without prefix)

    Returns:
        Raw encoded image bytes.

    Raises:
        ImageDecodeError: If base64 decoding fails.
    """
    # Remove data URL prefix if present
    if ';base64,' in base64_string:
        base64_string = base64_string.split(';base64,', 1)[1]
    elif ',' in base64_string:
        base64_string = base64_string.split(',', 1)[1]

    try:
        return base64.b64decode(base64_string, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageDecodeError(f"Failed to decode base64 string: {str(e)}")


def fetch_url(url: str, timeout: float = 10.0) -> bytes:
    """Download an image resource over HTTP(S)."""
    try:
        with urllib.request.urlopen(url, timeout=timeout) as response:
            return response.read()
    except (OSError, ValueError) as e:
        raise ImageDecodeError(f"Failed to fetch image from {url}: {str(e)}")


def read_image_bytes(source: Union[str, Path, bytes], timeout: float = 10.0) -> bytes:
    """Resolve an image reference to its raw encoded bytes.

    Args:
        source: Data URI, bare base64 payload, http(s) URL, file path or raw bytes.
        timeout: Network timeout in seconds for URL sources.

    Returns:
        Raw encoded image bytes.

    Raises:
        ImageDecodeError: If the resource cannot be read.
    """
    if isinstance(source, bytes):
        return source

    if isinstance(source, Path):
        path = source
    elif _is_data_uri(source):
        return decode_base64_payload(source)
    elif _is_url(source):
        return fetch_url(source, timeout=timeout)
    else:
        path = Path(source)

    try:
        is_file = path.is_file()
    except (OSError, ValueError):
        # Base64 payloads can exceed the maximum path length
        is_file = False

    if is_file:
        try:
            return path.read_bytes()
        except OSError as e:
            raise ImageDecodeError(f"Failed to read image file {path}: {str(e)}")

    # Captured images can also arrive as a bare base64 payload
    if isinstance(source, str):
        try:
            return decode_base64_payload(source)
        except ImageDecodeError:
            pass

    raise ImageDecodeError(f"Image resource not found: {str(source)[:120]}")


def decode_image(image_bytes: bytes) -> np.ndarray:
    """Decode encoded image bytes to an OpenCV raster.

    Alpha channels are preserved; callers decide what to discard.

    Raises:
        ImageDecodeError: If the bytes cannot be read as an image.
    """
    if not image_bytes:
        raise ImageDecodeError("Empty image data")

    nparr = np.frombuffer(image_bytes, np.uint8)
    image = cv2.imdecode(nparr, cv2.IMREAD_UNCHANGED)
    if image is None or image.size == 0:
        raise ImageDecodeError("Failed to decode image data")

    return image


def load_image(source: ImageSource, timeout: float = 10.0) -> np.ndarray:
    """Load any supported image reference as a decoded raster."""
    if isinstance(source, np.ndarray):
        return source
    return decode_image(read_image_bytes(source, timeout=timeout))


def encode_data_uri(image: np.ndarray, ext: str = '.png') -> str:
    """Encode a raster as a data URI, the format captured images arrive in."""
    ok, buffer = cv2.imencode(ext, image)
    if not ok:
        raise ImageProcessingError(f"Failed to encode image as {ext}")
    mime = 'jpeg' if ext in ('.jpg', '.jpeg') else ext.lstrip('.')
    payload = base64.b64encode(buffer.tobytes()).decode('ascii')
    return f"data:image/{mime};base64,{payload}"


def inline_image(source: str) -> Union[str, bytes]:
    """Accept only an image carried inside the string itself.

    Data URIs are returned unchanged and bare base64 payloads are decoded.
    File paths and URLs are refused, so untrusted callers cannot make the
    service read local files or fetch remote resources.

    Raises:
        ImageDecodeError: If the source is a path, a URL or not base64 at all.
    """
    if _is_data_uri(source):
        return source
    if _is_url(source):
        raise ImageDecodeError("Image URLs are not accepted here")
    try:
        return decode_base64_payload(source)
    except ImageDecodeError:
        raise ImageDecodeError("Expected a data URI or base64 image payload")
