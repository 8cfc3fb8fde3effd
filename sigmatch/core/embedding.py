"""Signature embedding extraction.

This module wraps the pretrained ONNX feature extractor. The model session is
an explicit service object: it is constructed once by the application, loaded
lazily on first use and shared read-only by every caller afterwards.
"""

import hashlib
import logging
import threading
from collections import OrderedDict
from pathlib import Path
from typing import Any, Callable, Optional

import numpy as np
import onnxruntime as ort

from ..utils.image import ImageSource, decode_image, read_image_bytes
from .preprocessing import IMG_SIZE, preprocess

logger = logging.getLogger(__name__)


class EmbeddingError(Exception):
    """Base exception for embedding extraction errors."""
    pass


class ModelLoadError(EmbeddingError):
    """Exception raised when the model artifact cannot be loaded."""
    pass


class InferenceError(EmbeddingError):
    """Exception raised when running the model fails after a successful load."""
    pass


def _create_onnx_session(model_path: str) -> Any:
    if not Path(model_path).exists():
        raise FileNotFoundError(f"Model file not found: {model_path}")
    return ort.InferenceSession(model_path, providers=['CPUExecutionProvider'])


class ModelSession:
    """Lazily initialised, process-wide handle on the feature extractor."""

    def __init__(
        self,
        model_path: str,
        session_factory: Optional[Callable[[str], Any]] = None,
    ):
        """Create an unloaded handle.

        Args:
            model_path: Path of the ONNX model artifact.
            session_factory: Callable building an inference session from the
                path. Defaults to an ONNX Runtime CPU session.
        """
        self.model_path = model_path
        self._session_factory = session_factory or _create_onnx_session
        self._session: Optional[Any] = None
        self._input_name: Optional[str] = None
        self._output_name: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def is_loaded(self) -> bool:
        return self._session is not None

    def load(self) -> Any:
        """Return the inference session, loading it on first use.

        Concurrent first callers block on the lock so only one session is ever
        created. A failed load leaves the handle empty and the next call
        tries again.

        Raises:
            ModelLoadError: If the model cannot be fetched or initialised.
        """
        if self._session is not None:
            return self._session

        with self._lock:
            if self._session is None:
                try:
                    session = self._session_factory(self.model_path)
                    input_name = session.get_inputs()[0].name
                    output_name = session.get_outputs()[0].name
                except Exception as e:
                    logger.error(f"Failed to load model from {self.model_path}: {e}")
                    raise ModelLoadError(f"Failed to load model: {str(e)}") from e

                self._input_name = input_name
                self._output_name = output_name
                self._session = session
                logger.info(f"Signature model loaded from {self.model_path}")

        return self._session

    def run(self, tensor: np.ndarray) -> np.ndarray:
        """Run the feature extractor on one preprocessed tensor.

        Args:
            tensor: Model input of shape (1, S, S, 1).

        Returns:
            Read-only float32 embedding vector (D,).

        Raises:
            ModelLoadError: If the model is not loaded and loading fails.
            InferenceError: If inference fails.
        """
        session = self.load()
        try:
            outputs = session.run([self._output_name], {self._input_name: tensor})
            embedding = np.array(outputs[0], dtype=np.float32).reshape(-1)
        except Exception as e:
            raise InferenceError(f"Inference failed: {str(e)}") from e

        if embedding.size == 0:
            raise InferenceError("Model returned an empty embedding")

        embedding.flags.writeable = False
        return embedding


class EmbeddingCache:
    """Thread-safe LRU cache of embeddings keyed by image content hash."""

    def __init__(self, capacity: int = 128):
        self.capacity = capacity
        self._entries: "OrderedDict[str, np.ndarray]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[np.ndarray]:
        with self._lock:
            embedding = self._entries.get(key)
            if embedding is not None:
                self._entries.move_to_end(key)
            return embedding

    def put(self, key: str, embedding: np.ndarray) -> None:
        if self.capacity <= 0:
            return
        with self._lock:
            self._entries[key] = embedding
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


def content_key(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def array_key(image: np.ndarray) -> str:
    digest = hashlib.sha256()
    digest.update(str((image.shape, image.dtype.str)).encode('ascii'))
    digest.update(np.ascontiguousarray(image).tobytes())
    return digest.hexdigest()


class SignatureEmbedder:
    """Computes signature embeddings: ``embed = extract . preprocess``."""

    def __init__(
        self,
        model: ModelSession,
        img_size: int = IMG_SIZE,
        cache: Optional[EmbeddingCache] = None,
        fetch_timeout: float = 10.0,
    ):
        self.model = model
        self.img_size = img_size
        self.cache = cache
        self.fetch_timeout = fetch_timeout

    def extract(self, tensor: np.ndarray) -> np.ndarray:
        """Run the model on an already preprocessed tensor."""
        return self.model.run(tensor)

    def embed(self, source: ImageSource) -> np.ndarray:
        """Embed any supported image reference.

        Raises:
            ImageDecodeError: If the image cannot be loaded.
            RenderContextError: If the image cannot be rasterized.
            ModelLoadError: If the model cannot be loaded.
            InferenceError: If inference fails.
        """
        if isinstance(source, np.ndarray):
            image = source
            key = array_key(source) if self.cache is not None else None
        else:
            image = None
            data = read_image_bytes(source, timeout=self.fetch_timeout)
            key = content_key(data) if self.cache is not None else None

        if key is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        if image is None:
            image = decode_image(data)
        tensor = preprocess(image, size=self.img_size)
        embedding = self.extract(tensor)

        if key is not None:
            self.cache.put(key, embedding)
        return embedding
