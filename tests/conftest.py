import threading
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from sigmatch.core import EmbeddingCache, Matcher, ModelSession, SignatureEmbedder, SignatureVerifier
from sigmatch.utils.image import encode_data_uri


class FakeSession:
    """Deterministic stand-in for the ONNX feature extractor.

    Embeds an image as the L2-normalised vector of its quadrant means and
    their complements, so different gray levels point in different directions.
    """

    def __init__(self):
        self.runs = 0
        self.inputs_seen = []
        self._lock = threading.Lock()

    def get_inputs(self):
        return [SimpleNamespace(name="input_image")]

    def get_outputs(self):
        return [SimpleNamespace(name="embedding")]

    def run(self, output_names, feeds):
        assert output_names == ["embedding"]
        tensor = feeds["input_image"]
        with self._lock:
            self.runs += 1
            self.inputs_seen.append(tensor.shape)
        image = tensor[0, :, :, 0]
        half = image.shape[0] // 2
        quadrants = np.array([
            image[:half, :half].mean(),
            image[:half, half:].mean(),
            image[half:, :half].mean(),
            image[half:, half:].mean(),
        ], dtype=np.float32)
        vector = np.concatenate([quadrants, 1.0 - quadrants])
        vector /= np.linalg.norm(vector)
        return [vector[None, :]]


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def model(fake_session):
    return ModelSession("fake.onnx", session_factory=lambda path: fake_session)


@pytest.fixture
def embedder(model):
    return SignatureEmbedder(model, cache=EmbeddingCache(16))


@pytest.fixture
def verifier(embedder):
    verifier = SignatureVerifier(embedder, Matcher(), max_workers=4, embedding_timeout=10.0)
    yield verifier
    verifier.close()


@pytest.fixture
def make_image():
    """Create a solid BGR image of the given gray level."""
    def _make(level, height=60, width=200, channels=3):
        return np.full((height, width, channels), level, dtype=np.uint8)
    return _make


@pytest.fixture
def to_data_uri():
    return encode_data_uri


@pytest.fixture
def write_image(tmp_path):
    """Write an image to a temporary file and return its path as a string."""
    def _write(name, image):
        path = tmp_path / name
        assert cv2.imwrite(str(path), image)
        return str(path)
    return _write
