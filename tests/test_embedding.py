"""Tests for the model session and embedder."""

import threading
import time

import numpy as np
import pytest

from sigmatch.core.embedding import (
    EmbeddingCache,
    InferenceError,
    ModelLoadError,
    ModelSession,
    SignatureEmbedder,
)
from sigmatch.utils.image import ImageDecodeError


def test_model_is_loaded_lazily(model, fake_session):
    assert not model.is_loaded
    assert model.load() is fake_session
    assert model.is_loaded


def test_concurrent_first_calls_load_once(fake_session):
    """Racing first callers must share a single session"""
    calls = []

    def factory(path):
        calls.append(path)
        time.sleep(0.05)
        return fake_session

    model = ModelSession("fake.onnx", session_factory=factory)
    results = []
    threads = [threading.Thread(target=lambda: results.append(model.load())) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(calls) == 1
    assert all(session is fake_session for session in results)


def test_failed_load_is_retried(fake_session):
    attempts = []

    def flaky_factory(path):
        attempts.append(path)
        if len(attempts) == 1:
            raise OSError("artifact unavailable")
        return fake_session

    model = ModelSession("fake.onnx", session_factory=flaky_factory)
    with pytest.raises(ModelLoadError):
        model.load()
    assert not model.is_loaded

    assert model.load() is fake_session
    assert len(attempts) == 2


def test_missing_model_file(tmp_path):
    model = ModelSession(str(tmp_path / "missing.onnx"))
    with pytest.raises(ModelLoadError):
        model.load()


def test_inference_failure(fake_session, monkeypatch):
    def broken_run(output_names, feeds):
        raise RuntimeError("bad input")

    monkeypatch.setattr(fake_session, "run", broken_run)
    model = ModelSession("fake.onnx", session_factory=lambda path: fake_session)
    with pytest.raises(InferenceError):
        model.run(np.zeros((1, 128, 128, 1), dtype=np.float32))


def test_embedding_shape(embedder, fake_session, make_image, to_data_uri):
    embedding = embedder.embed(to_data_uri(make_image(100)))
    assert embedding.shape == (8,)
    assert embedding.dtype == np.float32
    assert np.linalg.norm(embedding) == pytest.approx(1.0, abs=1e-5)
    assert fake_session.inputs_seen == [(1, 128, 128, 1)]


def test_embedding_is_deterministic(model, make_image, to_data_uri):
    embedder = SignatureEmbedder(model)
    uri = to_data_uri(make_image(77))
    assert np.array_equal(embedder.embed(uri), embedder.embed(uri))


def test_cache_hits_by_content(embedder, fake_session, make_image, to_data_uri, write_image):
    """The same pixels under a different reference reuse the cached embedding"""
    image = make_image(140)
    path = write_image("anchor.png", image)
    with open(path, "rb") as handle:
        raw = handle.read()

    first = embedder.embed(path)
    second = embedder.embed(raw)
    assert fake_session.runs == 1
    assert np.array_equal(first, second)


def test_cache_misses_when_resource_changes(embedder, fake_session, make_image, write_image):
    path = write_image("anchor.png", make_image(20))
    first = embedder.embed(path)
    write_image("anchor.png", make_image(220))
    second = embedder.embed(path)

    assert fake_session.runs == 2
    assert not np.array_equal(first, second)


def test_cache_for_arrays(embedder, fake_session, make_image):
    embedder.embed(make_image(60))
    embedder.embed(make_image(60))
    assert fake_session.runs == 1


def test_no_cache(model, fake_session, make_image):
    embedder = SignatureEmbedder(model, cache=None)
    embedder.embed(make_image(60))
    embedder.embed(make_image(60))
    assert fake_session.runs == 2


def test_cache_eviction():
    cache = EmbeddingCache(capacity=2)
    cache.put("a", np.zeros(2))
    cache.put("b", np.ones(2))
    cache.get("a")
    cache.put("c", np.ones(2))
    assert len(cache) == 2
    assert cache.get("b") is None
    assert cache.get("a") is not None


def test_decode_error_propagates(embedder):
    with pytest.raises(ImageDecodeError):
        embedder.embed("/nonexistent/capture.png")
