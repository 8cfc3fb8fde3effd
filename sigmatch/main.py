import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api.routes import router
from .config import Settings, settings
from .core import EmbeddingCache, Matcher, ModelSession, SignatureEmbedder, SignatureVerifier
from .gallery import load_gallery
from .utils.logger import setup_logging

logger = logging.getLogger(__name__)


def build_verifier(config: Settings) -> SignatureVerifier:
    """Wire the model session, embedder, matcher and roster from settings."""
    model = ModelSession(config.MODEL_PATH)
    cache = EmbeddingCache(config.EMBEDDING_CACHE_SIZE) if config.EMBEDDING_CACHE_SIZE > 0 else None
    embedder = SignatureEmbedder(
        model,
        img_size=config.IMG_SIZE,
        cache=cache,
        fetch_timeout=config.IMAGE_FETCH_TIMEOUT,
    )
    matcher = Matcher(threshold=config.MATCH_THRESHOLD, max_distance=config.MAX_DISTANCE)

    gallery = []
    if Path(config.GALLERY_PATH).exists():
        gallery = load_gallery(config.GALLERY_PATH, anchor_dir=config.ANCHOR_DIR)
    else:
        logger.warning(f"Gallery roster not found at {config.GALLERY_PATH}, starting with an empty gallery")

    return SignatureVerifier(
        embedder,
        matcher,
        gallery=gallery,
        max_workers=config.MAX_WORKERS,
        embedding_timeout=config.EMBEDDING_TIMEOUT,
    )


def create_app(verifier: Optional[SignatureVerifier] = None, config: Settings = settings) -> FastAPI:
    """Create the API application around a single verifier instance."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        app.state.verifier.close()

    # Initialize FastAPI app
    app = FastAPI(title="sigmatch", lifespan=lifespan)
    app.state.verifier = verifier if verifier is not None else build_verifier(config)

    # Enable CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Mount routes
    app.include_router(router, prefix="/api")

    return app


def run():
    setup_logging(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO), settings.LOG_FILE)

    import uvicorn
    uvicorn.run(create_app(), host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
