"""Signature verification API routes.

This module provides the API endpoints for signature verification, handling
decoded captures, one-to-one comparison against a reference and one-to-many
search across the enrolled gallery.
"""

import logging
import math
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from ..core import (
    SignatureVerifier,
    VerificationResult,
    EmbeddingError,
    MatchingError
)
from ..gallery import GalleryEntry
from ..utils.image import ImageProcessingError, inline_image
from ..models.types import (
    HealthResponse,
    IdentifyRequest,
    VerificationResponse,
    VerifyRequest
)

# Configure logging
logger = logging.getLogger(__name__)

router = APIRouter()

FAILURE_DETAIL = "Signature verification failed, please retry."


def get_verifier(request: Request) -> SignatureVerifier:
    return request.app.state.verifier


def client_image(source: str):
    """Resolve an image sent by a client; only inline payloads are allowed."""
    try:
        return inline_image(source)
    except ImageProcessingError as e:
        logger.warning(f"Rejected client image: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=FAILURE_DETAIL
        )


def analyze_result(result: VerificationResult) -> VerificationResponse:
    """Generate the API response for a verification result.

    Args:
        result: Verification outcome.

    Returns:
        Response with match status and description.
    """
    analysis = []
    if result.is_match:
        label = "MATCH"
        if result.matched_identity:
            analysis.append(f"Signature matches {result.matched_identity}")
        else:
            analysis.append("Signature matches the reference")
        analysis.append(f"Similarity {result.similarity}% is within the accepted distance")
    else:
        label = "NO_MATCH"
        if math.isinf(result.distance):
            analysis.append("No enrolled signature could be compared")
        else:
            analysis.append("Signature does not match")
            analysis.append(f"Closest similarity was {result.similarity}%")

    distance = None if math.isinf(result.distance) else round(result.distance, 4)
    return VerificationResponse(
        match=result.is_match,
        similarity=result.similarity,
        distance=distance,
        matchedIdentity=result.matched_identity,
        result=label,
        analysis=". ".join(analysis) + ".",
    )


async def _run_verification(func, *args) -> VerificationResult:
    try:
        return await run_in_threadpool(func, *args)
    except ImageProcessingError as e:
        logger.warning(f"Image processing error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=FAILURE_DETAIL
        )
    except EmbeddingError as e:
        logger.error(f"Embedding error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=FAILURE_DETAIL
        )
    except MatchingError as e:
        logger.error(f"Matching error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=FAILURE_DETAIL
        )
    except Exception:
        logger.exception("Unexpected verification error")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=FAILURE_DETAIL
        )


@router.get("/health", response_model=HealthResponse)
async def health(verifier: SignatureVerifier = Depends(get_verifier)) -> HealthResponse:
    return HealthResponse(
        status="online",
        modelLoaded=verifier.embedder.model.is_loaded,
        galleryEntries=len(verifier.gallery),
    )


@router.post("/verify", response_model=VerificationResponse)
async def verify_signature(
    request_data: VerifyRequest,
    verifier: SignatureVerifier = Depends(get_verifier),
) -> VerificationResponse:
    """Verify a captured signature against one reference signature.

    Args:
        request_data: Captured and reference images as data URIs or base64.

    Returns:
        Match decision with similarity and distance.

    Raises:
        HTTPException: If either image cannot be processed or the model fails.
    """
    logger.info("Verifying captured signature against reference...")
    result = await _run_verification(
        verifier.verify_one_to_one,
        client_image(request_data.capturedImage),
        client_image(request_data.referenceImage),
    )
    return analyze_result(result)


@router.post("/identify", response_model=VerificationResponse)
async def identify_signature(
    request_data: IdentifyRequest,
    verifier: SignatureVerifier = Depends(get_verifier),
) -> VerificationResponse:
    """Find the enrolled respondent whose anchor is closest to the capture.

    Uses the gallery sent with the request, or the configured roster when the
    request carries none.
    """
    gallery = None
    if request_data.gallery is not None:
        gallery = [
            GalleryEntry(display_name=item.name, image_ref=client_image(item.image))
            for item in request_data.gallery
        ]

    logger.info("Searching gallery for captured signature...")
    result = await _run_verification(
        verifier.verify_one_to_many,
        client_image(request_data.capturedImage),
        gallery,
    )
    return analyze_result(result)
