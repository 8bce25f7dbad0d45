"""FastAPI dependencies giving routes access to the running pipeline."""

from fastapi import HTTPException, Request, status

from src.services.pipeline import PricePipeline


def get_pipeline(request: Request) -> PricePipeline:
    """
    FastAPI dependency returning the process-wide price pipeline.

    Raises:
        HTTPException: 503 if the application has not finished starting up
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Price pipeline is not running",
        )
    return pipeline
