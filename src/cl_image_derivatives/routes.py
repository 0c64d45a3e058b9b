"""Derivative-serving route factory.

Mount it where the web server would otherwise answer 404 for files under
``settings.root``:

    app.include_router(create_router(service), prefix="/files")
"""

import asyncio
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path
from fastapi.responses import FileResponse, Response
from loguru import logger

from .common.schemas import MissResult, MissStatus
from .common.storage import QUEUE_SUFFIX
from .service import ImageDerivativeService

CACHE_CONTROL = "public, max-age=31536000"


def create_router(service: ImageDerivativeService) -> APIRouter:
    router = APIRouter()
    timeout = service.settings.generate_timeout

    @router.get("/{file_path:path}")
    async def serve_derivative(
        file_path: Annotated[str, Path(description="Root-relative derivative path")],
    ) -> Response:
        # Pending descriptors are internal state, never content
        if file_path.lower().endswith(QUEUE_SUFFIX):
            raise HTTPException(status_code=404, detail="Not found")

        try:
            destination = service.storage.safe_path(file_path)
        except ValueError:
            raise HTTPException(status_code=404, detail="Not found")

        if destination.is_file():
            return FileResponse(destination, headers={"Cache-Control": CACHE_CONTROL})

        try:
            result: MissResult = await asyncio.wait_for(
                asyncio.to_thread(service.fulfill_on_miss, file_path),
                timeout=timeout,
            )
        except TimeoutError:
            logger.error(f"Timed out after {timeout}s generating {file_path}")
            raise HTTPException(status_code=404, detail="Not found")

        if result.status != MissStatus.fulfilled or result.content is None:
            if destination.is_file():
                # Published by a concurrent request while this one waited
                return FileResponse(destination, headers={"Cache-Control": CACHE_CONTROL})
            raise HTTPException(status_code=404, detail="Not found")

        return Response(
            content=result.content,
            media_type=result.media_type,
            headers={
                "Content-Length": str(result.content_length),
                "Cache-Control": CACHE_CONTROL,
            },
        )

    _ = serve_derivative
    return router
