from __future__ import annotations

import structlog
from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import Response

from skillforge.core.assembler import assemble_async, build_preview
from skillforge.core.restorer import restore_async
from skillforge.errors import PackageAssemblyError, RestoreError
from skillforge.schemas.package import ErrorDetail, PreviewResponse
from skillforge.schemas.skill import SkillSet

log = structlog.get_logger()

router = APIRouter()


def _error(status_code: int, exc: RestoreError | PackageAssemblyError) -> HTTPException:
    return HTTPException(
        status_code,
        detail=ErrorDetail(code=exc.code, message=exc.message).model_dump(),
    )


@router.post("/preview", response_model=PreviewResponse)
async def preview_package(body: SkillSet) -> PreviewResponse:
    """Return every generated file as text, without building an archive."""
    return PreviewResponse(**build_preview(body.metadata, body.skills))


@router.post("/export")
async def export_package(body: SkillSet) -> Response:
    """Build the distributable zip for a skill set."""
    try:
        data = await assemble_async(body.metadata, body.skills)
    except PackageAssemblyError as exc:
        raise _error(status.HTTP_500_INTERNAL_SERVER_ERROR, exc)

    return Response(
        content=data,
        media_type="application/zip",
        headers={
            "Content-Disposition": f'attachment; filename="{body.metadata.package_name}.zip"',
        },
    )


@router.post("/restore", response_model=SkillSet)
async def restore_package(
    request: Request,
    filename: str = Query("package.zip", description="Original archive filename"),
) -> SkillSet:
    """Rebuild a skill set from a previously exported zip sent as the request body."""
    data = await request.body()
    if not data:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Request body must be a zip archive")

    try:
        return await restore_async(data, filename)
    except RestoreError as exc:
        log.warning("packages.restore_failed", code=exc.code, error=exc.message, filename=filename)
        raise _error(status.HTTP_400_BAD_REQUEST, exc)
