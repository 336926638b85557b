from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from composer_repo.core.dependencies import get_repository_service
from composer_repo.domain.composer_paths import zipball_filename
from composer_repo.domain.exceptions import (
    ExtractionFailure,
    MalformedName,
    NotFound,
    ParseError,
    TypeMismatch,
    UnsupportedOperation,
    UpstreamError,
)
from composer_repo.domain.json_document import APPLICATION_JSON, JsonDocument, serialize
from composer_repo.services.composer_service import ComposerRepositoryService

logger = logging.getLogger(__name__)
router = APIRouter()


def _json_response(document: JsonDocument) -> Response:
    return Response(content=serialize(document), media_type=APPLICATION_JSON)


def _public_url(request: Request) -> str:
    return str(request.base_url).rstrip("/")


def _upstream_failure(name: str, e: Exception) -> HTTPException:
    logger.error(f"Upstream document for {name} could not be processed: {e}")
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


# ---------------------------------------------------------------------------
# 1. GET /repository/{name}/packages.json
# ---------------------------------------------------------------------------

@router.get("/repository/{name}/packages.json")
async def get_packages_json(
    name: str,
    request: Request,
    service: ComposerRepositoryService = Depends(get_repository_service),
) -> Response:
    """
    Root index listing every provider of the repository.
    """
    try:
        document = await service.get_packages(name, _public_url(request))
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (UpstreamError, ParseError, TypeMismatch) as e:
        raise _upstream_failure(name, e)
    return _json_response(document)


# ---------------------------------------------------------------------------
# 2. GET /repository/{name}/p/{vendor}/{project}.json
# ---------------------------------------------------------------------------

@router.get("/repository/{name}/p/{vendor}/{project}.json")
async def get_provider_json(
    name: str,
    vendor: str,
    project: str,
    request: Request,
    service: ComposerRepositoryService = Depends(get_repository_service),
) -> Response:
    """
    Provider document with every version of vendor/project.
    """
    try:
        document = await service.get_provider(name, _public_url(request), vendor, project)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (UpstreamError, ParseError, TypeMismatch, MalformedName) as e:
        raise _upstream_failure(name, e)
    except ExtractionFailure as e:
        logger.error(f"Provider for {vendor}/{project} in {name} could not be built: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    if document is None:
        raise HTTPException(status_code=404, detail="Package not found")
    return _json_response(document)


# ---------------------------------------------------------------------------
# 3. Archive download and upload
# ---------------------------------------------------------------------------

@router.get("/repository/{name}/{vendor}/{project}/{version}/{filename}")
async def download_archive(
    name: str,
    vendor: str,
    project: str,
    version: str,
    filename: str,
    request: Request,
    service: ComposerRepositoryService = Depends(get_repository_service),
) -> Response:
    """
    Download endpoint for the zipball referenced by dist urls.
    """
    if filename != zipball_filename(vendor, project, version):
        raise HTTPException(status_code=404, detail="Archive not found")

    try:
        content = await service.get_archive(name, _public_url(request), vendor, project, version)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (UpstreamError, ParseError, TypeMismatch) as e:
        raise _upstream_failure(name, e)

    if content is None:
        raise HTTPException(status_code=404, detail="Archive not found")
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.put("/repository/{name}/{vendor}/{project}/{version}", status_code=status.HTTP_201_CREATED)
async def upload_archive(
    name: str,
    vendor: str,
    project: str,
    version: str,
    request: Request,
    service: ComposerRepositoryService = Depends(get_repository_service),
) -> dict:
    """
    Upload a zip archive into a hosted repository.
    """
    content = await request.body()
    try:
        component = service.upload(name, vendor, project, version, content)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (UnsupportedOperation, MalformedName, ExtractionFailure) as e:
        raise HTTPException(status_code=400, detail=str(e))

    return {
        "name": component.name,
        "version": component.version,
        "checksum": component.checksum,
    }
