"""Single-file share routes: POST /upload, GET/DELETE /share/{id}."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from lanshare.common.urls import resolve_base_url
from lanshare.shares.models import ArtifactMetadata, ShareReceipt
from lanshare.shares.service import ShareService, content_disposition, iter_stream

router = APIRouter(tags=["shares"])


def get_share_service(request: Request) -> ShareService:
    return request.app.state.share_service


@router.post("/upload", response_model=ShareReceipt)
def upload_file(
    request: Request,
    file: UploadFile | None = File(None),
    service: ShareService = Depends(get_share_service),
) -> ShareReceipt:
    stream = file.file if file is not None else None
    filename = file.filename if file is not None else None
    content_type = file.content_type if file is not None else None
    return service.upload(filename, content_type, stream, base_url=resolve_base_url(request))


@router.get("/share/{share_id}")
def download_share(share_id: str, service: ShareService = Depends(get_share_service)) -> StreamingResponse:
    download = service.resolve(share_id)
    return StreamingResponse(
        iter_stream(download.stream),
        media_type=download.content_type,
        headers={"Content-Disposition": content_disposition(download.filename)},
        background=BackgroundTask(download.close),
    )


@router.get("/share/{share_id}/meta", response_model=ArtifactMetadata)
def describe_share(share_id: str, service: ShareService = Depends(get_share_service)) -> ArtifactMetadata:
    return service.describe(share_id)


@router.delete("/share/{share_id}", status_code=204)
def delete_share(share_id: str, service: ShareService = Depends(get_share_service)) -> Response:
    service.delete(share_id)
    return Response(status_code=204)
