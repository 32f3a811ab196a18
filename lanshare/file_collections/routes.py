"""File collection routes under /api/file."""
from __future__ import annotations

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from lanshare.file_collections.models import Collection, CollectionCreated, CollectionUpload
from lanshare.file_collections.service import CollectionService
from lanshare.shares.service import content_disposition, iter_stream

router = APIRouter(prefix="/api/file", tags=["file_collections"])


def get_collection_service(request: Request) -> CollectionService:
    return request.app.state.collection_service


@router.post("/collection", response_model=CollectionCreated)
def create_collection(service: CollectionService = Depends(get_collection_service)) -> CollectionCreated:
    collection = service.create()
    return CollectionCreated(id=collection.id, url=f"/file/{collection.id}")


@router.post("/collection/{collection_id}", response_model=CollectionUpload)
def upload_to_collection(
    collection_id: str,
    file: UploadFile | None = File(None),
    service: CollectionService = Depends(get_collection_service),
) -> CollectionUpload:
    if file is None:
        metadata, collection = service.upload(collection_id, None, None, None)
    else:
        metadata, collection = service.upload(collection_id, file.filename, file.content_type, file.file)
    return CollectionUpload(file=metadata, collection=collection)


@router.get("/collection/{collection_id}", response_model=Collection)
def get_collection(collection_id: str, service: CollectionService = Depends(get_collection_service)) -> Collection:
    return service.get(collection_id)


@router.delete("/collection/{collection_id}", status_code=204)
def delete_collection(collection_id: str, service: CollectionService = Depends(get_collection_service)) -> Response:
    service.delete(collection_id)
    return Response(status_code=204)


@router.get("/{collection_id}/download/{file_id}")
def download_collection_file(
    collection_id: str,
    file_id: str,
    service: CollectionService = Depends(get_collection_service),
) -> StreamingResponse:
    download = service.resolve_member(collection_id, file_id)
    return StreamingResponse(
        iter_stream(download.stream),
        media_type=download.content_type,
        headers={"Content-Disposition": content_disposition(download.filename)},
        background=BackgroundTask(download.close),
    )
