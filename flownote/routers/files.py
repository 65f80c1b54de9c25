from urllib.parse import quote

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from flownote.utils.dependencies import get_blob_store


router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{file_id}")
async def download_file(file_id: str, blob_store=Depends(get_blob_store)):
    blob = await blob_store.download(file_id)
    return Response(
        content=blob.data,
        media_type=blob.content_type,
        headers={"Content-Disposition": f"inline; filename*=UTF-8''{quote(blob.filename)}"},
    )
