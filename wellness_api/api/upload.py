from fastapi import APIRouter, Depends, File, Query, UploadFile

from wellness_api.errors import ForbiddenError
from wellness_api.integrations.blob_store import LocalBlobStore, get_blob_store
from wellness_api.services.access_policy import Principal

from .auth import get_principal

router = APIRouter(prefix="/api/v1/upload", tags=["File Upload"])


@router.post("/{folder}", status_code=201)
async def upload_image(
    folder: str,
    file: UploadFile = File(...),
    principal: Principal = Depends(get_principal),
    store: LocalBlobStore = Depends(get_blob_store)
):
    """
    Upload an image for a user, medicine, doctor or lab

    Returns the public URL to store on the entity.
    """
    content = await file.read(store.max_size + 1)
    url = store.save(content, file.filename, folder)
    return {"success": True, "url": url}


@router.delete("")
async def delete_image(
    url: str = Query(...),
    principal: Principal = Depends(get_principal),
    store: LocalBlobStore = Depends(get_blob_store)
):
    if not principal.is_admin:
        raise ForbiddenError("Only admins can delete uploaded files")
    store.delete(url)
    return {"success": True, "data": {}}
