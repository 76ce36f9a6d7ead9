from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from wellness_api.database.connection import get_db
from wellness_api.services import search_service

router = APIRouter(prefix="/api/v1/search", tags=["Search"])


@router.get("/global")
async def global_search(
    keyword: str = Query("", description="Matched against medicines, doctors and labs"),
    db: Session = Depends(get_db)
):
    results = search_service.global_search(db, keyword)
    return {"success": True, "data": results}
