# services/search_service.py - one keyword across medicines, doctors and labs
import logging

from sqlalchemy.orm import Session

from wellness_api.database.models import Doctor, Lab, Medicine

from .api_features import APIFeatures

logger = logging.getLogger(__name__)

MAX_HITS_PER_KIND = 10

SEARCHES = (
    ("medicines", Medicine, ("name", "description", "manufacturer", "category")),
    ("doctors", Doctor, ("name", "specialization", "clinic_address", "email")),
    ("labs", Lab, ("name", "address", "email", "services")),
)


def global_search(db: Session, keyword: str) -> dict:
    keyword = (keyword or "").strip()
    if not keyword:
        return {name: [] for name, _, _ in SEARCHES}

    results = {}
    for name, model, fields in SEARCHES:
        features = APIFeatures(db.query(model), model, {"keyword": keyword}).search(fields).apply_find()
        records = features.query.order_by(model.name.asc(), model.id.asc()).limit(MAX_HITS_PER_KIND).all()
        results[name] = [features.select(record.to_dict()) for record in records]

    logger.debug(
        "Global search %r: %s", keyword, {name: len(hits) for name, hits in results.items()},
    )
    return results
