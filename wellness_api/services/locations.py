# services/locations.py - coordinate pairs for doctors and labs
from typing import Mapping, Optional, Tuple

from wellness_api.errors import ValidationFailure


def coordinate_pair(values: Mapping, required: bool = False,
                    message: str = "Latitude and longitude are required") -> Optional[Tuple[float, float]]:
    """
    ``(longitude, latitude)`` from ``values``, or None when neither is given.

    One coordinate without the other is always rejected.
    """
    latitude = values.get("latitude")
    longitude = values.get("longitude")

    if latitude is None and longitude is None:
        if required:
            raise ValidationFailure(message)
        return None
    if latitude is None or longitude is None:
        raise ValidationFailure("Latitude and longitude must be provided together")

    try:
        latitude, longitude = float(latitude), float(longitude)
    except (TypeError, ValueError):
        raise ValidationFailure("Invalid coordinates format. Expected numeric latitude and longitude.")

    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationFailure("Coordinates out of range")
    return longitude, latitude
