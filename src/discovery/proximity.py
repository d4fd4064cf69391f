#!/usr/bin/env python3
"""
Great-circle distance helpers.
Scalar haversine for single pairs and a numpy version for candidate batches.
"""

import math
from typing import Sequence

import numpy as np

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""
    lat_delta = math.radians(lat2 - lat1)
    lng_delta = math.radians(lng2 - lng1)
    a = (
        math.sin(lat_delta / 2) ** 2 +
        math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(lng_delta / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))
    return EARTH_RADIUS_KM * c


def haversine_many_km(lat: float, lng: float,
                      lats: Sequence[float], lngs: Sequence[float]) -> np.ndarray:
    """
    Distances from one center to many points.

    Args:
        lat: Center latitude
        lng: Center longitude
        lats: Candidate latitudes
        lngs: Candidate longitudes

    Returns:
        Array of distances in kilometers, same order as the inputs
    """
    lats_arr = np.radians(np.asarray(lats, dtype=float))
    lngs_arr = np.radians(np.asarray(lngs, dtype=float))
    if lats_arr.size == 0:
        return np.array([], dtype=float)

    center_lat = math.radians(lat)
    lat_delta = lats_arr - center_lat
    lng_delta = lngs_arr - math.radians(lng)
    a = np.sin(lat_delta / 2) ** 2 + math.cos(center_lat) * np.cos(lats_arr) * np.sin(lng_delta / 2) ** 2
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_within_radius(lat1: float, lng1: float, lat2: float, lng2: float, radius_km: float) -> bool:
    return haversine_km(lat1, lng1, lat2, lng2) <= radius_km
