#!/usr/bin/env python3
"""
Proximity clustering of story locations for map display.
Greedy seed/absorb grouping: each unassigned point in input order seeds a
cluster and absorbs every other unassigned point within the radius of the seed.
"""

import logging
from typing import List

import numpy as np

from .errors import InvalidQuery, LocationMissing
from .proximity import haversine_many_km
from .schema import Cluster, ContentItem, GeoPoint

logger = logging.getLogger(__name__)


def item_point(item: ContentItem) -> GeoPoint:
    """
    Map point of a story.

    Raises:
        LocationMissing: if the story has no location
    """
    if item.location is None:
        raise LocationMissing(f"Story {item.id} has no location")
    return GeoPoint(lat=item.location.lat, lng=item.location.lng, item_id=item.id)


class ProximityClusterer:
    """Groups nearby points; result depends on input order."""

    def cluster_points(self, points: List[GeoPoint], radius_km: float) -> List[Cluster]:
        """
        Cluster points around greedy seeds.

        Args:
            points: Points in the order they should seed clusters
            radius_km: Absorption radius measured from the seed

        Returns:
            Clusters in seed order; every point belongs to exactly one
        """
        if not (radius_km >= 0):
            raise InvalidQuery(f"Cluster radius must be a non-negative number, got {radius_km}")
        if not points:
            return []

        lats = np.array([p.lat for p in points], dtype=float)
        lngs = np.array([p.lng for p in points], dtype=float)
        assigned = np.zeros(len(points), dtype=bool)
        clusters = []

        for seed_idx, seed in enumerate(points):
            if assigned[seed_idx]:
                continue

            distances = haversine_many_km(seed.lat, seed.lng, lats, lngs)
            members = np.flatnonzero(~assigned & (distances <= radius_km))
            assigned[members] = True

            member_points = [points[i] for i in members]
            if len(member_points) == 1:
                center = GeoPoint(lat=seed.lat, lng=seed.lng)
            else:
                center = GeoPoint(
                    lat=float(np.mean(lats[members])),
                    lng=float(np.mean(lngs[members]))
                )
            clusters.append(Cluster(center=center, points=member_points, count=len(member_points)))

        return clusters

    def cluster_items(self, items: List[ContentItem], radius_km: float) -> List[Cluster]:
        """Cluster story locations, skipping stories without one."""
        points = []
        skipped = 0
        for item in items:
            try:
                points.append(item_point(item))
            except LocationMissing:
                skipped += 1
        if skipped:
            logger.debug(f"Skipped {skipped} stories without location while clustering")
        return self.cluster_points(points, radius_km)

