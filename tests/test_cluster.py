#!/usr/bin/env python3
"""
Tests for greedy proximity clustering.
"""

import random

import pytest

from discovery.cluster import ProximityClusterer, item_point
from discovery.errors import InvalidQuery, LocationMissing
from discovery.proximity import haversine_km
from discovery.schema import GeoPoint


def points(*coords):
    return [GeoPoint(lat=lat, lng=lng, item_id=str(i)) for i, (lat, lng) in enumerate(coords)]


@pytest.fixture
def clusterer():
    return ProximityClusterer()


class TestClusterPoints:

    def test_close_points_grouped(self, clusterer):
        clusters = clusterer.cluster_points(points((0, 0), (0, 0.001), (10, 10)), radius_km=1)
        assert [c.count for c in clusters] == [2, 1]
        assert clusters[0].center.lat == pytest.approx(0.0)
        assert clusters[0].center.lng == pytest.approx(0.0005)

    def test_singleton_keeps_seed(self, clusterer):
        clusters = clusterer.cluster_points(points((10, 10)), radius_km=1)
        assert clusters[0].center.lat == 10
        assert clusters[0].center.lng == 10
        assert clusters[0].points[0].item_id == "0"

    def test_every_point_in_exactly_one_cluster(self, clusterer):
        rng = random.Random(7)
        pts = points(*[(rng.uniform(36.3, 36.6), rng.uniform(25.3, 25.5)) for _ in range(50)])
        clusters = clusterer.cluster_points(pts, radius_km=5)

        assert sum(c.count for c in clusters) == len(pts)
        ids = [p.item_id for c in clusters for p in c.points]
        assert sorted(ids) == sorted(p.item_id for p in pts)

    def test_members_within_radius_of_seed(self, clusterer):
        rng = random.Random(11)
        pts = points(*[(rng.uniform(0, 0.2), rng.uniform(0, 0.2)) for _ in range(30)])
        for cluster in clusterer.cluster_points(pts, radius_km=3):
            seed = cluster.points[0]
            for p in cluster.points:
                assert haversine_km(seed.lat, seed.lng, p.lat, p.lng) <= 3

    def test_result_depends_on_input_order(self, clusterer):
        # ~0.89 km apart along the equator
        a, b, c = (0, 0), (0, 0.008), (0, 0.016)
        forward = clusterer.cluster_points(points(a, b, c), radius_km=1)
        backward = clusterer.cluster_points(points(c, b, a), radius_km=1)

        assert [cl.count for cl in forward] == [2, 1]
        assert [cl.count for cl in backward] == [2, 1]
        assert forward[0].center.lng == pytest.approx(0.004)
        assert backward[0].center.lng == pytest.approx(0.012)

    def test_zero_radius_groups_identical_points(self, clusterer):
        clusters = clusterer.cluster_points(points((5, 5), (5, 5), (5, 5.1)), radius_km=0)
        assert [c.count for c in clusters] == [2, 1]

    def test_empty_input(self, clusterer):
        assert clusterer.cluster_points([], radius_km=1) == []

    def test_negative_radius_rejected(self, clusterer):
        with pytest.raises(InvalidQuery):
            clusterer.cluster_points(points((0, 0)), radius_km=-1)


class TestClusterItems:

    def test_stories_without_location_skipped(self, clusterer, stories):
        clusters = clusterer.cluster_items(stories, radius_km=1)
        ids = {p.item_id for c in clusters for p in c.points}
        assert "s6" not in ids
        assert len(ids) == 5

    def test_item_point_requires_location(self, stories):
        assert item_point(stories[0]).item_id == "s1"
        with pytest.raises(LocationMissing):
            item_point(stories[5])
