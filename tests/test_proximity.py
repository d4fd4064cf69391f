#!/usr/bin/env python3
"""
Tests for great-circle distance helpers.
"""

import numpy as np
import pytest

from discovery.proximity import haversine_km, haversine_many_km, is_within_radius


class TestHaversine:

    def test_paris_to_london(self):
        assert haversine_km(48.8566, 2.3522, 51.5074, -0.1278) == pytest.approx(343.5, abs=1.0)

    def test_one_degree_latitude(self):
        assert haversine_km(0, 0, 1, 0) == pytest.approx(111.195, abs=0.01)

    def test_zero_distance(self):
        assert haversine_km(36.4618, 25.3753, 36.4618, 25.3753) == 0.0

    def test_symmetric(self):
        a = haversine_km(13.7563, 100.5018, -33.8688, 151.2093)
        b = haversine_km(-33.8688, 151.2093, 13.7563, 100.5018)
        assert a == pytest.approx(b)

    def test_is_within_radius(self):
        assert is_within_radius(0, 0, 0, 0.001, 1.0)
        assert not is_within_radius(0, 0, 10, 10, 1.0)


class TestHaversineMany:

    def test_matches_scalar(self):
        lats = [36.4167, 13.7563, -50.9423]
        lngs = [25.4318, 100.5018, -73.4068]
        distances = haversine_many_km(36.4618, 25.3753, lats, lngs)
        expected = [haversine_km(36.4618, 25.3753, lat, lng) for lat, lng in zip(lats, lngs)]
        np.testing.assert_allclose(distances, expected, rtol=1e-9)

    def test_empty_input(self):
        assert haversine_many_km(0, 0, [], []).size == 0
