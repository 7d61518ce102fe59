from dataclasses import dataclass
from datetime import datetime, timedelta
import math
import uuid

import pytest

from conftest import VENDOR_POINT, BASE_TIME, km_north
from services.geo import (
    EARTH_RADIUS_KM,
    GeoProximityResolver,
    SqlAlchemyProximityRepository,
    bounding_box,
    haversine_km,
    rank_by_distance,
    round_distance,
    validate_coordinates,
)
from utils.exceptions import InvalidCoordinates, ValidationError


# =================
# PURE FUNCTIONS
# =================

def test_haversine_is_zero_for_identical_points():
    assert haversine_km(28.6519, 77.1909, 28.6519, 77.1909) == 0


def test_haversine_is_symmetric():
    a = (28.6519, 77.1909)
    b = (19.0760, 72.8777)
    assert haversine_km(*a, *b) == pytest.approx(haversine_km(*b, *a))


def test_one_degree_of_latitude():
    assert haversine_km(0, 0, 1, 0) == pytest.approx(EARTH_RADIUS_KM * math.pi / 180)


@pytest.mark.parametrize("value, expected", [
    (1.25, 1.3),
    (1.24, 1.2),
    (0.05, 0.1),
    (7.95, 8.0),
    (2.0, 2.0),
    (0.0, 0.0),
])
def test_round_distance_halves_away_from_zero(value, expected):
    assert round_distance(value) == expected


@pytest.mark.parametrize("lat, lon", [
    (91, 0),
    (-90.0001, 0),
    (0, 180.5),
    (0, -181),
    ("north", 77.2),
    (float("nan"), 77.2),
    (28.6, float("inf")),
    (True, 77.2),
    (None, 77.2),
])
def test_validate_coordinates_rejects_bad_input(lat, lon):
    with pytest.raises(InvalidCoordinates):
        validate_coordinates(lat, lon)


def test_validate_coordinates_accepts_bounds_and_numeric_strings():
    assert validate_coordinates(-90, 180) == (-90.0, 180.0)
    assert validate_coordinates("28.65", "77.19") == (28.65, 77.19)


def test_bounding_box_contains_the_whole_circle():
    origin = VENDOR_POINT
    min_lat, max_lat, min_lon, max_lon = bounding_box(origin, 5)
    for bearing in range(0, 360, 15):
        # Destination point 4.999 km away at the given bearing
        d = 4.999 / EARTH_RADIUS_KM
        theta = math.radians(bearing)
        lat1, lon1 = math.radians(origin[0]), math.radians(origin[1])
        lat2 = math.asin(math.sin(lat1) * math.cos(d) + math.cos(lat1) * math.sin(d) * math.cos(theta))
        lon2 = lon1 + math.atan2(
            math.sin(theta) * math.sin(d) * math.cos(lat1),
            math.cos(d) - math.sin(lat1) * math.sin(lat2)
        )
        lat2, lon2 = math.degrees(lat2), math.degrees(lon2)
        assert min_lat <= lat2 <= max_lat
        assert min_lon <= lon2 <= max_lon


def test_bounding_box_drops_longitude_bounds_near_poles_and_antimeridian():
    assert bounding_box((89.99, 0), 5)[2:] == (None, None)
    assert bounding_box((0, 179.99), 5)[2:] == (None, None)


@dataclass
class Spot:
    id: uuid.UUID
    point: tuple
    created_at: datetime


def _rank(spots, radius):
    return rank_by_distance(
        spots, VENDOR_POINT, radius,
        point_of=lambda s: s.point,
        created_at_of=lambda s: s.created_at,
        id_of=lambda s: s.id,
    )


def test_rank_orders_by_distance_then_creation_time():
    same_place = km_north(VENDOR_POINT, 2)
    older = Spot(uuid.uuid4(), same_place, BASE_TIME)
    newer = Spot(uuid.uuid4(), same_place, BASE_TIME + timedelta(minutes=5))
    closest = Spot(uuid.uuid4(), km_north(VENDOR_POINT, 1), BASE_TIME + timedelta(days=1))

    ranked = _rank([newer, older, closest], radius=5)

    assert [r.item for r in ranked] == [closest, older, newer]
    assert [r.distance_km for r in ranked] == [1.0, 2.0, 2.0]


def test_rank_excludes_points_beyond_radius_and_keeps_the_boundary():
    inside = Spot(uuid.uuid4(), km_north(VENDOR_POINT, 4.9), BASE_TIME)
    outside = Spot(uuid.uuid4(), km_north(VENDOR_POINT, 5.1), BASE_TIME)
    at_origin = Spot(uuid.uuid4(), VENDOR_POINT, BASE_TIME)

    ranked = _rank([outside, inside, at_origin], radius=5)

    assert [r.item for r in ranked] == [at_origin, inside]
    assert ranked[0].distance_km == 0.0


def test_rank_handles_missing_points():
    located = Spot(uuid.uuid4(), km_north(VENDOR_POINT, 3), BASE_TIME)
    nowhere = Spot(uuid.uuid4(), None, BASE_TIME)

    assert [r.item for r in _rank([nowhere, located], radius=5)] == [located]

    unbounded = _rank([nowhere, located], radius=None)
    assert [r.item for r in unbounded] == [located, nowhere]
    assert unbounded[1].distance_km is None


# =================
# RESOLVER OVER THE DATABASE
# =================

async def test_nearby_suppliers_scenario(db, factory):
    near = await factory.supplier(*km_north(VENDOR_POINT, 1.2), name="Near")
    await factory.supplier(*km_north(VENDOR_POINT, 8.0), name="Far")

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.find_nearby_suppliers(*VENDOR_POINT, 5)

    assert [r.supplier.id for r in result] == [near.id]
    assert result[0].distance_km == 1.2


async def test_nearby_suppliers_skip_offline_and_unlocated(db, factory):
    online = await factory.supplier(*km_north(VENDOR_POINT, 3), name="Online")
    await factory.supplier(*km_north(VENDOR_POINT, 1), is_online=False, name="Offline")
    await factory.supplier(None, None, name="Nowhere")

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.find_nearby_suppliers(*VENDOR_POINT, 5)

    assert [r.supplier.id for r in result] == [online.id]


async def test_nearby_suppliers_order_and_ties(db, factory):
    point = km_north(VENDOR_POINT, 2)
    second = await factory.supplier(*point, name="Second", created_at=BASE_TIME + timedelta(hours=1))
    first = await factory.supplier(*point, name="First", created_at=BASE_TIME)
    closest = await factory.supplier(*km_north(VENDOR_POINT, 0.5), name="Closest",
                                     created_at=BASE_TIME + timedelta(days=2))

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.find_nearby_suppliers(*VENDOR_POINT, 5)

    assert [r.supplier.id for r in result] == [closest.id, first.id, second.id]


async def test_nearby_suppliers_validate_input(db):
    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    with pytest.raises(InvalidCoordinates):
        await resolver.find_nearby_suppliers(95, 77.19, 5)
    with pytest.raises(ValidationError):
        await resolver.find_nearby_suppliers(*VENDOR_POINT, -1)


async def test_product_search_without_location_orders_by_price(db, factory):
    supplier = await factory.supplier(*km_north(VENDOR_POINT, 1))
    dear = await factory.product(supplier, name="Red Onions", price_per_unit=40)
    cheap = await factory.product(supplier, name="Onions", price_per_unit=25)
    await factory.product(supplier, name="Tomatoes", price_per_unit=10)
    await factory.product(supplier, name="Spring onions", price_per_unit=5, is_available=False)

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.search_products("ONION")

    assert [r.product.id for r in result] == [cheap.id, dear.id]
    assert all(r.distance_km is None for r in result)


async def test_product_search_hides_offline_suppliers(db, factory):
    offline = await factory.supplier(*km_north(VENDOR_POINT, 1), is_online=False)
    await factory.product(offline, name="Onions")

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    assert await resolver.search_products("onion") == []


async def test_product_search_with_location_orders_by_distance(db, factory):
    far = await factory.supplier(*km_north(VENDOR_POINT, 6), name="Far")
    near = await factory.supplier(*km_north(VENDOR_POINT, 2), name="Near")
    far_cheap = await factory.product(far, price_per_unit=10)
    near_dear = await factory.product(near, price_per_unit=50)

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.search_products("onions", *VENDOR_POINT)
    assert [r.product.id for r in result] == [near_dear.id, far_cheap.id]
    assert [r.distance_km for r in result] == [2.0, 6.0]

    within = await resolver.search_products("onions", *VENDOR_POINT, radius_km=5)
    assert [r.product.id for r in within] == [near_dear.id]


async def test_product_search_rejects_partial_location(db):
    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    with pytest.raises(InvalidCoordinates):
        await resolver.search_products("onions", latitude=28.65)
    with pytest.raises(InvalidCoordinates):
        await resolver.search_products("onions", radius_km=5)


async def test_products_by_category(db, factory):
    supplier = await factory.supplier(*km_north(VENDOR_POINT, 1))
    oil = await factory.product(supplier, name="Mustard oil", category="oils", price_per_unit=150)
    await factory.product(supplier, name="Onions", category="vegetables")

    resolver = GeoProximityResolver(SqlAlchemyProximityRepository(db))
    result = await resolver.products_by_category("oils", *VENDOR_POINT)

    assert [r.product.id for r in result] == [oil.id]
    assert result[0].distance_km == 1.0
