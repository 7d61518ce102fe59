"""
Geo-proximity lookups for suppliers and products.

Distances are great-circle (haversine) distances in kilometres. The formula is
kept as a pure function so ranking can be tested without a database; the
SQLAlchemy repository pushes the business filters and a bounding-box prefilter
into SQL and ranks the remaining candidates in process.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from math import radians, degrees, sin, cos, asin, sqrt, atan2, isfinite, pi
from typing import Any, Callable, Iterable, List, Optional, Tuple
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession
from models import SupplierProfile, Product, UserProfile
from utils.exceptions import InvalidCoordinates, ValidationError
import logging

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
BOX_PADDING_DEGREES = 1e-6

Point = Tuple[float, float]


def _to_float(value: Any, name: str) -> float:
    if isinstance(value, bool):
        raise InvalidCoordinates(f"{name} must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidCoordinates(f"{name} must be a number")
    if not isfinite(number):
        raise InvalidCoordinates(f"{name} must be a finite number")
    return number


def validate_coordinates(latitude: Any, longitude: Any) -> Point:
    """Coerce a latitude/longitude pair to floats, rejecting out-of-range values"""
    lat = _to_float(latitude, "latitude")
    lon = _to_float(longitude, "longitude")
    if not -90 <= lat <= 90:
        raise InvalidCoordinates(f"latitude {lat} is outside [-90, 90]")
    if not -180 <= lon <= 180:
        raise InvalidCoordinates(f"longitude {lon} is outside [-180, 180]")
    return lat, lon


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    dlat = radians(lat2 - lat1)
    dlon = radians(lon2 - lon1)
    a = sin(dlat / 2) ** 2 + cos(radians(lat1)) * cos(radians(lat2)) * sin(dlon / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def round_distance(distance_km: float) -> float:
    """Round to one decimal place, halves away from zero (1.25 -> 1.3)"""
    return float(Decimal(repr(distance_km)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def bounding_box(origin: Point, radius_km: float) -> Tuple[float, float, Optional[float], Optional[float]]:
    """
    Latitude/longitude box containing every point within radius_km of origin.
    Longitude bounds are None when the box would wrap the antimeridian or reach a pole.
    """
    lat, lon = origin
    angular = radius_km / EARTH_RADIUS_KM
    lat_delta = degrees(angular) + BOX_PADDING_DEGREES
    min_lat = max(-90.0, lat - lat_delta)
    max_lat = min(90.0, lat + lat_delta)

    if min_lat <= -90.0 or max_lat >= 90.0 or angular >= pi / 2:
        return min_lat, max_lat, None, None

    ratio = sin(angular) / cos(radians(lat))
    if ratio >= 1:
        return min_lat, max_lat, None, None
    lon_delta = degrees(asin(ratio)) + BOX_PADDING_DEGREES
    min_lon = lon - lon_delta
    max_lon = lon + lon_delta
    if min_lon < -180.0 or max_lon > 180.0:
        return min_lat, max_lat, None, None
    return min_lat, max_lat, min_lon, max_lon


@dataclass
class Ranked:
    item: Any
    distance_km: Optional[float]
    exact_distance_km: Optional[float]


def rank_by_distance(
    candidates: Iterable[Any],
    origin: Point,
    radius_km: Optional[float],
    point_of: Callable[[Any], Optional[Point]],
    created_at_of: Callable[[Any], Optional[datetime]],
    id_of: Callable[[Any], Any],
) -> List[Ranked]:
    """
    Order candidates by ascending distance from origin, then creation time, then id.

    With a radius, candidates strictly farther than it (or without a stored
    point) are dropped. Without one, point-less candidates go last with no distance.
    """
    located = []
    unlocated = []
    for candidate in candidates:
        point = point_of(candidate)
        if point is None or point[0] is None or point[1] is None:
            if radius_km is None:
                unlocated.append(Ranked(candidate, None, None))
            continue
        distance = haversine_km(origin[0], origin[1], point[0], point[1])
        if radius_km is not None and distance > radius_km:
            continue
        located.append(Ranked(candidate, round_distance(distance), distance))

    def creation_key(ranked: Ranked):
        created_at = created_at_of(ranked.item)
        return (created_at is None, created_at.timestamp() if created_at else 0.0, str(id_of(ranked.item)))

    located.sort(key=lambda r: (r.exact_distance_km,) + creation_key(r))
    unlocated.sort(key=creation_key)
    return located + unlocated


@dataclass
class NearbySupplier:
    supplier: SupplierProfile
    user: UserProfile
    distance_km: Optional[float] = None


@dataclass
class NearbyProduct:
    product: Product
    supplier: SupplierProfile
    user: UserProfile
    distance_km: Optional[float] = None


class ProximityRepository(ABC):
    """Storage-facing side of proximity lookups"""

    @abstractmethod
    async def find_suppliers_near(
        self, point: Point, radius_km: float, online_only: bool = True
    ) -> List[NearbySupplier]:
        ...

    @abstractmethod
    async def find_products(
        self,
        query: Optional[str] = None,
        point: Optional[Point] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> List[NearbyProduct]:
        ...


def _user_point(user: UserProfile) -> Optional[Point]:
    if user.latitude is None or user.longitude is None:
        return None
    return user.latitude, user.longitude


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SqlAlchemyProximityRepository(ProximityRepository):
    """Proximity lookups over the relational store with in-process haversine ranking"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _within_box(query, point: Point, radius_km: float):
        min_lat, max_lat, min_lon, max_lon = bounding_box(point, radius_km)
        query = query.where(
            and_(
                UserProfile.latitude.is_not(None),
                UserProfile.longitude.is_not(None),
                UserProfile.latitude >= min_lat,
                UserProfile.latitude <= max_lat,
            )
        )
        if min_lon is not None:
            query = query.where(and_(UserProfile.longitude >= min_lon, UserProfile.longitude <= max_lon))
        return query

    async def find_suppliers_near(
        self, point: Point, radius_km: float, online_only: bool = True
    ) -> List[NearbySupplier]:
        query = select(SupplierProfile, UserProfile).join(
            UserProfile, SupplierProfile.user_profile_id == UserProfile.id
        )
        if online_only:
            query = query.where(SupplierProfile.is_online == True)
        query = self._within_box(query, point, radius_km)

        result = await self.db.execute(query)
        rows = result.all()

        ranked = rank_by_distance(
            rows,
            point,
            radius_km,
            point_of=lambda row: _user_point(row[1]),
            created_at_of=lambda row: row[0].created_at,
            id_of=lambda row: row[0].id,
        )
        return [NearbySupplier(supplier=r.item[0], user=r.item[1], distance_km=r.distance_km) for r in ranked]

    async def find_products(
        self,
        query: Optional[str] = None,
        point: Optional[Point] = None,
        radius_km: Optional[float] = None,
        category: Optional[str] = None,
    ) -> List[NearbyProduct]:
        statement = select(Product, SupplierProfile, UserProfile).join(
            SupplierProfile, Product.supplier_profile_id == SupplierProfile.id
        ).join(
            UserProfile, SupplierProfile.user_profile_id == UserProfile.id
        ).where(
            and_(
                Product.is_available == True,
                SupplierProfile.is_online == True
            )
        )

        if query:
            statement = statement.where(Product.name.ilike(f"%{_escape_like(query)}%", escape="\\"))
        if category:
            statement = statement.where(Product.category == category)

        if point is None:
            statement = statement.order_by(Product.price_per_unit.asc(), Product.created_at.asc(), Product.id.asc())
            result = await self.db.execute(statement)
            return [
                NearbyProduct(product=product, supplier=supplier, user=user)
                for product, supplier, user in result.all()
            ]

        if radius_km is not None:
            statement = self._within_box(statement, point, radius_km)

        result = await self.db.execute(statement)
        ranked = rank_by_distance(
            result.all(),
            point,
            radius_km,
            point_of=lambda row: _user_point(row[2]),
            created_at_of=lambda row: row[0].created_at,
            id_of=lambda row: row[0].id,
        )
        return [
            NearbyProduct(product=r.item[0], supplier=r.item[1], user=r.item[2], distance_km=r.distance_km)
            for r in ranked
        ]


class GeoProximityResolver:
    """Validates proximity requests and delegates to a ProximityRepository"""

    def __init__(self, repository: ProximityRepository):
        self.repository = repository

    @staticmethod
    def _optional_point(latitude: Any, longitude: Any) -> Optional[Point]:
        if latitude is None and longitude is None:
            return None
        if latitude is None or longitude is None:
            raise InvalidCoordinates("latitude and longitude must be supplied together")
        return validate_coordinates(latitude, longitude)

    @staticmethod
    def _check_radius(radius_km: Optional[float]) -> Optional[float]:
        if radius_km is None:
            return None
        try:
            radius = float(radius_km)
        except (TypeError, ValueError):
            raise ValidationError("radius must be a number", field="radius")
        if not isfinite(radius) or radius < 0:
            raise ValidationError("radius must be a non-negative number", field="radius")
        return radius

    async def find_nearby_suppliers(self, latitude: Any, longitude: Any, radius_km: float) -> List[NearbySupplier]:
        point = validate_coordinates(latitude, longitude)
        radius = self._check_radius(radius_km)
        if radius is None:
            raise ValidationError("radius is required", field="radius")
        suppliers = await self.repository.find_suppliers_near(point, radius, online_only=True)
        logger.info(f"Found {len(suppliers)} online suppliers within {radius} km of {point}")
        return suppliers

    async def search_products(
        self,
        query: Optional[str],
        latitude: Any = None,
        longitude: Any = None,
        radius_km: Optional[float] = None,
    ) -> List[NearbyProduct]:
        point = self._optional_point(latitude, longitude)
        radius = self._check_radius(radius_km)
        if radius is not None and point is None:
            raise InvalidCoordinates("a radius requires latitude and longitude")
        term = query.strip() if query else None
        return await self.repository.find_products(query=term or None, point=point, radius_km=radius)

    async def products_by_category(
        self,
        category: str,
        latitude: Any = None,
        longitude: Any = None,
    ) -> List[NearbyProduct]:
        point = self._optional_point(latitude, longitude)
        return await self.repository.find_products(point=point, category=category)
