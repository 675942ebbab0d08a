"""
Restaurant discovery: geo helpers, the Google Places client and the service
that keeps the local Restaurant table in sync with it.
"""
import logging
import math
import threading
from collections import deque
from datetime import datetime, timedelta
from typing import Dict, List, Optional

import geohash2
import requests
from django.conf import settings
from django.core.cache import cache

from core.errors import NotFoundError, StoreUnavailableError, ValidationError
from core.results import guarded

from .models import Restaurant

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


class GeoService:
    """Stateless geo helpers."""

    @staticmethod
    def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
        """Great-circle (haversine) distance in kilometers."""
        dlat = math.radians(lat2 - lat1)
        dlon = math.radians(lon2 - lon1)

        a = math.sin(dlat / 2) ** 2 + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(
            dlon / 2) ** 2
        c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
        return EARTH_RADIUS_KM * c

    @staticmethod
    def encode_geohash(lat: float, lon: float, precision: int = 6) -> str:
        return geohash2.encode(lat, lon, precision)

    @staticmethod
    def is_location_valid(lat: float, lon: float) -> bool:
        return -90 <= lat <= 90 and -180 <= lon <= 180

    @staticmethod
    def bounding_box(lat: float, lon: float, radius_m: int):
        """(min_lat, max_lat, min_lon, max_lon) enclosing a circle; used as a cheap DB prefilter."""
        radius_km = radius_m / 1000.0
        dlat = math.degrees(radius_km / EARTH_RADIUS_KM)
        cos_lat = max(math.cos(math.radians(lat)), 1e-6)
        dlon = math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat))
        return lat - dlat, lat + dlat, lon - dlon, lon + dlon


class RateLimiter:
    """Keeps outgoing Places calls under the per-minute quota."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.call_times = deque()
        self._lock = threading.Lock()

    def check_limit(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now()
        with self._lock:
            while self.call_times and now - self.call_times[0] >= timedelta(minutes=1):
                self.call_times.popleft()

            if len(self.call_times) >= self.calls_per_minute:
                raise StoreUnavailableError(
                    f"Rate limit exceeded: {self.calls_per_minute} calls per minute",
                    reason='RATE_LIMITED'
                )

            self.call_times.append(now)
        return True


_places_rate_limiter = None


def get_places_rate_limiter() -> RateLimiter:
    """Process-wide limiter shared by every GooglePlacesClient, sized from settings.PLACES_CALLS_PER_MINUTE."""
    global _places_rate_limiter
    if _places_rate_limiter is None:
        _places_rate_limiter = RateLimiter(settings.PLACES_CALLS_PER_MINUTE)
    return _places_rate_limiter


class PlaceDTO:
    """Restaurant data as returned by the Places API"""

    def __init__(
        self,
        place_id: str,
        name: str,
        address: str,
        lat: float,
        lon: float,
        rating: Optional[float] = None,
        price_level: Optional[int] = None,
        photo_reference: str = '',
        phone_number: str = '',
        website: str = '',
        opening_hours: Dict = None,
        types: List[str] = None,
    ):
        self.place_id = place_id
        self.name = name
        self.address = address
        self.lat = lat
        self.lon = lon
        self.rating = rating
        self.price_level = price_level
        self.photo_reference = photo_reference
        self.phone_number = phone_number
        self.website = website
        self.opening_hours = opening_hours or {}
        self.types = types or []

    @classmethod
    def from_google(cls, place_data: Dict) -> 'PlaceDTO':
        location = place_data['geometry']['location']
        photos = place_data.get('photos') or [{}]
        hours = place_data.get('opening_hours') or {}
        return cls(
            place_id=place_data['place_id'],
            name=place_data.get('name', ''),
            address=place_data.get('vicinity') or place_data.get('formatted_address') or '',
            lat=location['lat'],
            lon=location['lng'],
            rating=place_data.get('rating'),
            price_level=place_data.get('price_level'),
            photo_reference=photos[0].get('photo_reference', ''),
            phone_number=place_data.get('formatted_phone_number', ''),
            website=place_data.get('website', ''),
            opening_hours={
                'open_now': hours.get('open_now'),
                'weekday_text': hours.get('weekday_text', []),
            } if hours else {},
            types=place_data.get('types', []),
        )


class GooglePlacesClient:
    """Thin wrapper over the Places web service (nearby search, details, photos)."""

    BASE_URL = "https://maps.googleapis.com/maps/api/place"
    DETAIL_FIELDS = "place_id,name,rating,formatted_phone_number,website,opening_hours," \
                    "geometry,formatted_address,types,photos,price_level"
    OK_STATUSES = ('OK', 'ZERO_RESULTS')

    def __init__(self, api_key: str = None, rate_limiter: RateLimiter = None, timeout: float = 10.0):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_PLACES_API_KEY
        self.rate_limiter = rate_limiter or get_places_rate_limiter()
        self.timeout = timeout

    def search_nearby(self, lat: float, lon: float, radius: int = None) -> List[PlaceDTO]:
        if not self.api_key:
            logger.warning("GOOGLE_PLACES_API_KEY not set, skipping nearby search")
            return []

        payload = self._get('nearbysearch', {
            'location': f"{lat},{lon}",
            'radius': radius or settings.DEFAULT_SEARCH_RADIUS_M,
            'type': 'restaurant',
        })
        return [PlaceDTO.from_google(place) for place in payload.get('results', [])]

    def get_details(self, place_id: str) -> Optional[PlaceDTO]:
        if not self.api_key:
            logger.warning("GOOGLE_PLACES_API_KEY not set, skipping details for %s", place_id)
            return None

        payload = self._get('details', {'place_id': place_id, 'fields': self.DETAIL_FIELDS})
        result = payload.get('result')
        if not result:
            return None
        result.setdefault('place_id', place_id)
        return PlaceDTO.from_google(result)

    def photo_url(self, photo_reference: str, max_width: int = 400) -> str:
        return f"{self.BASE_URL}/photo?photoreference={photo_reference}&maxwidth={max_width}&key={self.api_key}"

    def _get(self, endpoint: str, params: Dict) -> Dict:
        self.rate_limiter.check_limit()
        params = dict(params, key=self.api_key)
        try:
            response = requests.get(f"{self.BASE_URL}/{endpoint}/json", params=params, timeout=self.timeout)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Places {endpoint} request failed: {str(e)}")
            raise StoreUnavailableError(f"Places API unavailable: {str(e)}", reason='PLACES_UNAVAILABLE')

        status = payload.get('status', 'UNKNOWN_ERROR')
        if status not in self.OK_STATUSES:
            logger.error(f"Places {endpoint} returned {status}: {payload.get('error_message', '')}")
            raise StoreUnavailableError(f"Places API error: {status}", reason='PLACES_UNAVAILABLE')
        return payload


class RestaurantService:
    """
    Keeps the Restaurant table in sync with Google Places and answers
    nearby/detail queries from it.
    """

    def __init__(self, client: GooglePlacesClient = None):
        self.client = client or GooglePlacesClient()

    @staticmethod
    def cache_key(lat: float, lon: float, radius: int) -> str:
        return f"places:nearby:{GeoService.encode_geohash(lat, lon)}:{radius}"

    @guarded("search_nearby")
    def search_nearby(self, lat: float, lon: float, radius: int = None) -> List[Restaurant]:
        """
        Restaurants within radius meters, closest first. Each returned instance
        carries a distance_km attribute.

        The Places API is queried at most once per geohash cell and radius
        within PLACES_CACHE_TTL; later searches read the local table.
        """
        if not GeoService.is_location_valid(lat, lon):
            raise ValidationError("Invalid coordinates", reason='INVALID_LOCATION')
        radius = radius or settings.DEFAULT_SEARCH_RADIUS_M
        if radius <= 0 or radius > 50000:
            raise ValidationError("Radius must be between 1 and 50000 meters", reason='INVALID_RADIUS')

        key = self.cache_key(lat, lon, radius)
        if cache.get(key) is None:
            places = self.client.search_nearby(lat, lon, radius)
            synced = [self.upsert_restaurant(place).place_id for place in places]
            cache.set(key, synced, settings.PLACES_CACHE_TTL)
            logger.info(f"Synced {len(synced)} places for cell {key}")

        return self.find_nearby(lat, lon, radius)

    @staticmethod
    def find_nearby(lat: float, lon: float, radius: int) -> List[Restaurant]:
        min_lat, max_lat, min_lon, max_lon = GeoService.bounding_box(lat, lon, radius)
        candidates = Restaurant.objects.filter(
            latitude__gte=min_lat, latitude__lte=max_lat,
            longitude__gte=min_lon, longitude__lte=max_lon,
        )

        nearby = []
        for restaurant in candidates:
            restaurant.distance_km = GeoService.distance_km(lat, lon, restaurant.latitude, restaurant.longitude)
            if restaurant.distance_km * 1000 <= radius:
                nearby.append(restaurant)
        nearby.sort(key=lambda r: r.distance_km)
        return nearby

    @staticmethod
    def upsert_restaurant(place: PlaceDTO) -> Restaurant:
        defaults = {
            'name': place.name,
            'address': place.address,
            'latitude': place.lat,
            'longitude': place.lon,
            'geohash': GeoService.encode_geohash(place.lat, place.lon),
            'google_rating': place.rating,
            'price_level': place.price_level,
            'photo_reference': place.photo_reference,
            'types': place.types,
        }
        # Nearby results carry no contact details; keep what details already stored
        if place.phone_number:
            defaults['phone_number'] = place.phone_number
        if place.website:
            defaults['website'] = place.website
        if place.opening_hours:
            defaults['opening_hours'] = place.opening_hours

        restaurant, _ = Restaurant.objects.update_or_create(place_id=place.place_id, defaults=defaults)
        return restaurant

    @staticmethod
    def get_restaurant(place_id: str, lock: bool = False) -> Restaurant:
        """Raises NotFoundError for unknown place ids."""
        queryset = Restaurant.objects.select_for_update() if lock else Restaurant.objects.all()
        try:
            return queryset.get(place_id=place_id)
        except Restaurant.DoesNotExist:
            raise NotFoundError(f"Restaurant {place_id} not found", reason='RESTAURANT_NOT_FOUND')

    @guarded("get_details")
    def get_details(self, place_id: str, refresh: bool = False) -> Restaurant:
        """Stored restaurant, refreshed from the Places details endpoint when asked or unknown."""
        restaurant = Restaurant.objects.filter(place_id=place_id).first()
        if restaurant is None or refresh:
            place = self.client.get_details(place_id)
            if place is not None:
                restaurant = self.upsert_restaurant(place)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {place_id} not found", reason='RESTAURANT_NOT_FOUND')
        return restaurant

    def photo_url(self, restaurant: Restaurant, max_width: int = 400) -> Optional[str]:
        if not restaurant.photo_reference:
            return None
        return self.client.photo_url(restaurant.photo_reference, max_width)
