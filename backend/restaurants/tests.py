from datetime import datetime, timedelta
from unittest import mock

import requests
from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APITestCase

from core.errors import StoreUnavailableError
from core.results import ErrorKind
from . import services
from .models import Restaurant
from .services import GeoService, GooglePlacesClient, PlaceDTO, RateLimiter, RestaurantService

User = get_user_model()


def google_place(place_id, lat, lng, name="Place", **extra):
    data = {
        'place_id': place_id,
        'name': name,
        'vicinity': f"{name} street 1",
        'geometry': {'location': {'lat': lat, 'lng': lng}},
        'types': ['restaurant', 'food'],
    }
    data.update(extra)
    return data


class FakePlacesClient:
    def __init__(self, places=None):
        self.places = places or []
        self.nearby_calls = 0
        self.details = {}

    def search_nearby(self, lat, lon, radius=None):
        self.nearby_calls += 1
        return [PlaceDTO.from_google(p) for p in self.places]

    def get_details(self, place_id):
        data = self.details.get(place_id)
        return PlaceDTO.from_google(data) if data else None

    def photo_url(self, photo_reference, max_width=400):
        return f"https://photos.test/{photo_reference}?w={max_width}"


class RestaurantModelTests(TestCase):
    def test_create_restaurant(self):
        restaurant = Restaurant.objects.create(place_id="p1", name="Kebapci", latitude=41.0, longitude=29.0)
        self.assertEqual(Restaurant.objects.count(), 1)
        self.assertEqual(restaurant.get_lat_lon(), (41.0, 29.0))

    def test_invalid_coordinates(self):
        restaurant = Restaurant(place_id="bad", name="Bad", latitude=100.0, longitude=200.0)
        with self.assertRaises(ValueError):
            restaurant.save()


class GeoServiceTests(TestCase):
    def test_distance_for_small_latitude_step(self):
        # 0.01 degrees of latitude is roughly 1.11 km
        distance = GeoService.distance_km(20.0, 10.0, 20.01, 10.0)
        self.assertGreater(distance, 1.0)
        self.assertLess(distance, 1.2)

    def test_distance_to_self_is_zero(self):
        self.assertEqual(GeoService.distance_km(41.0, 29.0, 41.0, 29.0), 0.0)

    def test_location_validation(self):
        self.assertTrue(GeoService.is_location_valid(90, 180))
        self.assertFalse(GeoService.is_location_valid(90.1, 0))
        self.assertFalse(GeoService.is_location_valid(0, -180.1))

    def test_geohash_precision(self):
        self.assertEqual(len(GeoService.encode_geohash(41.0, 29.0)), 6)

    def test_bounding_box_contains_center(self):
        min_lat, max_lat, min_lon, max_lon = GeoService.bounding_box(41.0, 29.0, 1500)
        self.assertLess(min_lat, 41.0)
        self.assertGreater(max_lat, 41.0)
        self.assertLess(min_lon, 29.0)
        self.assertGreater(max_lon, 29.0)


class RateLimiterTests(TestCase):
    def test_limit_exceeded_within_a_minute(self):
        limiter = RateLimiter(calls_per_minute=2)
        now = datetime(2024, 1, 1, 12, 0)
        limiter.check_limit(now)
        limiter.check_limit(now + timedelta(seconds=10))
        with self.assertRaises(StoreUnavailableError):
            limiter.check_limit(now + timedelta(seconds=20))

    def test_old_calls_are_forgotten(self):
        limiter = RateLimiter(calls_per_minute=1)
        now = datetime(2024, 1, 1, 12, 0)
        limiter.check_limit(now)
        self.assertTrue(limiter.check_limit(now + timedelta(minutes=1)))


@override_settings(PLACES_CALLS_PER_MINUTE=1, GOOGLE_PLACES_API_KEY='key')
class SharedRateLimitTests(TestCase):
    def setUp(self):
        cache.clear()
        services._places_rate_limiter = None

    def tearDown(self):
        services._places_rate_limiter = None

    @mock.patch('restaurants.services.requests.get')
    def test_quota_is_shared_between_service_instances(self, mock_get):
        response = mock.Mock()
        response.json.return_value = {'status': 'OK', 'results': []}
        mock_get.return_value = response

        results = [
            RestaurantService().search_nearby(41.0, 29.0),
            RestaurantService().search_nearby(39.9, 32.8),
            RestaurantService().search_nearby(38.4, 27.1),
        ]

        self.assertEqual(mock_get.call_count, 1)
        self.assertTrue(results[0].ok)
        self.assertEqual([r.reason for r in results[1:]], ['RATE_LIMITED', 'RATE_LIMITED'])
        self.assertIs(GooglePlacesClient().rate_limiter, services.get_places_rate_limiter())


class GooglePlacesClientTests(TestCase):
    def _response(self, payload):
        response = mock.Mock()
        response.json.return_value = payload
        response.raise_for_status.return_value = None
        return response

    @mock.patch('restaurants.services.requests.get')
    def test_nearby_search_parses_results(self, mock_get):
        mock_get.return_value = self._response({
            'status': 'OK',
            'results': [google_place('p1', 41.0, 29.0, name="Ciya", rating=4.6, price_level=2,
                                     photos=[{'photo_reference': 'ref1'}])],
        })
        client = GooglePlacesClient(api_key='key')

        places = client.search_nearby(41.0, 29.0)

        self.assertEqual(len(places), 1)
        self.assertEqual(places[0].place_id, 'p1')
        self.assertEqual(places[0].photo_reference, 'ref1')
        params = mock_get.call_args.kwargs['params']
        self.assertEqual(params['type'], 'restaurant')
        self.assertEqual(params['radius'], 1500)
        self.assertEqual(params['key'], 'key')

    @mock.patch('restaurants.services.requests.get')
    def test_error_status_is_store_unavailable(self, mock_get):
        mock_get.return_value = self._response({'status': 'REQUEST_DENIED', 'results': []})
        client = GooglePlacesClient(api_key='key')
        with self.assertRaises(StoreUnavailableError):
            client.search_nearby(41.0, 29.0)

    @mock.patch('restaurants.services.requests.get')
    def test_network_failure_is_store_unavailable(self, mock_get):
        mock_get.side_effect = requests.ConnectionError("down")
        client = GooglePlacesClient(api_key='key')
        with self.assertRaises(StoreUnavailableError):
            client.get_details('p1')

    @mock.patch('restaurants.services.requests.get')
    def test_without_api_key_no_request_is_made(self, mock_get):
        client = GooglePlacesClient(api_key='')
        self.assertEqual(client.search_nearby(41.0, 29.0), [])
        mock_get.assert_not_called()

    def test_photo_url(self):
        client = GooglePlacesClient(api_key='key')
        url = client.photo_url('ref1', max_width=200)
        self.assertIn('photoreference=ref1', url)
        self.assertIn('maxwidth=200', url)


class RestaurantServiceTests(TestCase):
    def setUp(self):
        cache.clear()
        self.places = FakePlacesClient([
            google_place('near', 41.0, 29.0, name="Near"),
            google_place('close', 41.005, 29.0, name="Close"),
            google_place('far', 41.5, 29.0, name="Far"),
        ])
        self.service = RestaurantService(client=self.places)

    def test_search_nearby_upserts_and_sorts_by_distance(self):
        result = self.service.search_nearby(41.0, 29.0, 1500)

        self.assertTrue(result.ok)
        self.assertEqual([r.place_id for r in result.value], ['near', 'close'])
        self.assertEqual(Restaurant.objects.count(), 3)
        self.assertLess(result.value[0].distance_km, result.value[1].distance_km)

    def test_second_search_in_same_cell_uses_cache(self):
        self.service.search_nearby(41.0, 29.0, 1500)
        self.service.search_nearby(41.0, 29.0, 1500)
        self.assertEqual(self.places.nearby_calls, 1)

    def test_upsert_updates_existing_place(self):
        self.service.search_nearby(41.0, 29.0, 1500)
        self.places.places = [google_place('near', 41.0, 29.0, name="Near Renamed")]
        cache.clear()

        self.service.search_nearby(41.0, 29.0, 1500)

        self.assertEqual(Restaurant.objects.get(place_id='near').name, "Near Renamed")
        self.assertEqual(Restaurant.objects.count(), 3)

    def test_invalid_coordinates(self):
        result = self.service.search_nearby(95.0, 29.0)
        self.assertEqual(result.error_kind, ErrorKind.VALIDATION)

    def test_places_outage_maps_to_store_unavailable(self):
        self.places.search_nearby = mock.Mock(side_effect=StoreUnavailableError("down"))
        result = self.service.search_nearby(41.0, 29.0)
        self.assertEqual(result.error_kind, ErrorKind.STORE_UNAVAILABLE)

    def test_details_fetches_unknown_place(self):
        self.places.details['p9'] = google_place('p9', 41.0, 29.0, name="Detail",
                                                 formatted_phone_number="+90 212", website="https://d.test")
        result = self.service.get_details('p9')
        self.assertTrue(result.ok)
        self.assertEqual(result.value.phone_number, "+90 212")

    def test_details_unknown_everywhere_is_not_found(self):
        result = self.service.get_details('missing')
        self.assertEqual(result.error_kind, ErrorKind.NOT_FOUND)


@override_settings(GOOGLE_PLACES_API_KEY='')
class RestaurantAPITests(APITestCase):
    def setUp(self):
        cache.clear()
        self.user = User.objects.create_user(username='eater', password='password123')
        self.client.force_authenticate(user=self.user)
        Restaurant.objects.create(place_id='p1', name="Local", latitude=41.0, longitude=29.0)

    def test_nearby_reads_local_restaurants(self):
        url = reverse('restaurants:restaurant-nearby')
        response = self.client.get(url, {'latitude': 41.0, 'longitude': 29.0})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['place_id'], 'p1')

    def test_nearby_requires_coordinates(self):
        url = reverse('restaurants:restaurant-nearby')
        response = self.client.get(url, {'latitude': 41.0})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_detail(self):
        url = reverse('restaurants:restaurant-detail', args=['p1'])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], "Local")

    def test_unknown_detail_is_404(self):
        url = reverse('restaurants:restaurant-detail', args=['nope'])
        response = self.client.get(url)
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['reason'], 'RESTAURANT_NOT_FOUND')

    def test_distance(self):
        url = reverse('restaurants:restaurant-distance', args=['p1'])
        response = self.client.get(url, {'latitude': 41.01, 'longitude': 29.0})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertGreater(response.data['distance_meters'], 1000)
