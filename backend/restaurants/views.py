"""
API views for restaurant discovery.
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from core.responses import result_response

from .models import Restaurant
from .serializers import NearbyQuerySerializer, RestaurantListSerializer, RestaurantSerializer
from .services import GeoService, RestaurantService


class RestaurantViewSet(viewsets.ReadOnlyModelViewSet):
    """
    GET  /restaurants/                  cached restaurants
    GET  /restaurants/{place_id}/       detail (fetched from Places when unknown)
    GET  /restaurants/nearby/?latitude=&longitude=&radius=
    POST /restaurants/{place_id}/refresh/
    GET  /restaurants/{place_id}/distance/?latitude=&longitude=
    """
    queryset = Restaurant.objects.all()
    lookup_value_regex = '[^/]+'

    def get_serializer_class(self):
        if self.action in ('list', 'nearby'):
            return RestaurantListSerializer
        return RestaurantSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        context['restaurant_service'] = self.get_service()
        return context

    def get_service(self) -> RestaurantService:
        return RestaurantService()

    def retrieve(self, request, pk=None):
        result = self.get_service().get_details(pk)
        return result_response(result, lambda r: self.get_serializer(r).data)

    @action(detail=False, methods=['get'])
    def nearby(self, request):
        query = NearbyQuerySerializer(data=request.query_params)
        if not query.is_valid():
            return Response(query.errors, status=status.HTTP_400_BAD_REQUEST)

        result = self.get_service().search_nearby(
            query.validated_data['latitude'],
            query.validated_data['longitude'],
            query.validated_data.get('radius'),
        )
        return result_response(result, lambda restaurants: {
            'count': len(restaurants),
            'results': RestaurantListSerializer(restaurants, many=True).data,
        })

    @action(detail=True, methods=['post'])
    def refresh(self, request, pk=None):
        result = self.get_service().get_details(pk, refresh=True)
        return result_response(result, lambda r: self.get_serializer(r).data)

    @action(detail=True, methods=['get'])
    def distance(self, request, pk=None):
        restaurant = self.get_object()
        try:
            lat = float(request.query_params.get('latitude'))
            lon = float(request.query_params.get('longitude'))
        except (TypeError, ValueError):
            return Response(
                {'error': 'Invalid parameters. Required: latitude, longitude (float)'},
                status=status.HTTP_400_BAD_REQUEST
            )
        if not GeoService.is_location_valid(lat, lon):
            return Response({'error': 'Invalid coordinates'}, status=status.HTTP_400_BAD_REQUEST)

        distance_km = GeoService.distance_km(lat, lon, restaurant.latitude, restaurant.longitude)
        return Response({
            'place_id': restaurant.place_id,
            'distance_meters': distance_km * 1000,
            'distance_km': distance_km,
        })
