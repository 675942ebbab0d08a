"""
API views for photo sharing.
"""
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.response import Response

from core.responses import result_response

from .serializers import PhotoDTO, PhotoUploadSerializer
from .services import PhotoService


class PhotoViewSet(viewsets.ViewSet):
    """
    GET    /photos/?restaurant_id=...|user_id=...|tag=...
    POST   /photos/                      multipart upload
    GET    /photos/{id}/
    DELETE /photos/{id}/                 uploader only
    GET    /photos/friends/
    GET    /photos/most-liked/
    POST   /photos/{id}/like/
    DELETE /photos/{id}/like/
    """

    lookup_value_regex = '[0-9a-fA-F]{24}'
    parser_classes = [MultiPartParser, FormParser, JSONParser]

    def get_service(self) -> PhotoService:
        return PhotoService()

    def _render(self, request, many=False):
        context = {'profile': request.user.profile}
        return lambda value: PhotoDTO(value, many=many, context=context).data

    def list(self, request):
        service = self.get_service()
        params = request.query_params
        if params.get('restaurant_id'):
            result = service.photos_for_restaurant(params['restaurant_id'])
        elif params.get('user_id'):
            result = service.photos_by_user(params['user_id'])
        elif params.get('tag'):
            result = service.photos_by_tag(params['tag'])
        else:
            return Response(
                {'error': 'restaurant_id, user_id or tag is required', 'reason': 'MISSING_FILTER'},
                status=status.HTTP_400_BAD_REQUEST
            )
        return result_response(result, self._render(request, many=True))

    def create(self, request):
        serializer = PhotoUploadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        image = data['image']
        result = self.get_service().upload_photo(
            request.user.profile,
            data['restaurant_id'],
            image.read(),
            caption=data['caption'],
            tags=data['tags'],
            content_type=getattr(image, 'content_type', None) or 'image/jpeg',
        )
        return result_response(result, self._render(request), success_status=status.HTTP_201_CREATED)

    def retrieve(self, request, pk=None):
        result = self.get_service().photo_detail(pk)
        return result_response(result, self._render(request))

    def destroy(self, request, pk=None):
        result = self.get_service().delete_photo(request.user.profile, pk)
        return result_response(result, lambda _: None, success_status=status.HTTP_204_NO_CONTENT)

    @action(detail=False, methods=['get'])
    def friends(self, request):
        result = self.get_service().photos_from_friends(request.user.profile)
        return result_response(result, self._render(request, many=True))

    @action(detail=False, methods=['get'], url_path='most-liked')
    def most_liked(self, request):
        result = self.get_service().most_liked_photos()
        return result_response(result, self._render(request, many=True))

    @action(detail=True, methods=['post', 'delete'])
    def like(self, request, pk=None):
        service = self.get_service()
        if request.method == 'DELETE':
            result = service.unlike_photo(request.user.profile, pk)
        else:
            result = service.like_photo(request.user.profile, pk)
        return result_response(result, self._render(request))
