import logging

from rest_framework import mixins, viewsets, status, serializers as drf_serializers
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from apps.accounts.capabilities import actor_for
from .exceptions import MeterReadingServiceError
from .models import MeterReading
from .serializers import (
    MeterReadingSerializer,
    MeterReadingValidationSerializer,
    # Input serializers
    MeterReadingFilterSerializer,
    MeterReadingCreateSerializer,
    MeterReadingUpdateSerializer,
    MeterReadingValidateSerializer,
)
from .services.chronology import reading_date_to_datetime
from . import services

logger = logging.getLogger(__name__)


class ChronologyErrorResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    code = drf_serializers.CharField(allow_null=True)
    blocking_purchase_id = drf_serializers.UUIDField(allow_null=True)
    suggested_minimum = drf_serializers.FloatField(allow_null=True)


class MeterReadingPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class MeterReadingViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          viewsets.GenericViewSet):
    """
    ViewSet for standalone meter readings.

    list: All readings, newest first (filterable)
    create: Record a reading; checked against every earlier and later reading
    partial_update: Edit your own reading (admins may edit any)
    destroy: Delete your own reading (admins may delete any)
    latest: The most recent reading
    validate: Dry-run the chronology rules and suggest a value
    """

    queryset = MeterReading.objects.select_related('user')
    serializer_class = MeterReadingSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = MeterReadingPagination
    lookup_value_regex = '[0-9a-fA-F-]{36}'

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        filter_serializer = MeterReadingFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if params.get('user'):
            queryset = queryset.filter(user_id=params['user'])
        if 'date_from' in params:
            queryset = queryset.filter(reading_date__gte=params['date_from'])
        if 'date_to' in params:
            queryset = queryset.filter(reading_date__lte=params['date_to'])

        return queryset

    @extend_schema(
        request=MeterReadingCreateSerializer,
        responses={201: MeterReadingSerializer, 400: ChronologyErrorResponseSerializer},
    )
    def create(self, request):
        serializer = MeterReadingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            meter_reading = services.create_meter_reading(
                actor=actor_for(request),
                **serializer.validated_data,
            )
        except MeterReadingServiceError as e:
            return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)

        return Response(MeterReadingSerializer(meter_reading).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=MeterReadingUpdateSerializer,
        responses={200: MeterReadingSerializer, 400: ChronologyErrorResponseSerializer},
    )
    def partial_update(self, request, pk=None):
        serializer = MeterReadingUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            meter_reading = services.update_meter_reading(
                actor=actor_for(request),
                reading_id=pk,
                **serializer.validated_data,
            )
        except MeterReadingServiceError as e:
            return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)

        return Response(MeterReadingSerializer(meter_reading).data)

    @extend_schema(responses={204: None})
    def destroy(self, request, pk=None):
        services.delete_meter_reading(actor=actor_for(request), reading_id=pk)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(responses={200: MeterReadingSerializer, 404: None})
    @action(detail=False, methods=['get'])
    def latest(self, request):
        meter_reading = services.get_latest_meter_reading()
        if meter_reading is None:
            return Response(
                {'error': 'No meter readings recorded yet.'},
                status=status.HTTP_404_NOT_FOUND,
            )
        return Response(MeterReadingSerializer(meter_reading).data)

    @extend_schema(
        request=MeterReadingValidateSerializer,
        responses={200: MeterReadingValidationSerializer},
    )
    @action(detail=False, methods=['post'])
    def validate(self, request):
        serializer = MeterReadingValidateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = services.validate_meter_reading(
            reading=data['reading'],
            reading_date=data['reading_date'],
            exclude_id=data.get('exclude_id'),
        )
        suggestion = services.get_meter_reading_suggestion(
            reading_date_to_datetime(data['reading_date']),
            exclude_id=data.get('exclude_id'),
        )

        return Response(MeterReadingValidationSerializer({
            'valid': result.valid,
            'error': result.error,
            'code': result.code,
            'suggested_minimum': result.suggested_minimum,
            'suggestion': suggestion,
        }).data)
