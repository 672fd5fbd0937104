import logging

from rest_framework import status, serializers as drf_serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema

from apps.accounts.capabilities import actor_for
from apps.purchases.permissions import IsAdminActor
from .exceptions import BackupServiceError
from .serializers import (
    BackupExportQuerySerializer,
    BackupRestoreSerializer,
    BackupVerificationSerializer,
    RestoreResultSerializer,
)
from . import services

logger = logging.getLogger(__name__)


class BackupErrorResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    code = drf_serializers.CharField()
    errors = drf_serializers.ListField(child=drf_serializers.CharField())


@extend_schema(
    parameters=[BackupExportQuerySerializer],
    responses={200: OpenApiTypes.OBJECT},
    description="Download a full backup, or an incremental one with ?since=.",
    tags=['backups'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminActor])
def export_backup(request):
    query = BackupExportQuerySerializer(data=request.query_params)
    query.is_valid(raise_exception=True)

    document = services.create_backup(
        actor=actor_for(request),
        since=query.validated_data.get('since'),
    )

    response = Response(document)
    response['Content-Disposition'] = f'attachment; filename="{document["metadata"]["id"]}.json"'
    return response


@extend_schema(
    request=OpenApiTypes.OBJECT,
    responses={200: BackupVerificationSerializer},
    description="Check a backup document's counts, checksums and required fields.",
    tags=['backups'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminActor])
def verify_backup(request):
    result = services.verify_backup(request.data)
    return Response(BackupVerificationSerializer(result).data)


@extend_schema(
    request=BackupRestoreSerializer,
    responses={200: RestoreResultSerializer, 400: BackupErrorResponseSerializer},
    description="Restore a backup. Runs as a dry run unless dry_run is false.",
    tags=['backups'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminActor])
def restore_backup(request):
    serializer = BackupRestoreSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    try:
        result = services.restore_backup(
            data['backup'],
            actor=actor_for(request),
            dry_run=data['dry_run'],
            skip_verification=data['skip_verification'],
        )
    except BackupServiceError as e:
        logger.warning("Restore refused: %s", e)
        return Response(e.as_response_data(), status=status.HTTP_400_BAD_REQUEST)

    return Response(RestoreResultSerializer(result).data)
