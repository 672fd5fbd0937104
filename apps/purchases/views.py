import logging

from rest_framework import mixins, viewsets, status, serializers as drf_serializers
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.pagination import PageNumberPagination
from drf_spectacular.utils import extend_schema

from apps.accounts.capabilities import actor_for
from apps.meter_readings.exceptions import ChronologyViolationError
from .exceptions import PurchaseServiceError
from .models import TokenPurchase, UserContribution
from .permissions import IsAdminActor, CanViewAccountBalance, CanViewContribution
from .serializers import (
    TokenPurchaseSerializer,
    ContributionSerializer,
    SequentialStatusSerializer,
    ContributionProgressSerializer,
    GateDecisionSerializer,
    BalanceRowSerializer,
    RecalculationReportSerializer,
    money,
    # Input serializers
    PurchaseFilterSerializer,
    PurchaseCreateSerializer,
    PurchaseUpdateSerializer,
    PurchaseDeleteSerializer,
    ContributionFilterSerializer,
    ContributionCreateSerializer,
    ContributionUpdateSerializer,
    ValidateSequentialPurchaseSerializer,
)
from . import services

logger = logging.getLogger(__name__)

UUID_PATTERN = '[0-9a-fA-F-]{36}'


# Response serializers for API documentation
class ConstraintErrorResponseSerializer(drf_serializers.Serializer):
    message = drf_serializers.CharField()
    code = drf_serializers.CharField(allow_null=True)
    blocking_purchase_id = drf_serializers.UUIDField(allow_null=True)


class BalanceResponseSerializer(drf_serializers.Serializer):
    global_balance = drf_serializers.FloatField()
    contribution_count = drf_serializers.IntegerField()
    rows = BalanceRowSerializer(many=True)


def constraint_error_response(exc):
    return Response(exc.as_response_data(), status=status.HTTP_400_BAD_REQUEST)


class PurchasePagination(PageNumberPagination):
    """Custom pagination for purchases and contributions."""
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class TokenPurchaseViewSet(mixins.ListModelMixin,
                           mixins.RetrieveModelMixin,
                           viewsets.GenericViewSet):
    """
    ViewSet for token purchases.

    list: All purchases, newest first (filterable)
    create: Record a purchase; validates meter chronology and the sequential gate
    retrieve: A purchase with its contribution and receipt
    partial_update: Edit a purchase (admin only once contributed)
    destroy: Delete a purchase without a contribution
    """

    queryset = TokenPurchase.objects.select_related(
        'created_by',
        'contribution',
        'contribution__user',
        'receipt',
    )
    serializer_class = TokenPurchaseSerializer
    permission_classes = [IsAuthenticated]
    pagination_class = PurchasePagination
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        """Filter purchases using input serializer validation."""
        queryset = super().get_queryset()
        if self.action != 'list':
            return queryset

        filter_serializer = PurchaseFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if params.get('created_by'):
            queryset = queryset.filter(created_by_id=params['created_by'])
        if params.get('is_emergency') is not None:
            queryset = queryset.filter(is_emergency=params['is_emergency'])
        if params.get('has_contribution') is not None:
            queryset = queryset.filter(contribution__isnull=not params['has_contribution'])
        if 'date_from' in params:
            queryset = queryset.filter(purchase_date__date__gte=params['date_from'])
        if 'date_to' in params:
            queryset = queryset.filter(purchase_date__date__lte=params['date_to'])

        return queryset

    @extend_schema(
        request=PurchaseCreateSerializer,
        responses={201: TokenPurchaseSerializer, 400: ConstraintErrorResponseSerializer},
    )
    def create(self, request):
        serializer = PurchaseCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            purchase = services.create_purchase(actor=actor_for(request), **serializer.validated_data)
        except (PurchaseServiceError, ChronologyViolationError) as e:
            return constraint_error_response(e)

        purchase = services.get_purchase(purchase.pk)
        return Response(TokenPurchaseSerializer(purchase).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=PurchaseUpdateSerializer,
        responses={200: TokenPurchaseSerializer, 400: ConstraintErrorResponseSerializer},
    )
    def partial_update(self, request, pk=None):
        serializer = PurchaseUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            purchase = services.update_purchase(
                actor=actor_for(request),
                purchase_id=pk,
                **serializer.validated_data,
            )
        except (PurchaseServiceError, ChronologyViolationError) as e:
            return constraint_error_response(e)

        purchase = services.get_purchase(purchase.pk)
        return Response(TokenPurchaseSerializer(purchase).data)

    @extend_schema(
        parameters=[PurchaseDeleteSerializer],
        responses={204: None, 400: ConstraintErrorResponseSerializer},
    )
    def destroy(self, request, pk=None):
        options = PurchaseDeleteSerializer(data=request.query_params)
        options.is_valid(raise_exception=True)

        try:
            services.delete_purchase(
                actor=actor_for(request),
                purchase_id=pk,
                with_contribution=options.validated_data['with_contribution'],
            )
        except PurchaseServiceError as e:
            return constraint_error_response(e)

        return Response(status=status.HTTP_204_NO_CONTENT)


class ContributionViewSet(mixins.ListModelMixin,
                          mixins.RetrieveModelMixin,
                          viewsets.GenericViewSet):
    """
    ViewSet for member contributions.

    Members see only their own contributions unless they hold
    ``can_view_user_contributions``.
    """

    queryset = UserContribution.objects.all()
    serializer_class = ContributionSerializer
    permission_classes = [IsAuthenticated, CanViewContribution]
    pagination_class = PurchasePagination
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        queryset = services.contributions_visible_to(actor_for(self.request))
        if self.action != 'list':
            return queryset

        filter_serializer = ContributionFilterSerializer(data=self.request.query_params)
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if params.get('purchase'):
            queryset = queryset.filter(purchase_id=params['purchase'])
        if params.get('user'):
            queryset = queryset.filter(user_id=params['user'])

        return queryset.order_by('-purchase__purchase_date')

    @extend_schema(
        request=ContributionCreateSerializer,
        responses={201: ContributionSerializer, 400: ConstraintErrorResponseSerializer},
    )
    def create(self, request):
        serializer = ContributionCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            contribution = services.create_contribution(
                actor=actor_for(request),
                purchase_id=data['purchase'],
                contribution_amount=data['contribution_amount'],
                meter_reading=data['meter_reading'],
                user_id=data.get('user'),
            )
        except (PurchaseServiceError, ChronologyViolationError) as e:
            return constraint_error_response(e)

        return Response(ContributionSerializer(contribution).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        request=ContributionUpdateSerializer,
        responses={200: ContributionSerializer, 400: ConstraintErrorResponseSerializer},
    )
    def partial_update(self, request, pk=None):
        serializer = ContributionUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            contribution = services.update_contribution(
                actor=actor_for(request),
                contribution_id=pk,
                **serializer.validated_data,
            )
        except (PurchaseServiceError, ChronologyViolationError) as e:
            return constraint_error_response(e)

        return Response(ContributionSerializer(contribution).data)

    @extend_schema(responses={204: None, 400: ConstraintErrorResponseSerializer})
    def destroy(self, request, pk=None):
        try:
            services.delete_contribution(actor=actor_for(request), contribution_id=pk)
        except PurchaseServiceError as e:
            return constraint_error_response(e)

        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema(
    responses={200: SequentialStatusSerializer},
    description="Oldest purchase still waiting for a contribution.",
    tags=['purchases'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def sequential_status(request):
    status_ = services.find_oldest_purchase_without_contribution()
    return Response(SequentialStatusSerializer(status_).data)


@extend_schema(
    responses={200: ContributionProgressSerializer},
    description="How many purchases have contributions, and which one is next.",
    tags=['purchases'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contribution_progress(request):
    progress = services.get_contribution_progress()
    return Response(ContributionProgressSerializer(progress).data)


@extend_schema(
    request=ValidateSequentialPurchaseSerializer,
    responses={200: GateDecisionSerializer},
    description="Check whether a purchase dated here may be recorded now.",
    tags=['purchases'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def validate_sequential_purchase(request):
    serializer = ValidateSequentialPurchaseSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    decision = services.can_create_purchase(
        serializer.validated_data['purchase_date'],
        actor_for(request),
    )
    return Response(GateDecisionSerializer(decision).data)


@extend_schema(
    responses={200: BalanceResponseSerializer},
    description="Household balance: contributions minus fair share of consumption.",
    tags=['purchases'],
)
@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewAccountBalance])
def balance(request):
    rows = services.calculate_running_balance()
    global_balance = rows[-1].running_balance if rows else 0.0
    return Response({
        'global_balance': money(global_balance),
        'contribution_count': len(rows),
        'rows': BalanceRowSerializer(rows, many=True).data,
    })


@extend_schema(
    request=None,
    responses={200: RecalculationReportSerializer},
    description="Rebuild every contribution's tokens consumed from the meter sequence.",
    tags=['purchases'],
)
@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminActor])
def recalculate_tokens(request):
    report = services.run_recalculation(actor=actor_for(request))
    logger.info("Token recalculation requested by %s", request.user.pk)
    return Response(RecalculationReportSerializer(report).data)
