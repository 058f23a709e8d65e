# ============================================================
# Standard Library Imports
# ============================================================
import logging
from datetime import datetime, time, timedelta

# swagger settup
from drf_yasg.utils import swagger_auto_schema
from drf_yasg import openapi

# ============================================================
# Django Imports
# ============================================================
from django.db.models import Count, F, Prefetch
from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

# ============================================================
# Third-Party Imports
# ============================================================
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework import exceptions, status
from rest_framework.pagination import PageNumberPagination

# ============================================================
# Local Application Imports
# ============================================================
from home.permissions import HasResourcePermission
from . import ledger, reconciliation
from .exceptions import InvalidQuery, LedgerError, NotFound
from .models import Contract, Installment, NotificationLog, Payment
from .status import ContractStatus, InstallmentStatus
from .serializers import (
    ContractCreateSerializer,
    ContractDetailSerializer,
    ContractSerializer,
    ContractStatusSerializer,
    InstallmentDetailSerializer,
    InstallmentPaySerializer,
    InstallmentSerializer,
    InstallmentUpdateSerializer,
    JobRunSerializer,
    NotificationLogSerializer,
    PaymentCreateSerializer,
    PaymentSerializer,
)

# ============================================================
# Logger Setup
# ============================================================
logger = logging.getLogger(__name__)


# ============================================================
# Pagination
# ============================================================
class LedgerPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 200


# ============================================================
# Response helpers
# ============================================================
def success_response(data=None, message="", status_code=status.HTTP_200_OK):
    return Response({"status": "success", "message": message, "data": data}, status=status_code)


def ledger_error_response(exc):
    logger.warning(f"[Ledger] {exc.kind}: {exc.detail}")
    return Response(exc.to_response_data(), status=exc.status_code)


def validation_error_response(errors):
    return Response(
        {"status": "error", "error": "ValidationError", "message": "Invalid input.", "data": errors},
        status=status.HTTP_400_BAD_REQUEST,
    )


def server_error_response(message):
    return Response(
        {"status": "error", "error": "InternalError", "message": message},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )


def paginated_response(request, queryset, serializer_class):
    paginator = LedgerPagination()
    try:
        page = paginator.paginate_queryset(queryset, request)
    except exceptions.NotFound as e:
        raise NotFound(str(e.detail))
    serializer = serializer_class(page, many=True, context={'request': request})
    return success_response(paginator.get_paginated_response(serializer.data).data)


# ============================================================
# Query parameter helpers
# ============================================================
def int_param(request, name):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidQuery(f"{name} must be an integer.")


def bool_param(request, name):
    return request.query_params.get(name, '').lower() in ('1', 'true', 'yes')


def choice_param(request, name, choices):
    value = request.query_params.get(name)
    if value in (None, ''):
        return None
    value = value.upper()
    if value not in dict(choices):
        raise InvalidQuery(f"{name} must be one of {[c for c, _ in choices]}.")
    return value


def datetime_param(request, name):
    """
    Accepts an ISO datetime or a plain date.

    Returns (aware datetime, date_only). A plain date maps to the start of
    that day.
    """
    value = request.query_params.get(name)
    if value in (None, ''):
        return None, False

    # parse_datetime also accepts a bare date (as midnight), so check dates first
    d = parse_date(value)
    if d is not None:
        return timezone.make_aware(datetime.combine(d, time.min)), True

    dt = parse_datetime(value)
    if dt is None:
        raise InvalidQuery(f"{name} must be an ISO date or datetime.")
    if timezone.is_naive(dt):
        dt = timezone.make_aware(dt)
    return dt, False


def contract_detail_queryset():
    return Contract.objects.select_related('customer').prefetch_related(
        'items__product',
        Prefetch(
            'installments',
            queryset=Installment.objects.order_by('seq').prefetch_related('payments__received_by'),
        ),
    )


def payment_result_data(result):
    return {
        "payment": PaymentSerializer(result.payment).data if result.payment else None,
        "applied_cents": result.applied_cents,
        "leftover_cents": result.leftover_cents,
        "already_settled": result.already_settled,
        "installment_status": result.installment_status,
        "contract_status": result.contract_status,
        "installment": InstallmentSerializer(
            Installment.objects.select_related('contract__customer').get(pk=result.installment.pk)
        ).data,
    }


# ============================================================
# Contracts
# ============================================================
class ContractListCreateView(APIView):
    """
    Handles both:
    - List contracts
    - Create a contract with its installment schedule
    """
    permission_classes = [HasResourcePermission]
    rbac_resource = 'contract'

    @swagger_auto_schema(
        operation_summary="List Contracts",
        manual_parameters=[
            openapi.Parameter('customer_id', openapi.IN_QUERY, description="Customer ID", type=openapi.TYPE_INTEGER),
            openapi.Parameter('status', openapi.IN_QUERY, description="Contract status", type=openapi.TYPE_STRING,
                              enum=[c for c, _ in ContractStatus.CHOICES]),
            openapi.Parameter('page', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('page_size', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: ContractSerializer(many=True)},
        tags=["Contracts"]
    )
    def get(self, request):
        try:
            contracts = Contract.objects.select_related('customer').annotate(
                items_count=Count('items', distinct=True),
                installments_count=Count('installments', distinct=True),
            ).order_by('-created_at', '-id')

            customer_id = int_param(request, 'customer_id')
            if customer_id is not None:
                contracts = contracts.filter(customer_id=customer_id)
            status_filter = choice_param(request, 'status', ContractStatus.CHOICES)
            if status_filter:
                contracts = contracts.filter(status=status_filter)

            return paginated_response(request, contracts, ContractSerializer)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error listing contracts.")
            return server_error_response("Failed to fetch contracts.")

    @swagger_auto_schema(
        operation_summary="Create Contract",
        operation_description=(
            "Creates a contract, its items and `months` monthly installments, and "
            "decrements stock, all in one transaction.\n\n"
            "**Business Rules:**\n"
            "- Unit prices are taken from the catalog at creation\n"
            "- Remainder cents of the split go to the first installment\n"
            "- Any line without enough stock aborts the whole contract (409)"
        ),
        request_body=ContractCreateSerializer,
        responses={
            201: ContractDetailSerializer,
            400: "Validation error / InvalidProduct",
            404: "Customer not found",
            409: "InsufficientStock",
            500: "Internal Server Error",
        },
        tags=["Contracts"]
    )
    def post(self, request):
        serializer = ContractCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            data = serializer.validated_data
            contract = ledger.create_contract(
                customer_id=data['customer_id'],
                items=data['items'],
                months=data['months'],
                start_date=data['start_date'],
                created_by=request.user,
            )
            contract = contract_detail_queryset().get(pk=contract.pk)
            return success_response(
                ContractDetailSerializer(contract).data,
                "Contract created successfully.",
                status.HTTP_201_CREATED,
            )

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error creating contract.")
            return server_error_response("Failed to create contract.")


class ContractDetailView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'contract'

    @swagger_auto_schema(
        operation_summary="Get Contract",
        operation_description="Contract with its items, installments and payments.",
        responses={200: ContractDetailSerializer, 404: "Contract not found"},
        tags=["Contracts"]
    )
    def get(self, request, contract_id):
        try:
            contract = contract_detail_queryset().filter(pk=contract_id).first()
            if contract is None:
                raise NotFound(f"Contract {contract_id} not found.")
            return success_response(ContractDetailSerializer(contract).data)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error fetching contract.")
            return server_error_response("Failed to fetch contract.")

    @swagger_auto_schema(
        operation_summary="Delete Contract",
        operation_description="Only contracts without installments can be deleted.",
        responses={200: "Deleted", 404: "Contract not found", 409: "ContractHasInstallments"},
        tags=["Contracts"]
    )
    def delete(self, request, contract_id):
        try:
            ledger.delete_contract(contract_id)
            return success_response(None, "Contract deleted successfully.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error deleting contract.")
            return server_error_response("Failed to delete contract.")


class ContractStatusView(APIView):
    """
    Administrative override of a contract's status.
    The next recalculation or payment re-derives it again.
    """
    permission_classes = [HasResourcePermission]
    rbac_resource = 'contract'

    @swagger_auto_schema(
        operation_summary="Override Contract Status",
        request_body=ContractStatusSerializer,
        responses={200: ContractSerializer, 404: "Contract not found"},
        tags=["Contracts"]
    )
    def patch(self, request, contract_id):
        serializer = ContractStatusSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            contract = ledger.set_contract_status(contract_id, serializer.validated_data['status'])
            return success_response(ContractSerializer(contract).data, "Contract status updated.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error updating contract status.")
            return server_error_response("Failed to update contract status.")


class ContractRecalcView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'contract'
    rbac_action = 'update'

    @swagger_auto_schema(
        operation_summary="Recalculate Contract",
        operation_description="Re-derives every installment status and then the contract status.",
        request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
        responses={200: ContractDetailSerializer, 404: "Contract not found"},
        tags=["Contracts"]
    )
    def post(self, request, contract_id):
        try:
            ledger.recalculate_contract(contract_id)
            contract = contract_detail_queryset().get(pk=contract_id)
            return success_response(ContractDetailSerializer(contract).data, "Contract recalculated.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Contracts] Error recalculating contract.")
            return server_error_response("Failed to recalculate contract.")


# ============================================================
# Installments
# ============================================================
INSTALLMENT_SORTS = {
    'due_date:asc': ['due_date', 'id'],
    'due_date:desc': ['-due_date', '-id'],
    'seq:asc': ['seq', 'id'],
    'seq:desc': ['-seq', '-id'],
}


class InstallmentListView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'installment'

    @swagger_auto_schema(
        operation_summary="List Installments",
        manual_parameters=[
            openapi.Parameter('status', openapi.IN_QUERY, type=openapi.TYPE_STRING,
                              enum=[c for c, _ in InstallmentStatus.CHOICES]),
            openapi.Parameter('contract_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('customer_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('due_from', openapi.IN_QUERY, description="ISO date or datetime", type=openapi.TYPE_STRING),
            openapi.Parameter('due_to', openapi.IN_QUERY, description="ISO date or datetime (inclusive)", type=openapi.TYPE_STRING),
            openapi.Parameter('overdue_only', openapi.IN_QUERY, description="Past due and underpaid", type=openapi.TYPE_BOOLEAN),
            openapi.Parameter('sort', openapi.IN_QUERY, type=openapi.TYPE_STRING, enum=list(INSTALLMENT_SORTS)),
        ],
        responses={200: InstallmentSerializer(many=True)},
        tags=["Installments"]
    )
    def get(self, request):
        try:
            installments = Installment.objects.select_related('contract__customer')

            status_filter = choice_param(request, 'status', InstallmentStatus.CHOICES)
            if status_filter:
                installments = installments.filter(status=status_filter)

            contract_id = int_param(request, 'contract_id')
            if contract_id is not None:
                installments = installments.filter(contract_id=contract_id)

            customer_id = int_param(request, 'customer_id')
            if customer_id is not None:
                installments = installments.filter(contract__customer_id=customer_id)

            due_from, _ = datetime_param(request, 'due_from')
            if due_from:
                installments = installments.filter(due_date__gte=due_from)

            # a plain due_to date includes the whole day
            due_to, date_only = datetime_param(request, 'due_to')
            if due_to and date_only:
                installments = installments.filter(due_date__lt=due_to + timedelta(days=1))
            elif due_to:
                installments = installments.filter(due_date__lte=due_to)

            if bool_param(request, 'overdue_only'):
                installments = installments.filter(
                    due_date__lt=timezone.now(),
                    paid_cents__lt=F('amount_cents'),
                )

            sort = request.query_params.get('sort') or 'due_date:asc'
            if sort not in INSTALLMENT_SORTS:
                raise InvalidQuery(f"sort must be one of {list(INSTALLMENT_SORTS)}.")
            installments = installments.order_by(*INSTALLMENT_SORTS[sort])

            return paginated_response(request, installments, InstallmentSerializer)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Installments] Error listing installments.")
            return server_error_response("Failed to fetch installments.")


class InstallmentDetailView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'installment'

    @swagger_auto_schema(
        operation_summary="Get Installment",
        responses={200: InstallmentDetailSerializer, 404: "InvalidInstallment"},
        tags=["Installments"]
    )
    def get(self, request, installment_id):
        try:
            installment = (
                Installment.objects.select_related('contract__customer')
                .prefetch_related('payments__received_by')
                .filter(pk=installment_id)
                .first()
            )
            if installment is None:
                raise NotFound(f"Installment {installment_id} not found.")
            return success_response(InstallmentDetailSerializer(installment).data)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Installments] Error fetching installment.")
            return server_error_response("Failed to fetch installment.")

    @swagger_auto_schema(
        operation_summary="Update Installment",
        operation_description=(
            "Administrative edit of due date, amount or status.\n\n"
            "- `amount_cents` may not go below `paid_cents`\n"
            "- Without `status` the installment status is re-derived\n"
            "- The contract status is always re-derived"
        ),
        request_body=InstallmentUpdateSerializer,
        responses={200: InstallmentSerializer, 400: "InvalidAmount", 404: "InvalidInstallment"},
        tags=["Installments"]
    )
    def patch(self, request, installment_id):
        serializer = InstallmentUpdateSerializer(data=request.data, partial=True)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            data = serializer.validated_data
            ledger.update_installment(
                installment_id,
                due_date=data.get('due_date'),
                amount_cents=data.get('amount_cents'),
                status=data.get('status'),
            )
            installment = Installment.objects.select_related('contract__customer').get(pk=installment_id)
            return success_response(InstallmentSerializer(installment).data, "Installment updated.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Installments] Error updating installment.")
            return server_error_response("Failed to update installment.")


class InstallmentPaymentsView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'payment'

    @swagger_auto_schema(
        operation_summary="List Installment Payments",
        responses={200: PaymentSerializer(many=True), 404: "InvalidInstallment"},
        tags=["Installments"]
    )
    def get(self, request, installment_id):
        try:
            if not Installment.objects.filter(pk=installment_id).exists():
                raise NotFound(f"Installment {installment_id} not found.")
            payments = (
                Payment.objects.filter(installment_id=installment_id)
                .select_related('installment', 'received_by')
                .order_by('-paid_at', '-id')
            )
            return success_response({
                "installment_id": installment_id,
                "payments": PaymentSerializer(payments, many=True).data,
            })

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Installments] Error fetching installment payments.")
            return server_error_response("Failed to fetch payments.")


class InstallmentPayView(APIView):
    """
    Pay an installment. Amounts above the outstanding balance are not stored;
    the surplus comes back as `leftover_cents`.
    """
    permission_classes = [HasResourcePermission]
    rbac_resource = 'payment'
    rbac_action = 'create'

    @swagger_auto_schema(
        operation_summary="Pay Installment",
        request_body=InstallmentPaySerializer,
        responses={
            200: "Installment already settled, nothing applied",
            201: "Payment applied",
            400: "InvalidAmount",
            404: "InvalidInstallment",
        },
        tags=["Installments"]
    )
    def post(self, request, installment_id):
        serializer = InstallmentPaySerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            data = serializer.validated_data
            result = ledger.apply_payment(
                installment_id,
                data['amount_cents'],
                paid_at=data.get('paid_at'),
                received_by=request.user,
            )
            if result.already_settled:
                return success_response(payment_result_data(result), "Installment already settled.")
            return success_response(payment_result_data(result), "Payment applied.", status.HTTP_201_CREATED)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Installments] Error applying payment.")
            return server_error_response("Failed to apply payment.")


# ============================================================
# Payments
# ============================================================
class PaymentListCreateView(APIView):
    """
    Handles both:
    - List payments
    - Create (apply) a payment against an installment
    """
    permission_classes = [HasResourcePermission]
    rbac_resource = 'payment'

    @swagger_auto_schema(
        operation_summary="List Payments",
        manual_parameters=[
            openapi.Parameter('installment_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('contract_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
            openapi.Parameter('customer_id', openapi.IN_QUERY, type=openapi.TYPE_INTEGER),
        ],
        responses={200: PaymentSerializer(many=True)},
        tags=["Payments"]
    )
    def get(self, request):
        try:
            payments = Payment.objects.select_related('installment', 'received_by').order_by('-paid_at', '-id')

            installment_id = int_param(request, 'installment_id')
            if installment_id is not None:
                payments = payments.filter(installment_id=installment_id)
            contract_id = int_param(request, 'contract_id')
            if contract_id is not None:
                payments = payments.filter(installment__contract_id=contract_id)
            customer_id = int_param(request, 'customer_id')
            if customer_id is not None:
                payments = payments.filter(installment__contract__customer_id=customer_id)

            return paginated_response(request, payments, PaymentSerializer)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Payments] Error listing payments.")
            return server_error_response("Failed to fetch payments.")

    @swagger_auto_schema(
        operation_summary="Create Payment",
        request_body=PaymentCreateSerializer,
        responses={
            200: "Installment already settled, nothing applied",
            201: "Payment applied",
            400: "InvalidAmount",
            404: "InvalidInstallment",
        },
        tags=["Payments"]
    )
    def post(self, request):
        serializer = PaymentCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        try:
            data = serializer.validated_data
            result = ledger.apply_payment(
                data['installment_id'],
                data['amount_cents'],
                paid_at=data.get('paid_at'),
                received_by=request.user,
            )
            if result.already_settled:
                return success_response(payment_result_data(result), "Installment already settled.")
            return success_response(payment_result_data(result), "Payment applied.", status.HTTP_201_CREATED)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Payments] Error creating payment.")
            return server_error_response("Failed to create payment.")


class PaymentDetailView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'payment'

    @swagger_auto_schema(
        operation_summary="Get Payment",
        responses={200: PaymentSerializer, 404: "Payment not found"},
        tags=["Payments"]
    )
    def get(self, request, payment_id):
        try:
            payment = Payment.objects.select_related('installment', 'received_by').filter(pk=payment_id).first()
            if payment is None:
                raise NotFound(f"Payment {payment_id} not found.")
            return success_response(PaymentSerializer(payment).data)

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Payments] Error fetching payment.")
            return server_error_response("Failed to fetch payment.")

    @swagger_auto_schema(
        operation_summary="Reverse Payment",
        operation_description="Deletes the payment and takes its amount back off the installment.",
        responses={200: "Payment reversed", 404: "Payment not found"},
        tags=["Payments"]
    )
    def delete(self, request, payment_id):
        try:
            result = ledger.reverse_payment(payment_id)
            installment = Installment.objects.select_related('contract__customer').get(pk=result.installment.pk)
            return success_response({
                "reversed_cents": result.reversed_cents,
                "installment_status": result.installment_status,
                "contract_status": result.contract_status,
                "installment": InstallmentSerializer(installment).data,
            }, "Payment reversed.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Payments] Error reversing payment.")
            return server_error_response("Failed to reverse payment.")


# ============================================================
# Administrative jobs
# ============================================================
class JobRunView(APIView):
    """
    Run one reconciliation job now, through the same code path the
    scheduler uses.
    """
    permission_classes = [HasResourcePermission]
    rbac_resource = 'jobs'
    rbac_action = 'run'

    @swagger_auto_schema(
        operation_summary="Run Job",
        request_body=JobRunSerializer,
        responses={200: "Job result", 400: "UnknownJob", 409: "JobAlreadyRunning", 500: "Job failed"},
        tags=["Admin"]
    )
    def post(self, request):
        serializer = JobRunSerializer(data=request.data)
        if not serializer.is_valid():
            return validation_error_response(serializer.errors)

        job = serializer.validated_data['job']
        try:
            result = reconciliation.run_job(job)
            logger.info(f"[Admin] Job {job} run manually by {request.user}")
            return success_response({"ran": job, "result": result}, f"Job {job} completed.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception(f"[Admin] Job {job} failed.")
            return server_error_response("Job failed.")


class ReminderPreviewView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'reminders'
    rbac_action = 'read'

    @swagger_auto_schema(
        operation_summary="Preview Reminders",
        operation_description="Who would be reminded right now, without sending anything.",
        tags=["Admin"]
    )
    def get(self, request):
        try:
            candidates = reconciliation.collect_reminder_candidates()
            return success_response({
                "daysBefore": candidates['daysBefore'],
                "counts": {
                    "overdue": len(candidates['overdue']),
                    "upcoming": len(candidates['upcoming']),
                },
                "sample": {
                    "overdue": candidates['overdue'][:5],
                    "upcoming": candidates['upcoming'][:5],
                },
            })

        except Exception:
            logger.exception("[Admin] Reminder preview failed.")
            return server_error_response("Failed to preview reminders.")


class ReminderSendView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'reminders'
    rbac_action = 'send'

    @swagger_auto_schema(
        operation_summary="Send Reminders Now",
        request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
        responses={200: "Reminder run summary", 409: "JobAlreadyRunning"},
        tags=["Admin"]
    )
    def post(self, request):
        try:
            result = reconciliation.run_job('reminders')
            logger.info(f"[Admin] Reminders sent manually by {request.user}: {result}")
            return success_response(result, "Reminders processed.")

        except LedgerError as e:
            return ledger_error_response(e)
        except Exception:
            logger.exception("[Admin] Reminder send failed.")
            return server_error_response("Failed to send reminders.")


class RunNotificationsView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'notifications'
    rbac_action = 'run'

    @swagger_auto_schema(
        operation_summary="Run Notification Scans",
        operation_description="Emits `due_soon` events for installments due soon and `low_stock` events per product.",
        request_body=openapi.Schema(type=openapi.TYPE_OBJECT, properties={}),
        tags=["Admin"]
    )
    def post(self, request):
        try:
            due_soon = reconciliation.run_due_soon_scan()
            low_stock = reconciliation.run_low_stock_scan()
            return success_response(
                {"due_soon": due_soon['count'], "low_stock": low_stock['count']},
                "Notification scans completed.",
            )

        except Exception:
            logger.exception("[Admin] Notification scans failed.")
            return server_error_response("Failed to run notification scans.")


class NotificationLogListView(APIView):
    permission_classes = [HasResourcePermission]
    rbac_resource = 'notifications'

    @swagger_auto_schema(
        operation_summary="List Notification Log",
        manual_parameters=[
            openapi.Parameter('type', openapi.IN_QUERY, description="Entry type", type=openapi.TYPE_STRING),
        ],
        responses={200: NotificationLogSerializer(many=True)},
        tags=["Admin"]
    )
    def get(self, request):
        try:
            entries = NotificationLog.objects.order_by('-created_at', '-id')
            kind = request.query_params.get('type')
            if kind:
                entries = entries.filter(type=kind)
            return paginated_response(request, entries, NotificationLogSerializer)

        except Exception:
            logger.exception("[Admin] Error listing notification log.")
            return server_error_response("Failed to fetch notification log.")
