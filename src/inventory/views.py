"""JSON API for issuing, returning and confirming workwear."""

import functools
import json
import logging

from django_ratelimit.decorators import ratelimit
from django_ratelimit.exceptions import Ratelimited

from django.core.exceptions import PermissionDenied, ValidationError
from django.http import HttpResponse, JsonResponse
from django.utils.dateparse import parse_date

from workwear.views import ratelimited_view

from . import serializers
from .exceptions import ExpiredError, InvalidInputError, InventoryError
from .models import ClothingItem, ClothingType, Confirmation
from .services import (
    catalog,
    confirmations,
    issuance,
    ledger,
    protocols,
    workflow,
)
from .services.permissions import (
    CATALOG_ROLES,
    ISSUING_ROLES,
    can_administer,
    can_manage_catalog,
    get_user_role,
)

logger = logging.getLogger(__name__)


def success(data, status=200):
    return JsonResponse({"success": True, "data": data}, status=status)


def error_response(code, message, status, details=None):
    return JsonResponse(
        {
            "success": False,
            "error": {"code": code, "message": message, "details": details},
        },
        status=status,
    )


def api_view(methods, roles=None, login=True):
    """Wrap a view with method, authentication and role checks.

    Domain errors become the JSON error envelope with their status code.
    """

    def decorator(view):
        @functools.wraps(view)
        def wrapper(request, *args, **kwargs):
            if request.method not in methods:
                response = error_response(
                    "METHOD_NOT_ALLOWED",
                    f"{request.method} is not allowed here.",
                    405,
                )
                response["Allow"] = ", ".join(methods)
                return response
            if login and not request.user.is_authenticated:
                return error_response(
                    "UNAUTHENTICATED", "Authentication required.", 401
                )
            if roles and get_user_role(request.user) not in roles:
                return error_response(
                    "FORBIDDEN", "Insufficient permissions.", 403
                )
            try:
                return view(request, *args, **kwargs)
            except InventoryError as exc:
                if exc.status_code >= 500:
                    logger.error("%s: %s", exc.code, exc.message)
                return error_response(
                    exc.code, exc.message, exc.status_code, exc.details
                )
            except Ratelimited as exc:
                return ratelimited_view(request, exc)
            except PermissionDenied as exc:
                return error_response(
                    "FORBIDDEN", str(exc) or "Permission denied.", 403
                )
            except Exception:
                logger.exception("Unhandled error in %s", view.__name__)
                return error_response(
                    "INTERNAL_ERROR", "An unexpected error occurred.", 500
                )

        return wrapper

    return decorator


def _body(request) -> dict:
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, UnicodeDecodeError, ValueError):
        raise InvalidInputError("Invalid JSON")
    if not isinstance(data, dict):
        raise InvalidInputError("Request body must be a JSON object.")
    return data


def _require(data: dict, *keys):
    missing = [key for key in keys if data.get(key) in (None, "", [])]
    if missing:
        raise InvalidInputError(
            f"Missing required field(s): {', '.join(missing)}",
            details={"missing": missing},
        )
    return [data[key] for key in keys]


def _id_list(value, field: str) -> list:
    if not isinstance(value, list):
        raise InvalidInputError(f"{field} must be a list.")
    return value


def _query_ids(request) -> list[str]:
    raw = request.GET.get("transactionIds", "")
    ids = [part.strip() for part in raw.split(",") if part.strip()]
    if not ids:
        raise InvalidInputError("transactionIds is required.")
    return ids


def _client_ip(request):
    return request.META.get("REMOTE_ADDR") or None


def _user_agent(request) -> str:
    return request.META.get("HTTP_USER_AGENT", "")


def _pdf_response(document) -> HttpResponse:
    response = HttpResponse(document.content, content_type=document.content_type)
    response["Content-Disposition"] = (
        f'attachment; filename="{document.filename}"'
    )
    return response


def _confirmation_summary(confirmation):
    if confirmation is None:
        return None
    return {
        "id": str(confirmation.pk),
        "emailSent": confirmation.email_sent,
        "emailError": confirmation.email_error or None,
        "expiresAt": confirmation.expires_at.isoformat(),
    }


# --- Transactions ---


@api_view(["GET"])
def transaction_list(request):
    filters = {
        "employee": request.GET.get("employeeId"),
        "item": request.GET.get("clothingItemId"),
        "type": request.GET.get("type"),
        "returned": request.GET.get("returned"),
    }
    txns = ledger.list_transactions(filters, request.user)
    return success([serializers.transaction(t) for t in txns])


@api_view(["GET"])
def transaction_stats(request):
    stats = ledger.transaction_stats(request.user)
    stats["recentTransactions"] = [
        serializers.transaction(t) for t in stats["recentTransactions"]
    ]
    return success(stats)


@api_view(["GET"])
def pending_returns(request):
    txns = ledger.pending_returns(request.user)
    return success([serializers.transaction(t) for t in txns])


@api_view(["GET"])
def pending_issues(request):
    txns = ledger.pending_issues(request.user)
    return success([serializers.transaction(t) for t in txns])


@api_view(["GET"])
def item_history(request, item_id):
    txns = ledger.item_history(item_id, request.user)
    return success([serializers.transaction(t) for t in txns])


@api_view(["GET"])
def transaction_detail(request, transaction_id):
    txn = ledger.get_transaction(transaction_id, request.user)
    return success(serializers.transaction(txn))


@api_view(["POST"], roles=ISSUING_ROLES)
def issue(request):
    data = _body(request)
    employee_id, item_id, condition = _require(
        data, "employeeId", "clothingItemId", "conditionOnIssue"
    )
    txn = issuance.issue_single(
        employee_id,
        item_id,
        request.user.pk,
        condition,
        data.get("notes") or "",
    )
    confirmation = workflow.after_issue([txn], "SINGLE")
    return success(
        {
            "transaction": serializers.transaction(txn),
            "confirmation": _confirmation_summary(confirmation),
        },
        status=201,
    )


@api_view(["POST"], roles=ISSUING_ROLES)
def bulk_issue(request):
    data = _body(request)
    employee_id, item_ids, condition = _require(
        data, "employeeId", "clothingItemIds", "conditionOnIssue"
    )
    txns = issuance.issue_bulk(
        employee_id,
        _id_list(item_ids, "clothingItemIds"),
        request.user.pk,
        condition,
        data.get("notes") or "",
    )
    confirmation = workflow.after_issue(txns, "BULK_ISSUE")
    return success(
        {
            "transactions": [serializers.transaction(t) for t in txns],
            "count": len(txns),
            "confirmation": _confirmation_summary(confirmation),
        },
        status=201,
    )


@api_view(["POST"], roles=ISSUING_ROLES)
def transaction_return(request, transaction_id):
    data = _body(request)
    (condition,) = _require(data, "conditionOnReturn")
    txn = issuance.return_single(
        transaction_id, request.user.pk, condition, data.get("notes") or ""
    )
    return success(serializers.transaction(txn))


@api_view(["POST"], roles=ISSUING_ROLES)
def bulk_return(request):
    data = _body(request)
    transaction_ids, condition = _require(
        data, "transactionIds", "conditionOnReturn"
    )
    txns = issuance.return_bulk_uniform(
        _id_list(transaction_ids, "transactionIds"),
        request.user.pk,
        condition,
        data.get("notes") or "",
    )
    return success(
        {
            "transactions": [serializers.transaction(t) for t in txns],
            "count": len(txns),
        }
    )


@api_view(["POST"], roles=ISSUING_ROLES)
def bulk_return_individual(request):
    data = _body(request)
    (items,) = _require(data, "items")
    lines = []
    for entry in _id_list(items, "items"):
        if not isinstance(entry, dict):
            raise InvalidInputError("Each item must be an object.")
        transaction_id, condition = _require(
            entry, "transactionId", "conditionOnReturn"
        )
        lines.append(
            issuance.ReturnLine(
                transaction_id=transaction_id,
                condition_on_return=condition,
                notes=entry.get("notes") or "",
            )
        )
    txns = issuance.return_bulk_individual(
        lines, request.user.pk, data.get("generalNotes") or ""
    )
    return success(
        {
            "transactions": [serializers.transaction(t) for t in txns],
            "count": len(txns),
        }
    )


# --- Confirmations ---


@api_view(["GET"], roles=("ADMIN",))
def confirmation_list(request):
    rows = Confirmation.objects.select_related("employee")[:100]
    return success([serializers.confirmation(c) for c in rows])


@api_view(["GET"], login=False)
@ratelimit(key="ip", rate="30/m", method="GET", block=True)
def confirmation_detail(request, token):
    """Public view of a confirmation link, shown before signing in."""
    confirmation = confirmations.get_by_token(token)
    if confirmation.is_expired and not confirmation.confirmed:
        raise ExpiredError("This confirmation link has expired.")
    employee = confirmation.employee
    return success(
        {
            "employee": {
                "firstName": employee.first_name,
                "lastName": employee.last_name,
            },
            "protocolType": confirmation.protocol_type,
            "items": confirmations.items_of(confirmation),
            "confirmed": confirmation.confirmed,
            "confirmedAt": (
                confirmation.confirmed_at.isoformat()
                if confirmation.confirmed_at
                else None
            ),
            "expiresAt": confirmation.expires_at.isoformat(),
        }
    )


@api_view(["POST"])
@ratelimit(key="ip", rate="10/m", method="POST", block=True)
def confirmation_confirm(request, token):
    confirmation = workflow.accept_confirmation(
        token,
        request.user,
        ip_address=_client_ip(request),
        user_agent=_user_agent(request),
    )
    return success(
        {
            "message": "Receipt confirmed successfully",
            "confirmed": confirmation.confirmed,
            "confirmedAt": confirmation.confirmed_at.isoformat(),
            "confirmedBy": confirmation.confirmed_by,
        }
    )


@api_view(["POST"], roles=ISSUING_ROLES)
def confirmation_resend(request, transaction_id):
    confirmation = workflow.resend_confirmation(transaction_id)
    return success(_confirmation_summary(confirmation))


# --- Reports ---


@api_view(["GET"])
def transaction_protocol(request, transaction_id):
    kind = request.GET.get("type", "issue")
    return _pdf_response(protocols.get_transaction_protocol(transaction_id, kind))


@api_view(["GET"])
def bulk_issue_protocol(request):
    return _pdf_response(protocols.get_bulk_issue_protocol(_query_ids(request)))


@api_view(["GET"])
def bulk_return_protocol(request):
    return _pdf_response(protocols.get_bulk_return_protocol(_query_ids(request)))


# --- Items ---


def _create_items(request):
    if not can_manage_catalog(request.user):
        raise PermissionDenied("Insufficient permissions.")
    data = _body(request)
    type_id, size = _require(data, "typeId", "size")
    try:
        clothing_type = ClothingType.objects.get(pk=type_id, is_active=True)
    except (ClothingType.DoesNotExist, ValueError, ValidationError):
        raise InvalidInputError(f"Clothing type {type_id} not found.")
    try:
        quantity = int(data.get("quantity") or 1)
    except (TypeError, ValueError):
        raise InvalidInputError("quantity must be a number.")
    purchase_date = None
    if data.get("purchaseDate"):
        try:
            purchase_date = parse_date(data["purchaseDate"])
        except (TypeError, ValueError):
            purchase_date = None
        if purchase_date is None:
            raise InvalidInputError("purchaseDate must be YYYY-MM-DD.")
    items = catalog.create_items(
        clothing_type,
        size,
        category=data.get("category") or "POOL",
        condition=data.get("condition") or "NEW",
        quantity=quantity,
        purchase_date=purchase_date,
        purchase_price=data.get("purchasePrice"),
        image_url=data.get("imageUrl") or "",
        performed_by=request.user,
    )
    return success([serializers.clothing_item(i) for i in items], status=201)


@api_view(["GET", "POST"])
def item_list(request):
    if request.method == "POST":
        return _create_items(request)
    qs = ClothingItem.objects.select_related("type")
    for param, field in (
        ("status", "status"),
        ("category", "category"),
        ("condition", "condition"),
        ("typeId", "type_id"),
        ("size", "size"),
    ):
        value = request.GET.get(param)
        if value:
            qs = qs.filter(**{field: value})
    return success([serializers.clothing_item(i) for i in qs])


@api_view(["GET"])
def item_stats(request):
    return success(catalog.item_stats())


@api_view(["GET", "DELETE"])
def item_detail(request, item_id):
    item = catalog.get_item(item_id)
    if request.method == "DELETE":
        if not can_administer(request.user):
            raise PermissionDenied("Insufficient permissions.")
        catalog.permanently_delete_item(item, request.user, request)
        return success({"deleted": str(item_id)})
    return success(serializers.clothing_item(item))


@api_view(["POST"], roles=("ADMIN",))
def item_status(request, item_id):
    data = _body(request)
    (new_status,) = _require(data, "status")
    item = catalog.transition_item(
        catalog.get_item(item_id), new_status, request.user, request
    )
    return success(serializers.clothing_item(item))


@api_view(["POST"], roles=CATALOG_ROLES)
def item_retire(request, item_id):
    data = _body(request)
    item = catalog.retire_item(
        catalog.get_item(item_id),
        data.get("reason") or "",
        request.user,
        request,
    )
    return success(serializers.clothing_item(item))
