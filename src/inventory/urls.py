"""URL configuration for the inventory API."""

from django.urls import path

from . import views

app_name = "inventory"

urlpatterns = [
    # Transactions
    path("transactions/", views.transaction_list, name="transaction_list"),
    path("transactions/stats/", views.transaction_stats, name="transaction_stats"),
    path("transactions/pending/", views.pending_returns, name="pending_returns"),
    path(
        "transactions/pending-issues/",
        views.pending_issues,
        name="pending_issues",
    ),
    path(
        "transactions/history/<str:item_id>/",
        views.item_history,
        name="item_history",
    ),
    path("transactions/issue/", views.issue, name="issue"),
    path("transactions/bulk-issue/", views.bulk_issue, name="bulk_issue"),
    path("transactions/bulk-return/", views.bulk_return, name="bulk_return"),
    path(
        "transactions/bulk-return-individual/",
        views.bulk_return_individual,
        name="bulk_return_individual",
    ),
    path(
        "transactions/<str:transaction_id>/",
        views.transaction_detail,
        name="transaction_detail",
    ),
    path(
        "transactions/<str:transaction_id>/return/",
        views.transaction_return,
        name="transaction_return",
    ),
    # Confirmations
    path("confirmations/", views.confirmation_list, name="confirmation_list"),
    path(
        "confirmations/resend/<str:transaction_id>/",
        views.confirmation_resend,
        name="confirmation_resend",
    ),
    path(
        "confirmations/<str:token>/",
        views.confirmation_detail,
        name="confirmation_detail",
    ),
    path(
        "confirmations/<str:token>/confirm/",
        views.confirmation_confirm,
        name="confirmation_confirm",
    ),
    # Reports
    path(
        "reports/transaction/<str:transaction_id>/protocol/",
        views.transaction_protocol,
        name="transaction_protocol",
    ),
    path(
        "reports/bulk-issue/",
        views.bulk_issue_protocol,
        name="bulk_issue_protocol",
    ),
    path(
        "reports/bulk-return/",
        views.bulk_return_protocol,
        name="bulk_return_protocol",
    ),
    # Items
    path("items/", views.item_list, name="item_list"),
    path("items/stats/", views.item_stats, name="item_stats"),
    path("items/<str:item_id>/", views.item_detail, name="item_detail"),
    path("items/<str:item_id>/status/", views.item_status, name="item_status"),
    path("items/<str:item_id>/retire/", views.item_retire, name="item_retire"),
]
