from django.urls import path

from . import api_views


app_name = "finance_api"

urlpatterns = [
    path(
        "reservas/<int:reservation_id>/cronograma",
        api_views.api_reservation_schedule,
        name="reservation_schedule",
    ),
    path(
        "reservas/<int:reservation_id>/pendientes",
        api_views.api_reservation_pending,
        name="reservation_pending",
    ),
    path(
        "reservas/<int:reservation_id>/estado-cuotas",
        api_views.api_reservation_quota_status,
        name="reservation_quota_status",
    ),
    path(
        "reservas/<int:reservation_id>/transacciones",
        api_views.api_reservation_transactions,
        name="reservation_transactions",
    ),
    path("transacciones", api_views.api_transactions, name="transaction_list"),
    path("transacciones/<int:transaction_id>", api_views.api_transaction_detail, name="transaction_detail"),
]
