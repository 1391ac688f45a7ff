from django.urls import path

from . import api_views


app_name = "sales_api"

urlpatterns = [
    path("cotizaciones", api_views.api_quotations, name="quotation_list"),
    path("cotizaciones/<int:quotation_id>", api_views.api_quotation_detail, name="quotation_detail"),
    path("cotizaciones/<int:quotation_id>/estado", api_views.api_quotation_status, name="quotation_status"),
    path(
        "cotizaciones/<int:quotation_id>/liberar-lote",
        api_views.api_quotation_release_lot,
        name="quotation_release_lot",
    ),
    path(
        "cotizaciones/<int:quotation_id>/reservas",
        api_views.api_quotation_reservations,
        name="quotation_reservations",
    ),
    path("cotizaciones/lead/<int:lead_id>", api_views.api_lead_quotations, name="lead_quotations"),
    path("cotizaciones/asesor/<int:user_id>", api_views.api_advisor_quotations, name="advisor_quotations"),
    path("cotizaciones/lote/<int:lot_id>", api_views.api_lot_quotations, name="lot_quotations"),
    path(
        "cotizaciones/proyecto/<int:project_id>",
        api_views.api_project_quotations,
        name="project_quotations",
    ),
    path("reservas", api_views.api_reservations, name="reservation_list"),
    path("reservas/pendientes", api_views.api_reservations_pending, name="reservation_pending"),
    path("reservas/<int:reservation_id>", api_views.api_reservation_detail, name="reservation_detail"),
    path("reservas/<int:reservation_id>/estado", api_views.api_reservation_status, name="reservation_status"),
    path("reservas/cliente/<int:client_id>", api_views.api_client_reservations, name="client_reservations"),
]
