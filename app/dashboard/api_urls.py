from django.urls import path

from . import api_views


app_name = "dashboard_api"

urlpatterns = [
    path("admin", api_views.api_admin_dashboard, name="admin"),
    path("asesor", api_views.api_advisor_dashboard, name="advisor_self"),
    path("asesor/<int:user_id>", api_views.api_advisor_dashboard, name="advisor"),
    path("supervisor", api_views.api_supervisor_dashboard, name="supervisor_self"),
    path("supervisor/<int:user_id>", api_views.api_supervisor_dashboard, name="supervisor"),
    path("gerente", api_views.api_manager_dashboard, name="manager"),
    path("finanzas", api_views.api_finance_dashboard, name="finance"),
]
