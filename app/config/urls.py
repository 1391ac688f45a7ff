"""
URL configuration for config project - API de gestión inmobiliaria
"""
from django.contrib import admin
from django.urls import path, include

urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # API
    path("api/auth/", include(("users.api_urls", "users_api"), namespace="users_api")),
    path("api/inventario/", include(("inventory.api_urls", "inventory_api"), namespace="inventory_api")),
    path("api/", include(("leads.api_urls", "leads_api"), namespace="leads_api")),
    path("api/ventas/", include(("sales.api_urls", "sales_api"), namespace="sales_api")),
    path("api/pagos/", include(("finance.api_urls", "finance_api"), namespace="finance_api")),
    path("api/dashboard/", include(("dashboard.api_urls", "dashboard_api"), namespace="dashboard_api")),
]
