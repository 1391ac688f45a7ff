from django.urls import path

from . import api_views


app_name = "leads_api"

urlpatterns = [
    path("clientes", api_views.api_clients, name="client_list"),
    path("clientes/buscar", api_views.api_client_lookup, name="client_lookup"),
    path("clientes/<int:client_id>", api_views.api_client_detail, name="client_detail"),
    path("clientes/<int:client_id>/activar", api_views.api_client_activate, name="client_activate"),
    path("clientes/<int:client_id>/leads", api_views.api_client_leads, name="client_leads"),
    path("leads", api_views.api_leads, name="lead_list"),
    path("leads/expirados", api_views.api_leads_expired, name="lead_expired"),
    path("leads/verificar-expirados", api_views.api_leads_check_expired, name="lead_check_expired"),
    path("leads/asesor/<int:user_id>", api_views.api_advisor_leads, name="advisor_leads"),
    path("leads/<int:lead_id>", api_views.api_lead_detail, name="lead_detail"),
    path("leads/<int:lead_id>/alternar-estado", api_views.api_lead_toggle_status, name="lead_toggle_status"),
    path("leads/<int:lead_id>/reciclar", api_views.api_lead_recycle, name="lead_recycle"),
    path("leads/<int:lead_id>/activar", api_views.api_lead_activate, name="lead_activate"),
    path("leads/<int:lead_id>/tareas", api_views.api_lead_tasks, name="lead_tasks"),
    path("tareas", api_views.api_tasks, name="task_list"),
    path("tareas/pendientes", api_views.api_tasks_pending, name="task_pending"),
    path("tareas/completadas", api_views.api_tasks_completed, name="task_completed"),
    path("tareas/usuario/<int:user_id>", api_views.api_user_tasks, name="user_tasks"),
    path("tareas/<int:task_id>", api_views.api_task_detail, name="task_detail"),
    path("tareas/<int:task_id>/completar", api_views.api_task_complete, name="task_complete"),
    path("referidos", api_views.api_referrals, name="referral_list"),
    path("referidos/estadisticas", api_views.api_referral_stats, name="referral_stats"),
    path("landing/contacto", api_views.api_landing_contact, name="landing_contact"),
    path("landing/referido", api_views.api_landing_referral, name="landing_referral"),
]
