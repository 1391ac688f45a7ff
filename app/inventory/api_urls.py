from django.urls import path

from . import api_views


app_name = "inventory_api"

urlpatterns = [
    path("proyectos", api_views.api_projects, name="project_list"),
    path("proyectos/todos", api_views.api_project_all, name="project_all"),
    path("proyectos/<int:project_id>", api_views.api_project_detail, name="project_detail"),
    path("proyectos/<int:project_id>/activar", api_views.api_project_activate, name="project_activate"),
    path("proyectos/<int:project_id>/desactivar", api_views.api_project_deactivate, name="project_deactivate"),
    path("proyectos/<int:project_id>/bloques", api_views.api_project_blocks, name="project_blocks"),
    path("proyectos/<int:project_id>/lotes", api_views.api_project_lots, name="project_lots"),
    path(
        "proyectos/<int:project_id>/lotes/disponibles",
        api_views.api_project_available_lots,
        name="project_available_lots",
    ),
    path("bloques", api_views.api_block_create, name="block_create"),
    path("bloques/<int:block_id>", api_views.api_block_detail, name="block_detail"),
    path("bloques/<int:block_id>/activar", api_views.api_block_activate, name="block_activate"),
    path("bloques/<int:block_id>/desactivar", api_views.api_block_deactivate, name="block_deactivate"),
    path("bloques/<int:block_id>/lotes", api_views.api_block_lots, name="block_lots"),
    path("lotes", api_views.api_lot_create, name="lot_create"),
    path("lotes/<int:lot_id>", api_views.api_lot_detail, name="lot_detail"),
    path("lotes/<int:lot_id>/estado", api_views.api_lot_status, name="lot_status"),
    path("lotes/<int:lot_id>/activar", api_views.api_lot_activate, name="lot_activate"),
    path("lotes/<int:lot_id>/desactivar", api_views.api_lot_deactivate, name="lot_deactivate"),
]
