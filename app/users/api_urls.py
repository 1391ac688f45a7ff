from django.urls import path

from . import api_views


app_name = "users_api"

urlpatterns = [
    path("login", api_views.api_login, name="login"),
    path("logout", api_views.api_logout, name="logout"),
    path("me", api_views.api_me, name="me"),
    path("usuarios", api_views.api_user_list, name="user_list"),
]
