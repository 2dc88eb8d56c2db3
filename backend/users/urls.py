from django.urls import path
from rest_framework_simplejwt.views import TokenRefreshView

from .views import (
    guest_mode_view,
    session_view,
    sign_in_view,
    sign_out_view,
    sign_up_view,
    user_detail_view,
)


urlpatterns = [
    path('register/', sign_up_view, name='auth_register'),
    path('login/', sign_in_view, name='auth_login'),
    path('logout/', sign_out_view, name='auth_logout'),
    path('guest/', guest_mode_view, name='auth_guest'),
    path('session/', session_view, name='auth_session'),

    path('token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('user/', user_detail_view, name='user_detail'),
]
