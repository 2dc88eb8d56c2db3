# progress/urls.py

from django.urls import path
from .views import stats_view, categories_view

urlpatterns = [
    # GET (XP, level, streak for this device)
    path('stats/', stats_view, name='progress-stats'),

    # GET and POST (List and Add categories)
    path('categories/', categories_view, name='progress-categories'),
]
