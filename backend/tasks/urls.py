from django.urls import path
from .views import complete_view, detail_view, list_create_view, reminders_view, uncomplete_view

urlpatterns=[
    # GET and POST (filtered list with counts, add task)
    path('',list_create_view,name="task-list"),

    path('reminders/',reminders_view,name="task-reminders"),

    # GET, PATCH, DELETE
    path('<uuid:task_id>/',detail_view,name="task-detail"),
    path('<uuid:task_id>/complete/',complete_view,name="task-complete"),
    path('<uuid:task_id>/uncomplete/',uncomplete_view,name="task-uncomplete"),
]
