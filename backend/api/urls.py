from django.urls import path,include
from tasks.ai_engine.views import gemini_suggest_view, priority_suggestion_view

urlpatterns=[
    path('v1/auth/',include('users.urls')),
    path('v1/progress/',include('progress.urls')),
    path('v1/tasks/',include('tasks.urls')),

    # AI proxies (kept at the paths the web client already calls)
    path('gemini-suggest',gemini_suggest_view,name="gemini-suggest"),
    path('ai-priority-suggestion',priority_suggestion_view,name="ai-priority-suggestion"),
]
