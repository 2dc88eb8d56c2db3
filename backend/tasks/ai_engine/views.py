# tasks/ai_engine/views.py

from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from api.exceptions import TaskQuestError
from .priority import PrioritySuggester
from .suggester import TaskSuggester

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}


class AIProxyView(APIView):
    """
    Base for the browser-facing AI proxies: open to any caller, CORS headers
    on every response, and a plain 405 body for unsupported methods.
    """
    authentication_classes = []
    permission_classes = [AllowAny]

    def options(self, request, *args, **kwargs):
        return Response(status=200)

    def http_method_not_allowed(self, request, *args, **kwargs):
        raise TaskQuestError("Method not allowed", status_code=405)

    @staticmethod
    def body_field(request, name):
        """Field of a JSON object body; None for any other body shape."""
        data = request.data
        return data.get(name) if isinstance(data, dict) else None

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        for header, value in CORS_HEADERS.items():
            response[header] = value
        return response


class GeminiSuggestView(AIProxyView):
    """
    POST {title}: description, category, priority and three suggestions.
    """

    def post(self, request):
        return Response(TaskSuggester().suggest(self.body_field(request, "title")))

gemini_suggest_view=GeminiSuggestView.as_view()


class PrioritySuggestionView(AIProxyView):
    """
    POST {taskText}: {"priority": "high" | "medium" | "low"}.
    """

    def post(self, request):
        priority = PrioritySuggester().suggest_priority(self.body_field(request, "taskText"))
        return Response({"priority": priority})

priority_suggestion_view=PrioritySuggestionView.as_view()
