# progress/views.py

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from users.session import SessionController
from .serializers import CategorySerializer, UserStatsSerializer
from .state import ProgressState


def progress_state(request):
    """Progress of the caller: the user's row when signed in, the device otherwise."""
    session = SessionController(request)
    return ProgressState.for_identity(session.identity, session.device)


class StatsView(APIView):
    """
    GET: XP, level, streak and level progress of the caller.
    """

    def get(self, request):
        return Response(UserStatsSerializer(progress_state(request).stats).data)

stats_view=StatsView.as_view()


class CategoryListCreateView(APIView):
    """
    GET: List the category set.
    POST: Add a category (normalized to lower case, duplicates rejected).
    """

    def get(self, request):
        return Response({"categories": progress_state(request).categories})

    def post(self, request):
        serializer = CategorySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        state = progress_state(request)
        category = state.add_category(serializer.validated_data["name"])
        return Response(
            {"category": category, "categories": state.categories},
            status=status.HTTP_201_CREATED,
        )

categories_view=CategoryListCreateView.as_view()
