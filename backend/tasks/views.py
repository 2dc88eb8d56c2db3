# tasks/views.py

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from users.session import SessionController
from .serializers import (
    TaskChangeSerializer,
    TaskCreateSerializer,
    TaskFilterSerializer,
    TaskSerializer,
    TaskUpdateSerializer,
)
from .services import TaskService


def task_service(request):
    """
    Task service bound to the caller: remote store when signed in, device otherwise.
    The streak follows the device calendar sent in the X-Timezone header.
    """
    session = SessionController(request)
    return TaskService(session.identity, session.device, tz=session.timezone)


class TaskListCreateView(APIView):
    """
    GET: Tasks for the status/category/priority filters, newest first,
         plus all/ongoing/finished counts over the unfiltered list.
    POST: Add a task (prepended to the list).
    """

    def get(self, request):
        filters = TaskFilterSerializer(data=request.query_params)
        filters.is_valid(raise_exception=True)

        tasks, counts = task_service(request).list(**filters.validated_data)
        return Response({"tasks": TaskSerializer(tasks, many=True).data, "counts": counts})

    def post(self, request):
        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        change = task_service(request).add(
            data.pop("text"), data.pop("category"), data.pop("priority"), **data
        )
        return Response(TaskChangeSerializer(change).data, status=status.HTTP_201_CREATED)

list_create_view=TaskListCreateView.as_view()


class TaskDetailView(APIView):
    """
    GET: One task.
    PATCH: Edit text, category, priority or schedule fields.
    DELETE: Remove the task (XP of a finished task is taken back).
    """

    def get(self, request, task_id):
        return Response(TaskSerializer(task_service(request).get(task_id)).data)

    def patch(self, request, task_id):
        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        change = task_service(request).edit(task_id, **serializer.validated_data)
        return Response(TaskChangeSerializer(change).data)

    def delete(self, request, task_id):
        change = task_service(request).delete(task_id)
        return Response(TaskChangeSerializer(change).data)

detail_view=TaskDetailView.as_view()


class TaskCompleteView(APIView):
    """POST: Mark the task finished and award its XP."""

    def post(self, request, task_id):
        change = task_service(request).complete(task_id)
        return Response(TaskChangeSerializer(change).data)

complete_view=TaskCompleteView.as_view()


class TaskUncompleteView(APIView):
    """POST: Reopen the task and take its XP back."""

    def post(self, request, task_id):
        change = task_service(request).uncomplete(task_id)
        return Response(TaskChangeSerializer(change).data)

uncomplete_view=TaskUncompleteView.as_view()


class DueRemindersView(APIView):
    """GET: Open tasks whose reminder time has passed."""

    def get(self, request):
        tasks = task_service(request).reminders()
        return Response({"tasks": TaskSerializer(tasks, many=True).data})

reminders_view=DueRemindersView.as_view()
