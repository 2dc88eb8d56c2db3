from rest_framework import generics, status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from .serializers import (
    SignInSerializer,
    SignOutSerializer,
    SignUpSerializer,
    UserDetailsSerializer,
    UserUpdateSerializer,
)
from .session import SessionController


def _signed_in_payload(result):
    return {
        "user": UserDetailsSerializer(result.user).data,
        "identity": result.identity.as_dict(),
        "tokens": result.tokens,
        "migrated": result.migrated,
    }


class SignUpView(APIView):
    """
    POST: Create an account and sign it in on this device.
    Device tasks are copied to the new account on the way in.
    """
    permission_classes=[AllowAny]
    throttle_classes=[ScopedRateThrottle]
    throttle_scope='auth'

    def post(self, request):
        serializer=SignUpSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data=serializer.validated_data

        result=SessionController(request).sign_up(
            email=data['email'].strip(),
            password=data['password'],
            confirm=data['confirm_password'],
            username=data['username'],
            age=data['age'],
        )
        return Response(_signed_in_payload(result), status=status.HTTP_201_CREATED)

sign_up_view=SignUpView.as_view()


class SignInView(APIView):
    """
    POST: Email/password sign in. Returns JWT tokens and starts a session.
    """
    permission_classes=[AllowAny]
    throttle_classes=[ScopedRateThrottle]
    throttle_scope='auth'

    def post(self, request):
        serializer=SignInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result=SessionController(request).sign_in(
            serializer.validated_data['email'].strip(),
            serializer.validated_data['password'],
        )
        return Response(_signed_in_payload(result))

sign_in_view=SignInView.as_view()


class SignOutView(APIView):
    """
    POST: End the session (and blacklist the refresh token when given).
    Device tasks, stats and categories stay on the device.
    """
    permission_classes=[AllowAny]

    def post(self, request):
        serializer=SignOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        identity=SessionController(request).sign_out(serializer.validated_data['refresh'])
        return Response({"identity": identity.as_dict()})

sign_out_view=SignOutView.as_view()


class GuestModeView(APIView):
    """
    POST: Continue as guest on this device.
    DELETE: Leave guest mode.
    """
    permission_classes=[AllowAny]

    def post(self, request):
        identity=SessionController(request).enable_guest_mode()
        return Response({"identity": identity.as_dict()})

    def delete(self, request):
        identity=SessionController(request).disable_guest_mode()
        return Response({"identity": identity.as_dict()})

guest_mode_view=GuestModeView.as_view()


class SessionView(APIView):
    """
    GET: Who is calling (authenticated, guest or anonymous).
    """
    permission_classes=[AllowAny]

    def get(self, request):
        identity=SessionController(request).identity
        payload={"identity": identity.as_dict(), "user": None}
        if identity.is_authenticated:
            payload["user"]=UserDetailsSerializer(request.user).data
        return Response(payload)

session_view=SessionView.as_view()


class UserDetailView(generics.RetrieveAPIView):
    """
    GET: Details of the signed-in user.
    PATCH: Edit username and/or age.
    """
    serializer_class=UserDetailsSerializer
    permission_classes=[IsAuthenticated]

    def get_object(self):
        return self.request.user

    def patch(self, request):
        serializer=UserUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user=SessionController(request).update_profile(serializer.validated_data)
        return Response(UserDetailsSerializer(user).data)

user_detail_view=UserDetailView.as_view()
