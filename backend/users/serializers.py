from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

#Dynamically retrieve user model created in settings.py
User=get_user_model()

class SignUpSerializer(serializers.Serializer):
    """
    Sign up payload. Cross-field rules (matching passwords, valid age,
    unique email) are enforced by the session controller so the web client
    gets the same messages whichever surface it uses.
    """
    email=serializers.CharField(required=False,allow_blank=True,default="")
    password=serializers.CharField(write_only=True,required=False,allow_blank=True,default="",trim_whitespace=False)
    confirm_password=serializers.CharField(write_only=True,required=False,allow_null=True,default=None,trim_whitespace=False)
    username=serializers.CharField(required=False,allow_blank=True,allow_null=True,max_length=150,default=None)
    age=serializers.CharField(required=False,allow_blank=True,allow_null=True,default=None)


class SignInSerializer(serializers.Serializer):
    email=serializers.CharField(required=False,allow_blank=True,default="")
    password=serializers.CharField(write_only=True,required=False,allow_blank=True,default="",trim_whitespace=False)


class SignOutSerializer(serializers.Serializer):
    refresh=serializers.CharField(required=False,allow_blank=True,allow_null=True,default=None)


class UserUpdateSerializer(serializers.Serializer):
    """
    Profile edit payload; both fields optional. Value rules live in the
    session controller, shared with sign up.
    """
    username=serializers.CharField(required=False,allow_blank=True,allow_null=True,max_length=150)
    age=serializers.CharField(required=False,allow_blank=True,allow_null=True)


class UserDetailsSerializer(serializers.ModelSerializer):
    """
    Serializer for returning authenticated user details
    """
    class Meta:
        model=User
        fields=(
            'id',
            'email',
            'username',
            'age',
            'date_joined',
        )
        read_only_fields=fields

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    """
    Customizes the TokenObtainPairSerializer to use 'email' 
    instead of 'username' for the authentication field.
    """
    username_field = 'email' 
    
    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        # Add custom claims to the token payload (accessible in the frontend)
        token['email'] = user.email 
        token['full_name'] = user.get_full_name()
        return token
