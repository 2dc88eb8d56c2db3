from django.db import models
from django.contrib.auth.models import AbstractBaseUser,PermissionsMixin
from django.utils.translation import gettext_lazy as _
from .managers import CustomUserManager

# Create your models here.
class CustomUser(AbstractBaseUser,PermissionsMixin):
    """
    Account used for authenticated (remote) task storage.
    Uses email as the unique auth field; username and age are optional
    profile data collected at sign up.
    """
    email=models.EmailField(
        _('email_address'),
        unique=True
        #Unique & required: one account per email
    )

    username=models.CharField(
        _('username'),
        max_length=150,
        blank=True,
        null=True
    )

    age=models.PositiveSmallIntegerField(
        _('age'),
        null=True,
        blank=True
    )

    # Core permissions fields for superuser capabilities
    is_staff = models.BooleanField(
        _('staff status'),
        default=False,
        help_text=_('Designates whether the user can log into this admin site.'),
    )
    is_active = models.BooleanField(
        _('active'),
        default=True,
        help_text=_(
            'Designates whether this user should be treated as active. '
            'Unselect this instead of deleting accounts.'
        ),
    )
    date_joined = models.DateTimeField(_('date joined'), auto_now_add=True)

    # ------------------ Model Configuration ------------------
    objects = CustomUserManager()

    # The field used for authentication (login)
    USERNAME_FIELD = 'email'

    # createsuperuser only asks for email + password
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = _('user')
        verbose_name_plural = _('users')

    def get_full_name(self):
        """Returns the username when set, otherwise the email."""
        return self.username or self.email

    def get_short_name(self):
        """Returns the short name for the user."""
        return self.username or self.email.split('@')[0]

    def __str__(self):
        return self.email
