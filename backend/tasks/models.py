import uuid

from django.db import models
from django.db.models import Q
from django.conf import settings
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class Task(models.Model):
    """
    Remote row for one task of an authenticated user.
    Every read and write is scoped by ``user``; see ``tasks.stores.RemoteStore``.
    """

    class Priority(models.TextChoices):
        HIGH = 'high', _('High')
        MEDIUM = 'medium', _('Medium')
        LOW = 'low', _('Low')

    # Client generated, so rows migrated from a device keep their id.
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    # Link to the CustomUser Model
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='tasks',
        verbose_name=_("user")
    )

    text = models.CharField(max_length=500, verbose_name=_("text"))
    completed = models.BooleanField(default=False, verbose_name=_("completed"))
    category = models.CharField(max_length=50, default='other', verbose_name=_("category"))
    priority = models.CharField(
        max_length=10,
        choices=Priority.choices,
        default=Priority.MEDIUM,
        verbose_name=_("priority"),
        help_text=_("Drives the XP awarded on completion (high=30, medium=20, low=10).")
    )

    # Set by the client (not auto_now_add) so migrated tasks keep their history.
    created_at = models.DateTimeField(default=timezone.now, verbose_name=_("created at"))
    completed_at = models.DateTimeField(null=True, blank=True, verbose_name=_("completed at"))

    # Task planning fields
    start_date = models.DateField(null=True, blank=True, verbose_name=_("start date"))
    end_date = models.DateField(null=True, blank=True, verbose_name=_("end date"))
    start_time = models.CharField(max_length=16, null=True, blank=True, verbose_name=_("start time"))
    end_time = models.CharField(max_length=16, null=True, blank=True, verbose_name=_("end time"))
    reminder_time = models.DateTimeField(null=True, blank=True, verbose_name=_("reminder time"))

    class Meta:
        verbose_name = _("Task")
        verbose_name_plural = _("Tasks")
        # Newest first, same order the device list keeps
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', '-created_at'], name='task_user_created_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(completed=True, completed_at__isnull=False)
                    | Q(completed=False, completed_at__isnull=True)
                ),
                name='task_completed_at_matches_completed',
            ),
        ]

    def __str__(self):
        return f"Task for {self.user}: {self.text}"
