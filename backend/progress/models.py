from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _


def default_categories():
    from .state import DEFAULT_CATEGORIES
    return list(DEFAULT_CATEGORIES)


class UserProgress(models.Model):
    """
    Stats and category set of a signed-in user.

    Guests keep the same data on their device; a signed-in user carries it
    across devices and across clients that only send a bearer token.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='progress',
        verbose_name=_("user")
    )

    xp = models.PositiveIntegerField(default=0, verbose_name=_("xp"))
    level = models.PositiveIntegerField(default=1, verbose_name=_("level"))
    streak = models.PositiveIntegerField(default=0, verbose_name=_("streak"))
    last_task_date = models.DateField(null=True, blank=True, verbose_name=_("last task date"))
    categories = models.JSONField(default=default_categories, verbose_name=_("categories"))

    updated_at = models.DateTimeField(auto_now=True, verbose_name=_("updated at"))

    class Meta:
        verbose_name = _("User progress")
        verbose_name_plural = _("User progress")

    def __str__(self):
        return f"Progress for {self.user}: {self.xp} xp, level {self.level}"
