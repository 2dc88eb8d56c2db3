import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('text', models.CharField(max_length=500, verbose_name='text')),
                ('completed', models.BooleanField(default=False, verbose_name='completed')),
                ('category', models.CharField(default='other', max_length=50, verbose_name='category')),
                ('priority', models.CharField(choices=[('high', 'High'), ('medium', 'Medium'), ('low', 'Low')], default='medium', help_text='Drives the XP awarded on completion (high=30, medium=20, low=10).', max_length=10, verbose_name='priority')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now, verbose_name='created at')),
                ('completed_at', models.DateTimeField(blank=True, null=True, verbose_name='completed at')),
                ('start_date', models.DateField(blank=True, null=True, verbose_name='start date')),
                ('end_date', models.DateField(blank=True, null=True, verbose_name='end date')),
                ('start_time', models.CharField(blank=True, max_length=16, null=True, verbose_name='start time')),
                ('end_time', models.CharField(blank=True, max_length=16, null=True, verbose_name='end time')),
                ('reminder_time', models.DateTimeField(blank=True, null=True, verbose_name='reminder time')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tasks', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'Task',
                'verbose_name_plural': 'Tasks',
                'ordering': ['-created_at'],
                'indexes': [models.Index(fields=['user', '-created_at'], name='task_user_created_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(models.Q(('completed', True), ('completed_at__isnull', False)), models.Q(('completed', False), ('completed_at__isnull', True)), _connector='OR'), name='task_completed_at_matches_completed')],
            },
        ),
    ]
