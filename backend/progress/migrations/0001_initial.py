import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import progress.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='UserProgress',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('xp', models.PositiveIntegerField(default=0, verbose_name='xp')),
                ('level', models.PositiveIntegerField(default=1, verbose_name='level')),
                ('streak', models.PositiveIntegerField(default=0, verbose_name='streak')),
                ('last_task_date', models.DateField(blank=True, null=True, verbose_name='last task date')),
                ('categories', models.JSONField(default=progress.models.default_categories, verbose_name='categories')),
                ('updated_at', models.DateTimeField(auto_now=True, verbose_name='updated at')),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='progress', to=settings.AUTH_USER_MODEL, verbose_name='user')),
            ],
            options={
                'verbose_name': 'User progress',
                'verbose_name_plural': 'User progress',
            },
        ),
    ]
