# Generated migration for initial members app setup

import django.core.validators
import django.db.models.deletion
import members.models
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Member',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('gender', models.CharField(
                    blank=True,
                    choices=[
                        ('MALE', 'Male'),
                        ('FEMALE', 'Female'),
                        ('OTHER', 'Other'),
                    ],
                    default='',
                    max_length=10,
                )),
                ('is_active', models.BooleanField(default=True)),
                ('is_verified', models.BooleanField(default=False)),
                ('view_tokens', models.IntegerField(default=members.models.default_view_tokens, validators=[django.core.validators.MinValueValidator(0)])),
                ('premium_until', models.DateTimeField(blank=True, null=True)),
                ('last_active_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='member', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'members_member',
            },
        ),
        migrations.AddConstraint(
            model_name='member',
            constraint=models.CheckConstraint(condition=models.Q(view_tokens__gte=0), name='member_view_tokens_non_negative'),
        ),
        migrations.AddIndex(
            model_name='member',
            index=models.Index(fields=['is_active', 'last_active_at'], name='member_active_seen_idx'),
        ),
        migrations.AddIndex(
            model_name='member',
            index=models.Index(fields=['is_active', 'premium_until'], name='member_active_premium_idx'),
        ),
    ]
