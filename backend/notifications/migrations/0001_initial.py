# Generated migration for initial notifications app setup

import django.db.models.deletion
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('members', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Notification',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(
                    choices=[
                        ('interest_received', 'Interest Received'),
                        ('interest_accepted', 'Interest Accepted'),
                        ('shortlisted', 'Shortlisted'),
                        ('profile_viewed', 'Profile Viewed'),
                        ('system', 'System'),
                    ],
                    help_text='Type of notification: interest_received, interest_accepted, shortlisted, profile_viewed, system',
                    max_length=20,
                )),
                ('title', models.CharField(max_length=200)),
                ('body', models.TextField()),
                ('related_id', models.CharField(blank=True, max_length=64, null=True)),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('recipient', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='received_notifications', to='members.member')),
                ('sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_notifications', to='members.member')),
            ],
            options={
                'db_table': 'notifications_notification',
                'ordering': ['-created_at'],
            },
        ),
        migrations.CreateModel(
            name='DeviceRegistration',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('push_token', models.CharField(max_length=500)),
                ('platform', models.CharField(
                    choices=[
                        ('mobile', 'Mobile'),
                        ('web', 'Web'),
                    ],
                    default='mobile',
                    max_length=10,
                )),
                ('device_label', models.CharField(blank=True, default='', max_length=200)),
                ('last_known_ip', models.CharField(blank=True, default='', max_length=64)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('member', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='device_registrations', to='members.member')),
            ],
            options={
                'db_table': 'notifications_device_registration',
            },
        ),
        migrations.AddIndex(
            model_name='notification',
            index=models.Index(fields=['recipient', 'created_at'], name='notification_recipient_idx'),
        ),
        migrations.AddIndex(
            model_name='notification',
            index=models.Index(fields=['recipient', 'is_read'], name='notification_unread_idx'),
        ),
        migrations.AddConstraint(
            model_name='deviceregistration',
            constraint=models.UniqueConstraint(fields=('member', 'platform', 'push_token'), name='unique_member_platform_token'),
        ),
        migrations.AddIndex(
            model_name='deviceregistration',
            index=models.Index(fields=['member', 'is_active'], name='device_member_active_idx'),
        ),
        migrations.AddIndex(
            model_name='deviceregistration',
            index=models.Index(fields=['member', 'platform'], name='device_member_platform_idx'),
        ),
        migrations.AddIndex(
            model_name='deviceregistration',
            index=models.Index(fields=['push_token'], name='device_token_idx'),
        ),
    ]
