# Generated migration for initial engagement app setup

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
            name='ViewRecord',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('viewer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='unlocked_profiles', to='members.member')),
                ('viewed', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='profile_unlocks', to='members.member')),
            ],
            options={
                'db_table': 'engagement_view_record',
            },
        ),
        migrations.CreateModel(
            name='EngagementAction',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('kind', models.CharField(
                    choices=[
                        ('interest', 'Interest'),
                        ('shortlist', 'Shortlist'),
                        ('reject', 'Reject'),
                        ('accept', 'Accept'),
                    ],
                    help_text='Type of profile action: interest, shortlist, reject, accept',
                    max_length=20,
                )),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('actor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='actions_sent', to='members.member')),
                ('target', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='actions_received', to='members.member')),
            ],
            options={
                'db_table': 'engagement_action',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddConstraint(
            model_name='viewrecord',
            constraint=models.UniqueConstraint(fields=('viewer', 'viewed'), name='unique_viewer_viewed'),
        ),
        migrations.AddIndex(
            model_name='viewrecord',
            index=models.Index(fields=['viewed', 'created_at'], name='viewrecord_viewed_idx'),
        ),
        migrations.AddConstraint(
            model_name='engagementaction',
            constraint=models.UniqueConstraint(fields=('actor', 'target', 'kind'), name='unique_actor_target_kind'),
        ),
        migrations.AddIndex(
            model_name='engagementaction',
            index=models.Index(fields=['actor', 'kind', 'created_at'], name='action_actor_idx'),
        ),
        migrations.AddIndex(
            model_name='engagementaction',
            index=models.Index(fields=['target', 'kind', 'created_at'], name='action_target_idx'),
        ),
    ]
