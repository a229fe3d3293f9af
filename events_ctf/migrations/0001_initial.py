# Generated initial migration for events_ctf app

from django.conf import settings
import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(db_index=True, max_length=200)),
                ('description', models.TextField()),
                ('start_time', models.DateTimeField(help_text='Event start time')),
                ('end_time', models.DateTimeField(help_text='Event end time')),
                ('is_active', models.BooleanField(default=True, help_text='Event accepts participants and submissions')),
                ('max_participants', models.PositiveIntegerField(blank=True, default=10000, help_text='Maximum number of participants (empty means the platform default)', null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('join_deadline_minutes', models.PositiveIntegerField(default=10, help_text='Minutes after the start during which users may still join')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('organizer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='organized_events', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Event',
                'verbose_name_plural': 'Events',
                'db_table': 'events',
                'ordering': ['-start_time'],
                'indexes': [
                    models.Index(fields=['start_time', 'end_time'], name='events_window_idx'),
                    models.Index(fields=['is_active', 'end_time'], name='events_active_end_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='EventParticipant',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('total_score', models.IntegerField(default=0)),
                ('rank', models.PositiveIntegerField(blank=True, null=True)),
                ('nft_tier', models.CharField(blank=True, max_length=20, null=True)),
                ('has_received_nft', models.BooleanField(db_index=True, default=False)),
                ('nft_token_id', models.CharField(blank=True, max_length=100, null=True)),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participants', to='events_ctf.event')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='participations', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Event Participant',
                'verbose_name_plural': 'Event Participants',
                'db_table': 'event_participants',
                'ordering': ['-total_score', 'joined_at'],
                'indexes': [
                    models.Index(fields=['event', '-total_score'], name='evpart_event_score_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'event'), name='unique_event_participant'),
                ],
            },
        ),
    ]
