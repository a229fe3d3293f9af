# Generated initial migration for challenges app

import django.core.validators
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('events_ctf', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Challenge',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(db_index=True, max_length=200)),
                ('description', models.TextField()),
                ('category', models.CharField(default='MISC', help_text='e.g. WEB, CRYPTO, FORENSICS', max_length=50)),
                ('difficulty', models.CharField(choices=[('EASY', 'Easy'), ('MEDIUM', 'Medium'), ('HARD', 'Hard'), ('EXPERT', 'Expert')], default='MEDIUM', help_text='Challenge difficulty level', max_length=20)),
                ('flag', models.CharField(help_text='Flag in the form ctnft{...}', max_length=500)),
                ('is_active', models.BooleanField(default=True, help_text='Challenge accepts submissions')),
                ('initial_points', models.PositiveIntegerField(default=100, help_text='Points awarded to the first solver', validators=[django.core.validators.MinValueValidator(1)])),
                ('min_points', models.PositiveIntegerField(default=10, help_text='Points never decay below this value')),
                ('decay_factor', models.PositiveIntegerField(default=0, help_text='Points lost per previous solve')),
                ('solve_count', models.PositiveIntegerField(default=0, help_text='Number of successful solves')),
                ('file', models.FileField(blank=True, null=True, upload_to='challenges/files/')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='challenges', to='events_ctf.event')),
            ],
            options={
                'verbose_name': 'Challenge',
                'verbose_name_plural': 'Challenges',
                'db_table': 'challenges',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['event', 'is_active'], name='challenges_event_active_idx'),
                ],
            },
        ),
    ]
