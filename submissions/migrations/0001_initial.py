# Generated initial migration for submissions app

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('events_ctf', '0001_initial'),
        ('challenges', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Solve',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('points_awarded', models.PositiveIntegerField()),
                ('solved_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('challenge', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='solves', to='challenges.challenge')),
                ('event', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='solves', to='events_ctf.event')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='solves', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Solve',
                'verbose_name_plural': 'Solves',
                'db_table': 'solves',
                'ordering': ['-solved_at'],
                'indexes': [
                    models.Index(fields=['event', 'user'], name='solves_event_user_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('user', 'challenge'), name='unique_user_challenge_solve'),
                ],
            },
        ),
    ]
