# Participant -> distribution batch link (separate to break the app dependency cycle)

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):

    dependencies = [
        ('events_ctf', '0001_initial'),
        ('nft_rewards', '0001_initial'),
    ]

    operations = [
        migrations.AddField(
            model_name='eventparticipant',
            name='reward_batch',
            field=models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='participants', to='nft_rewards.distributionbatch'),
        ),
    ]
