# Generated initial migration for nft_rewards app

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('events_ctf', '0001_initial'),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ChainEvent',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('chain_event_id', models.PositiveBigIntegerField(help_text='Event id returned by the contract')),
                ('tx_hash', models.CharField(blank=True, max_length=66)),
                ('contract_address', models.CharField(blank=True, max_length=42)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('event', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='chain_event', to='events_ctf.event')),
            ],
            options={
                'verbose_name': 'Chain Event',
                'verbose_name_plural': 'Chain Events',
                'db_table': 'nft_chain_events',
            },
        ),
        migrations.CreateModel(
            name='RewardDistribution',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('DISTRIBUTING', 'Distributing'), ('COMPLETED', 'Completed'), ('PARTIAL', 'Partially distributed'), ('FAILED', 'Failed')], db_index=True, default='DISTRIBUTING', max_length=20)),
                ('chain_event_id', models.PositiveBigIntegerField(blank=True, null=True)),
                ('total_participants', models.PositiveIntegerField(default=0)),
                ('total_distributed', models.PositiveIntegerField(default=0)),
                ('errors', models.JSONField(blank=True, default=list)),
                ('started_at', models.DateTimeField(auto_now_add=True)),
                ('heartbeat_at', models.DateTimeField(default=django.utils.timezone.now, help_text='Last progress of the running job')),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('event', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='reward_distribution', to='events_ctf.event')),
                ('requested_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reward_distributions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Reward Distribution',
                'verbose_name_plural': 'Reward Distributions',
                'db_table': 'nft_reward_distributions',
                'ordering': ['-started_at'],
                'indexes': [models.Index(fields=['status', 'heartbeat_at'], name='nftdist_status_heartbeat_idx')],
            },
        ),
        migrations.CreateModel(
            name='DistributionBatch',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('index', models.PositiveIntegerField(help_text='1-based batch number')),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('MINTING', 'Minting'), ('MINTED', 'Minted'), ('FAILED', 'Failed')], db_index=True, default='PENDING', max_length=20)),
                ('entries', models.JSONField(default=list, help_text='participant_id, wallet_address, rank, score, tier per recipient')),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('tx_hash', models.CharField(blank=True, max_length=66)),
                ('token_ids', models.JSONField(blank=True, default=dict)),
                ('last_error', models.TextField(blank=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('finished_at', models.DateTimeField(blank=True, null=True)),
                ('distribution', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='batches', to='nft_rewards.rewarddistribution')),
            ],
            options={
                'verbose_name': 'Distribution Batch',
                'verbose_name_plural': 'Distribution Batches',
                'db_table': 'nft_distribution_batches',
                'ordering': ['distribution', 'index'],
                'constraints': [models.UniqueConstraint(fields=('distribution', 'index'), name='unique_distribution_batch_index')],
            },
        ),
    ]
