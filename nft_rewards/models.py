from django.conf import settings
from django.db import models
from django.utils import timezone


class ChainEvent(models.Model):
    """
    On-chain event backing all reward mints of one database event.
    Created at most once per event (the OneToOne is the guard).
    """
    event = models.OneToOneField('events_ctf.Event', on_delete=models.CASCADE, related_name='chain_event')
    chain_event_id = models.PositiveBigIntegerField(help_text="Event id returned by the contract")
    tx_hash = models.CharField(max_length=66, blank=True)
    contract_address = models.CharField(max_length=42, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'nft_chain_events'
        verbose_name = 'Chain Event'
        verbose_name_plural = 'Chain Events'

    def __str__(self):
        return f"{self.event.name} -> #{self.chain_event_id}"


class RewardDistribution(models.Model):
    """
    Claim on an event's reward distribution. Inserting this row (unique per
    event) is what reserves the event; a second insert fails.
    """
    STATUS_DISTRIBUTING = 'DISTRIBUTING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_PARTIAL = 'PARTIAL'
    STATUS_FAILED = 'FAILED'
    STATUS_CHOICES = [
        (STATUS_DISTRIBUTING, 'Distributing'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_PARTIAL, 'Partially distributed'),
        (STATUS_FAILED, 'Failed'),
    ]

    event = models.OneToOneField('events_ctf.Event', on_delete=models.CASCADE, related_name='reward_distribution')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DISTRIBUTING, db_index=True)
    requested_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='reward_distributions'
    )
    chain_event_id = models.PositiveBigIntegerField(null=True, blank=True)
    total_participants = models.PositiveIntegerField(default=0)
    total_distributed = models.PositiveIntegerField(default=0)
    errors = models.JSONField(default=list, blank=True)

    started_at = models.DateTimeField(auto_now_add=True)
    heartbeat_at = models.DateTimeField(default=timezone.now, help_text="Last progress of the running job")
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'nft_reward_distributions'
        verbose_name = 'Reward Distribution'
        verbose_name_plural = 'Reward Distributions'
        ordering = ['-started_at']
        indexes = [
            models.Index(fields=['status', 'heartbeat_at'], name='nftdist_status_heartbeat_idx'),
        ]

    def __str__(self):
        return f"{self.event.name}: {self.status} ({self.total_distributed}/{self.total_participants})"

    @property
    def is_finished(self):
        return self.status != self.STATUS_DISTRIBUTING

    @property
    def success(self):
        return self.status == self.STATUS_COMPLETED


class DistributionBatch(models.Model):
    """
    One mint transaction's worth of recipients, with the ranking snapshot taken
    at claim time so a resumed run mints exactly what was planned.
    """
    STATUS_PENDING = 'PENDING'
    STATUS_MINTING = 'MINTING'
    STATUS_MINTED = 'MINTED'
    STATUS_FAILED = 'FAILED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_MINTING, 'Minting'),
        (STATUS_MINTED, 'Minted'),
        (STATUS_FAILED, 'Failed'),
    ]

    distribution = models.ForeignKey(RewardDistribution, on_delete=models.CASCADE, related_name='batches')
    index = models.PositiveIntegerField(help_text="1-based batch number")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    entries = models.JSONField(default=list, help_text="participant_id, wallet_address, rank, score, tier per recipient")
    attempts = models.PositiveIntegerField(default=0)
    tx_hash = models.CharField(max_length=66, blank=True)
    token_ids = models.JSONField(default=dict, blank=True)
    last_error = models.TextField(blank=True)
    started_at = models.DateTimeField(null=True, blank=True)
    finished_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'nft_distribution_batches'
        verbose_name = 'Distribution Batch'
        verbose_name_plural = 'Distribution Batches'
        ordering = ['distribution', 'index']
        constraints = [
            models.UniqueConstraint(fields=['distribution', 'index'], name='unique_distribution_batch_index'),
        ]

    def __str__(self):
        return f"Batch {self.index} of {self.distribution.event.name} ({self.status})"

    @property
    def size(self):
        return len(self.entries)

