"""
NFT reward distribution.

Flow for one event:
  claim   - rank eligible participants and insert the RewardDistribution row
            plus its DistributionBatch rows in one transaction (the unique
            event column makes a second claim fail)
  run     - resolve the on-chain event id, then mint PENDING batches one by one
  finalize- COMPLETED / PARTIAL / FAILED from the batch outcomes

A run that dies mid-way is picked up by resume_stalled_distributions, which
reconciles batches left in MINTING against the contract before continuing.
"""
import logging
import os
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import timedelta

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.cache import cache
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone
from web3 import Web3

from events_ctf.models import Event, EventParticipant
from .blockchain import explorer_tx_url, get_contract
from .exceptions import (
    AlreadyDistributed,
    ChainEventResolutionError,
    ContractCallError,
    ContractUnavailable,
    EventNotEnded,
    RewardError,
    SignerBusy,
    TransientChainError,
)
from .models import ChainEvent, DistributionBatch, RewardDistribution
from .ranking import calculate_event_rankings
from .tiers import TIERS

logger = logging.getLogger(__name__)

SIGNER_LOCK_KEY = 'nft_rewards:signer_lock'

STATE_NOT_ENDED = 'NOT_ENDED'
STATE_ENDED_NOT_DISTRIBUTED = 'ENDED_NOT_DISTRIBUTED'
STATE_DISTRIBUTING = 'DISTRIBUTING'
STATE_DISTRIBUTED = 'DISTRIBUTED'
STATE_DISTRIBUTED_PARTIAL = 'DISTRIBUTED_PARTIAL'
STATE_FAILED = 'FAILED'


@dataclass
class DistributionResult:
    success: bool
    total_distributed: int
    errors: list = field(default_factory=list)
    distribution_id: int = None
    status: str = None

    def as_dict(self):
        return {
            'success': self.success,
            'totalDistributed': self.total_distributed,
            'errors': list(self.errors),
            'distributionId': self.distribution_id,
            'status': self.status,
        }


def chunk(items, size):
    """Split `items` into consecutive lists of at most `size`"""
    if size < 1:
        raise ValueError("batch size must be at least 1")
    items = list(items)
    return [items[i:i + size] for i in range(0, len(items), size)]


def _unix(value):
    return int(value.timestamp())


def _checksum(address):
    return Web3.to_checksum_address(address)


@contextmanager
def signer_lock():
    """
    Serialize use of the single signing key across processes.
    Raises SignerBusy when another distribution holds it.
    """
    owner = f"{os.getpid()}:{uuid.uuid4().hex}"
    if not cache.add(SIGNER_LOCK_KEY, owner, timeout=settings.NFT_REWARD_STALE_AFTER_SECONDS):
        raise SignerBusy('Another reward distribution is in progress, try again later')
    try:
        yield owner
    finally:
        if cache.get(SIGNER_LOCK_KEY) == owner:
            cache.delete(SIGNER_LOCK_KEY)


def _refresh_signer_lock():
    cache.touch(SIGNER_LOCK_KEY, settings.NFT_REWARD_STALE_AFTER_SECONDS)


def _send_websocket_update(event, action, payload=None):
    """Push distribution progress to subscribers of the event's group"""
    try:
        channel_layer = get_channel_layer()
        if not channel_layer:
            logger.debug("Channel layer not available, skipping WebSocket update")
            return

        message = {
            'type': 'distribution.progress',
            'event_id': event.id,
            'action': action,
        }
        message.update(payload or {})
        async_to_sync(channel_layer.group_send)(f"nft_rewards_event_{event.id}", message)
    except Exception as e:
        logger.warning(f"Failed to send WebSocket update for reward distribution: {e}")


class EventChainMapper:
    """
    Database event -> on-chain event id, persisted in ChainEvent.
    The on-chain event is created at most once per database event.
    """

    def get(self, event):
        return ChainEvent.objects.filter(event=event).values_list('chain_event_id', flat=True).first()

    def resolve(self, event, contract):
        chain_event_id = self.get(event)
        if chain_event_id is not None:
            return chain_event_id

        with transaction.atomic():
            # Lock the event row so concurrent resolutions create one on-chain event
            Event.objects.select_for_update().get(pk=event.pk)
            chain_event_id = self.get(event)
            if chain_event_id is not None:
                return chain_event_id

            try:
                created = contract.create_event(event.name, _unix(event.start_time), _unix(event.end_time))
            except ContractCallError as e:
                raise ChainEventResolutionError(f"Could not create on-chain event: {e}") from e

            chain_event_id = getattr(created, 'event_id', None)
            if isinstance(chain_event_id, bool) or not isinstance(chain_event_id, int) or chain_event_id < 0:
                raise ChainEventResolutionError(
                    f"Contract returned no usable event id for event {event.id}: {chain_event_id!r}"
                )

            ChainEvent.objects.create(
                event=event,
                chain_event_id=chain_event_id,
                tx_hash=getattr(created, 'tx_hash', '') or '',
                contract_address=getattr(contract, 'address', '') or '',
            )

        logger.info(f"Event {event.id} mapped to on-chain event #{chain_event_id}")
        return chain_event_id


class RewardDistributionService:
    """
    Claims, runs, reconciles and resumes reward distributions.
    """

    def __init__(self, mapper=None, sleep=None):
        self.mapper = mapper or EventChainMapper()
        self.sleep = sleep or time.sleep

    # Contract

    def get_contract_or_raise(self):
        contract = get_contract()
        if contract is None:
            raise ContractUnavailable('Failed to initialize blockchain contract')
        return contract

    # Claim

    def claim(self, event, requested_by=None, now=None):
        """
        Reserve the event for distribution and snapshot the planned batches.
        Ranking errors are raised before anything is written.
        """
        now = now or timezone.now()
        if not event.has_ended(now):
            raise EventNotEnded('Cannot distribute NFTs before event ends')

        already = (
            RewardDistribution.objects.filter(event=event).exists()
            or EventParticipant.objects.filter(event=event, has_received_nft=True).exists()
        )
        if already:
            raise AlreadyDistributed('NFTs already distributed for this event')

        rankings = calculate_event_rankings(event)

        try:
            with transaction.atomic():
                distribution = RewardDistribution.objects.create(
                    event=event,
                    requested_by=requested_by,
                    total_participants=len(rankings),
                    heartbeat_at=now,
                )
                for index, group in enumerate(chunk(rankings, settings.NFT_REWARD_BATCH_SIZE), 1):
                    batch = DistributionBatch.objects.create(
                        distribution=distribution,
                        index=index,
                        entries=[entry.to_snapshot() for entry in group],
                    )
                    for entry in group:
                        EventParticipant.objects.filter(pk=entry.participant_id).update(
                            rank=entry.rank,
                            nft_tier=entry.tier,
                            reward_batch=batch,
                        )
        except IntegrityError:
            raise AlreadyDistributed('NFTs already distributed for this event')

        logger.info(
            f"Reward distribution {distribution.id} claimed for event {event.id}: "
            f"{len(rankings)} participants in {distribution.batches.count()} batches"
        )
        return distribution

    def _release_claim(self, distribution, reason):
        """Drop a claim that never minted anything so it can be requested again"""
        with transaction.atomic():
            EventParticipant.objects.filter(reward_batch__distribution=distribution).update(
                rank=None, nft_tier=None, reward_batch=None
            )
            distribution.delete()
        logger.warning(f"Reward distribution for event {distribution.event_id} released: {reason}")

    # Entry points

    def distribute_event(self, event, requested_by=None):
        """Claim and run a distribution in the calling process"""
        contract = self.get_contract_or_raise()
        with signer_lock():
            distribution = self.claim(event, requested_by)
            return self.run(distribution, contract)

    def execute(self, distribution):
        """Run an already claimed distribution (background job)"""
        try:
            contract = self.get_contract_or_raise()
        except ContractUnavailable:
            if not distribution.batches.exclude(status=DistributionBatch.STATUS_PENDING).exists():
                self._release_claim(distribution, 'blockchain contract unavailable')
            raise

        with signer_lock():
            return self.run(distribution, contract)

    # Run

    def run(self, distribution, contract):
        event = distribution.event
        minted_before = distribution.batches.filter(status=DistributionBatch.STATUS_MINTED).exists()

        _send_websocket_update(event, 'started', {
            'distribution_id': distribution.id,
            'total_participants': distribution.total_participants,
            'total_batches': distribution.batches.count(),
        })
        logger.info(f"Distributing NFTs to {distribution.total_participants} participants for event {event.id}")

        try:
            chain_event_id = self.mapper.resolve(event, contract)
        except ChainEventResolutionError as e:
            if not minted_before:
                self._release_claim(distribution, str(e))
            raise

        RewardDistribution.objects.filter(pk=distribution.pk).update(
            chain_event_id=chain_event_id,
            heartbeat_at=timezone.now(),
        )
        distribution.chain_event_id = chain_event_id

        pending = distribution.batches.filter(status=DistributionBatch.STATUS_PENDING).order_by('index')
        for batch in pending:
            self.mint_batch(distribution, batch, contract, chain_event_id)

        return self.finalize(distribution)

    def mint_batch(self, distribution, batch, contract, chain_event_id):
        """
        Mint one batch. Transient RPC errors are retried with exponential
        backoff; anything else (or running out of retries) fails the batch
        and the run moves on.
        Returns True when the batch was minted.
        """
        now = timezone.now()
        claimed = DistributionBatch.objects.filter(
            pk=batch.pk, status=DistributionBatch.STATUS_PENDING
        ).update(status=DistributionBatch.STATUS_MINTING, started_at=now)
        if not claimed:
            logger.info(f"Batch {batch.index} of distribution {distribution.id} already taken, skipping")
            return False

        entries = batch.entries
        addresses = [entry['wallet_address'] for entry in entries]
        ranks = [entry['rank'] for entry in entries]
        scores = [entry['score'] for entry in entries]
        max_retries = settings.NFT_REWARD_MAX_RETRIES
        backoff = settings.NFT_REWARD_RETRY_BACKOFF_SECONDS

        receipt_tx_hash = ''
        token_ids = {}
        try:
            for attempt in range(max_retries + 1):
                DistributionBatch.objects.filter(pk=batch.pk).update(attempts=F('attempts') + 1)
                self._heartbeat(distribution)
                try:
                    receipt = contract.batch_mint_rewards(
                        addresses, chain_event_id, ranks, scores, distribution.total_participants
                    )
                    receipt_tx_hash = receipt.tx_hash
                    token_ids = receipt.token_ids
                    break
                except TransientChainError as e:
                    if e.tx_hash:
                        # Broadcast but unconfirmed: only resend if nothing landed
                        minted = self._count_received(contract, chain_event_id, entries)
                        if minted == len(entries):
                            receipt_tx_hash = e.tx_hash
                            break
                        if minted:
                            raise ContractCallError(
                                f"transaction {e.tx_hash} minted {minted} of {len(entries)} rewards"
                            ) from e
                    if attempt >= max_retries:
                        raise
                    delay = backoff * (2 ** attempt)
                    logger.warning(
                        f"Batch {batch.index} of distribution {distribution.id} failed "
                        f"(attempt {attempt + 1}/{max_retries + 1}), retrying in {delay:.1f}s: {e}"
                    )
                    self.sleep(delay)
        except Exception as e:
            logger.error(f"Error distributing NFTs to batch {batch.index} of event {distribution.event_id}: {e}")
            self._mark_batch_failed(distribution, batch, e)
            return False

        self._mark_batch_minted(distribution, batch, chain_event_id, receipt_tx_hash, token_ids)
        return True

    def _heartbeat(self, distribution):
        RewardDistribution.objects.filter(pk=distribution.pk).update(heartbeat_at=timezone.now())
        _refresh_signer_lock()

    def _count_received(self, contract, chain_event_id, entries):
        return sum(
            1 for entry in entries
            if contract.has_received_nft(chain_event_id, entry['wallet_address'])
        )

    def _mark_batch_minted(self, distribution, batch, chain_event_id, tx_hash, token_ids):
        token_ids = {_checksum(address): token_id for address, token_id in (token_ids or {}).items()}
        assigned = {}

        with transaction.atomic():
            for entry in batch.entries:
                token_id = token_ids.get(_checksum(entry['wallet_address'])) or f"{chain_event_id}-{entry['rank']}"
                assigned[str(entry['participant_id'])] = token_id
                EventParticipant.objects.filter(pk=entry['participant_id']).update(
                    has_received_nft=True,
                    nft_token_id=token_id,
                    rank=entry['rank'],
                    nft_tier=entry['tier'],
                    reward_batch=batch,
                )

            DistributionBatch.objects.filter(pk=batch.pk).update(
                status=DistributionBatch.STATUS_MINTED,
                tx_hash=tx_hash or '',
                token_ids=assigned,
                last_error='',
                finished_at=timezone.now(),
            )
            RewardDistribution.objects.filter(pk=distribution.pk).update(
                total_distributed=F('total_distributed') + len(batch.entries),
                heartbeat_at=timezone.now(),
            )

        _refresh_signer_lock()
        logger.info(f"Successfully distributed NFTs to batch {batch.index} of event {distribution.event_id}")
        _send_websocket_update(distribution.event, 'batch_minted', {
            'distribution_id': distribution.id,
            'batch': batch.index,
            'recipients': len(batch.entries),
            'tx_hash': tx_hash,
            'explorer_url': explorer_tx_url(tx_hash),
        })

    def _mark_batch_failed(self, distribution, batch, error):
        message = f"Batch {batch.index}: {error}"

        with transaction.atomic():
            DistributionBatch.objects.filter(pk=batch.pk).update(
                status=DistributionBatch.STATUS_FAILED,
                last_error=str(error),
                finished_at=timezone.now(),
            )
            locked = RewardDistribution.objects.select_for_update().get(pk=distribution.pk)
            locked.errors = list(locked.errors) + [message]
            locked.heartbeat_at = timezone.now()
            locked.save(update_fields=['errors', 'heartbeat_at'])

        _refresh_signer_lock()
        _send_websocket_update(distribution.event, 'batch_failed', {
            'distribution_id': distribution.id,
            'batch': batch.index,
            'error': str(error),
        })

    def finalize(self, distribution):
        distribution.refresh_from_db()
        batches = distribution.batches.all()
        open_batches = batches.filter(
            status__in=[DistributionBatch.STATUS_PENDING, DistributionBatch.STATUS_MINTING]
        ).count()
        failed = batches.filter(status=DistributionBatch.STATUS_FAILED).count()
        minted = batches.filter(status=DistributionBatch.STATUS_MINTED).count()

        if open_batches:
            # Another worker still owns part of this run
            return self._result(distribution)

        if failed == 0:
            distribution.status = RewardDistribution.STATUS_COMPLETED
        elif minted == 0:
            distribution.status = RewardDistribution.STATUS_FAILED
        else:
            distribution.status = RewardDistribution.STATUS_PARTIAL
        distribution.completed_at = timezone.now()
        distribution.save(update_fields=['status', 'completed_at'])

        tier_counts = {}
        for tier in distribution.event.participants.filter(has_received_nft=True).values_list('nft_tier', flat=True):
            tier_counts[tier] = tier_counts.get(tier, 0) + 1
        logger.info(
            f"Reward distribution {distribution.id} for event {distribution.event_id} finished: "
            f"{distribution.status}, {distribution.total_distributed}/{distribution.total_participants} "
            f"distributed, tiers {tier_counts}"
        )

        _send_websocket_update(distribution.event, 'finished', {
            'distribution_id': distribution.id,
            'status': distribution.status,
            'total_distributed': distribution.total_distributed,
            'errors': distribution.errors,
        })
        return self._result(distribution)

    def _result(self, distribution):
        return DistributionResult(
            success=distribution.status == RewardDistribution.STATUS_COMPLETED,
            total_distributed=distribution.total_distributed,
            errors=list(distribution.errors),
            distribution_id=distribution.id,
            status=distribution.status,
        )

    # Recovery

    def reconcile_batch(self, distribution, batch, contract):
        """
        Settle a batch left in MINTING by a crashed run, using the contract
        as the source of truth: all recipients minted -> MINTED, none -> back
        to PENDING, some -> FAILED for manual review.
        """
        entries = batch.entries
        minted = self._count_received(contract, distribution.chain_event_id, entries)

        if minted == len(entries):
            logger.info(f"Batch {batch.index} of distribution {distribution.id} found minted on-chain")
            self._mark_batch_minted(distribution, batch, distribution.chain_event_id, batch.tx_hash, {})
            return DistributionBatch.STATUS_MINTED

        if minted == 0:
            DistributionBatch.objects.filter(pk=batch.pk).update(
                status=DistributionBatch.STATUS_PENDING,
                started_at=None,
            )
            logger.info(f"Batch {batch.index} of distribution {distribution.id} not minted, requeued")
            return DistributionBatch.STATUS_PENDING

        self._mark_batch_failed(
            distribution, batch,
            ContractCallError(f"only {minted} of {len(entries)} recipients minted on-chain; needs manual review"),
        )
        return DistributionBatch.STATUS_FAILED

    def resume(self, distribution, contract):
        """Reconcile MINTING batches and continue a stalled run"""
        logger.info(f"Resuming reward distribution {distribution.id} for event {distribution.event_id}")
        if distribution.chain_event_id is not None:
            stuck = distribution.batches.filter(status=DistributionBatch.STATUS_MINTING).order_by('index')
            for batch in stuck:
                self.reconcile_batch(distribution, batch, contract)
        return self.run(distribution, contract)

    def stalled_distributions(self, now=None):
        now = now or timezone.now()
        cutoff = now - timedelta(seconds=settings.NFT_REWARD_STALE_AFTER_SECONDS)
        return RewardDistribution.objects.filter(
            status=RewardDistribution.STATUS_DISTRIBUTING,
            heartbeat_at__lt=cutoff,
        ).select_related('event').order_by('started_at')

    def resume_stalled_distributions(self, now=None):
        """
        Resume every stalled run. Returns a list of DistributionResult.
        """
        stalled = list(self.stalled_distributions(now))
        if not stalled:
            return []

        contract = self.get_contract_or_raise()
        results = []
        with signer_lock():
            for distribution in stalled:
                try:
                    results.append(self.resume(distribution, contract))
                except RewardError as e:
                    logger.error(f"Resuming reward distribution {distribution.id} failed: {e}")
                    # Skipped until it goes stale again
                    self._heartbeat(distribution)
        return results


def tier_distribution(rankings):
    """
    Count, percentage and rank range per tier, e.g. {'GOLD': {'count': 2,
    'percentage': 20.0, 'rankRange': '#3 - #4'}}. Tiers without anyone have
    an empty rank range.
    """
    total = len(rankings)
    tiers = {}
    for tier in TIERS:
        ranks = sorted(entry.rank for entry in rankings if entry.tier == tier)
        if not ranks:
            rank_range = ''
        elif len(ranks) == 1:
            rank_range = f"#{ranks[0]}"
        else:
            rank_range = f"#{ranks[0]} - #{ranks[-1]}"
        tiers[tier] = {
            'count': len(ranks),
            'percentage': (len(ranks) / total * 100) if total else 0,
            'rankRange': rank_range,
        }
    return tiers


def preview_rewards(event):
    """Rankings and tier distribution without touching the contract or the database"""
    rankings = calculate_event_rankings(event)
    return {
        'eventName': event.name,
        'totalParticipants': len(rankings),
        'rankings': [entry.to_preview() for entry in rankings],
        'tierDistribution': tier_distribution(rankings),
    }


def reward_state(event, now=None):
    """Where the event is in NOT_ENDED -> ENDED_NOT_DISTRIBUTED -> DISTRIBUTING -> DISTRIBUTED"""
    if not event.has_ended(now):
        return STATE_NOT_ENDED

    distribution = RewardDistribution.objects.filter(event=event).first()
    if distribution is None:
        return STATE_ENDED_NOT_DISTRIBUTED

    return {
        RewardDistribution.STATUS_DISTRIBUTING: STATE_DISTRIBUTING,
        RewardDistribution.STATUS_COMPLETED: STATE_DISTRIBUTED,
        RewardDistribution.STATUS_PARTIAL: STATE_DISTRIBUTED_PARTIAL,
        RewardDistribution.STATUS_FAILED: STATE_FAILED,
    }[distribution.status]


def distribution_status(event):
    """State, batch progress and per-participant outcome for the status endpoint"""
    distribution = RewardDistribution.objects.filter(event=event).select_related('requested_by').first()
    chain_event_id = EventChainMapper().get(event)
    data = {
        'eventId': event.id,
        'eventName': event.name,
        'state': reward_state(event),
        'chainEventId': chain_event_id,
        'distribution': None,
        'batches': [],
        'participants': [],
    }
    if distribution is None:
        return data

    data['distribution'] = {
        'id': distribution.id,
        'status': distribution.status,
        'requestedBy': distribution.requested_by.username if distribution.requested_by else None,
        'totalParticipants': distribution.total_participants,
        'totalDistributed': distribution.total_distributed,
        'errors': distribution.errors,
        'startedAt': distribution.started_at,
        'completedAt': distribution.completed_at,
    }

    batch_status = {}
    for batch in distribution.batches.order_by('index'):
        batch_status[batch.id] = batch.status
        data['batches'].append({
            'index': batch.index,
            'status': batch.status,
            'size': batch.size,
            'attempts': batch.attempts,
            'txHash': batch.tx_hash or None,
            'explorerUrl': explorer_tx_url(batch.tx_hash),
            'error': batch.last_error or None,
        })

    participants = (
        EventParticipant.objects
        .filter(event=event, reward_batch__isnull=False)
        .select_related('user')
        .order_by('rank')
    )
    for participant in participants:
        data['participants'].append({
            'username': participant.user.username,
            'rank': participant.rank,
            'tier': participant.nft_tier,
            'batchStatus': batch_status.get(participant.reward_batch_id),
            'hasReceivedNFT': participant.has_received_nft,
            'tokenId': participant.nft_token_id,
        })
    return data


# Singleton instance
reward_service = RewardDistributionService()
