from datetime import timedelta
from unittest import mock

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.utils import timezone
from io import StringIO
from kombu.exceptions import OperationalError
from rest_framework.test import APITestCase
from web3 import Web3

from events_ctf.models import Event, EventParticipant
from .blockchain import ChainTransaction, MintReceipt
from .exceptions import (
    ChainEventResolutionError,
    ContractCallError,
    NoEligibleParticipants,
    RankingIntegrityError,
    TransientChainError,
)
from .models import ChainEvent, DistributionBatch, RewardDistribution
from .ranking import ParticipantScore, calculate_event_rankings, rank_participants
from .services import (
    SIGNER_LOCK_KEY,
    EventChainMapper,
    RewardDistributionService,
    chunk,
    reward_state,
    tier_distribution,
)
from .tasks import distribute_event_rewards
from .tiers import BRONZE, DIAMOND, GOLD, PLATINUM, SILVER, determine_tier

User = get_user_model()

CHAIN_EVENT_ID = 7

REWARD_SETTINGS = dict(
    NFT_REWARDS_ASYNC=False,
    NFT_REWARD_BATCH_SIZE=10,
    NFT_REWARD_MAX_RETRIES=3,
    NFT_REWARD_RETRY_BACKOFF_SECONDS=0,
    NFT_REWARD_STALE_AFTER_SECONDS=900,
)


def wallet(n):
    return Web3.to_checksum_address(f"0x{n:040x}")


class FakeContract:
    """In-process stand-in for CTNFTContract"""
    address = wallet(0xC0FFEE)

    def __init__(self, chain_event_id=CHAIN_EVENT_ID, failing_calls=(), transient_failures=0,
                 broadcast_then_timeout=False, emit_token_ids=True):
        self.chain_event_id = chain_event_id
        self.failing_calls = set(failing_calls)
        self.transient_failures = transient_failures
        self.broadcast_then_timeout = broadcast_then_timeout
        self.emit_token_ids = emit_token_ids
        self.created = []
        self.mint_calls = []
        self.received = set()

    def create_event(self, name, start_time, end_time):
        self.created.append((name, start_time, end_time))
        return ChainTransaction(event_id=self.chain_event_id, tx_hash='0x' + 'ab' * 32)

    def batch_mint_rewards(self, recipients, event_id, ranks, scores, total_participants):
        self.mint_calls.append(list(recipients))
        call_number = len(self.mint_calls)
        tx_hash = f"0x{call_number:064x}"

        if call_number in self.failing_calls:
            raise ContractCallError('batchMintRewards reverted: execution reverted')
        if self.transient_failures:
            self.transient_failures -= 1
            raise TransientChainError('batchMintRewards failed: connection reset')

        for recipient in recipients:
            self.received.add(Web3.to_checksum_address(recipient))

        if self.broadcast_then_timeout:
            self.broadcast_then_timeout = False
            raise TransientChainError('receipt wait timed out', tx_hash=tx_hash)

        token_ids = {}
        if self.emit_token_ids:
            token_ids = {
                Web3.to_checksum_address(recipient): str(1000 + rank)
                for recipient, rank in zip(recipients, ranks)
            }
        return MintReceipt(tx_hash=tx_hash, token_ids=token_ids)

    def has_received_nft(self, event_id, address):
        return Web3.to_checksum_address(address) in self.received


class RewardTestMixin:
    """Ended event with an organizer and scored participants"""

    def make_event(self, **kwargs):
        now = timezone.now()
        defaults = {
            'name': 'Winter CTF',
            'description': 'Seasonal competition',
            'start_time': now - timedelta(hours=3),
            'end_time': now - timedelta(hours=1),
            'organizer': self.organizer,
        }
        defaults.update(kwargs)
        return Event.objects.create(**defaults)

    def make_user(self, username, with_wallet=True, n=None, **kwargs):
        self.user_counter = getattr(self, 'user_counter', 0) + 1
        n = n or self.user_counter
        return User.objects.create_user(
            username=username,
            email=f"{username}@example.com",
            password='testpass123',
            wallet_address=wallet(n) if with_wallet else None,
            **kwargs
        )

    def add_participants(self, event, scores):
        participants = []
        for i, score in enumerate(scores, 1):
            user = self.make_user(f"player{event.id}_{i}", n=event.id * 1000 + i)
            participants.append(EventParticipant.objects.create(user=user, event=event, total_score=score))
        return participants

    def setUp(self):
        cache.clear()
        self.organizer = self.make_user('organizer', role=User.ROLE_ORGANIZER, n=0xA11CE)


class TierTests(TestCase):
    """Tier thresholds by rank percentile"""

    def test_tier_table(self):
        self.assertEqual(determine_tier(1, 100), DIAMOND)
        self.assertEqual(determine_tier(2, 100), PLATINUM)
        self.assertEqual(determine_tier(5, 100), PLATINUM)
        self.assertEqual(determine_tier(6, 100), GOLD)
        self.assertEqual(determine_tier(10, 100), GOLD)
        self.assertEqual(determine_tier(11, 100), SILVER)
        self.assertEqual(determine_tier(20, 100), SILVER)
        self.assertEqual(determine_tier(21, 100), BRONZE)
        self.assertEqual(determine_tier(100, 100), BRONZE)

    def test_small_cohort_is_all_bronze(self):
        self.assertEqual([determine_tier(rank, 3) for rank in (1, 2, 3)], [BRONZE] * 3)

    def test_single_participant_is_bronze(self):
        self.assertEqual(determine_tier(1, 1), BRONZE)

    def test_invalid_input(self):
        with self.assertRaises(ValueError):
            determine_tier(0, 10)
        with self.assertRaises(ValueError):
            determine_tier(11, 10)
        with self.assertRaises(ValueError):
            determine_tier(1, 0)


class RankingTests(TestCase):

    def record(self, pid, score):
        return ParticipantScore(
            participant_id=pid, user_id=pid, username=f"u{pid}",
            wallet_address=wallet(pid), score=score,
        )

    def test_ranks_are_contiguous_and_ties_keep_input_order(self):
        rankings = rank_participants([
            self.record(1, 50), self.record(2, 80), self.record(3, 50), self.record(4, 10),
        ])
        self.assertEqual([entry.rank for entry in rankings], [1, 2, 3, 4])
        self.assertEqual([entry.participant_id for entry in rankings], [2, 1, 3, 4])

    def test_empty_input_raises(self):
        with self.assertRaises(NoEligibleParticipants):
            rank_participants([])

    def test_non_finite_score_rejected(self):
        for bad in (float('nan'), float('inf'), -5, 'ten', 2.5, True):
            with self.subTest(score=bad):
                with self.assertRaises(RankingIntegrityError):
                    rank_participants([self.record(1, 10), self.record(2, bad)])

    def test_integral_float_accepted(self):
        rankings = rank_participants([self.record(1, 40.0)])
        self.assertEqual(rankings[0].score, 40)

    def test_chunk_boundaries(self):
        self.assertEqual([len(group) for group in chunk(range(10), 10)], [10])
        self.assertEqual([len(group) for group in chunk(range(11), 10)], [10, 1])
        self.assertEqual(chunk([], 10), [])
        with self.assertRaises(ValueError):
            chunk([1], 0)

    def test_tier_distribution_ranges(self):
        rankings = rank_participants([self.record(i, 100 - i) for i in range(1, 21)])
        tiers = tier_distribution(rankings)

        self.assertEqual(tiers[DIAMOND]['count'], 0)
        self.assertEqual(tiers[DIAMOND]['rankRange'], '')
        self.assertEqual(tiers[PLATINUM]['count'], 1)
        self.assertEqual(tiers[PLATINUM]['rankRange'], '#1')
        self.assertEqual(tiers[GOLD]['rankRange'], '#2')
        self.assertEqual(tiers[SILVER]['rankRange'], '#3 - #4')
        self.assertEqual(tiers[BRONZE]['count'], 16)
        self.assertEqual(tiers[BRONZE]['percentage'], 80.0)


class EventRankingTests(RewardTestMixin, TestCase):

    def test_participants_without_wallet_are_skipped(self):
        event = self.make_event()
        self.add_participants(event, [30, 20])
        no_wallet = self.make_user('nowallet', with_wallet=False)
        EventParticipant.objects.create(user=no_wallet, event=event, total_score=99)

        rankings = calculate_event_rankings(event)

        self.assertEqual([entry.score for entry in rankings], [30, 20])
        self.assertNotIn('nowallet', [entry.username for entry in rankings])

    def test_ties_broken_by_join_order(self):
        event = self.make_event()
        first, second = self.add_participants(event, [10, 10])
        EventParticipant.objects.filter(pk=first.pk).update(joined_at=timezone.now() - timedelta(minutes=5))

        rankings = calculate_event_rankings(event)

        self.assertEqual([entry.participant_id for entry in rankings], [first.id, second.id])

    def test_no_wallets_raises(self):
        event = self.make_event()
        user = self.make_user('lonely', with_wallet=False)
        EventParticipant.objects.create(user=user, event=event, total_score=5)

        with self.assertRaises(NoEligibleParticipants):
            calculate_event_rankings(event)


@override_settings(**REWARD_SETTINGS)
class EventChainMapperTests(RewardTestMixin, TestCase):

    def test_chain_event_created_once_and_reused(self):
        event = self.make_event()
        contract = FakeContract()
        mapper = EventChainMapper()

        self.assertEqual(mapper.resolve(event, contract), CHAIN_EVENT_ID)
        self.assertEqual(mapper.resolve(event, contract), CHAIN_EVENT_ID)

        self.assertEqual(len(contract.created), 1)
        name, start, end = contract.created[0]
        self.assertEqual(name, event.name)
        self.assertEqual(start, int(event.start_time.timestamp()))
        self.assertEqual(end, int(event.end_time.timestamp()))
        self.assertEqual(ChainEvent.objects.get(event=event).chain_event_id, CHAIN_EVENT_ID)

    def test_unparseable_id_raises(self):
        event = self.make_event()
        with self.assertRaises(ChainEventResolutionError):
            EventChainMapper().resolve(event, FakeContract(chain_event_id=None))
        self.assertFalse(ChainEvent.objects.exists())

    def test_create_failure_raises_resolution_error(self):
        event = self.make_event()
        contract = FakeContract()
        contract.create_event = mock.Mock(side_effect=ContractCallError('createEvent reverted'))

        with self.assertRaises(ChainEventResolutionError):
            EventChainMapper().resolve(event, contract)


@override_settings(**REWARD_SETTINGS)
class RewardDistributionServiceTests(RewardTestMixin, TestCase):

    def setUp(self):
        super().setUp()
        self.contract = FakeContract()
        patcher = mock.patch('nft_rewards.services.get_contract', return_value=self.contract)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.sleeps = []
        self.service = RewardDistributionService(sleep=self.sleeps.append)

    def test_eleven_participants_make_two_batches(self):
        event = self.make_event()
        self.add_participants(event, range(110, 0, -10))

        result = self.service.distribute_event(event, self.organizer)

        self.assertTrue(result.success)
        self.assertEqual(result.total_distributed, 11)
        self.assertEqual([len(call) for call in self.contract.mint_calls], [10, 1])
        self.assertEqual(
            list(DistributionBatch.objects.values_list('index', 'status')),
            [(1, DistributionBatch.STATUS_MINTED), (2, DistributionBatch.STATUS_MINTED)],
        )
        top = EventParticipant.objects.get(event=event, total_score=110)
        self.assertTrue(top.has_received_nft)
        self.assertEqual(top.rank, 1)
        self.assertEqual(top.nft_token_id, '1001')
        self.assertEqual(reward_state(event), 'DISTRIBUTED')

    def test_ten_participants_make_one_batch(self):
        event = self.make_event()
        self.add_participants(event, range(10))

        self.service.distribute_event(event, self.organizer)

        self.assertEqual(len(self.contract.mint_calls), 1)
        self.assertEqual(DistributionBatch.objects.count(), 1)

    def test_token_id_synthesized_without_mint_log(self):
        self.contract.emit_token_ids = False
        event = self.make_event()
        self.add_participants(event, [30, 20])

        self.service.distribute_event(event, self.organizer)

        second = EventParticipant.objects.get(event=event, total_score=20)
        self.assertEqual(second.nft_token_id, f"{CHAIN_EVENT_ID}-2")

    def test_partial_failure_continues_with_next_batch(self):
        self.contract.failing_calls = {1}
        event = self.make_event()
        self.add_participants(event, range(11))

        result = self.service.distribute_event(event, self.organizer)

        self.assertFalse(result.success)
        self.assertEqual(result.total_distributed, 1)
        self.assertEqual(len(result.errors), 1)
        self.assertTrue(result.errors[0].startswith('Batch 1: '))
        distribution = RewardDistribution.objects.get(event=event)
        self.assertEqual(distribution.status, RewardDistribution.STATUS_PARTIAL)
        self.assertEqual(EventParticipant.objects.filter(event=event, has_received_nft=True).count(), 1)
        self.assertEqual(reward_state(event), 'DISTRIBUTED_PARTIAL')

    def test_all_batches_failing_marks_distribution_failed(self):
        self.contract.failing_calls = {1}
        event = self.make_event()
        self.add_participants(event, [5, 4])

        result = self.service.distribute_event(event, self.organizer)

        self.assertFalse(result.success)
        self.assertEqual(result.status, RewardDistribution.STATUS_FAILED)

    def test_transient_errors_are_retried_with_backoff(self):
        self.contract.transient_failures = 2
        event = self.make_event()
        self.add_participants(event, [5, 4])

        with override_settings(NFT_REWARD_RETRY_BACKOFF_SECONDS=2.0):
            result = self.service.distribute_event(event, self.organizer)

        self.assertTrue(result.success)
        self.assertEqual(self.sleeps, [2.0, 4.0])
        self.assertEqual(DistributionBatch.objects.get().attempts, 3)

    def test_retries_exhausted_fail_the_batch(self):
        self.contract.transient_failures = 10
        event = self.make_event()
        self.add_participants(event, [5])

        result = self.service.distribute_event(event, self.organizer)

        self.assertFalse(result.success)
        batch = DistributionBatch.objects.get()
        self.assertEqual(batch.status, DistributionBatch.STATUS_FAILED)
        self.assertEqual(batch.attempts, 4)
        self.assertIn('connection reset', batch.last_error)

    def test_broadcast_transaction_is_not_resent_when_it_landed(self):
        self.contract.broadcast_then_timeout = True
        event = self.make_event()
        self.add_participants(event, [5, 4])

        result = self.service.distribute_event(event, self.organizer)

        self.assertTrue(result.success)
        self.assertEqual(len(self.contract.mint_calls), 1)
        batch = DistributionBatch.objects.get()
        self.assertEqual(batch.tx_hash, f"0x{1:064x}")
        self.assertEqual(
            sorted(EventParticipant.objects.filter(event=event).values_list('nft_token_id', flat=True)),
            [f"{CHAIN_EVENT_ID}-1", f"{CHAIN_EVENT_ID}-2"],
        )

    def test_unparseable_chain_id_aborts_before_minting(self):
        self.contract.chain_event_id = None
        event = self.make_event()
        participants = self.add_participants(event, [5, 4])

        with self.assertRaises(ChainEventResolutionError):
            self.service.distribute_event(event, self.organizer)

        self.assertEqual(self.contract.mint_calls, [])
        self.assertFalse(RewardDistribution.objects.exists())
        participants[0].refresh_from_db()
        self.assertIsNone(participants[0].rank)
        self.assertFalse(participants[0].has_received_nft)
        self.assertEqual(reward_state(event), 'ENDED_NOT_DISTRIBUTED')

    def test_claim_snapshots_rankings(self):
        event = self.make_event()
        self.add_participants(event, [10, 30, 20])

        distribution = self.service.claim(event, self.organizer)

        batch = distribution.batches.get()
        self.assertEqual([entry['score'] for entry in batch.entries], [30, 20, 10])
        self.assertEqual([entry['rank'] for entry in batch.entries], [1, 2, 3])
        self.assertEqual(reward_state(event), 'DISTRIBUTING')
        self.assertEqual(self.contract.mint_calls, [])

    def test_stalled_minting_batches_are_reconciled(self):
        event = self.make_event()
        self.add_participants(event, [60, 50, 40, 30, 20, 10])

        with override_settings(NFT_REWARD_BATCH_SIZE=2):
            distribution = self.service.claim(event, self.organizer)

        ChainEvent.objects.create(event=event, chain_event_id=CHAIN_EVENT_ID)
        RewardDistribution.objects.filter(pk=distribution.pk).update(
            chain_event_id=CHAIN_EVENT_ID,
            heartbeat_at=timezone.now() - timedelta(hours=1),
        )
        batches = {batch.index: batch for batch in distribution.batches.all()}
        DistributionBatch.objects.filter(pk__in=[b.pk for b in batches.values()]).update(
            status=DistributionBatch.STATUS_MINTING
        )
        # batch 1 landed on-chain, batch 2 never did, batch 3 only half
        for entry in batches[1].entries:
            self.contract.received.add(entry['wallet_address'])
        self.contract.received.add(batches[3].entries[0]['wallet_address'])

        results = self.service.resume_stalled_distributions()

        self.assertEqual(len(results), 1)
        self.assertEqual(results[0].status, RewardDistribution.STATUS_PARTIAL)
        self.assertEqual(
            self.contract.mint_calls,
            [[entry['wallet_address'] for entry in batches[2].entries]],
        )
        statuses = dict(DistributionBatch.objects.values_list('index', 'status'))
        self.assertEqual(statuses, {
            1: DistributionBatch.STATUS_MINTED,
            2: DistributionBatch.STATUS_MINTED,
            3: DistributionBatch.STATUS_FAILED,
        })
        winner = EventParticipant.objects.get(event=event, total_score=60)
        self.assertEqual(winner.nft_token_id, f"{CHAIN_EVENT_ID}-1")
        self.assertEqual(len(self.contract.created), 0)

    def test_failing_stalled_distribution_does_not_block_the_others(self):
        first = self.make_event(name='First CTF')
        self.add_participants(first, [30, 20])
        second = self.make_event(name='Second CTF')
        self.add_participants(second, [15, 10])
        broken = self.service.claim(first, self.organizer)
        healthy = self.service.claim(second, self.organizer)

        ChainEvent.objects.create(event=first, chain_event_id=CHAIN_EVENT_ID)
        stale = timezone.now() - timedelta(hours=1)
        RewardDistribution.objects.filter(pk=broken.pk).update(
            chain_event_id=CHAIN_EVENT_ID,
            heartbeat_at=stale,
            started_at=stale - timedelta(minutes=5),
        )
        RewardDistribution.objects.filter(pk=healthy.pk).update(heartbeat_at=stale)
        broken.batches.update(status=DistributionBatch.STATUS_MINTING)

        lookup_error = TransientChainError('hasReceivedNFT failed: connection reset')
        with mock.patch.object(self.contract, 'has_received_nft', side_effect=lookup_error):
            results = self.service.resume_stalled_distributions()

        self.assertEqual([result.distribution_id for result in results], [healthy.id])
        healthy.refresh_from_db()
        self.assertEqual(healthy.status, RewardDistribution.STATUS_COMPLETED)
        self.assertEqual(len(self.contract.mint_calls), 1)

        broken.refresh_from_db()
        self.assertEqual(broken.status, RewardDistribution.STATUS_DISTRIBUTING)
        self.assertGreater(broken.heartbeat_at, stale)
        self.assertFalse(self.service.stalled_distributions().filter(pk=broken.pk).exists())

    def test_each_retry_attempt_refreshes_heartbeat(self):
        event = self.make_event()
        self.add_participants(event, [5, 4])
        distribution = self.service.claim(event, self.organizer)
        self.contract.transient_failures = 2
        stale = timezone.now() - timedelta(hours=1)
        seen = []

        def sleep(delay):
            seen.append(RewardDistribution.objects.get(pk=distribution.pk).heartbeat_at)
            RewardDistribution.objects.filter(pk=distribution.pk).update(heartbeat_at=stale)

        self.service.sleep = sleep
        with mock.patch('nft_rewards.services._refresh_signer_lock') as refresh:
            result = self.service.execute(distribution)

        self.assertTrue(result.success)
        self.assertEqual(len(seen), 2)
        self.assertGreater(seen[1], stale)
        # three attempts plus the minted batch
        self.assertEqual(refresh.call_count, 4)

    def test_recent_distributions_are_not_resumed(self):
        event = self.make_event()
        self.add_participants(event, [5])
        self.service.claim(event, self.organizer)

        self.assertEqual(self.service.resume_stalled_distributions(), [])
        self.assertEqual(self.contract.mint_calls, [])

    def test_task_runs_claimed_distribution(self):
        event = self.make_event()
        self.add_participants(event, [5, 4])
        distribution = self.service.claim(event, self.organizer)

        result = distribute_event_rewards(distribution.id)

        self.assertTrue(result['success'])
        self.assertEqual(result['totalDistributed'], 2)
        self.assertEqual(result['status'], RewardDistribution.STATUS_COMPLETED)


@override_settings(**REWARD_SETTINGS)
class NFTRewardsAPITests(RewardTestMixin, APITestCase):

    def setUp(self):
        super().setUp()
        self.contract = FakeContract()
        patcher = mock.patch('nft_rewards.services.get_contract', return_value=self.contract)
        self.get_contract = patcher.start()
        self.addCleanup(patcher.stop)
        self.event = self.make_event()
        self.client.force_authenticate(user=self.organizer)

    def url(self, suffix=''):
        return f"/api/events/{self.event.id}/nft-rewards/{suffix}"

    def test_preview_is_read_only(self):
        self.add_participants(self.event, [50, 40, 30])

        response = self.client.get(self.url())

        self.assertEqual(response.status_code, 200)
        preview = response.data['preview']
        self.assertEqual(preview['eventName'], self.event.name)
        self.assertEqual(preview['totalParticipants'], 3)
        self.assertEqual([row['rank'] for row in preview['rankings']], [1, 2, 3])
        self.assertEqual(preview['tierDistribution'][BRONZE]['count'], 3)
        self.assertFalse(RewardDistribution.objects.exists())
        self.assertFalse(ChainEvent.objects.exists())
        self.assertFalse(EventParticipant.objects.filter(rank__isnull=False).exists())
        self.get_contract.assert_not_called()

    def test_preview_without_eligible_participants(self):
        response = self.client.get(self.url())

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])

    def test_non_organizer_is_forbidden(self):
        player = self.make_user('outsider')
        self.client.force_authenticate(user=player)

        self.assertEqual(self.client.get(self.url()).status_code, 403)
        self.assertEqual(self.client.post(self.url()).status_code, 403)

    def test_admin_can_distribute(self):
        self.add_participants(self.event, [5])
        admin = self.make_user('platformadmin', role=User.ROLE_ADMIN)
        self.client.force_authenticate(user=admin)

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 200)

    def test_distribute_success(self):
        self.add_participants(self.event, [50, 40])

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['totalDistributed'], 2)

    def test_second_distribution_is_rejected(self):
        self.add_participants(self.event, [50, 40])
        self.client.post(self.url())

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 409)
        self.assertIn('already distributed', response.data['error'])
        self.assertEqual(len(self.contract.mint_calls), 1)

    def test_distribution_before_end_is_rejected(self):
        running = self.make_event(name='Running', end_time=timezone.now() + timedelta(hours=1))
        self.add_participants(running, [5])

        response = self.client.post(f"/api/events/{running.id}/nft-rewards/")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'Cannot distribute NFTs before event ends')
        self.assertFalse(RewardDistribution.objects.exists())

    def test_partial_failure_returns_207(self):
        self.contract.failing_calls = {2}
        self.add_participants(self.event, range(11))

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 207)
        self.assertFalse(response.data['success'])
        self.assertEqual(response.data['totalDistributed'], 10)
        self.assertEqual(len(response.data['errors']), 1)
        self.assertTrue(response.data['errors'][0].startswith('Batch 2: '))

    def test_unparseable_chain_id_returns_502(self):
        self.contract.chain_event_id = None
        self.add_participants(self.event, [5])

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 502)
        self.assertEqual(self.contract.mint_calls, [])

    def test_ranking_integrity_error_aborts_before_minting(self):
        self.add_participants(self.event, [5])

        with mock.patch(
            'nft_rewards.services.calculate_event_rankings',
            side_effect=RankingIntegrityError('Participant 1 has an invalid score: nan'),
        ):
            response = self.client.post(self.url())

        self.assertEqual(response.status_code, 500)
        self.assertEqual(self.contract.mint_calls, [])
        self.assertEqual(self.contract.created, [])
        self.assertFalse(RewardDistribution.objects.exists())

    def test_missing_contract_returns_503(self):
        self.get_contract.return_value = None
        self.add_participants(self.event, [5])

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 503)
        self.assertFalse(RewardDistribution.objects.exists())

    def test_busy_signer_returns_409(self):
        self.add_participants(self.event, [5])
        cache.add(SIGNER_LOCK_KEY, 'other-worker', 60)

        response = self.client.post(self.url())

        self.assertEqual(response.status_code, 409)
        self.assertFalse(RewardDistribution.objects.exists())

    @override_settings(NFT_REWARDS_ASYNC=True)
    def test_async_mode_queues_distribution(self):
        self.add_participants(self.event, [5])

        with mock.patch('nft_rewards.views.distribute_event_rewards') as task:
            with self.captureOnCommitCallbacks(execute=True):
                response = self.client.post(self.url())

        self.assertEqual(response.status_code, 202)
        distribution = RewardDistribution.objects.get(event=self.event)
        self.assertEqual(response.data['distributionId'], distribution.id)
        self.assertEqual(response.data['status'], RewardDistribution.STATUS_DISTRIBUTING)
        task.delay.assert_called_once_with(distribution.id)
        self.assertEqual(self.contract.mint_calls, [])

    @override_settings(NFT_REWARDS_ASYNC=True)
    def test_async_mode_broker_down_keeps_claim(self):
        self.add_participants(self.event, [5])

        with mock.patch('nft_rewards.views.distribute_event_rewards') as task, \
                mock.patch('nft_rewards.views.transaction.on_commit', side_effect=lambda callback: callback()):
            task.delay.side_effect = OperationalError('Error 111 connecting to localhost:6379. Connection refused.')
            response = self.client.post(self.url())

        self.assertEqual(response.status_code, 503)
        self.assertFalse(response.data['success'])
        distribution = RewardDistribution.objects.get(event=self.event)
        self.assertEqual(response.data['distributionId'], distribution.id)
        self.assertEqual(distribution.status, RewardDistribution.STATUS_DISTRIBUTING)
        self.assertEqual(self.contract.mint_calls, [])

    def test_status_reports_batches_and_participants(self):
        self.add_participants(self.event, [50, 40])
        self.assertEqual(self.client.get(self.url('status/')).data['status']['state'], 'ENDED_NOT_DISTRIBUTED')

        self.client.post(self.url())
        response = self.client.get(self.url('status/'))

        self.assertEqual(response.status_code, 200)
        data = response.data['status']
        self.assertEqual(data['state'], 'DISTRIBUTED')
        self.assertEqual(data['chainEventId'], CHAIN_EVENT_ID)
        self.assertEqual(data['batches'][0]['status'], DistributionBatch.STATUS_MINTED)
        self.assertEqual([p['rank'] for p in data['participants']], [1, 2])
        self.assertTrue(all(p['hasReceivedNFT'] for p in data['participants']))

    def test_my_nfts(self):
        winner, _ = self.add_participants(self.event, [50, 40])
        self.client.post(self.url())

        self.client.force_authenticate(user=winner.user)
        response = self.client.get('/api/nfts/mine/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['event_id'], self.event.id)
        self.assertEqual(response.data[0]['rank'], 1)
        self.assertEqual(response.data[0]['nft_token_id'], '1001')


@override_settings(**REWARD_SETTINGS)
class DistributeCommandTests(RewardTestMixin, TestCase):

    def test_preview_option_does_not_mint(self):
        event = self.make_event()
        self.add_participants(event, [20, 10])
        out = StringIO()

        with mock.patch('nft_rewards.services.get_contract') as get_contract:
            call_command('distribute_nft_rewards', str(event.id), '--preview', stdout=out)

        get_contract.assert_not_called()
        self.assertIn('2 eligible participant(s)', out.getvalue())
        self.assertFalse(RewardDistribution.objects.exists())

    def test_distribute(self):
        event = self.make_event()
        self.add_participants(event, [20, 10])
        contract = FakeContract()
        out = StringIO()

        with mock.patch('nft_rewards.services.get_contract', return_value=contract):
            call_command('distribute_nft_rewards', str(event.id), stdout=out)

        self.assertIn('Distributed 2 NFT(s)', out.getvalue())
        self.assertEqual(RewardDistribution.objects.get().status, RewardDistribution.STATUS_COMPLETED)
