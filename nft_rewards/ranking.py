"""
Final rankings for reward distribution.

Only participants with a wallet address are eligible. Ranks are 1-based
positions after a stable sort on descending score, so tied participants
keep the order they were loaded in (earliest join first).
"""
import math
from dataclasses import dataclass

from .exceptions import NoEligibleParticipants, RankingIntegrityError
from .tiers import determine_tier


@dataclass
class ParticipantScore:
    participant_id: int
    user_id: int
    username: str
    wallet_address: str
    score: object


@dataclass
class RankingEntry:
    participant_id: int
    user_id: int
    username: str
    wallet_address: str
    score: int
    rank: int
    tier: str

    def to_preview(self):
        return {
            'participantId': self.participant_id,
            'userId': self.user_id,
            'username': self.username,
            'walletAddress': self.wallet_address,
            'totalScore': self.score,
            'rank': self.rank,
            'tier': self.tier,
        }

    def to_snapshot(self):
        """Plain dict stored on a DistributionBatch"""
        return {
            'participant_id': self.participant_id,
            'user_id': self.user_id,
            'wallet_address': self.wallet_address,
            'score': self.score,
            'rank': self.rank,
            'tier': self.tier,
        }


def _check_score(record):
    score = record.score
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise RankingIntegrityError(
            f"Participant {record.participant_id} has a non-numeric score: {score!r}"
        )
    if not math.isfinite(score) or score < 0:
        raise RankingIntegrityError(
            f"Participant {record.participant_id} has an invalid score: {score!r}"
        )
    if isinstance(score, float) and not score.is_integer():
        raise RankingIntegrityError(
            f"Participant {record.participant_id} has a fractional score: {score!r}"
        )
    return int(score)


def rank_participants(records):
    """
    Rank ParticipantScore records.

    Every score is validated before anything is ranked; one bad score fails
    the whole ranking.
    """
    records = list(records)
    if not records:
        raise NoEligibleParticipants('No participants with wallet addresses found')

    scores = [_check_score(record) for record in records]
    ordered = sorted(zip(records, scores), key=lambda pair: -pair[1])
    total = len(ordered)

    return [
        RankingEntry(
            participant_id=record.participant_id,
            user_id=record.user_id,
            username=record.username,
            wallet_address=record.wallet_address,
            score=score,
            rank=position,
            tier=determine_tier(position, total),
        )
        for position, (record, score) in enumerate(ordered, 1)
    ]


def calculate_event_rankings(event):
    """Rank the eligible participants of an event"""
    from events_ctf.models import EventParticipant

    participants = (
        EventParticipant.objects
        .filter(event=event, user__wallet_address__isnull=False)
        .exclude(user__wallet_address='')
        .select_related('user')
        .order_by('-total_score', 'joined_at', 'id')
    )

    records = [
        ParticipantScore(
            participant_id=participant.id,
            user_id=participant.user_id,
            username=participant.user.username,
            wallet_address=participant.user.wallet_address,
            score=participant.total_score,
        )
        for participant in participants
    ]
    return rank_participants(records)
