"""
Celery tasks for NFT reward distribution.

Routed to the `nft-rewards` queue (see CELERY_TASK_ROUTES) so a single
worker owns the signing key.
"""
import logging
from celery import shared_task
from django.utils import timezone
from .exceptions import ContractUnavailable, SignerBusy
from .models import RewardDistribution
from .services import reward_service

logger = logging.getLogger(__name__)

SIGNER_BUSY_RETRY_SECONDS = 30


@shared_task(bind=True, max_retries=20)
def distribute_event_rewards(self, distribution_id):
    """
    Run a claimed distribution. Retried while another run holds the signer.
    """
    distribution = (
        RewardDistribution.objects
        .select_related('event')
        .filter(pk=distribution_id)
        .first()
    )
    if distribution is None:
        logger.warning(f"Reward distribution {distribution_id} no longer exists, skipping")
        return {'status': 'skipped', 'distribution_id': distribution_id}
    if distribution.is_finished:
        logger.info(f"Reward distribution {distribution_id} already {distribution.status}, skipping")
        return {'status': 'skipped', 'distribution_id': distribution_id}

    try:
        result = reward_service.execute(distribution)
    except SignerBusy as exc:
        logger.info(f"Signer busy, retrying distribution {distribution_id} in {SIGNER_BUSY_RETRY_SECONDS}s")
        raise self.retry(exc=exc, countdown=SIGNER_BUSY_RETRY_SECONDS)

    return result.as_dict()


@shared_task
def resume_stalled_distributions():
    """
    Pick up distributions whose worker stopped reporting progress.

    Runs every 5 minutes via Celery Beat. Skips the round when the signer is
    in use or the contract is not configured; the next round tries again.
    """
    now = timezone.now()
    try:
        results = reward_service.resume_stalled_distributions(now)
    except SignerBusy:
        logger.info("[RESUME] Signer busy, skipping this round")
        return {'status': 'busy', 'timestamp': now.isoformat()}
    except ContractUnavailable as e:
        logger.error(f"[RESUME] Cannot resume distributions: {e}")
        return {'status': 'unavailable', 'timestamp': now.isoformat()}

    if results:
        logger.info(f"[RESUME] Resumed {len(results)} stalled distribution(s)")

    return {
        'status': 'success',
        'resumed_count': len(results),
        'results': [result.as_dict() for result in results],
        'timestamp': now.isoformat()
    }
