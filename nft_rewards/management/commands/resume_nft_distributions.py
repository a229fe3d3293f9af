"""
Management command to resume stalled reward distributions.
Usage: python manage.py resume_nft_distributions
"""
from django.core.management.base import BaseCommand, CommandError
from nft_rewards.exceptions import RewardError
from nft_rewards.services import reward_service


class Command(BaseCommand):
    help = 'Reconcile and continue reward distributions whose worker stopped'

    def handle(self, *args, **options):
        try:
            results = reward_service.resume_stalled_distributions()
        except RewardError as e:
            raise CommandError(str(e))

        if not results:
            self.stdout.write(self.style.SUCCESS('No stalled distributions'))
            return

        for result in results:
            line = (
                f"Distribution {result.distribution_id}: {result.status}, "
                f"{result.total_distributed} distributed"
            )
            if result.success:
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(self.style.WARNING(line))
                for error in result.errors:
                    self.stdout.write(f"  {error}")
