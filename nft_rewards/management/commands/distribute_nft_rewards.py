"""
Management command to preview or distribute an event's NFT rewards.
Usage: python manage.py distribute_nft_rewards <event_id> [--preview]
"""
from django.core.management.base import BaseCommand, CommandError
from events_ctf.models import Event
from nft_rewards.exceptions import RewardError
from nft_rewards.services import preview_rewards, reward_service


class Command(BaseCommand):
    help = 'Distribute NFT rewards for an ended event (runs inline, not through Celery)'

    def add_arguments(self, parser):
        parser.add_argument('event_id', type=int)
        parser.add_argument(
            '--preview',
            action='store_true',
            help='Show rankings and tiers without minting anything',
        )

    def handle(self, *args, **options):
        event = Event.objects.filter(pk=options['event_id']).first()
        if event is None:
            raise CommandError(f"Event {options['event_id']} does not exist")

        try:
            if options['preview']:
                self.show_preview(preview_rewards(event))
                return
            result = reward_service.distribute_event(event)
        except RewardError as e:
            raise CommandError(str(e))

        self.stdout.write(f"Distributed {result.total_distributed} NFT(s) for {event.name}")
        for error in result.errors:
            self.stdout.write(self.style.ERROR(f"  {error}"))

        if result.success:
            self.stdout.write(self.style.SUCCESS("Distribution completed"))
        else:
            self.stdout.write(self.style.WARNING(f"Distribution finished with status {result.status}"))

    def show_preview(self, preview):
        self.stdout.write(f"{preview['eventName']}: {preview['totalParticipants']} eligible participant(s)")
        for entry in preview['rankings']:
            self.stdout.write(
                f"  #{entry['rank']:<4} {entry['tier']:<9} {entry['totalScore']:>6}  "
                f"{entry['username']} ({entry['walletAddress']})"
            )
        self.stdout.write("\nTier distribution:")
        for tier, info in preview['tierDistribution'].items():
            self.stdout.write(f"  {tier:<9} {info['count']:>4}  {info['percentage']:.1f}%  {info['rankRange']}")
