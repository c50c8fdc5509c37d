from django.core.management.base import BaseCommand, CommandError
from profiles.models import Profile
from roommate_matching.exceptions import MatchingError
from roommate_matching.models import Match, Preference
from roommate_matching.records import CandidateFilters
from roommate_matching.services import MatchingService


class Command(BaseCommand):
    help = 'Show matching totals, or the candidate feed and matches of one profile'

    def add_arguments(self, parser):
        parser.add_argument(
            '--profile-id',
            help='Report the feed and matches for this profile id',
        )
        parser.add_argument(
            '--limit',
            type=int,
            default=10,
            help='Limit number of candidates shown',
        )
        parser.add_argument(
            '--zone',
            default='',
            help='Only show candidates in this zone',
        )
        parser.add_argument(
            '--min-age',
            type=int,
            help='Only show candidates at least this old',
        )
        parser.add_argument(
            '--max-age',
            type=int,
            help='Only show candidates at most this old',
        )

    def handle(self, *args, **options):
        if not options['profile_id']:
            self.stdout.write(f"Active profiles: {Profile.objects.filter(is_active=True).count()}")
            self.stdout.write(
                f"Preferences: {Preference.objects.filter(decision=Preference.LIKE).count()} likes, "
                f"{Preference.objects.filter(decision=Preference.PASS).count()} passes"
            )
            self.stdout.write(f"Matches: {Match.objects.count()}")
            self.stdout.write(self.style.SUCCESS('Done!'))
            return

        matching_service = MatchingService()
        profile_id = options['profile_id']

        try:
            filters = CandidateFilters.build(
                zone=options['zone'], min_age=options['min_age'], max_age=options['max_age']
            )
            candidates = matching_service.get_candidates(profile_id, limit=options['limit'], filters=filters)
            matches = matching_service.list_matches(profile_id)
        except MatchingError as e:
            raise CommandError(f"Could not build report for {profile_id}: {str(e)}")

        self.stdout.write(f"Candidates for {profile_id} ({len(candidates)} shown):")
        for profile in candidates:
            self.stdout.write(f"  - {profile.display_name} ({profile.zone or 'no zone'})")

        self.stdout.write(f"Matches ({len(matches)}):")
        for view in matches:
            last_message = view.last_message or 'no messages yet'
            self.stdout.write(
                f"  {view.counterpart.display_name} since {view.created_at:%Y-%m-%d}: "
                f"{last_message} [{view.unread_count} unread]"
            )

        remaining = matching_service.remaining_swipes(profile_id)
        if remaining is not None:
            self.stdout.write(f"Swipes left today: {remaining}")

        self.stdout.write(self.style.SUCCESS('Done!'))
