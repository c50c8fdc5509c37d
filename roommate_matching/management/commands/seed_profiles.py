from django.core.management.base import BaseCommand
from profiles.models import Profile
import random


class Command(BaseCommand):
    help = 'Create sample profiles for development'

    def add_arguments(self, parser):
        parser.add_argument(
            '--count',
            type=int,
            default=5,
            help='Number of profiles to create (default: 5)',
        )
        parser.add_argument(
            '--seed',
            type=int,
            help='Random seed for reproducible sample data',
        )

    def handle(self, *args, **options):
        count = options['count']
        rng = random.Random(options['seed'])

        sample_data = {
            'first_names': ['Lucia', 'Manuel', 'Carmen', 'Javier', 'Elena', 'Pablo', 'Marta', 'Diego'],
            'occupations': ['Student', 'Software Developer', 'Nurse', 'Designer', 'Teacher'],
            'zones': ['Triana', 'Nervion', 'Macarena', 'Los Remedios', 'Alameda'],
            'interests': ['Reading', 'Cooking', 'Hiking', 'Music', 'Photography', 'Yoga', 'Gaming', 'Travel'],
            'cleanliness': ['very tidy', 'tidy', 'relaxed'],
            'noise': ['quiet', 'moderate', 'lively'],
            'schedule': ['early bird', 'regular', 'night owl'],
            'guests': ['rarely', 'sometimes', 'often'],
            'smoking': ['no', 'outside only', 'yes'],
            'bios': [
                "Student looking for a calm flat close to campus.",
                "Working professional, tidy and easy-going. I like cooking for flatmates.",
                "Have a spare room and looking for someone respectful to share it with.",
                "Love music and weekend hikes, looking for flatmates with similar plans.",
            ]
        }

        created = []

        for i in range(count):
            first_name = rng.choice(sample_data['first_names'])
            last_name = f'Demo{i + 1}'

            if Profile.objects.filter(first_name=first_name, last_name=last_name).exists():
                self.stdout.write(
                    self.style.WARNING(f'Profile {first_name} {last_name} already exists, skipping')
                )
                continue

            profile = Profile.objects.create(
                first_name=first_name,
                last_name=last_name,
                age=rng.randint(18, 35),
                occupation=rng.choice(sample_data['occupations']),
                bio=rng.choice(sample_data['bios']),
                interests=rng.sample(sample_data['interests'], rng.randint(2, 5)),
                lifestyle={
                    key: rng.choice(sample_data[key])
                    for key in ('cleanliness', 'noise', 'schedule', 'guests', 'smoking')
                },
                has_apartment=rng.random() < 0.3,
                city='Sevilla',
                zone=rng.choice(sample_data['zones']),
            )

            created.append(profile)
            self.stdout.write(
                self.style.SUCCESS(f'Created profile: {profile.display_name} ({profile.id})')
            )

        if created:
            self.stdout.write(
                self.style.SUCCESS(f'\nSuccessfully created {len(created)} profiles')
            )
        else:
            self.stdout.write(
                self.style.WARNING('No new profiles were created')
            )
