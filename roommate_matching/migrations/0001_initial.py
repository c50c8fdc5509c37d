import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('profiles', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Preference',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('decision', models.CharField(choices=[('like', 'Like'), ('pass', 'Pass')], max_length=10)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('source', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='preferences_made', to='profiles.profile')),
                ('target', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='preferences_received', to='profiles.profile')),
            ],
            options={
                'db_table': 'roommate_matching_preference',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['target', 'source', 'decision'], name='pref_reverse_lookup_idx'),
                    models.Index(fields=['source', 'created_at'], name='pref_source_created_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('source', 'target'), name='unique_preference_per_pair'),
                    models.CheckConstraint(condition=models.Q(('source', models.F('target')), _negated=True), name='preference_not_self'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Match',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('profile_one', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='matches_as_one', to='profiles.profile')),
                ('profile_two', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='matches_as_two', to='profiles.profile')),
            ],
            options={
                'db_table': 'roommate_matching_match',
                'ordering': ['-created_at'],
                'verbose_name_plural': 'Matches',
                'indexes': [
                    models.Index(fields=['profile_two', 'created_at'], name='match_two_created_idx'),
                ],
                'constraints': [
                    models.UniqueConstraint(fields=('profile_one', 'profile_two'), name='unique_match_per_pair'),
                    models.CheckConstraint(condition=models.Q(('profile_one', models.F('profile_two')), _negated=True), name='match_not_self'),
                ],
            },
        ),
    ]
