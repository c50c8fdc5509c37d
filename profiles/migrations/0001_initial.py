import django.core.validators
import django.db.models.deletion
import django.utils.timezone
import profiles.models
import uuid
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Profile',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('first_name', models.CharField(max_length=50)),
                ('last_name', models.CharField(blank=True, max_length=50)),
                ('age', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(18), django.core.validators.MaxValueValidator(99)])),
                ('occupation', models.CharField(blank=True, max_length=100)),
                ('bio', models.TextField(blank=True, help_text='Tell others about yourself', max_length=1000)),
                ('interests', models.JSONField(blank=True, default=list, help_text='List of interests/hobbies')),
                ('lifestyle', models.JSONField(blank=True, default=profiles.models.default_lifestyle)),
                ('has_apartment', models.BooleanField(default=False)),
                ('city', models.CharField(blank=True, max_length=100)),
                ('zone', models.CharField(blank=True, max_length=100)),
                ('profile_image', models.URLField(blank=True)),
                ('is_active', models.BooleanField(default=True, help_text='Inactive profiles are hidden from feeds')),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='profile', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'profiles_profile',
                'ordering': ['created_at'],
                'indexes': [models.Index(fields=['is_active', 'created_at'], name='profiles_active_created_idx')],
            },
        ),
    ]
