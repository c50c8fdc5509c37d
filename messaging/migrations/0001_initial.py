import django.db.models.deletion
import django.utils.timezone
import uuid
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('profiles', '0001_initial'),
        ('roommate_matching', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Message',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('content', models.TextField()),
                ('is_read', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('match', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='messages', to='roommate_matching.match')),
                ('sender', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_messages', to='profiles.profile')),
            ],
            options={
                'db_table': 'messaging_message',
                'ordering': ['created_at'],
                'indexes': [
                    models.Index(fields=['match', 'created_at'], name='message_match_created_idx'),
                    models.Index(fields=['match', 'is_read'], name='message_match_read_idx'),
                ],
            },
        ),
    ]
