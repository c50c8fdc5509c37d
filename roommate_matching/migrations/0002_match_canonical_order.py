from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('roommate_matching', '0001_initial'),
    ]

    operations = [
        migrations.RemoveConstraint(
            model_name='match',
            name='match_not_self',
        ),
        migrations.AddConstraint(
            model_name='match',
            constraint=models.CheckConstraint(
                condition=models.Q(('profile_one__lt', models.F('profile_two'))),
                name='match_canonical_order'
            ),
        ),
    ]
