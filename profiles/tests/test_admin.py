from unittest import mock

from django.contrib.admin.sites import AdminSite
from django.test import RequestFactory, TestCase

from messaging.models import Message
from profiles.admin import ProfileAdmin
from profiles.models import Profile
from roommate_matching.admin import MatchAdmin
from roommate_matching.models import Match
from roommate_matching.tests.utils import create_match


class AdminTests(TestCase):

    def setUp(self):
        self.site = AdminSite()
        self.request = RequestFactory().get('/admin/')
        self.alice = Profile.objects.create(first_name='Alice', interests=['music', 'yoga'])
        self.bob = Profile.objects.create(first_name='Bob')

    def test_deactivate_profiles_action(self):
        profile_admin = ProfileAdmin(Profile, self.site)

        with mock.patch.object(profile_admin, 'message_user') as message_user:
            profile_admin.deactivate_profiles(self.request, Profile.objects.all())

        self.assertFalse(Profile.objects.filter(is_active=True).exists())
        message_user.assert_called_once_with(self.request, '2 profiles deactivated.')
        self.assertEqual(profile_admin.interest_count(self.alice), 2)

    def test_matches_cannot_be_added_by_hand(self):
        match_admin = MatchAdmin(Match, self.site)
        match = create_match(self.alice, self.bob)
        Message.objects.create(match=match, sender=self.alice, content='Hola')

        self.assertFalse(match_admin.has_add_permission(self.request))
        self.assertEqual(match_admin.message_count(match), 1)
        self.assertIn('Alice', match_admin.profile_pair(match))
