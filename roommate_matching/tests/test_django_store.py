from datetime import timedelta
from unittest import mock
import itertools
import uuid

from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.test import TestCase, TransactionTestCase
from django.utils import timezone

from messaging.models import Message
from profiles.models import Profile
from roommate_matching.exceptions import (
    ConstraintViolation, InvalidArgument, PersistenceError, SwipeLimitReached, Timeout
)
from roommate_matching.models import Match, Preference
from roommate_matching.records import LIKE, PASS, canonical_pair
from roommate_matching.services import MatchMaterializer, MatchingService, PreferenceStore, start_of_day
from roommate_matching.stores import DjangoMatchStore

from .utils import RecordingNotifier, create_match


class DjangoStoreTestCase(TestCase):

    def setUp(self):
        self.store = DjangoMatchStore()
        self.alice = Profile.objects.create(first_name='Alice', interests=['music'], zone='Triana')
        self.bob = Profile.objects.create(first_name='Bob', interests=['music'], has_apartment=True)
        self.carol = Profile.objects.create(first_name='Carol')
        self.a, self.b, self.c = str(self.alice.id), str(self.bob.id), str(self.carol.id)


class DjangoMatchStoreTests(DjangoStoreTestCase):

    def test_preference_round_trip(self):
        inserted = self.store.insert_preference(self.a, self.b, LIKE)
        fetched = self.store.get_preference(self.a, self.b)

        self.assertEqual(inserted, fetched)
        self.assertEqual(fetched.source_id, self.a)
        self.assertIsNone(self.store.get_preference(self.b, self.a))

    def test_duplicate_preference_is_a_constraint_violation(self):
        self.store.insert_preference(self.a, self.b, LIKE)

        with self.assertRaises(ConstraintViolation):
            self.store.insert_preference(self.a, self.b, PASS)
        self.assertEqual(Preference.objects.count(), 1)

    def test_self_preference_is_a_constraint_violation(self):
        with self.assertRaises(ConstraintViolation):
            self.store.insert_preference(self.a, self.a, LIKE)

    def test_update_preference(self):
        original = self.store.insert_preference(self.a, self.b, LIKE)

        updated = self.store.update_preference(self.a, self.b, PASS)

        self.assertEqual(updated.decision, PASS)
        self.assertEqual(updated.created_at, original.created_at)
        self.assertGreaterEqual(updated.updated_at, original.updated_at)
        self.assertIsNone(self.store.update_preference(self.b, self.a, PASS))

    def test_preference_queries(self):
        self.store.insert_preference(self.a, self.b, LIKE)
        self.store.insert_preference(self.a, self.c, PASS)

        self.assertTrue(self.store.preference_exists(self.a, self.b, LIKE))
        self.assertFalse(self.store.preference_exists(self.a, self.c, LIKE))
        self.assertEqual(self.store.preference_targets(self.a), {self.b, self.c})
        self.assertEqual(self.store.count_preferences_since(self.a, timezone.now() - timedelta(hours=1)), 2)
        self.assertEqual(self.store.count_preferences_since(self.a, timezone.now() + timedelta(hours=1)), 0)

    def test_duplicate_match_is_a_constraint_violation(self):
        one, two = canonical_pair(self.a, self.b)
        self.store.insert_match(one, two)

        with self.assertRaises(ConstraintViolation):
            self.store.insert_match(one, two)
        self.assertEqual(Match.objects.count(), 1)

    def test_reversed_match_is_a_constraint_violation(self):
        one, two = canonical_pair(self.a, self.b)
        inserted = self.store.insert_match(one, two)

        with self.assertRaises(ConstraintViolation):
            self.store.insert_match(two, one)

        self.assertEqual(Match.objects.count(), 1)
        self.assertEqual(self.store.get_match(two, one).id, inserted.id)

    def test_match_is_stored_in_canonical_order_whatever_the_argument_order(self):
        one, two = canonical_pair(self.a, self.c)

        match = self.store.insert_match(two, one)

        self.assertEqual((match.profile_one_id, match.profile_two_id), (one, two))

    def test_database_rejects_a_reversed_row(self):
        first, second = sorted((self.alice, self.bob), key=lambda profile: str(profile.id))

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Match.objects.create(profile_one=second, profile_two=first)
        self.assertFalse(Match.objects.exists())

    def test_daily_limit_is_checked_with_the_insert(self):
        self.store.insert_preference(self.a, self.b, LIKE, daily_limit=1, since=start_of_day())

        with self.assertRaises(SwipeLimitReached) as ctx:
            self.store.insert_preference(self.a, self.c, PASS, daily_limit=1, since=start_of_day())

        self.assertEqual(ctx.exception.limit, 1)
        self.assertEqual(Preference.objects.filter(source=self.alice).count(), 1)
        # Yesterday's swipes do not count
        Preference.objects.update(created_at=start_of_day() - timedelta(hours=1))
        self.store.insert_preference(self.a, self.c, PASS, daily_limit=1, since=start_of_day())

    def test_matches_for_newest_first(self):
        older = self.store.insert_match(*canonical_pair(self.a, self.b))
        newer = self.store.insert_match(*canonical_pair(self.a, self.c))
        Match.objects.filter(id=older.id).update(created_at=timezone.now() - timedelta(days=1))

        self.assertEqual([m.id for m in self.store.matches_for(self.a)], [newer.id, older.id])
        self.assertEqual([m.id for m in self.store.matches_for(self.b)], [older.id])

    def test_profile_rows(self):
        self.carol.deactivate()

        active_ids = [row['id'] for row in self.store.active_profile_rows(exclude_id=self.a)]
        self.assertEqual(active_ids, [self.bob.id])

        rows = self.store.profile_rows([self.a, self.c])
        self.assertEqual({str(row['id']) for row in rows}, {self.a, self.c})

    def test_message_metadata(self):
        match = create_match(self.alice, self.bob)
        now = timezone.now()
        Message.objects.create(match=match, sender=self.bob, content='Hola', created_at=now - timedelta(minutes=2))
        Message.objects.create(match=match, sender=self.alice, content='Hey!', created_at=now - timedelta(minutes=1))

        latest = self.store.latest_message(match.id)
        self.assertEqual(latest.content, 'Hey!')
        self.assertEqual(latest.sender_id, self.a)
        self.assertEqual(self.store.unread_count(match.id, self.a), 1)
        self.assertEqual(self.store.unread_count(match.id, self.b), 1)

    def test_malformed_id_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.store.get_preference('not-a-uuid', self.b)


class StoreErrorMappingTests(DjangoStoreTestCase):

    def test_slow_call_times_out_and_rolls_back(self):
        with mock.patch('roommate_matching.stores.time.monotonic', side_effect=itertools.count(0, 60)):
            with self.assertRaises(Timeout):
                self.store.insert_preference(self.a, self.b, LIKE)

        self.assertFalse(Preference.objects.exists())

    def test_locked_database_is_a_timeout(self):
        with mock.patch.object(Preference.objects, 'filter', side_effect=OperationalError('database is locked')):
            with self.assertRaises(Timeout):
                self.store.get_preference(self.a, self.b)

    def test_other_database_errors_are_persistence_errors(self):
        with mock.patch.object(Preference.objects, 'filter', side_effect=DatabaseError('disk I/O error')):
            with self.assertRaises(PersistenceError) as ctx:
                self.store.preference_targets(self.a)

        self.assertNotIsInstance(ctx.exception, Timeout)
        self.assertNotIsInstance(ctx.exception, ConstraintViolation)

    def test_foreign_key_failure_is_invalid_argument(self):
        with mock.patch.object(
            Preference.objects, 'create', side_effect=IntegrityError('FOREIGN KEY constraint failed')
        ):
            with self.assertRaises(InvalidArgument):
                self.store.insert_preference(self.a, self.b, LIKE)

    def test_unknown_profile_is_invalid_argument(self):
        with self.assertRaises(InvalidArgument):
            self.store.insert_preference(self.a, str(uuid.uuid4()), LIKE)
        with self.assertRaises(InvalidArgument):
            self.store.insert_match(self.a, str(uuid.uuid4()))

    def test_statement_timeout_is_restored_after_the_call(self):
        store = DjangoMatchStore(timeout=10.0)
        connection = mock.MagicMock(vendor='postgresql')
        cursor = connection.cursor.return_value.__enter__.return_value
        cursor.fetchone.return_value = ('30s',)

        with mock.patch.object(store, '_connection', return_value=connection):
            store.get_preference(self.a, self.b)

        self.assertEqual(cursor.execute.call_args_list, [
            mock.call("SHOW statement_timeout"),
            mock.call("SELECT set_config('statement_timeout', %s, true)", ['10000']),
            mock.call("SELECT set_config('statement_timeout', %s, true)", ['30s']),
        ])

    def test_statement_timeout_is_left_alone_off_postgres(self):
        connection = mock.MagicMock(vendor='sqlite')

        with mock.patch.object(self.store, '_connection', return_value=connection):
            self.store.get_preference(self.a, self.b)

        connection.cursor.assert_not_called()

    def test_store_stays_usable_after_a_failure(self):
        self.store.insert_preference(self.a, self.b, LIKE)
        with self.assertRaises(ConstraintViolation):
            self.store.insert_preference(self.a, self.b, LIKE)

        self.store.insert_preference(self.a, self.c, PASS)
        self.assertEqual(Preference.objects.count(), 2)


class DjangoMatchingFlowTests(DjangoStoreTestCase):

    def setUp(self):
        super().setUp()
        self.notifier = RecordingNotifier()
        self.service = MatchingService(self.store, notifier=self.notifier)

    def test_mutual_like_end_to_end(self):
        self.assertFalse(self.service.like(self.a, self.b).is_match)
        result = self.service.like(self.b, self.a)

        self.assertTrue(result.created)
        match = Match.objects.get()
        one, two = canonical_pair(self.a, self.b)
        self.assertEqual((str(match.profile_one_id), str(match.profile_two_id)), (one, two))

        views = self.service.list_matches(self.a)
        self.assertEqual(len(views), 1)
        self.assertEqual(views[0].counterpart.display_name, 'Bob')
        self.assertEqual(views[0].match_id, str(match.id))
        self.assertNotIn(self.b, [p.id for p in self.service.get_candidates(self.a)])
        self.assertEqual([p.id for p in self.service.get_candidates(self.a)], [self.c])

    def test_pass_never_matches(self):
        self.service.pass_profile(self.a, self.b)
        result = self.service.like(self.b, self.a)

        self.assertFalse(result.is_match)
        self.assertFalse(Match.objects.exists())

    def test_lost_match_race_reads_back_existing_row(self):
        materializer = MatchMaterializer(self.store)
        existing, _ = materializer.ensure_match(self.a, self.b)
        real_get_match = self.store.get_match
        reads = []

        def stale_then_real(one, two):
            reads.append((one, two))
            return None if len(reads) == 1 else real_get_match(one, two)

        with mock.patch.object(self.store, 'get_match', side_effect=stale_then_real):
            match, created = materializer.ensure_match(self.b, self.a)

        self.assertFalse(created)
        self.assertEqual(match.id, existing.id)
        self.assertEqual(len(reads), 2)
        self.assertEqual(Match.objects.count(), 1)

    def test_deactivated_counterpart_keeps_match_history(self):
        self.service.like(self.a, self.b)
        self.service.like(self.b, self.a)
        self.bob.deactivate()

        views = self.service.list_matches(self.a)

        self.assertEqual(len(views), 1)
        self.assertTrue(views[0].counterpart.is_placeholder)

    def test_daily_limit_counts_todays_swipes(self):
        self.assertEqual(self.service.remaining_swipes(self.a), 20)
        self.service.like(self.a, self.b)

        self.assertEqual(self.service.remaining_swipes(self.a), 19)


class UnknownProfileTests(TransactionTestCase):
    """Runs in autocommit so foreign keys are enforced as each call commits"""

    def setUp(self):
        self.store = DjangoMatchStore()
        self.alice = Profile.objects.create(first_name='Alice')
        self.a = str(self.alice.id)
        self.ghost = str(uuid.uuid4())

    def test_swipe_on_unknown_profile_is_invalid_argument(self):
        with self.assertNoLogs('roommate_matching.services', level='WARNING'):
            with self.assertRaises(InvalidArgument) as ctx:
                PreferenceStore(self.store).record_preference(self.a, self.ghost, LIKE)

        self.assertIn(self.ghost, str(ctx.exception))
        self.assertFalse(Preference.objects.exists())

    def test_match_with_unknown_profile_is_invalid_argument(self):
        with self.assertNoLogs('roommate_matching.services', level='WARNING'):
            with self.assertRaises(InvalidArgument):
                MatchMaterializer(self.store).ensure_match(self.ghost, self.a)

        self.assertFalse(Match.objects.exists())

    def test_service_swipe_on_unknown_profile_is_invalid_argument(self):
        service = MatchingService(self.store, notifier=RecordingNotifier())

        with self.assertRaises(InvalidArgument):
            service.like(self.a, self.ghost)
        self.assertEqual(service.get_seen_profiles(self.a), [])
