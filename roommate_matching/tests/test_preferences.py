import threading

from django.test import SimpleTestCase

from roommate_matching.exceptions import (
    ConstraintViolation, DecisionLocked, InvalidArgument, PersistenceError
)
from roommate_matching.records import LIKE, PASS
from roommate_matching.services import MatchMaterializer, MutualMatchDetector, PreferenceStore
from roommate_matching.stores import InMemoryMatchStore


class StaleReadStore(InMemoryMatchStore):
    """Reports no existing row on the first lookup, as a concurrent writer would see it"""

    def __init__(self):
        super().__init__()
        self.preference_reads = 0
        self.match_reads = 0

    def get_preference(self, source_id, target_id):
        self.preference_reads += 1
        if self.preference_reads == 1:
            return None
        return super().get_preference(source_id, target_id)

    def get_match(self, profile_one_id, profile_two_id):
        self.match_reads += 1
        if self.match_reads == 1:
            return None
        return super().get_match(profile_one_id, profile_two_id)


class RejectingStore(InMemoryMatchStore):
    """Rejects every insert without leaving a row behind"""

    def insert_preference(self, source_id, target_id, decision, daily_limit=None, since=None):
        raise ConstraintViolation("rejected")

    def insert_match(self, profile_one_id, profile_two_id):
        raise ConstraintViolation("rejected")


class PreferenceStoreTests(SimpleTestCase):

    def setUp(self):
        self.store = InMemoryMatchStore()
        self.alice = self.store.add_profile(first_name='Alice')
        self.bob = self.store.add_profile(first_name='Bob')
        self.preferences = PreferenceStore(self.store, allow_override=True)

    def test_records_a_like(self):
        preference = self.preferences.record_preference(self.alice, self.bob, LIKE)

        self.assertEqual(preference.source_id, self.alice)
        self.assertEqual(preference.target_id, self.bob)
        self.assertTrue(preference.is_like)
        self.assertEqual(len(self.store.preferences), 1)

    def test_repeating_a_decision_changes_nothing(self):
        first = self.preferences.record_preference(self.alice, self.bob, LIKE)
        second = self.preferences.record_preference(self.alice, self.bob, LIKE)

        self.assertEqual(first, second)
        self.assertEqual(len(self.store.preferences), 1)

    def test_changed_decision_overwrites_and_keeps_created_at(self):
        first = self.preferences.record_preference(self.alice, self.bob, LIKE)
        second = self.preferences.record_preference(self.alice, self.bob, PASS)

        self.assertEqual(second.decision, PASS)
        self.assertEqual(second.id, first.id)
        self.assertEqual(second.created_at, first.created_at)
        self.assertGreaterEqual(second.updated_at, first.updated_at)
        self.assertEqual(self.store.get_preference(self.alice, self.bob).decision, PASS)

    def test_changed_decision_rejected_when_locked(self):
        locked = PreferenceStore(self.store, allow_override=False)
        locked.record_preference(self.alice, self.bob, PASS)

        with self.assertRaises(DecisionLocked):
            locked.record_preference(self.alice, self.bob, LIKE)
        self.assertEqual(self.store.get_preference(self.alice, self.bob).decision, PASS)

    def test_self_preference_is_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.preferences.record_preference(self.alice, self.alice, LIKE)
        self.assertEqual(self.store.preferences, {})

    def test_blank_ids_are_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.preferences.record_preference('', self.bob, LIKE)
        with self.assertRaises(InvalidArgument):
            self.preferences.record_preference(self.alice, None, LIKE)

    def test_unknown_decision_is_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.preferences.record_preference(self.alice, self.bob, 'superlike')

    def test_directions_are_independent(self):
        self.preferences.record_preference(self.alice, self.bob, LIKE)
        self.preferences.record_preference(self.bob, self.alice, PASS)

        self.assertEqual(self.store.get_preference(self.alice, self.bob).decision, LIKE)
        self.assertEqual(self.store.get_preference(self.bob, self.alice).decision, PASS)

    def test_concurrent_first_insert_reads_back_winner(self):
        store = StaleReadStore()
        store.insert_preference(self.alice, self.bob, LIKE)

        preference = PreferenceStore(store, allow_override=True).record_preference(self.alice, self.bob, LIKE)

        self.assertEqual(preference.decision, LIKE)
        self.assertEqual(len(store.preferences), 1)

    def test_rejected_insert_without_row_is_a_persistence_error(self):
        store = RejectingStore()
        store.add_profile(id=self.alice)
        store.add_profile(id=self.bob)

        with self.assertRaises(PersistenceError):
            PreferenceStore(store, allow_override=True).record_preference(self.alice, self.bob, LIKE)

    def test_rejected_insert_for_unknown_profile_is_invalid_argument(self):
        store = RejectingStore()
        store.add_profile(id=self.alice)

        with self.assertRaises(InvalidArgument) as ctx:
            PreferenceStore(store, allow_override=True).record_preference(self.alice, 'ghost', LIKE)

        self.assertIn('ghost', str(ctx.exception))
        self.assertNotIn(self.alice, str(ctx.exception))


class MutualMatchDetectorTests(SimpleTestCase):

    def setUp(self):
        self.store = InMemoryMatchStore()
        self.preferences = PreferenceStore(self.store, allow_override=True)
        self.detector = MutualMatchDetector(self.store)

    def test_one_sided_like_is_not_mutual(self):
        self.preferences.record_preference('alice', 'bob', LIKE)

        self.assertFalse(self.detector.check_mutual('alice', 'bob'))

    def test_reciprocated_like_is_mutual_both_ways(self):
        self.preferences.record_preference('alice', 'bob', LIKE)
        self.preferences.record_preference('bob', 'alice', LIKE)

        self.assertTrue(self.detector.check_mutual('alice', 'bob'))
        self.assertTrue(self.detector.check_mutual('bob', 'alice'))

    def test_pass_is_not_a_like(self):
        self.preferences.record_preference('alice', 'bob', LIKE)
        self.preferences.record_preference('bob', 'alice', PASS)

        self.assertFalse(self.detector.check_mutual('alice', 'bob'))

    def test_reverse_like_withdrawn(self):
        self.preferences.record_preference('alice', 'bob', LIKE)
        self.preferences.record_preference('bob', 'alice', LIKE)
        self.preferences.record_preference('bob', 'alice', PASS)

        self.assertFalse(self.detector.check_mutual('alice', 'bob'))


class MatchMaterializerTests(SimpleTestCase):

    def setUp(self):
        self.store = InMemoryMatchStore()
        self.materializer = MatchMaterializer(self.store)

    def test_creates_match_in_canonical_order(self):
        match, created = self.materializer.ensure_match('bob', 'alice')

        self.assertTrue(created)
        self.assertEqual((match.profile_one_id, match.profile_two_id), ('alice', 'bob'))
        self.assertLessEqual(match.created_at, match.updated_at)

    def test_second_call_returns_existing_match(self):
        first, _ = self.materializer.ensure_match('alice', 'bob')
        second, created = self.materializer.ensure_match('bob', 'alice')

        self.assertFalse(created)
        self.assertEqual(first.id, second.id)
        self.assertEqual(len(self.store.matches), 1)

    def test_self_match_is_rejected(self):
        with self.assertRaises(InvalidArgument):
            self.materializer.ensure_match('alice', 'alice')

    def test_store_rejects_a_reversed_duplicate(self):
        self.store.insert_match('alice', 'bob')

        with self.assertRaises(ConstraintViolation):
            self.store.insert_match('bob', 'alice')
        self.assertEqual(list(self.store.matches), [('alice', 'bob')])
        self.assertIsNotNone(self.store.get_match('bob', 'alice'))

    def test_rejected_match_for_unknown_profile_is_invalid_argument(self):
        store = RejectingStore()
        store.add_profile(id='alice')

        with self.assertRaises(InvalidArgument):
            MatchMaterializer(store).ensure_match('alice', 'ghost')

    def test_rejected_match_between_known_profiles_is_a_persistence_error(self):
        store = RejectingStore()
        store.add_profile(id='alice')
        store.add_profile(id='bob')

        with self.assertRaises(PersistenceError):
            MatchMaterializer(store).ensure_match('alice', 'bob')

    def test_lost_race_returns_winner(self):
        store = StaleReadStore()
        winner = store.insert_match('alice', 'bob')

        with self.assertLogs('roommate_matching.services', level='WARNING'):
            match, created = MatchMaterializer(store).ensure_match('alice', 'bob')

        self.assertFalse(created)
        self.assertEqual(match.id, winner.id)
        self.assertEqual(len(store.matches), 1)

    def test_concurrent_callers_share_one_match(self):
        barrier = threading.Barrier(2, timeout=5)

        class RacingStore(InMemoryMatchStore):
            stale_reads = 2

            def get_match(self, profile_one_id, profile_two_id):
                with self._lock:
                    stale = self.stale_reads > 0
                    if stale:
                        self.stale_reads -= 1
                result = super().get_match(profile_one_id, profile_two_id)
                if stale:
                    # Both callers look before either inserts
                    barrier.wait()
                return result

        store = RacingStore()
        materializer = MatchMaterializer(store)
        results = []

        def swipe(a, b):
            results.append(materializer.ensure_match(a, b))

        threads = [
            threading.Thread(target=swipe, args=('alice', 'bob')),
            threading.Thread(target=swipe, args=('bob', 'alice')),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(results), 2)
        self.assertEqual(len(store.matches), 1)
        self.assertEqual(results[0][0].id, results[1][0].id)
        self.assertEqual(sorted(created for _, created in results), [False, True])
