from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Tuple
import itertools
import logging

from asgiref.sync import sync_to_async
from django.core.exceptions import ImproperlyConfigured
from django.utils import timezone

from .conf import matching_setting
from .exceptions import (
    ConstraintViolation, DecisionLocked, InvalidArgument, PersistenceError,
    SwipeLimitReached, Timeout
)
from .notifications import MatchNotifier
from .records import (
    DECISIONS, LIFESTYLE_FIELDS, LIKE, PASS, CandidateFilters, MatchRecord, MatchView,
    PreferenceRecord, ProfileRecord, canonical_pair
)
from .stores import MatchStore, get_default_store

logger = logging.getLogger(__name__)

FEED_ORDERINGS = ('compatibility', 'created')


def validate_pair(source_id, target_id) -> Tuple[str, str]:
    """Normalise two profile ids to strings, rejecting blanks and self-pairs"""
    source = '' if source_id is None else str(source_id).strip()
    target = '' if target_id is None else str(target_id).strip()
    if not source or not target:
        raise InvalidArgument("Both profile ids are required")
    if source == target:
        raise InvalidArgument(f"Profile {source} cannot swipe on itself")
    return source, target


def _validate_profile_id(profile_id) -> str:
    value = '' if profile_id is None else str(profile_id).strip()
    if not value:
        raise InvalidArgument("A profile id is required")
    return value


def start_of_day():
    """Midnight UTC of the current day"""
    return timezone.now().replace(hour=0, minute=0, second=0, microsecond=0)


def require_known_profiles(store: MatchStore, *profile_ids):
    """Raise InvalidArgument naming any id the store has no profile row for"""
    wanted = {str(profile_id) for profile_id in profile_ids}
    found = {str(row.get('id')) for row in store.profile_rows(wanted)}
    missing = wanted - found
    if missing:
        raise InvalidArgument(f"Unknown profile id(s): {', '.join(sorted(missing))}")


def compatibility_level(score: float) -> str:
    """Return compatibility level as string"""
    if score >= 90:
        return 'Excellent'
    elif score >= 80:
        return 'Very Good'
    elif score >= 70:
        return 'Good'
    elif score >= 60:
        return 'Fair'
    elif score >= 50:
        return 'Moderate'
    else:
        return 'Low'


class CompatibilityCalculator:
    """Deterministic roommate compatibility scoring used to rank feeds"""

    def __init__(self):
        self.weights = {
            'interests': 0.40,
            'lifestyle': 0.45,
            'housing': 0.15,
        }

    def calculate_compatibility(self, profile1: ProfileRecord, profile2: ProfileRecord) -> Dict:
        """Calculate overall compatibility score between two profiles"""
        interests_score, shared_interests = self._calculate_interests_compatibility(profile1, profile2)
        lifestyle_score = self._calculate_lifestyle_compatibility(profile1, profile2)
        housing_score = self._calculate_housing_compatibility(profile1, profile2)

        overall_score = (
            interests_score * self.weights['interests'] +
            lifestyle_score * self.weights['lifestyle'] +
            housing_score * self.weights['housing']
        )
        overall_score = round(min(100, max(0, overall_score)), 1)

        return {
            'overall_score': overall_score,
            'compatibility_level': compatibility_level(overall_score),
            'interests_score': interests_score,
            'lifestyle_score': lifestyle_score,
            'housing_score': housing_score,
            'shared_interests': shared_interests,
        }

    def score(self, profile1: ProfileRecord, profile2: ProfileRecord) -> float:
        return self.calculate_compatibility(profile1, profile2)['overall_score']

    def _calculate_interests_compatibility(self, profile1: ProfileRecord,
                                           profile2: ProfileRecord) -> Tuple[float, List[str]]:
        """Shared-interest overlap"""
        interests1 = {interest.lower() for interest in profile1.interests}
        interests2 = {interest.lower() for interest in profile2.interests}

        if not interests1 or not interests2:
            return 50.0, []  # Neutral score for missing data

        shared = sorted(interests1 & interests2)
        if shared:
            overlap_ratio = len(shared) / max(len(interests1), len(interests2))
            return min(100.0, overlap_ratio * 100 + 50), shared  # Bonus for any overlap

        return 30.0, []

    def _calculate_lifestyle_compatibility(self, profile1: ProfileRecord, profile2: ProfileRecord) -> float:
        """Agreement across the lifestyle descriptors both profiles filled in"""
        scores = []

        for name in LIFESTYLE_FIELDS:
            value1 = getattr(profile1.lifestyle, name).lower()
            value2 = getattr(profile2.lifestyle, name).lower()
            if value1 and value2:
                scores.append(100.0 if value1 == value2 else 40.0)

        return sum(scores) / len(scores) if scores else 50.0

    def _calculate_housing_compatibility(self, profile1: ProfileRecord, profile2: ProfileRecord) -> float:
        """One side offering a flat and the other looking is the best fit"""
        if profile1.has_apartment != profile2.has_apartment:
            return 100.0
        if not profile1.has_apartment:
            return 70.0
        return 40.0


class PreferenceStore:
    """Durable record of every like/pass a profile has issued"""

    def __init__(self, store: Optional[MatchStore] = None, allow_override: Optional[bool] = None):
        self.store = store or get_default_store()
        if allow_override is None:
            allow_override = matching_setting('ALLOW_DECISION_OVERRIDE')
        self.allow_override = allow_override

    def record_preference(self, source_id, target_id, decision: str,
                          daily_limit: Optional[int] = None) -> PreferenceRecord:
        """
        Upsert the decision for the ordered pair and return the current row.

        Repeating the same decision is a no-op; a different decision
        overwrites the previous one (last write wins) unless overrides are
        disabled. A daily_limit caps the new rows the source may create per
        UTC day; changing an existing decision never counts against it.
        Match detection is left to the caller.
        """
        source_id, target_id = validate_pair(source_id, target_id)
        if decision not in DECISIONS:
            raise InvalidArgument(f"Decision must be one of {', '.join(DECISIONS)}, got {decision!r}")

        existing = self.store.get_preference(source_id, target_id)
        if existing is None:
            try:
                return self.store.insert_preference(
                    source_id, target_id, decision, daily_limit=daily_limit, since=start_of_day()
                )
            except SwipeLimitReached:
                logger.info(f"Profile {source_id} hit the daily swipe limit ({daily_limit})")
                raise
            except ConstraintViolation:
                logger.warning(f"Concurrent first swipe {source_id} -> {target_id}, re-reading preference")
                existing = self.store.get_preference(source_id, target_id)
                if existing is None:
                    require_known_profiles(self.store, source_id, target_id)
                    raise PersistenceError(
                        f"Preference {source_id} -> {target_id} was rejected but cannot be read back"
                    )

        return self._apply_decision(existing, decision)

    def _apply_decision(self, existing: PreferenceRecord, decision: str) -> PreferenceRecord:
        if existing.decision == decision:
            return existing

        if not self.allow_override:
            raise DecisionLocked(
                f"Profile {existing.source_id} already chose {existing.decision!r} for {existing.target_id}"
            )

        updated = self.store.update_preference(existing.source_id, existing.target_id, decision)
        if updated is None:
            raise PersistenceError(
                f"Preference {existing.source_id} -> {existing.target_id} disappeared during update"
            )

        logger.info(
            f"Profile {existing.source_id} changed decision on {existing.target_id}: "
            f"{existing.decision} -> {decision}"
        )
        return updated


class MutualMatchDetector:
    """Checks whether a like is reciprocated"""

    def __init__(self, store: Optional[MatchStore] = None):
        self.store = store or get_default_store()

    def check_mutual(self, source_id, target_id) -> bool:
        source_id, target_id = validate_pair(source_id, target_id)
        return self.store.preference_exists(target_id, source_id, LIKE)


class MatchMaterializer:
    """Creates the single match row for a mutually liked pair"""

    def __init__(self, store: Optional[MatchStore] = None):
        self.store = store or get_default_store()

    def ensure_match(self, profile_a, profile_b) -> Tuple[MatchRecord, bool]:
        """
        Get or create the match for the unordered pair.

        Returns (match, created). Losing a concurrent insert is not an error:
        the winner's row is read back and returned with created=False.
        """
        profile_one, profile_two = canonical_pair(*validate_pair(profile_a, profile_b))

        existing = self.store.get_match(profile_one, profile_two)
        if existing is not None:
            return existing, False

        try:
            match = self.store.insert_match(profile_one, profile_two)
        except ConstraintViolation:
            logger.warning(f"Lost match creation race for {profile_one} & {profile_two}, reading existing match")
            match = self.store.get_match(profile_one, profile_two)
            if match is None:
                require_known_profiles(self.store, profile_one, profile_two)
                raise PersistenceError(
                    f"Match for {profile_one} & {profile_two} was rejected but cannot be read back"
                )
            return match, False

        logger.info(f"Created match {match.id} between {profile_one} and {profile_two}")
        return match, True


class CandidateFeed:
    """
    Lazy, finite, restartable sequence of candidate profiles.

    Nothing is read until iteration starts, and every iteration queries the
    store again.
    """

    def __init__(self, feed_filter: 'CandidateFeedFilter', user_id: str, limit: Optional[int] = None,
                 filters: Optional[CandidateFilters] = None):
        self.feed_filter = feed_filter
        self.user_id = user_id
        self.limit = limit
        self.filters = filters

    def __iter__(self) -> Iterator[ProfileRecord]:
        return self.feed_filter.iter_candidates(self.user_id, self.limit, self.filters)

    def __repr__(self):
        return f"<CandidateFeed user={self.user_id} limit={self.limit}>"


class CandidateFeedFilter:
    """Produces the profiles a user has not swiped on or matched with yet"""

    def __init__(self, store: Optional[MatchStore] = None, ordering: Optional[str] = None,
                 calculator: Optional[CompatibilityCalculator] = None):
        self.store = store or get_default_store()
        self.ordering = ordering or matching_setting('FEED_ORDERING')
        if self.ordering not in FEED_ORDERINGS:
            raise ImproperlyConfigured(
                f"MATCHING['FEED_ORDERING'] must be one of {FEED_ORDERINGS}, got {self.ordering!r}"
            )
        self.calculator = calculator or CompatibilityCalculator()
        self.default_zone = matching_setting('DEFAULT_ZONE')

    def get_candidates(self, user_id, limit: Optional[int] = None,
                       filters: Optional[CandidateFilters] = None) -> CandidateFeed:
        user_id = _validate_profile_id(user_id)
        if limit is not None and limit < 0:
            raise InvalidArgument("limit must not be negative")
        if filters is not None and not isinstance(filters, CandidateFilters):
            raise InvalidArgument(f"filters must be CandidateFilters, got {type(filters).__name__}")
        return CandidateFeed(self, user_id, limit, filters)

    def iter_candidates(self, user_id: str, limit: Optional[int] = None,
                        filters: Optional[CandidateFilters] = None) -> Iterator[ProfileRecord]:
        excluded = set(self.store.preference_targets(user_id))
        excluded.update(match.counterpart_of(user_id) for match in self.store.matches_for(user_id))

        candidates = (
            profile for profile in self.parse_rows(self.store.active_profile_rows(exclude_id=user_id))
            if profile.is_active and profile.id != user_id and profile.id not in excluded
        )
        if filters is not None and not filters.is_empty:
            candidates = (profile for profile in candidates if filters.matches(profile))

        if self.ordering == 'compatibility':
            candidates = self._rank(user_id, candidates)

        return itertools.islice(candidates, limit)

    def parse_rows(self, rows) -> Iterator[ProfileRecord]:
        for row in rows:
            try:
                yield ProfileRecord.from_row(row, default_zone=self.default_zone)
            except InvalidArgument as e:
                logger.warning(f"Skipping malformed profile row: {str(e)}")

    def _rank(self, user_id: str, candidates) -> List[ProfileRecord]:
        viewer = next(self.parse_rows(self.store.profile_rows([user_id])), None)
        if viewer is None:
            logger.debug(f"No profile for {user_id}, returning candidates in store order")
            return list(candidates)

        scored = [(self.calculator.score(viewer, profile), profile) for profile in candidates]
        # Highest score first; id breaks ties so repeated calls agree
        scored.sort(key=lambda item: (-item[0], item[1].id))
        return [profile for _, profile in scored]


class MatchViewBuilder:
    """Joins matches with the counterpart profile and the latest message"""

    def __init__(self, store: Optional[MatchStore] = None,
                 calculator: Optional[CompatibilityCalculator] = None):
        self.store = store or get_default_store()
        self.calculator = calculator or CompatibilityCalculator()
        self.default_zone = matching_setting('DEFAULT_ZONE')

    def list_matches(self, user_id) -> List[MatchView]:
        user_id = _validate_profile_id(user_id)

        matches = self.store.matches_for(user_id)
        counterpart_ids = [match.counterpart_of(user_id) for match in matches]
        profiles = self._resolve_profiles(counterpart_ids + [user_id])
        viewer = profiles.get(user_id)

        views = []
        for match, counterpart_id in zip(matches, counterpart_ids):
            counterpart = profiles.get(counterpart_id)
            if counterpart is None or not counterpart.is_active:
                # Keep the match in the history even when the profile is gone
                logger.debug(f"Counterpart {counterpart_id} of match {match.id} unavailable")
                counterpart = ProfileRecord.placeholder(counterpart_id)

            compatibility = None
            if viewer is not None and not counterpart.is_placeholder:
                compatibility = self.calculator.score(viewer, counterpart)

            latest = self.store.latest_message(match.id)
            views.append(MatchView(
                match_id=match.id,
                counterpart=counterpart,
                created_at=match.created_at,
                last_message=latest.content if latest else None,
                last_message_time=latest.created_at if latest else None,
                unread_count=self.store.unread_count(match.id, user_id),
                compatibility=compatibility,
            ))

        return sorted(views, key=lambda view: view.created_at, reverse=True)

    def _resolve_profiles(self, profile_ids) -> Dict[str, ProfileRecord]:
        profiles = {}
        for row in self.store.profile_rows(profile_ids):
            try:
                profile = ProfileRecord.from_row(row, default_zone=self.default_zone)
            except InvalidArgument as e:
                logger.warning(f"Skipping malformed profile row: {str(e)}")
                continue
            profiles[profile.id] = profile
        return profiles


@dataclass(frozen=True)
class SwipeResult:
    preference: PreferenceRecord
    is_match: bool = False
    match: Optional[MatchRecord] = None
    created: bool = False


class MatchingService:
    """Service for managing the swipe-to-match flow"""

    def __init__(self, store: Optional[MatchStore] = None, notifier: Optional[MatchNotifier] = None):
        self.store = store or get_default_store()
        self.notifier = notifier or MatchNotifier()
        self.preferences = PreferenceStore(self.store)
        self.detector = MutualMatchDetector(self.store)
        self.materializer = MatchMaterializer(self.store)
        self.feed = CandidateFeedFilter(self.store)
        self.views = MatchViewBuilder(self.store)
        self.daily_swipe_limit = matching_setting('DAILY_SWIPE_LIMIT')

    def swipe(self, source_id, target_id, decision: str) -> SwipeResult:
        """
        Record a like/pass and materialise the match if the like is mutual.

        Any failure propagates; the whole call is idempotent, so callers
        retry it from the start rather than resuming half-way.
        """
        source_id, target_id = validate_pair(source_id, target_id)
        preference = self.preferences.record_preference(
            source_id, target_id, decision, daily_limit=self.daily_swipe_limit
        )
        result = SwipeResult(preference=preference)

        if preference.is_like and self.detector.check_mutual(source_id, target_id):
            match, created = self.materializer.ensure_match(source_id, target_id)
            result = SwipeResult(preference=preference, is_match=True, match=match, created=created)
            if created:
                self.notifier.new_match(match)

        self.notifier.candidates_changed(source_id)
        return result

    def like(self, source_id, target_id) -> SwipeResult:
        return self.swipe(source_id, target_id, LIKE)

    def pass_profile(self, source_id, target_id) -> SwipeResult:
        return self.swipe(source_id, target_id, PASS)

    def get_candidates(self, user_id, limit: Optional[int] = None,
                       filters: Optional[CandidateFilters] = None) -> List[ProfileRecord]:
        feed = self.feed.get_candidates(user_id, limit=limit, filters=filters)
        return self._read_with_retry('get_candidates', lambda: list(feed))

    def list_matches(self, user_id) -> List[MatchView]:
        return self._read_with_retry('list_matches', lambda: self.views.list_matches(user_id))

    def get_seen_profiles(self, user_id) -> List[str]:
        """Ids of every profile the user has already liked or passed"""
        user_id = _validate_profile_id(user_id)
        return self._read_with_retry(
            'get_seen_profiles', lambda: sorted(self.store.preference_targets(user_id))
        )

    def remaining_swipes(self, user_id) -> Optional[int]:
        """Swipes left today, or None when no daily limit is configured"""
        if not self.daily_swipe_limit:
            return None
        user_id = _validate_profile_id(user_id)
        used = self.store.count_preferences_since(user_id, start_of_day())
        return max(0, self.daily_swipe_limit - used)

    async def aswipe(self, source_id, target_id, decision: str) -> SwipeResult:
        return await sync_to_async(self.swipe)(source_id, target_id, decision)

    async def aget_candidates(self, user_id, limit: Optional[int] = None,
                              filters: Optional[CandidateFilters] = None) -> List[ProfileRecord]:
        return await sync_to_async(self.get_candidates)(user_id, limit, filters)

    async def alist_matches(self, user_id) -> List[MatchView]:
        return await sync_to_async(self.list_matches)(user_id)

    def _read_with_retry(self, operation: str, read):
        """Run an idempotent read, retrying once on a persistence failure"""
        try:
            return read()
        except Timeout as e:
            logger.warning(f"{operation} timed out, retrying once: {str(e)}")
        except PersistenceError as e:
            logger.warning(f"{operation} failed, retrying once: {str(e)}")
        return read()
