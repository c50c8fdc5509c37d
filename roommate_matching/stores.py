"""
Persistence port for the matching subsystem.

Every matching component receives a MatchStore instead of reaching for the
ORM directly. DjangoMatchStore is the production implementation; the
in-memory store backs tests and local experiments.
"""
from typing import Dict, Iterable, List, Optional, Set
import functools
import itertools
import logging
import threading
import time
import uuid

from django.core.exceptions import ValidationError
from django.db import DatabaseError, IntegrityError, OperationalError, transaction
from django.db.models import Q
from django.utils import timezone

from messaging.models import Message
from profiles.models import Profile

from .conf import matching_setting
from .exceptions import ConstraintViolation, InvalidArgument, PersistenceError, SwipeLimitReached, Timeout
from .models import Match, Preference
from .records import MatchRecord, MessageRecord, PreferenceRecord, canonical_pair

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    'id', 'first_name', 'last_name', 'age', 'bio', 'occupation', 'interests',
    'lifestyle', 'has_apartment', 'city', 'zone', 'profile_image', 'is_active',
    'created_at',
)


class MatchStore:
    """Abstract store of profiles, preferences, matches and message metadata"""

    # Preferences
    def get_preference(self, source_id, target_id) -> Optional[PreferenceRecord]:
        raise NotImplementedError

    def insert_preference(self, source_id, target_id, decision,
                          daily_limit: Optional[int] = None, since=None) -> PreferenceRecord:
        """
        Insert a new row; raises ConstraintViolation if the pair already has one.

        With a daily_limit, the source's rows created since `since` are counted
        in the same transaction and SwipeLimitReached is raised at the limit.
        """
        raise NotImplementedError

    def update_preference(self, source_id, target_id, decision) -> Optional[PreferenceRecord]:
        """Overwrite the decision and bump updated_at; None if the row is gone"""
        raise NotImplementedError

    def preference_exists(self, source_id, target_id, decision) -> bool:
        raise NotImplementedError

    def preference_targets(self, source_id) -> Set[str]:
        raise NotImplementedError

    def count_preferences_since(self, source_id, since) -> int:
        raise NotImplementedError

    # Matches
    def get_match(self, profile_one_id, profile_two_id) -> Optional[MatchRecord]:
        """Look up the match of the unordered pair"""
        raise NotImplementedError

    def insert_match(self, profile_one_id, profile_two_id) -> MatchRecord:
        """Insert the pair in canonical order; raises ConstraintViolation if it already exists"""
        raise NotImplementedError

    def matches_for(self, profile_id) -> List[MatchRecord]:
        """Matches involving the profile, newest first"""
        raise NotImplementedError

    # Profiles (raw rows, validated by the caller)
    def active_profile_rows(self, exclude_id=None) -> List[Dict]:
        raise NotImplementedError

    def profile_rows(self, profile_ids: Iterable) -> List[Dict]:
        raise NotImplementedError

    # Messages
    def latest_message(self, match_id) -> Optional[MessageRecord]:
        raise NotImplementedError

    def unread_count(self, match_id, reader_id) -> int:
        raise NotImplementedError


def _is_timeout(exc) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in (
        'statement timeout', 'canceling statement', 'timed out', 'timeout', 'database is locked'
    ))


def _is_foreign_key_violation(exc) -> bool:
    return 'foreign key' in str(exc).lower()


def _store_call(method):
    """
    Run a store method in its own atomic block, bounded by STORE_TIMEOUT,
    translating database failures into the matching error taxonomy.
    """
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        operation = method.__name__
        try:
            with transaction.atomic(using=self.using):
                started = time.monotonic()
                previous_timeout = self._apply_statement_timeout()
                result = method(self, *args, **kwargs)
                elapsed = time.monotonic() - started
                if elapsed > self.timeout:
                    # Raising inside the atomic block rolls the call back
                    logger.warning(f"Store call {operation} exceeded {self.timeout}s ({elapsed:.2f}s)")
                    raise Timeout(f"{operation} exceeded {self.timeout}s")
                # SET LOCAL outlives a released savepoint; give an enclosing transaction its own bound back
                self._restore_statement_timeout(previous_timeout)
                return result
        except IntegrityError as e:
            if _is_foreign_key_violation(e):
                raise InvalidArgument(f"{operation} references an unknown profile: {e}") from e
            raise ConstraintViolation(f"{operation} violated a constraint: {e}") from e
        except OperationalError as e:
            if _is_timeout(e):
                logger.warning(f"Store call {operation} timed out: {str(e)}")
                raise Timeout(f"{operation} timed out") from e
            logger.error(f"Store call {operation} failed: {str(e)}")
            raise PersistenceError(f"{operation} failed: {e}") from e
        except DatabaseError as e:
            logger.error(f"Store call {operation} failed: {str(e)}")
            raise PersistenceError(f"{operation} failed: {e}") from e
        except ValidationError as e:
            raise InvalidArgument(f"{operation} received a malformed id: {e}") from e
    return wrapper


def _preference_record(preference: Preference) -> PreferenceRecord:
    return PreferenceRecord(
        id=str(preference.pk),
        source_id=str(preference.source_id),
        target_id=str(preference.target_id),
        decision=preference.decision,
        created_at=preference.created_at,
        updated_at=preference.updated_at,
    )


def _match_record(match: Match) -> MatchRecord:
    return MatchRecord(
        id=str(match.pk),
        profile_one_id=str(match.profile_one_id),
        profile_two_id=str(match.profile_two_id),
        created_at=match.created_at,
        updated_at=match.updated_at,
    )


def _message_record(message: Message) -> MessageRecord:
    return MessageRecord(
        id=str(message.pk),
        match_id=str(message.match_id),
        sender_id=str(message.sender_id) if message.sender_id else '',
        content=message.content,
        created_at=message.created_at,
        is_read=message.is_read,
    )


class DjangoMatchStore(MatchStore):
    """MatchStore backed by the Django ORM"""

    def __init__(self, using: str = 'default', timeout: Optional[float] = None):
        self.using = using
        self.timeout = timeout if timeout is not None else matching_setting('STORE_TIMEOUT')

    def _connection(self):
        return transaction.get_connection(self.using)

    def _apply_statement_timeout(self):
        """Bound the current transaction on PostgreSQL; returns the setting it replaced"""
        connection = self._connection()
        if connection.vendor != 'postgresql':
            return None
        with connection.cursor() as cursor:
            cursor.execute("SHOW statement_timeout")
            previous = cursor.fetchone()[0]
            cursor.execute(
                "SELECT set_config('statement_timeout', %s, true)", [str(int(self.timeout * 1000))]
            )
        return previous

    def _restore_statement_timeout(self, previous):
        if previous is None:
            return
        with self._connection().cursor() as cursor:
            cursor.execute("SELECT set_config('statement_timeout', %s, true)", [previous])

    def _canonical_pair(self, profile_a, profile_b):
        # Order by the normalised UUID text so the pair agrees with the check constraint
        to_python = Match._meta.get_field('profile_one').target_field.to_python
        return canonical_pair(to_python(profile_a), to_python(profile_b))

    def _require_profiles(self, *profile_ids):
        wanted = {str(profile_id) for profile_id in profile_ids}
        found = {str(pk) for pk in Profile.objects.filter(id__in=wanted).values_list('id', flat=True)}
        missing = wanted - found
        if missing:
            raise InvalidArgument(f"Unknown profile id(s): {', '.join(sorted(missing))}")

    @_store_call
    def get_preference(self, source_id, target_id):
        preference = Preference.objects.filter(source_id=source_id, target_id=target_id).first()
        return _preference_record(preference) if preference else None

    @_store_call
    def insert_preference(self, source_id, target_id, decision, daily_limit=None, since=None):
        self._require_profiles(source_id, target_id)

        if daily_limit:
            # Row lock on the swiper serialises concurrent swipes of one profile
            list(Profile.objects.select_for_update().filter(id=source_id).values_list('id', flat=True))
            used = Preference.objects.filter(source_id=source_id, created_at__gte=since).count()
            if used >= daily_limit:
                raise SwipeLimitReached(str(source_id), daily_limit)

        now = timezone.now()
        preference = Preference.objects.create(
            source_id=source_id,
            target_id=target_id,
            decision=decision,
            created_at=now,
            updated_at=now
        )
        return _preference_record(preference)

    @_store_call
    def update_preference(self, source_id, target_id, decision):
        updated = Preference.objects.filter(
            source_id=source_id,
            target_id=target_id
        ).update(decision=decision, updated_at=timezone.now())
        if not updated:
            return None
        return _preference_record(
            Preference.objects.get(source_id=source_id, target_id=target_id)
        )

    @_store_call
    def preference_exists(self, source_id, target_id, decision):
        return Preference.objects.filter(
            source_id=source_id,
            target_id=target_id,
            decision=decision
        ).exists()

    @_store_call
    def preference_targets(self, source_id):
        return {
            str(target_id) for target_id in
            Preference.objects.filter(source_id=source_id).values_list('target_id', flat=True)
        }

    @_store_call
    def count_preferences_since(self, source_id, since):
        return Preference.objects.filter(source_id=source_id, created_at__gte=since).count()

    @_store_call
    def get_match(self, profile_one_id, profile_two_id):
        profile_one_id, profile_two_id = self._canonical_pair(profile_one_id, profile_two_id)
        match = Match.objects.filter(
            profile_one_id=profile_one_id,
            profile_two_id=profile_two_id
        ).first()
        return _match_record(match) if match else None

    @_store_call
    def insert_match(self, profile_one_id, profile_two_id):
        profile_one_id, profile_two_id = self._canonical_pair(profile_one_id, profile_two_id)
        self._require_profiles(profile_one_id, profile_two_id)
        now = timezone.now()
        match = Match.objects.create(
            profile_one_id=profile_one_id,
            profile_two_id=profile_two_id,
            created_at=now,
            updated_at=now
        )
        return _match_record(match)

    @_store_call
    def matches_for(self, profile_id):
        matches = Match.objects.filter(
            Q(profile_one_id=profile_id) | Q(profile_two_id=profile_id)
        ).order_by('-created_at', 'id')
        return [_match_record(match) for match in matches]

    @_store_call
    def active_profile_rows(self, exclude_id=None):
        profiles = Profile.objects.filter(is_active=True)
        if exclude_id is not None:
            profiles = profiles.exclude(id=exclude_id)
        return list(profiles.order_by('created_at', 'id').values(*PROFILE_FIELDS))

    @_store_call
    def profile_rows(self, profile_ids):
        return list(Profile.objects.filter(id__in=list(profile_ids)).values(*PROFILE_FIELDS))

    @_store_call
    def latest_message(self, match_id):
        message = Message.objects.filter(match_id=match_id).order_by('-created_at').first()
        return _message_record(message) if message else None

    @_store_call
    def unread_count(self, match_id, reader_id):
        return Message.objects.filter(
            match_id=match_id,
            is_read=False
        ).exclude(sender_id=reader_id).count()


class InMemoryMatchStore(MatchStore):
    """
    Dict-backed MatchStore.

    The lock stands in for the database unique constraints: inserts are
    atomic insert-if-absent and raise ConstraintViolation on a duplicate key.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ids = itertools.count(1)
        self.profile_table: List[Dict] = []
        self.preferences: Dict[tuple, PreferenceRecord] = {}
        self.matches: Dict[tuple, MatchRecord] = {}
        self.messages: List[MessageRecord] = []

    def add_profile(self, row: Optional[Dict] = None, **fields) -> str:
        """Insert a raw profile row; rows may be partial, as a real table's can be"""
        row = dict(row or {}, **fields)
        if 'id' not in row:
            row['id'] = str(uuid.uuid4())
        row.setdefault('is_active', True)
        row.setdefault('created_at', timezone.now())
        with self._lock:
            self.profile_table.append(row)
        return row['id']

    def set_profile_active(self, profile_id, is_active: bool):
        with self._lock:
            for row in self.profile_table:
                if str(row.get('id')) == str(profile_id):
                    row['is_active'] = is_active

    def add_message(self, match_id, sender_id, content, created_at=None, is_read=False) -> MessageRecord:
        message = MessageRecord(
            id=str(uuid.uuid4()),
            match_id=str(match_id),
            sender_id=str(sender_id),
            content=content,
            created_at=created_at or timezone.now(),
            is_read=is_read,
        )
        with self._lock:
            self.messages.append(message)
        return message

    def get_preference(self, source_id, target_id):
        return self.preferences.get((str(source_id), str(target_id)))

    def insert_preference(self, source_id, target_id, decision, daily_limit=None, since=None):
        key = (str(source_id), str(target_id))
        with self._lock:
            if key in self.preferences:
                raise ConstraintViolation(f"Preference {key} already exists")
            if daily_limit and self.count_preferences_since(key[0], since) >= daily_limit:
                raise SwipeLimitReached(key[0], daily_limit)
            now = timezone.now()
            record = PreferenceRecord(
                id=str(next(self._ids)),
                source_id=key[0],
                target_id=key[1],
                decision=decision,
                created_at=now,
                updated_at=now,
            )
            self.preferences[key] = record
            return record

    def update_preference(self, source_id, target_id, decision):
        key = (str(source_id), str(target_id))
        with self._lock:
            existing = self.preferences.get(key)
            if existing is None:
                return None
            record = PreferenceRecord(
                id=existing.id,
                source_id=existing.source_id,
                target_id=existing.target_id,
                decision=decision,
                created_at=existing.created_at,
                updated_at=timezone.now(),
            )
            self.preferences[key] = record
            return record

    def preference_exists(self, source_id, target_id, decision):
        record = self.preferences.get((str(source_id), str(target_id)))
        return record is not None and record.decision == decision

    def preference_targets(self, source_id):
        source_id = str(source_id)
        with self._lock:
            return {target for source, target in self.preferences if source == source_id}

    def count_preferences_since(self, source_id, since):
        source_id = str(source_id)
        with self._lock:
            return sum(
                1 for record in self.preferences.values()
                if record.source_id == source_id and record.created_at >= since
            )

    def get_match(self, profile_one_id, profile_two_id):
        return self.matches.get(canonical_pair(profile_one_id, profile_two_id))

    def insert_match(self, profile_one_id, profile_two_id):
        key = canonical_pair(profile_one_id, profile_two_id)
        with self._lock:
            if key in self.matches:
                raise ConstraintViolation(f"Match {key} already exists")
            now = timezone.now()
            record = MatchRecord(
                id=str(uuid.uuid4()),
                profile_one_id=key[0],
                profile_two_id=key[1],
                created_at=now,
                updated_at=now,
            )
            self.matches[key] = record
            return record

    def matches_for(self, profile_id):
        with self._lock:
            found = [match for match in self.matches.values() if match.involves(profile_id)]
        return sorted(found, key=lambda match: (-match.created_at.timestamp(), match.id))

    def active_profile_rows(self, exclude_id=None):
        with self._lock:
            return [
                dict(row) for row in self.profile_table
                if row.get('is_active', True) and str(row.get('id')) != str(exclude_id)
            ]

    def profile_rows(self, profile_ids):
        wanted = {str(profile_id) for profile_id in profile_ids}
        with self._lock:
            return [dict(row) for row in self.profile_table if str(row.get('id')) in wanted]

    def latest_message(self, match_id):
        with self._lock:
            messages = [message for message in self.messages if message.match_id == str(match_id)]
        if not messages:
            return None
        return max(messages, key=lambda message: message.created_at)

    def unread_count(self, match_id, reader_id):
        with self._lock:
            return sum(
                1 for message in self.messages
                if message.match_id == str(match_id)
                and message.sender_id != str(reader_id)
                and not message.is_read
            )


def get_default_store() -> MatchStore:
    return DjangoMatchStore()
