"""
Typed records passed across the persistence boundary.

Raw rows coming out of a store are validated here once, so the matching
logic never handles loosely-typed dictionaries.
"""
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Optional, Tuple
import json

from .exceptions import InvalidArgument


LIKE = 'like'
PASS = 'pass'
DECISIONS = (LIKE, PASS)

LIFESTYLE_FIELDS = ('cleanliness', 'noise', 'schedule', 'guests', 'smoking')

PLACEHOLDER_NAME = 'Unavailable profile'


def canonical_pair(profile_a, profile_b) -> Tuple[str, str]:
    """Order an unordered pair of ids so the smaller id string comes first"""
    a, b = str(profile_a), str(profile_b)
    return (a, b) if a <= b else (b, a)


def _clean_str(value) -> str:
    if value is None:
        return ''
    return str(value).strip()


def _parse_age(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    try:
        age = int(str(value).strip())
    except ValueError:
        return None
    return age if age > 0 else None


def _parse_interests(value) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        return ()
    interests = []
    for item in value:
        # Tag rows come through as {"id": .., "name": ..}
        if isinstance(item, dict):
            item = item.get('name')
        text = _clean_str(item)
        if text:
            interests.append(text)
    return tuple(interests)


@dataclass(frozen=True)
class Lifestyle:
    cleanliness: str = ''
    noise: str = ''
    schedule: str = ''
    guests: str = ''
    smoking: str = ''

    @classmethod
    def from_value(cls, value) -> 'Lifestyle':
        """Accept a dict or a JSON-encoded dict; anything else gives empty descriptors"""
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError:
                return cls()
        if not isinstance(value, dict):
            return cls()
        return cls(
            cleanliness=_clean_str(value.get('cleanliness')),
            noise=_clean_str(value.get('noise')),
            schedule=_clean_str(value.get('schedule')),
            guests=_clean_str(value.get('guests')),
            smoking=_clean_str(value.get('smoking')),
        )

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class ProfileRecord:
    id: str
    first_name: str = ''
    last_name: str = ''
    age: Optional[int] = None
    bio: str = ''
    occupation: str = ''
    interests: Tuple[str, ...] = ()
    lifestyle: Lifestyle = field(default_factory=Lifestyle)
    has_apartment: bool = False
    city: str = ''
    zone: str = ''
    profile_image: str = ''
    is_active: bool = True
    created_at: Optional[datetime] = None
    is_placeholder: bool = False

    @classmethod
    def from_row(cls, row, default_zone: str = '') -> 'ProfileRecord':
        """
        Build a record from a raw profile row.

        A row without an id cannot be matched against anything and raises
        InvalidArgument. Every other attribute falls back to a default.
        """
        if not isinstance(row, dict):
            raise InvalidArgument(f"Profile row must be a mapping, got {type(row).__name__}")

        profile_id = _clean_str(row.get('id'))
        if not profile_id:
            raise InvalidArgument("Profile row has no id")

        is_active = row.get('is_active', row.get('is_profile_active'))
        created_at = row.get('created_at')

        return cls(
            id=profile_id,
            first_name=_clean_str(row.get('first_name')),
            last_name=_clean_str(row.get('last_name')),
            age=_parse_age(row.get('age', row.get('edad'))),
            bio=_clean_str(row.get('bio')),
            occupation=_clean_str(row.get('occupation')),
            interests=_parse_interests(row.get('interests')),
            lifestyle=Lifestyle.from_value(row.get('lifestyle')),
            has_apartment=bool(row.get('has_apartment')),
            city=_clean_str(row.get('city')),
            zone=_clean_str(row.get('zone') or row.get('city_zone')) or default_zone,
            profile_image=_clean_str(row.get('profile_image')),
            is_active=True if is_active is None else bool(is_active),
            created_at=created_at if isinstance(created_at, datetime) else None,
        )

    @classmethod
    def placeholder(cls, profile_id) -> 'ProfileRecord':
        """Stand-in for a counterpart whose profile can no longer be resolved"""
        return cls(id=str(profile_id), is_active=False, is_placeholder=True)

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        if not name and self.is_placeholder:
            return PLACEHOLDER_NAME
        return name

    def as_dict(self):
        data = asdict(self)
        data['interests'] = list(self.interests)
        data['display_name'] = self.display_name
        data['created_at'] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass(frozen=True)
class PreferenceRecord:
    id: str
    source_id: str
    target_id: str
    decision: str
    created_at: datetime
    updated_at: datetime

    @property
    def is_like(self) -> bool:
        return self.decision == LIKE


@dataclass(frozen=True)
class MatchRecord:
    id: str
    profile_one_id: str
    profile_two_id: str
    created_at: datetime
    updated_at: datetime

    def involves(self, profile_id) -> bool:
        return str(profile_id) in (self.profile_one_id, self.profile_two_id)

    def counterpart_of(self, profile_id) -> str:
        profile_id = str(profile_id)
        if profile_id == self.profile_one_id:
            return self.profile_two_id
        if profile_id == self.profile_two_id:
            return self.profile_one_id
        raise InvalidArgument(f"Profile {profile_id} is not part of match {self.id}")


@dataclass(frozen=True)
class MessageRecord:
    id: str
    match_id: str
    sender_id: str
    content: str
    created_at: datetime
    is_read: bool = False


@dataclass(frozen=True)
class MatchView:
    """A match as the matches list and chat sidebar present it"""

    match_id: str
    counterpart: ProfileRecord
    created_at: datetime
    last_message: Optional[str] = None
    last_message_time: Optional[datetime] = None
    unread_count: int = 0
    compatibility: Optional[float] = None

    def as_dict(self):
        return {
            'match_id': self.match_id,
            'counterpart': self.counterpart.as_dict(),
            'created_at': self.created_at.isoformat(),
            'last_message': self.last_message,
            'last_message_time': self.last_message_time.isoformat() if self.last_message_time else None,
            'unread_count': self.unread_count,
            'compatibility': self.compatibility,
        }


@dataclass(frozen=True)
class CandidateFilters:
    """
    Optional narrowing of a candidate feed, applied after the seen/matched
    exclusions. Every set criterion must hold; text comparisons ignore case.

    - zone: exact zone
    - min_age / max_age: inclusive bounds; profiles without an age fail them
    - interests: at least one shared interest
    - lifestyle: descriptor -> required value, e.g. {'smoking': 'no'}
    - has_apartment: housing status
    - query: substring of the name, bio, occupation, city or zone
    """

    zone: str = ''
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    interests: Tuple[str, ...] = ()
    lifestyle: Tuple[Tuple[str, str], ...] = ()
    has_apartment: Optional[bool] = None
    query: str = ''

    def __post_init__(self):
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise InvalidArgument(f"min_age {self.min_age} is above max_age {self.max_age}")
        unknown = [name for name, _ in self.lifestyle if name not in LIFESTYLE_FIELDS]
        if unknown:
            raise InvalidArgument(f"Unknown lifestyle descriptor(s): {', '.join(unknown)}")

    @classmethod
    def build(cls, zone='', min_age=None, max_age=None, interests=None, lifestyle=None,
              has_apartment=None, query='') -> 'CandidateFilters':
        """Accept loosely shaped input (interest lists or CSV, lifestyle dicts)"""
        return cls(
            zone=_clean_str(zone),
            min_age=min_age,
            max_age=max_age,
            interests=_parse_interests(interests),
            lifestyle=tuple(sorted(
                (_clean_str(name), _clean_str(value)) for name, value in (lifestyle or {}).items()
                if _clean_str(value)
            )),
            has_apartment=has_apartment,
            query=_clean_str(query),
        )

    @property
    def is_empty(self) -> bool:
        return self == CandidateFilters()

    def matches(self, profile: ProfileRecord) -> bool:
        if self.zone and profile.zone.lower() != self.zone.lower():
            return False

        if self.min_age is not None or self.max_age is not None:
            if profile.age is None:
                return False
            if self.min_age is not None and profile.age < self.min_age:
                return False
            if self.max_age is not None and profile.age > self.max_age:
                return False

        if self.interests:
            wanted = {interest.lower() for interest in self.interests}
            if not wanted & {interest.lower() for interest in profile.interests}:
                return False

        for name, value in self.lifestyle:
            if getattr(profile.lifestyle, name).lower() != value.lower():
                return False

        if self.has_apartment is not None and profile.has_apartment != self.has_apartment:
            return False

        if self.query:
            needle = self.query.lower()
            haystack = (profile.display_name, profile.bio, profile.occupation, profile.city, profile.zone)
            if not any(needle in text.lower() for text in haystack):
                return False

        return True
