from roommate_matching.models import Match
from roommate_matching.notifications import MatchNotifier


class RecordingNotifier(MatchNotifier):
    """Keeps pushes in a list instead of sending them to the channel layer"""

    def __init__(self):
        super().__init__(channel_layer=object())
        self.pushes = []

    def push(self, profile_id, notification_type, data):
        self.pushes.append((profile_id, notification_type, data))

    def of_type(self, notification_type):
        return [push for push in self.pushes if push[1] == notification_type]


def create_match(profile_a, profile_b, **fields):
    """Create a Match row with the pair in canonical order"""
    one, two = sorted((profile_a, profile_b), key=lambda profile: str(profile.id))
    return Match.objects.create(profile_one=one, profile_two=two, **fields)
