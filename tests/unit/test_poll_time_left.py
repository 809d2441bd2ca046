"""Poll countdown label tests."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from folies.polls.service import leading_dish, time_left_label

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestTimeLeftLabel:
    def test_ended(self):
        assert time_left_label(NOW - timedelta(minutes=1), NOW) == "Terminé"
        assert time_left_label(NOW, NOW) == "Terminé"

    def test_days(self):
        assert time_left_label(NOW + timedelta(days=3, hours=2), NOW) == "3 jours restants"
        assert time_left_label(NOW + timedelta(days=1, hours=1), NOW) == "1 jour restant"

    def test_hours(self):
        assert time_left_label(NOW + timedelta(hours=5, minutes=30), NOW) == "5h restantes"

    def test_minutes(self):
        assert time_left_label(NOW + timedelta(minutes=42), NOW) == "42min restantes"

    def test_naive_end_date_is_utc(self):
        naive = (NOW + timedelta(hours=2)).replace(tzinfo=None)
        assert time_left_label(naive, NOW) == "2h restantes"


class TestLeadingDish:
    def test_no_votes(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        assert leading_dish({a: 0, b: 0, c: 0}) is None

    def test_most_votes(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        assert leading_dish({a: 1, b: 4, c: 2}) == b

    def test_tie_goes_to_earlier_candidate(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        assert leading_dish({a: 3, b: 3, c: 1}) == a
