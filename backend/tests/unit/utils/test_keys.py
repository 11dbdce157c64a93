"""
Tests for composite unit keys.
"""

from models.status_models import ObservedUnit, Unit
from utils.keys import make_composite_key


def test_make_key():
    assert make_composite_key('media', 'plex-1') == 'media:plex-1'


def test_observed_and_tracked_units_share_keys(now):
    observed = ObservedUnit(project='media', name='plex-1', container_id='aaa')
    tracked = Unit(project='media', name='plex-1', last_seen=now)

    assert observed.key == tracked.key == 'media:plex-1'
