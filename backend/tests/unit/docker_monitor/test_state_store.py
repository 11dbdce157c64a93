"""
Tests for the resume file (StateStore).
"""

import json
import os
import stat
from datetime import timedelta
from unittest.mock import patch

import pytest

from docker_monitor.errors import PersistenceFailure
from docker_monitor.state_store import StateStore, deserialize_units, serialize_units


class TestSerialization:

    def test_round_trip_preserves_every_field(self, make_unit, now):
        units = {
            'web:app': make_unit(name='app', link='app.example.com', group='media'),
            'db:pg': make_unit(project='db', name='pg', down=True, last_seen=now - timedelta(hours=2)),
        }

        assert deserialize_units(serialize_units(units)) == units

    def test_empty_state(self):
        assert deserialize_units(serialize_units({})) == {}

    def test_envelope_is_versioned_and_sorted(self, make_unit):
        units = {'web:b': make_unit(name='b'), 'web:a': make_unit(name='a')}

        document = json.loads(serialize_units(units))

        assert document['version'] == 1
        assert [u['name'] for u in document['units']] == ['a', 'b']

    def test_timestamps_without_offset_read_as_utc(self, now):
        data = (b'{"version": 1, "units": [{"project": "web", "name": "old", "status": "up",'
                b' "last_seen": "2024-06-01T12:00:00", "down": false}]}')

        units = deserialize_units(data)

        assert units['web:old'].last_seen == now
        assert units['web:old'].last_seen.tzinfo is not None

    def test_unknown_version_rejected(self):
        with pytest.raises(PersistenceFailure):
            deserialize_units(b'{"version": 99, "units": []}')

    @pytest.mark.parametrize("data", [b'', b'not json', b'{"units": [{"project": "web"}]}'])
    def test_invalid_content_rejected(self, data):
        with pytest.raises(PersistenceFailure):
            deserialize_units(data)


class TestStateStore:

    def test_save_then_load(self, tmp_path, make_unit):
        store = StateStore(str(tmp_path / 'save.json'))
        units = {'web:app': make_unit(name='app')}

        store.save(units)

        assert store.load() == units

    def test_missing_file_is_empty_state(self, tmp_path):
        assert StateStore(str(tmp_path / 'absent.json')).load() == {}

    def test_corrupt_file_is_empty_state(self, tmp_path):
        path = tmp_path / 'save.json'
        path.write_bytes(b'{"version": 1, "units": [')

        assert StateStore(str(path)).load() == {}

    def test_save_leaves_no_temp_files(self, tmp_path, make_unit):
        store = StateStore(str(tmp_path / 'save.json'))

        store.save({'web:app': make_unit(name='app')})
        store.save({})

        assert os.listdir(tmp_path) == ['save.json']
        assert store.load() == {}

    def test_new_file_is_world_readable(self, tmp_path):
        path = tmp_path / 'save.json'

        StateStore(str(path)).save({})

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o644

    def test_existing_file_mode_preserved(self, tmp_path):
        path = tmp_path / 'save.json'
        path.write_bytes(b'{}')
        os.chmod(path, 0o600)

        StateStore(str(path)).save({})

        assert stat.S_IMODE(os.stat(path).st_mode) == 0o600

    def test_failed_save_keeps_previous_file(self, tmp_path, make_unit):
        path = tmp_path / 'save.json'
        store = StateStore(str(path))
        store.save({'web:app': make_unit(name='app')})
        before = path.read_bytes()

        with patch('docker_monitor.state_store.os.replace', side_effect=OSError("disk full")):
            with pytest.raises(PersistenceFailure):
                store.save({})

        assert path.read_bytes() == before
        assert os.listdir(tmp_path) == ['save.json']

    def test_unwritable_directory(self, tmp_path):
        store = StateStore(str(tmp_path / 'missing-dir' / 'save.json'))

        with pytest.raises(PersistenceFailure):
            store.save({})
