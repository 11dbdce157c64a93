"""
Tests for the display projection (groups -> projects -> units).
"""

import random
from datetime import timedelta

from config.settings import LabelKeys
from docker_monitor.grouping import project_units, resolve_project_groups
from docker_monitor.reconciler import ReconciliationEngine
from models.status_models import HealthCheckResult


def _names(groups):
    return [
        (group.name, project.name, [item.unit.name for item in project.units])
        for group in groups
        for project in group.projects
    ]


class TestProjectUnits:

    def test_units_sorted_within_project(self, make_unit):
        units = [make_unit(name='web-3'), make_unit(name='web-1'), make_unit(name='web-2')]

        groups = project_units(units)

        assert _names(groups) == [('~', 'web', ['web-1', 'web-2', 'web-3'])]

    def test_projects_sorted_within_group(self, make_unit):
        units = [make_unit(project='zeta', name='z'), make_unit(project='alpha', name='a')]

        groups = project_units(units)

        assert [p.name for p in groups[0].projects] == ['alpha', 'zeta']

    def test_ungrouped_projects_render_last(self, make_unit):
        units = [
            make_unit(project='loose', name='x'),
            make_unit(project='media', name='plex', group='media'),
            make_unit(project='infra', name='dns', group='core'),
        ]

        groups = project_units(units)

        assert [g.name for g in groups] == ['core', 'media', '~']

    def test_down_units_are_included(self, make_unit):
        groups = project_units([make_unit(name='gone', down=True)])

        assert groups[0].projects[0].units[0].unit.down is True

    def test_empty_input(self):
        assert project_units([]) == []

    def test_health_attached_by_key(self, make_unit):
        result = HealthCheckResult(success=True, status_code=200, duration_ms=3.0)
        units = [make_unit(name='app'), make_unit(name='db')]

        groups = project_units(units, {'web:app': result})

        items = groups[0].projects[0].units
        assert items[0].health == result
        assert items[1].health is None

    def test_deterministic_for_any_input_order(self, make_unit):
        units = [
            make_unit(project=f'p{i % 3}', name=f'n{i}', group='g' if i % 2 else None)
            for i in range(12)
        ]
        shuffled = list(units)
        random.Random(7).shuffle(shuffled)

        first = project_units(units)
        second = project_units(units)
        third = project_units(shuffled)

        assert first == second
        assert [g.model_dump_json() for g in first] == [g.model_dump_json() for g in third]


class TestResolveProjectGroups:

    def test_most_recently_seen_unit_wins(self, make_unit, now):
        units = [
            make_unit(name='old', group='legacy', last_seen=now - timedelta(minutes=5), down=True),
            make_unit(name='new', group='current', last_seen=now),
        ]

        assert resolve_project_groups(units) == {'web': 'current'}

    def test_tie_broken_by_name(self, make_unit):
        units = [make_unit(name='b', group='second'), make_unit(name='a', group='first')]

        assert resolve_project_groups(units) == {'web': 'second'}
        assert resolve_project_groups(list(reversed(units))) == {'web': 'second'}

    def test_no_label_means_pseudo_group(self, make_unit):
        assert resolve_project_groups([make_unit()]) == {'web': '~'}

    def test_reserved_group_label_lands_in_ungrouped(self, make_observed, now):
        engine = ReconciliationEngine(timedelta(hours=1), LabelKeys())
        engine.reconcile([make_observed(labels={'compose-status.group': '~'})], now)

        groups = project_units(engine.units.values())

        assert [g.name for g in groups] == ['~']
        assert groups[0].projects[0].units[0].unit.group is None
