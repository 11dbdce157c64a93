"""
Display projection: units -> groups of projects of units.

Pure functions with deterministic ordering so the dashboard does not jitter
between polls.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Mapping, Optional

from config.settings import UNGROUPED
from models.status_models import GroupView, HealthCheckResult, ProjectView, Unit, UnitView


def resolve_project_groups(units: Iterable[Unit]) -> Dict[str, str]:
    """
    Decide which group each project belongs to.

    The group label is sourced per container but applies to the whole
    project. When units disagree, the most recently seen unit wins, with the
    display name as a tie breaker so the result does not depend on input order.
    """
    latest: Dict[str, Unit] = {}
    for unit in units:
        current = latest.get(unit.project)
        if current is None or (unit.last_seen, unit.name) > (current.last_seen, current.name):
            latest[unit.project] = unit
    return {project: unit.group or UNGROUPED for project, unit in latest.items()}


def project_units(units: Iterable[Unit],
                  health: Optional[Mapping[str, HealthCheckResult]] = None) -> List[GroupView]:
    """
    Arrange tracked units for rendering.

    Groups are sorted by name (the ungrouped '~' group lands last), projects
    by name within their group, units by display name within their project.

    Args:
        units: Currently tracked units (evicted units are already gone)
        health: Optional probe results for this pass, keyed by unit key

    Returns:
        Ordered list of GroupView
    """
    units = list(units)
    health = health or {}
    project_groups = resolve_project_groups(units)

    by_project: Dict[str, List[Unit]] = defaultdict(list)
    for unit in units:
        by_project[unit.project].append(unit)

    by_group: Dict[str, List[ProjectView]] = defaultdict(list)
    for project in sorted(by_project):
        members = sorted(by_project[project], key=lambda u: u.name)
        view = ProjectView(
            name=project,
            units=[UnitView(unit=u, health=health.get(u.key)) for u in members],
        )
        by_group[project_groups[project]].append(view)

    return [GroupView(name=name, projects=by_group[name]) for name in sorted(by_group)]
