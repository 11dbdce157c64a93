"""
Reconciliation Engine for compose-status
Merges each poll's container snapshot into the durable per-unit state
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

from config.settings import LabelKeys
from docker_monitor.errors import MalformedObservation
from docker_monitor.labels import find_group, find_link
from models.status_models import ObservedUnit, Unit

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """Keys that changed state during one pass"""
    appeared: List[str] = field(default_factory=list)
    recovered: List[str] = field(default_factory=list)
    went_down: List[str] = field(default_factory=list)
    evicted: List[str] = field(default_factory=list)


class ReconciliationEngine:
    """
    Owns the mapping of unit key -> Unit across the process lifetime.

    Each pass builds the next generation of the mapping from the previous one
    plus the new snapshot, then swaps it in with a single assignment. A pass
    that fails validation never touches the current generation, so readers
    only ever see complete results.

    Units absent from a snapshot are marked down on the first miss and
    forgotten once they have not been seen for longer than clean_cutoff.
    """

    def __init__(self, clean_cutoff: timedelta, labels: LabelKeys, initial: Optional[Mapping[str, Unit]] = None):
        if clean_cutoff < timedelta(0):
            raise ValueError("clean_cutoff must not be negative")
        self.clean_cutoff = clean_cutoff
        self.labels = labels
        self._units: Dict[str, Unit] = dict(initial or {})

    @property
    def units(self) -> Dict[str, Unit]:
        """Copy of the current generation"""
        return dict(self._units)

    def __len__(self) -> int:
        return len(self._units)

    def _to_unit(self, observed: ObservedUnit, now: datetime) -> Unit:
        return Unit(
            project=observed.project,
            name=observed.name,
            status=observed.status.strip().lower(),
            link=find_link(observed.labels, self.labels.link),
            group=find_group(observed.labels, self.labels.group),
            last_seen=now,
            down=False,
        )

    def reconcile(self, snapshot: Iterable[ObservedUnit], now: datetime,
                  clean_cutoff: Optional[timedelta] = None) -> ReconcileReport:
        """
        Merge one snapshot into the tracked state.

        Args:
            snapshot: Every unit currently running, in any order
            now: Time of this pass; becomes last_seen for observed units
            clean_cutoff: Override of the engine's cutoff for this pass

        Returns:
            ReconcileReport listing the keys that changed state

        Raises:
            MalformedObservation: If any observation lacks a project or name.
                The tracked state is left exactly as it was.
        """
        cutoff = self.clean_cutoff if clean_cutoff is None else clean_cutoff
        previous = self._units
        report = ReconcileReport()

        observed: Dict[str, Unit] = {}
        for item in snapshot:
            if not item.project or not item.project.strip():
                raise MalformedObservation(
                    f"Observed container {item.container_id or item.name!r} has no project",
                    container_id=item.container_id,
                )
            if not item.name or not item.name.strip():
                raise MalformedObservation(
                    f"Observed container {item.container_id!r} in project {item.project!r} has no name",
                    container_id=item.container_id,
                )
            unit = self._to_unit(item, now)
            observed[unit.key] = unit

        next_units: Dict[str, Unit] = {}
        for key, unit in observed.items():
            prior = previous.get(key)
            if prior is None:
                report.appeared.append(key)
            elif prior.down:
                report.recovered.append(key)
            next_units[key] = unit

        for key, unit in previous.items():
            if key in observed:
                continue
            if now - unit.last_seen > cutoff:
                report.evicted.append(key)
                continue
            if not unit.down:
                report.went_down.append(key)
                unit = unit.model_copy(update={'down': True})
            next_units[key] = unit

        self._units = next_units
        return report

    def restore(self, units: Mapping[str, Unit]):
        """Replace the tracked state, e.g. from a resume file at startup"""
        self._units = dict(units)
        logger.info(f"Restored {len(self._units)} tracked units")
