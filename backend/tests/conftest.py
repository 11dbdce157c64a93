"""
Shared pytest fixtures for compose-status tests.

Fixtures provided:
- settings: StatusSettings with defaults and a 1 hour clean cutoff
- now: Fixed, timezone-aware pass time
- make_observed: Factory for ObservedUnit (what the Docker source produces)
- make_unit: Factory for tracked Unit records
- mock_docker_client: Mock Docker SDK client returning sparse containers

No test talks to a real Docker daemon or the network.
"""

import pytest


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (may require Docker, network, etc.)")


import os
import sys
from datetime import datetime, timezone
from unittest.mock import MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from config.settings import StatusSettings
from models.status_models import ObservedUnit, Unit


@pytest.fixture
def settings():
    return StatusSettings(clean_cutoff=3600, scan_interval=5, history_window=15, save_path='')


@pytest.fixture
def now():
    return datetime(2024, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_observed():
    """Build an ObservedUnit with sensible defaults"""
    def _make(project='web', name='web-app-1', status='Up 2 hours', labels=None, networks=None, container_id=None):
        return ObservedUnit(
            project=project,
            name=name,
            status=status,
            container_id=container_id or f"{project}-{name}-id",
            labels=labels or {},
            networks=networks or {},
        )
    return _make


@pytest.fixture
def make_unit(now):
    """Build a tracked Unit with sensible defaults"""
    def _make(project='web', name='web-app-1', status='up 2 hours', last_seen=None, down=False, link=None, group=None):
        return Unit(
            project=project,
            name=name,
            status=status,
            link=link,
            group=group,
            last_seen=last_seen or now,
            down=down,
        )
    return _make


def sparse_container(name, project=None, status='Up 5 minutes', labels=None, networks=None, container_id='abc123'):
    """Container object shaped like docker-py's sparse list result"""
    container_labels = dict(labels or {})
    if project is not None:
        container_labels['com.docker.compose.project'] = project
    container = MagicMock()
    container.attrs = {
        'Id': container_id,
        'Names': [f'/{name}'] if name else [],
        'Status': status,
        'State': 'running',
        'Labels': container_labels,
        'NetworkSettings': {
            'Networks': {
                net: {'IPAddress': ip} for net, ip in (networks or {}).items()
            }
        },
    }
    return container


@pytest.fixture
def mock_docker_client():
    """Mock Docker SDK client whose containers.list() returns []"""
    client = MagicMock()
    client.containers.list = MagicMock(return_value=[])
    return client


@pytest.fixture
def make_container():
    """Factory for sparse container mocks, see sparse_container()"""
    return sparse_container
