"""
Container label interpretation.

Turns the raw label map of a container into the pieces the dashboard cares
about: the deep link derived from reverse proxy routing rules, the optional
display group, and the optional health check configuration.
"""

import logging
import re
from typing import Dict, Optional

from config.settings import LabelKeys, UNGROUPED
from models.status_models import HealthCheckConfig

logger = logging.getLogger(__name__)

# Traefik v2+ router rules, e.g. traefik.http.routers.web.rule
ROUTER_RULE_LABEL = re.compile(r'^traefik\.http\.routers\.[^.]+\.rule$')

# Host(`a.example`) or Host(`a.example`, `b.example`), but not HostRegexp/HostSNI
ROUTER_HOST = re.compile(r'(?<![A-Za-z])Host\(\s*`([^`]*)`')

VALID_METHODS = {'GET', 'HEAD', 'POST', 'PUT', 'PATCH', 'DELETE', 'OPTIONS'}


def parse_label_host(rule: str) -> str:
    """
    Extract the first literal host name from a routing rule.

    Handles Traefik v1 frontend rules ("Host:a.example,b.example;Path=/x")
    and v2 router rules ("Host(`a.example`) && PathPrefix(`/x`)").
    Regex hosts cannot be linked to and yield an empty string.

    Examples:
        >>> parse_label_host("Host:good.morning;Path=/notifications/hub")
        'good.morning'
        >>> parse_label_host("HostRegexp:{catchall:.*}")
        ''
    """
    if not rule:
        return ''

    match = ROUTER_HOST.search(rule)
    if match:
        return match.group(1).strip()

    for part in rule.split(';'):
        part = part.strip()
        if not part.startswith('Host:'):
            continue
        hosts = part[len('Host:'):].split(',')
        return hosts[0].strip()
    return ''


def find_link(labels: Dict[str, str], link_label: str) -> Optional[str]:
    """Deep link for a container: the configured label first, then any v2 router rule"""
    if link_label and labels.get(link_label):
        host = parse_label_host(labels[link_label])
        if host:
            return host

    for key in sorted(labels):
        if ROUTER_RULE_LABEL.match(key):
            host = parse_label_host(labels[key])
            if host:
                return host
    return None


def find_group(labels: Dict[str, str], group_label: str) -> Optional[str]:
    group = labels.get(group_label, '').strip()
    if group == UNGROUPED:
        logger.debug(f"Ignoring reserved group name {group!r}")
        return None
    return group or None


def parse_health_config(labels: Dict[str, str], keys: LabelKeys) -> Optional[HealthCheckConfig]:
    """
    Read the health check configuration from container labels.

    Returns None when the port label is absent. A present but invalid
    configuration is also treated as absent and logged at debug level,
    since the same labels are read again on every pass.
    """
    port_value = labels.get(keys.health_port)
    if port_value is None:
        return None

    try:
        port = int(port_value)
    except ValueError:
        logger.debug(f"Ignoring health check with non-numeric port {port_value!r}")
        return None
    if not 1 <= port <= 65535:
        logger.debug(f"Ignoring health check with out-of-range port {port}")
        return None

    method = labels.get(keys.health_method, 'GET').strip().upper() or 'GET'
    if method not in VALID_METHODS:
        logger.debug(f"Ignoring health check with unsupported method {method!r}")
        return None

    path = labels.get(keys.health_path, '/').strip() or '/'
    if not path.startswith('/'):
        path = '/' + path

    expected_code = None
    code_value = labels.get(keys.health_code)
    if code_value:
        try:
            expected_code = int(code_value)
        except ValueError:
            logger.debug(f"Ignoring health check with non-numeric expected code {code_value!r}")
            return None
        if not 100 <= expected_code <= 599:
            logger.debug(f"Ignoring health check with invalid expected code {expected_code}")
            return None

    return HealthCheckConfig(port=port, method=method, path=path, expected_code=expected_code)
