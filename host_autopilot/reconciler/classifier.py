"""
Installed-id classification.

The conductor only reports installed app ids. Which kind of instance an id
names is encoded in the string itself:

    <app id>                   anonymous instance of a hosted app
    <app id>::<agent id>       identified instance (one per hosted agent)
    <app id>::servicelogger    service-log companion of a hosted app
    anything else              core infrastructure, never touched

This module is the only place that parses those strings.
"""

from typing import Iterable

from host_autopilot.models.instances import ClassifiedInstance, InstanceKind
from host_autopilot.rpc.holo_hash import is_hosted_app_id

SEPARATOR = "::"
SERVICELOGGER_SUFFIX = "servicelogger"


def servicelogger_id(app_id: str) -> str:
    return f"{app_id}{SEPARATOR}{SERVICELOGGER_SUFFIX}"


def classify_installed_app(
    installed_id: str,
    desired_app_ids: Iterable[str],
) -> ClassifiedInstance:
    """Map one installed id to exactly one InstanceKind."""
    desired = set(desired_app_ids)
    head, sep, tail = installed_id.partition(SEPARATOR)
    hosted_shape = is_hosted_app_id(head)

    if sep and tail == SERVICELOGGER_SUFFIX and (head in desired or hosted_shape):
        return ClassifiedInstance(
            installed_id=installed_id,
            kind=InstanceKind.SERVICE_LOG_COMPANION,
            app_id=head,
        )

    if installed_id in desired:
        return ClassifiedInstance(
            installed_id=installed_id,
            kind=InstanceKind.ANONYMOUS,
            app_id=installed_id,
        )

    if sep and (head in desired or hosted_shape):
        return ClassifiedInstance(
            installed_id=installed_id,
            kind=InstanceKind.IDENTIFIED,
            app_id=head,
            agent_id=tail,
        )

    if hosted_shape:
        # Stale anonymous instance of an app the registry no longer lists
        return ClassifiedInstance(
            installed_id=installed_id,
            kind=InstanceKind.ANONYMOUS,
            app_id=installed_id,
        )

    return ClassifiedInstance(
        installed_id=installed_id,
        kind=InstanceKind.INFRASTRUCTURE,
    )
