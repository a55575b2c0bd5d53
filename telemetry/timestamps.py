"""Resolve the instant of a telemetry or device snapshot in epoch milliseconds."""

import re
from collections.abc import Mapping

from time_utils import to_epoch_ms


TIMESTAMP_FIELDS = ("updatedAt", "createdAt", "ts", "timestamp")
OBJECT_ID_FIELD = "_id"

_HEX_PREFIX_RE = re.compile(r"^[0-9a-fA-F]{8}")


def object_id_to_ms(object_id):
    """
    Decode the creation instant embedded in a 24-hex-character object id.

    The first 8 hex characters are big-endian seconds since the epoch.
    """
    if not isinstance(object_id, str) or len(object_id) < 8:
        return None
    # A partially hex prefix is rejected outright rather than decoded up to the first bad digit.
    if not _HEX_PREFIX_RE.match(object_id):
        return None
    return int(object_id[:8], 16) * 1000


def _is_present(value):
    if value is None or isinstance(value, bool):
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def resolve_snapshot_ms(snapshot):
    """
    Return the snapshot instant in epoch ms, or None when it is unknown.

    Explicit fields are tried in order and the first one that parses wins.
    Without any, the embedded object id instant is used.
    """
    if not isinstance(snapshot, Mapping):
        return None

    for field_name in TIMESTAMP_FIELDS:
        value = snapshot.get(field_name)
        if not _is_present(value):
            continue
        ms = to_epoch_ms(value)
        if ms is not None:
            return ms

    return object_id_to_ms(snapshot.get(OBJECT_ID_FIELD))
