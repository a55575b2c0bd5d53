"""Lock helpers for the shared_data dict passed between agents and the dashboard."""

import threading


def build_shared_data(**entries):
    """Fresh shared dict with the two locks every agent expects."""
    shared_data = {
        "lock": threading.Lock(),
        "log_lock": threading.Lock(),
        "session_logs": [],
        "log_file_path": None,
        "shutdown_event": threading.Event(),
    }
    shared_data.update(entries)
    return shared_data


def snapshot_locked(shared_data, reader):
    """Run `reader(shared_data)` under the data lock and return its result."""
    with shared_data["lock"]:
        return reader(shared_data)


def mutate_locked(shared_data, mutator):
    with shared_data["lock"]:
        return mutator(shared_data)


def update_locked(shared_data, **updates):
    with shared_data["lock"]:
        shared_data.update(updates)


def read_session_logs(shared_data, limit=None):
    with shared_data["log_lock"]:
        logs = list(shared_data.get("session_logs", []))
    if limit is not None:
        logs = logs[-int(limit):]
    return logs
