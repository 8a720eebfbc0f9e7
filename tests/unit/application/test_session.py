from __future__ import annotations

import threading

from seadaq.application.session import (
    SessionState,
    displays,
    load_recovery_file,
    write_recovery_file,
)


def test_recovery_file_round_trip(tmp_path) -> None:
    path = tmp_path / "sub" / "dataset_id"
    write_recovery_file(str(path), "cruise42")
    assert path.read_text(encoding="utf-8") == "cruise42\n"
    assert load_recovery_file(str(path)) == "cruise42"
    assert load_recovery_file(str(tmp_path / "missing")) is None


def test_from_config_recovers_dataset(cfg, logs, tmp_path) -> None:
    write_recovery_file(str(tmp_path / "data" / "dataset_id"), "AT50-01")
    session = SessionState.from_config(cfg, logs)
    assert session.dataset == "AT50-01"
    assert session.recovery_file == str(tmp_path / "data" / "dataset_id")


def test_from_config_defaults_without_recovery(cfg, logs) -> None:
    session = SessionState.from_config(cfg, logs)
    snap = session.snapshot()
    assert snap.dataset == "NODATASET"
    assert snap.logging_enabled is True
    assert snap.display_target == ""


def test_from_config_ignores_tampered_recovery_file(cfg, logs, tmp_path) -> None:
    write_recovery_file(str(tmp_path / "data" / "dataset_id"), "..")
    session = SessionState.from_config(cfg, logs)
    assert session.dataset == "NODATASET"
    assert logs.contains("Ignoring invalid dataset")


def test_set_dataset_persists(cfg, logs) -> None:
    session = SessionState.from_config(cfg, logs)
    assert session.set_dataset("cruise42")
    assert load_recovery_file(session.recovery_file) == "cruise42"


def test_display_route(cfg, logs) -> None:
    session = SessionState.from_config(cfg, logs)
    session.set_display_target("GPS")
    assert displays(session.snapshot(), "gps")
    assert not displays(session.snapshot(), "ais")
    session.set_display_target("ALL")
    assert displays(session.snapshot(), "ais")
    session.set_display_target("NONE")
    assert session.display_target == ""
    assert not displays(session.snapshot(), "gps")


def test_snapshots_never_torn(cfg, logs) -> None:
    session = SessionState.from_config(cfg, logs)
    session._recovery_file = None
    session._dataset = session._display_target = "d0"
    stop = threading.Event()
    torn = []

    def writer():
        i = 0
        while not stop.is_set():
            i += 1
            with session._lock:
                session._dataset = f"d{i}"
                session._display_target = f"d{i}"

    t = threading.Thread(target=writer)
    t.start()
    try:
        for _ in range(2000):
            snap = session.snapshot()
            if snap.dataset != snap.display_target:
                torn.append(snap)
    finally:
        stop.set()
        t.join()
    assert torn == []
