import threading

from autotrader.portfolio import SessionMonitor


def test_session_monitor_starts_active() -> None:
    assert SessionMonitor().expired is False


def test_mark_and_clear_are_idempotent() -> None:
    session = SessionMonitor()

    session.mark_expired()
    session.mark_expired()
    assert session.expired is True

    session.clear_expired()
    session.clear_expired()
    assert session.expired is False


def test_flag_is_shared_across_threads() -> None:
    session = SessionMonitor()
    worker = threading.Thread(target=session.mark_expired)
    worker.start()
    worker.join(timeout=5)

    assert session.expired is True
