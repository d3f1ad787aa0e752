import datetime as dt
import threading

from pbench.synced import SyncedTime

START = dt.datetime(2024, 1, 1, tzinfo=dt.timezone.utc)


def test_get_returns_initial_value():
    assert SyncedTime(START).get() == START


def test_synchronized_updates_value():
    later = START + dt.timedelta(hours=1)
    synced = SyncedTime(START)
    with synced.synchronized() as held:
        assert held.value == START
        held.value = later
    assert synced.get() == later


def test_concurrent_minimum():
    times = [START + dt.timedelta(minutes=offset) for offset in (30, 5, 50, 1, 20, 7)]
    synced = SyncedTime(START + dt.timedelta(days=1))

    def update(moment):
        with synced.synchronized() as held:
            if moment < held.value:
                held.value = moment

    threads = [threading.Thread(target=update, args=(moment,)) for moment in times]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    assert synced.get() == min(times)


def test_get_waits_for_synchronized_block():
    synced = SyncedTime(START)
    later = START + dt.timedelta(seconds=5)
    seen = []
    reader = threading.Thread(target=lambda: seen.append(synced.get()))
    with synced.synchronized() as held:
        reader.start()
        reader.join(timeout=0.2)
        assert reader.is_alive()
        held.value = later
    reader.join()
    assert seen == [later]