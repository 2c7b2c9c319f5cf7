import pytest

from reactor.errors import DataError
from reactor.sensor_feed import SensorFeed, SensorSample


def test_sample_maps_value_indices():
    s = SensorSample.from_values([45.2, 44.8, 300, 21.0, 99.0], timestamp=12.0)

    assert (s.tr, s.tj, s.rpm, s.ext, s.timestamp) == (45.2, 44.8, 300.0, 21.0, 12.0)


@pytest.mark.parametrize("values", [None, [], [1.0, 2.0, 3.0], "1,2,3,4", [1, "x", 3, 4], 42])
def test_malformed_values_raise_data_error(values):
    with pytest.raises(DataError):
        SensorSample.from_values(values)


def test_short_sample_dropped_without_touching_latest():
    feed = SensorFeed()
    feed.on_sample_received([20, 21, 0, 20])

    assert feed.on_sample_received([99, 99]) is False

    assert feed.latest().tr == 20
    assert feed.dropped_count == 1
    assert feed.received_count == 1


def test_latest_wins_and_subscribers_called():
    feed = SensorFeed()
    seen = []
    feed.subscribe(seen.append)

    feed.on_sample_received([20, 21, 0, 20], timestamp=1.0)
    feed.on_sample_received([25, 26, 100, 20], timestamp=2.0)

    assert feed.latest().tj == 26
    assert [s.timestamp for s in seen] == [1.0, 2.0]


def test_non_finite_values_are_accepted_as_samples():
    feed = SensorFeed()

    assert feed.on_sample_received([float("nan"), 20, 0, 20]) is True


def test_failing_subscriber_does_not_drop_sample():
    feed = SensorFeed()

    def broken(_):
        raise RuntimeError("boom")

    feed.subscribe(broken)

    assert feed.on_sample_received([1, 2, 3, 4]) is True
    assert feed.latest() is not None
