import numpy as np
import pytest

from mvsplit.errors import DegenerateIntervalError, MissingAttributeError, VolumeLoadError
from mvsplit.models import Channel, Interval, Tile, ViewId, ViewSetup
from mvsplit.registration import ViewRegistration, ViewTransform, apply, translation


def test_interval_from_size():
    interval = Interval.from_size((1915, 600, 100))
    assert interval.min == (0, 0, 0)
    assert interval.max == (1914, 599, 99)
    assert interval.dimensions == (1915, 600, 100)
    assert interval.dimension(1) == 600
    assert interval.num_dimensions == 3


def test_interval_rejects_max_below_min():
    with pytest.raises(DegenerateIntervalError):
        Interval((0, 5), (10, 4))
    with pytest.raises(ValueError):
        Interval((0,), (1, 2))


def test_interval_str():
    assert str(Interval((0, 10), (485, 20))) == "[0 -> 485, 10 -> 20], dimensions (486 x 11)"


def test_entity_name_defaults_to_id():
    assert Channel(3).name == "3"
    assert Tile(2, "left").name == "left"
    assert Tile(1) < Tile(2)


def test_setup_ordering_and_requirements():
    setups = [ViewSetup(3), ViewSetup(1), ViewSetup(2, channel=Channel(0))]
    assert [s.id for s in sorted(setups)] == [1, 2, 3]
    assert setups[2].require_channel() == Channel(0)
    with pytest.raises(MissingAttributeError, match="'Tile'"):
        setups[2].require_tile()


def test_view_id_ordering():
    views = [ViewId(1, 0), ViewId(0, 5), ViewId(0, 2)]
    assert sorted(views) == [ViewId(0, 2), ViewId(0, 5), ViewId(1, 0)]


def test_volume_load_error_message():
    error = VolumeLoadError("/data/stack.czi", ViewId(3, 7), "boom")
    assert str(error) == "Could not load '/data/stack.czi' viewSetupId=7, tpId=3: boom"
    assert isinstance(error, RuntimeError)


def test_registration_composes_left_to_right():
    scale = np.diag([2.0, 2.0, 2.0, 1.0])[:3]
    registration = ViewRegistration(
        0, 0, [ViewTransform("scale", scale), ViewTransform("shift", translation((1, 0, 0)))]
    )
    # the last transform applies first: (0,0,0) -> (1,0,0) -> (2,0,0)
    np.testing.assert_array_equal(apply(registration.model(), (0, 0, 0)), [2, 0, 0])
    assert registration.view_id == ViewId(0, 0)

    registration.append(ViewTransform("shift", translation((0, 1, 0))))
    np.testing.assert_array_equal(apply(registration.model(), (0, 0, 0)), [2, 2, 0])


def test_empty_registration_is_identity():
    np.testing.assert_array_equal(ViewRegistration(0, 0).model(), np.eye(3, 4))
