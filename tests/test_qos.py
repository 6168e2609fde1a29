"""
Tests for shapes_interop.qos — building QoS from command-line values.
"""

import dataclasses

import pytest

from shapes_interop.exceptions import ShapesConfigError
from shapes_interop.qos import (
    Durability,
    History,
    QosPolicies,
    Reliability,
    qos_from_options,
)


def test_defaults():
    qos = qos_from_options()
    assert qos == QosPolicies()
    assert qos.reliability is Reliability.BEST_EFFORT
    assert qos.durability is Durability.VOLATILE
    assert qos.history.keep_all
    assert qos.deadline is None


def test_reliable_and_durability_codes():
    qos = qos_from_options(reliable=True, durability="l")
    assert qos.reliability is Reliability.RELIABLE
    assert qos.durability is Durability.TRANSIENT_LOCAL
    assert qos_from_options(durability="t").durability is Durability.TRANSIENT
    assert qos_from_options(durability="p").durability is Durability.PERSISTENT
    assert qos_from_options(durability="v").durability is Durability.VOLATILE


def test_unknown_durability_code_rejected():
    with pytest.raises(ShapesConfigError):
        qos_from_options(durability="x")


@pytest.mark.parametrize(
    "depth, expected",
    [("5", History(5)), ("0", History(0)), ("-1", History()), ("lots", History())],
)
def test_history_depth(depth, expected):
    assert qos_from_options(history_depth=depth).history == expected


def test_deadline_parsed_as_seconds():
    assert qos_from_options(deadline="0.5").deadline == 0.5


@pytest.mark.parametrize("value", ["soon", "0", "-2"])
def test_bad_deadline_is_fatal(value):
    with pytest.raises(ShapesConfigError):
        qos_from_options(deadline=value)


@pytest.mark.parametrize(
    "option, policy",
    [
        ("partition", "Partition"),
        ("time_based_filter", "Time Based Filter"),
        ("ownership_strength", "Ownership Strength"),
    ],
)
def test_unsupported_policies_are_fatal(option, policy):
    with pytest.raises(ShapesConfigError, match=f"QoS policy {policy} is not yet implemented"):
        qos_from_options(**{option: "1"})


def test_qos_is_immutable():
    qos = qos_from_options()
    with pytest.raises(dataclasses.FrozenInstanceError):
        qos.deadline = 1.0


def test_durability_is_ordered():
    assert Durability.VOLATILE < Durability.TRANSIENT_LOCAL < Durability.PERSISTENT
