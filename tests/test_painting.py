from __future__ import annotations

from metaroute.network import ActiveDirection
from metaroute.painting import ConnectivityPainter, PaintDirection


def test_producer_painting_distances(network) -> None:
    painting = ConnectivityPainter(network).paint("icit_c", PaintDirection.PRODUCERS)
    assert painting == {
        "icit_c": 0,
        "acon_C_c": 1,
        "akg_c": 1,
        "cit_c": 2,
        "oaa_c": 3,
        "mal__L_c": 4,
        "fum_c": 5,
        "glx_c": 5,
        "succ_c": 6,
        "succoa_c": 7,
    }


def test_commons_are_never_stepping_stones(network) -> None:
    painting = ConnectivityPainter(network).paint("icit_c")
    assert network.commons().isdisjoint(painting)


def test_common_target_still_gets_zero(network) -> None:
    painting = ConnectivityPainter(network).paint("h2o_c", PaintDirection.CONSUMERS)
    assert painting["h2o_c"] == 0


def test_ceiling_drops_far_compounds(network) -> None:
    painter = ConnectivityPainter(network, max_distance=3)
    assert painter.paint("mal__L_c", PaintDirection.CONSUMERS) == {
        "mal__L_c": 0,
        "fum_c": 1,
        "oaa_c": 1,
        "orphan_c": 1,
        "cit_c": 2,
    }


def test_every_distance_has_a_parent_one_step_closer(network) -> None:
    painting = ConnectivityPainter(network).paint("succ_c", PaintDirection.CONSUMERS)
    for compound, dist in painting.items():
        if dist == 0:
            continue
        parents = [
            other
            for other, d in painting.items()
            if d == dist - 1
            and any(
                compound in (s.metabolite for s in r.outputs_for(other))
                for r in network.successors_of(other)
            )
        ]
        assert parents, compound


def test_both_is_the_minimum_of_each_direction(network) -> None:
    painter = ConnectivityPainter(network)
    producers = painter.paint("oaa_c", PaintDirection.PRODUCERS)
    consumers = painter.paint("oaa_c", PaintDirection.CONSUMERS)
    both = painter.paint("oaa_c", PaintDirection.BOTH)
    assert set(both) == set(producers) | set(consumers)
    for compound, dist in both.items():
        assert dist == min(producers.get(compound, 10**6), consumers.get(compound, 10**6))


def test_cache_follows_network_changes(network) -> None:
    painter = ConnectivityPainter(network)
    before = painter.paint("icit_c")
    assert before["cit_c"] == 2
    network.set_active_direction("ACONTa", ActiveDirection.NEITHER)
    after = painter.paint("icit_c")
    assert "cit_c" not in after
    assert painter.distance("acon_C_c", "icit_c") == 1
