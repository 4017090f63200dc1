from __future__ import annotations

import pytest

from metaroute.filters import AvoidFilter, CofactorFilter, IncludeFilter, PathwayFilter
from metaroute.network import ActiveDirection, Reaction, ReactionNetwork
from metaroute.pathway import Pathway
from metaroute.search import PathwaySearch


class RejectAll(PathwayFilter):
    command = "REJECT"

    def is_good(self, path: Pathway) -> bool:
        return False


def _assert_well_formed(path: Pathway, source: str, target: str) -> None:
    assert path.input == source
    assert path.output == target
    ids = path.reaction_ids
    assert len(ids) == len(set(ids))
    previous = source
    for element in path:
        assert previous in element.inputs()
        previous = element.output


def test_find_shortest(search) -> None:
    path = search.find_shortest("succ_c", "icit_c")
    assert path is not None
    _assert_well_formed(path, "succ_c", "icit_c")
    assert path.reaction_ids == ("SUCDi", "FUM", "MDH", "CS", "ACONTa", "ACONTb")
    assert path.outputs() == ["fum_c", "mal__L_c", "oaa_c", "cit_c", "acon_C_c", "icit_c"]
    assert path.is_complete()


def test_find_shortest_through_reversed_steps(search) -> None:
    path = search.find_shortest("icit_c", "mal__L_c")
    assert path.reaction_ids == ("ICL", "MALS")
    back = search.find_shortest("icit_c", "cit_c")
    assert back.reaction_ids == ("ACONTb", "ACONTa")
    assert [e.reversed for e in back] == [True, True]


def test_source_without_successors_is_not_found(search) -> None:
    assert search.find_shortest("orphan_c", "icit_c") is None
    assert search.find_shortest("ac_c", "oaa_c") is None
    assert search.find_shortest("not_a_compound", "oaa_c") is None


def test_unreachable_goal_is_not_found(search) -> None:
    assert search.find_shortest("succ_c", "not_a_compound") is None


def test_always_rejecting_filter_finds_nothing(network, search) -> None:
    assert search.find_shortest("succ_c", "icit_c", RejectAll(network, [])) is None


def test_avoid_filter_forces_detour(network, search) -> None:
    path = search.find_shortest("icit_c", "mal__L_c", AvoidFilter(network, ["glx_c"]))
    _assert_well_formed(path, "icit_c", "mal__L_c")
    assert path.reaction_ids == ("ICL", "SUCDi", "FUM")
    assert path[0].output == "succ_c"


def test_include_filter_requires_reaction(network, search) -> None:
    path = search.find_shortest("icit_c", "mal__L_c", IncludeFilter(network, ["CITL"]))
    _assert_well_formed(path, "icit_c", "mal__L_c")
    assert path.reaction_ids == ("ACONTb", "ACONTa", "CITL", "MDH")


def test_cofactor_filter(make_network, tca_commons) -> None:
    network = make_network(commons=tca_commons - {"accoa_c"})
    search = PathwaySearch(network)
    assert search.find_shortest("mal__L_c", "cit_c", CofactorFilter(network, [])) is None
    path = search.find_shortest("mal__L_c", "cit_c", CofactorFilter(network, ["accoa_c"]))
    assert path.reaction_ids == ("MDH", "CS")


def test_cofactor_filter_follows_later_commons(make_network, tca_commons) -> None:
    network = make_network(commons=tca_commons - {"accoa_c"})
    search = PathwaySearch(network)
    cofactors = CofactorFilter(network, [])
    assert search.find_shortest("mal__L_c", "cit_c", cofactors) is None
    network.add_commons(["accoa_c"])
    path = search.find_shortest("mal__L_c", "cit_c", cofactors)
    assert path.reaction_ids == ("MDH", "CS")


def test_suppressed_reaction_is_never_used(network, search) -> None:
    network.set_active_direction("ACONTa", ActiveDirection.NEITHER)
    assert search.find_shortest("succ_c", "icit_c") is None
    path = search.find_shortest("icit_c", "cit_c")
    assert path.reaction_ids == ("ICL", "MALS", "MDH", "CS")
    network.reset_flow()
    assert search.find_shortest("succ_c", "icit_c") is not None


def test_forward_only_reaction(network, search) -> None:
    network.set_active_direction("ACONTa", ActiveDirection.FORWARD)
    path = search.find_shortest("icit_c", "cit_c")
    assert "ACONTa" not in path
    assert len(path) == 4


def test_extend(search) -> None:
    first = search.find_shortest("icit_c", "mal__L_c")
    longer = search.extend(first, "oaa_c")
    assert longer.reaction_ids == ("ICL", "MALS", "MDH")
    assert longer.goal == "oaa_c"


def test_extend_empty_pathway_matches_find_shortest(search) -> None:
    assert search.extend(Pathway("succ_c"), "icit_c") == search.find_shortest("succ_c", "icit_c")


def test_loop_irreversible_pathway(search) -> None:
    path = search.find_shortest("succ_c", "icit_c")
    loop = search.loop(path)
    assert loop.input == "succ_c"
    assert loop.output == "succ_c"
    assert loop.reaction_ids == path.reaction_ids + ("ICL",)


def test_loop_reversible_pathway(search) -> None:
    path = search.find_shortest("cit_c", "icit_c")
    assert path.is_reversible()
    loop = search.loop(path)
    assert loop.output == loop.input == "cit_c"
    assert loop.reaction_ids == ("ACONTa", "ACONTb", "ICL", "MALS", "MDH", "CS")


def test_length_ceiling_prunes(network) -> None:
    search = PathwaySearch(network, max_path_len=5)
    assert search.find_shortest("succ_c", "icit_c") is None
    assert search.find_shortest("icit_c", "mal__L_c") is not None


def test_search_is_deterministic(make_network) -> None:
    results = {PathwaySearch(make_network()).find_shortest("succ_c", "cit_c").reaction_ids for _ in range(3)}
    assert len(results) == 1


def test_seed_without_goal_rejected(network, search) -> None:
    seed = Pathway.start("icit_c", network.reaction("ICL"), network.reaction("ICL").stoich_for("glx_c"))
    with pytest.raises(ValueError):
        search.search([seed])


def _water_network() -> ReactionNetwork:
    reactions = [
        Reaction("R1", {"x_c": -1, "h2o_c": 1, "y_c": 1}),
        Reaction("R2", {"h2o_c": -1, "a_c": -1, "t_c": 1}),
    ]
    return ReactionNetwork(reactions, commons={"h2o_c"})


def test_common_compound_never_carries_mainline() -> None:
    search = PathwaySearch(_water_network())
    assert search.find_shortest("x_c", "t_c") is None


def test_common_compound_can_be_the_goal() -> None:
    search = PathwaySearch(_water_network())
    path = search.find_shortest("x_c", "h2o_c")
    assert path.reaction_ids == ("R1",)
    assert path.output == "h2o_c"
