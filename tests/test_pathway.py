from __future__ import annotations

import json

import pytest

from metaroute.pathway import FILE_EXT, IrreversibleReactionError, Pathway, PathwayFormatError


@pytest.fixture
def succ_to_icit(search) -> Pathway:
    return search.find_shortest("succ_c", "icit_c")


def test_empty_pathway_output_is_input() -> None:
    path = Pathway("succ_c")
    assert len(path) == 0
    assert path.output == "succ_c"
    assert path.last is None
    assert path.intermediates() == set()


def test_intermediates_and_main_inputs(succ_to_icit) -> None:
    assert succ_to_icit.intermediates() == {"fum_c", "mal__L_c", "oaa_c", "cit_c", "acon_C_c"}
    assert succ_to_icit.main_input(0) == "succ_c"
    assert succ_to_icit.main_input(3) == "oaa_c"
    assert succ_to_icit.includes_all(["CS", "FUM"])
    assert not succ_to_icit.includes_all(["CS", "ICL"])
    assert "MDH" in succ_to_icit
    assert [e.reaction.id for e in succ_to_icit.tail(2)] == ["ACONTa", "ACONTb"]


def test_element_inputs_and_outputs(succ_to_icit) -> None:
    cs = succ_to_icit[3]
    assert cs.reaction.id == "CS"
    assert cs.inputs() == {"oaa_c", "accoa_c", "h2o_c"}
    assert cs.outputs() == ["cit_c", "coa_c", "h_c"]
    assert str(cs) == "->(CS)cit_c"


def test_reverse_twice_is_identity(search) -> None:
    path = search.find_shortest("cit_c", "icit_c")
    back = path.reverse()
    assert back.input == "icit_c"
    assert back.output == "cit_c"
    assert back.reaction_ids == ("ACONTb", "ACONTa")
    assert [e.output for e in back] == ["acon_C_c", "cit_c"]
    assert [e.reversed for e in back] == [True, True]
    assert back.reverse() == path


def test_reverse_irreversible_raises(succ_to_icit) -> None:
    assert not succ_to_icit.is_reversible()
    with pytest.raises(IrreversibleReactionError, match="SUCDi"):
        succ_to_icit.reverse()


def test_no_reaction_twice(network) -> None:
    acont = network.reaction("ACONTa")
    path = Pathway.start("cit_c", acont, acont.stoich_for("acon_C_c"))
    with pytest.raises(ValueError):
        path.extended(acont, acont.stoich_for("cit_c"))


def test_append(search) -> None:
    head = search.find_shortest("succ_c", "oaa_c")
    rest = search.find_shortest("oaa_c", "icit_c")
    joined = head.append(rest)
    assert joined.input == "succ_c"
    assert joined.output == "icit_c"
    assert joined.reaction_ids == head.reaction_ids + rest.reaction_ids
    assert [e.seq for e in joined] == list(range(1, len(joined) + 1))
    with pytest.raises(ValueError):
        rest.append(head)


def test_ordering_by_length_then_reactions(search) -> None:
    short = search.find_shortest("icit_c", "mal__L_c")
    long = search.find_shortest("succ_c", "icit_c")
    other = search.find_shortest("icit_c", "cit_c")
    assert short < long
    assert sorted([other, short]) == [other, short]


def test_branches(network, succ_to_icit) -> None:
    branches = succ_to_icit.branches(network)
    assert {c: [r.id for r in rs] for c, rs in branches.items()} == {
        "mal__L_c": ["DEAD"],
        "cit_c": ["CITL"],
    }
    with_end = succ_to_icit.branches(network, include_terminus=True)
    assert [r.id for r in with_end["icit_c"]] == ["ICDHyr", "ICL"]


def test_required_inputs(network, succ_to_icit) -> None:
    assert dict(succ_to_icit.required_inputs(network)) == {"succ_c": 1.0}
    assert dict(succ_to_icit.required_inputs(network, include_commons=True)) == {
        "succ_c": 1.0,
        "q8_c": 1.0,
        "nad_c": 1.0,
        "accoa_c": 1.0,
    }


def test_record_round_trip(network, succ_to_icit) -> None:
    record = succ_to_icit.to_dict()
    assert record["input"] == "succ_c"
    assert record["goal"] == "icit_c"
    assert record["elements"][0] == {"reaction_id": "SUCDi", "output": "fum_c", "reversed": False}
    again = Pathway.from_dict(json.loads(json.dumps(record)), network)
    assert again == succ_to_icit
    assert again.goal == "icit_c"
    assert again.reaction_ids == succ_to_icit.reaction_ids


def test_reversed_record_round_trip(network, search) -> None:
    path = search.find_shortest("icit_c", "cit_c")
    assert Pathway.from_json(path.to_json(), network) == path


def test_save_and_load(tmp_path, network, succ_to_icit) -> None:
    out = succ_to_icit.save(tmp_path / f"succ_icit{FILE_EXT}")
    assert out.exists()
    assert Pathway.load(out, network) == succ_to_icit
    with pytest.raises(FileNotFoundError):
        Pathway.load(tmp_path / "missing.path.json", network)


@pytest.mark.parametrize(
    "record",
    [
        {"elements": []},
        {"input": "succ_c", "elements": [{"reaction_id": "NOPE", "output": "fum_c", "reversed": False}]},
        {"input": "succ_c", "elements": [{"reaction_id": "SUCDi", "output": "zzz_c", "reversed": False}]},
        {"input": "succ_c", "elements": [{"reaction_id": "SUCDi", "output": "fum_c", "reversed": True}]},
        {"input": "oaa_c", "elements": [{"reaction_id": "SUCDi", "output": "fum_c", "reversed": False}]},
        {"input": "succ_c", "elements": "SUCDi"},
        {
            "input": "cit_c",
            "elements": [
                {"reaction_id": "ACONTa", "output": "acon_C_c", "reversed": False},
                {"reaction_id": "ACONTa", "output": "cit_c", "reversed": True},
            ],
        },
    ],
)
def test_malformed_records(network, record) -> None:
    with pytest.raises(PathwayFormatError):
        Pathway.from_dict(record, network)


def test_bad_json(network) -> None:
    with pytest.raises(PathwayFormatError):
        Pathway.from_json("{not json", network)
