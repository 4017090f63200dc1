from __future__ import annotations

import pytest

from metaroute.network import DEFAULT_COMMONS, MetaboliteNode, Reaction, ReactionNetwork
from metaroute.search import PathwaySearch

# (id, stoichiometry, reversible, rule)
TCA_REACTIONS = [
    ("CS", {"oaa_c": -1, "accoa_c": -1, "h2o_c": -1, "cit_c": 1, "coa_c": 1, "h_c": 1}, False, "b0720"),
    ("ACONTa", {"cit_c": -1, "acon_C_c": 1, "h2o_c": 1}, True, "b0118 or b1276"),
    ("ACONTb", {"acon_C_c": -1, "h2o_c": -1, "icit_c": 1}, True, "b0118 or b1276"),
    ("ICDHyr", {"icit_c": -1, "nadp_c": -1, "akg_c": 1, "co2_c": 1, "nadph_c": 1}, True, "b1136"),
    ("AKGDH", {"akg_c": -1, "coa_c": -1, "nad_c": -1, "succoa_c": 1, "co2_c": 1, "nadh_c": 1}, False,
     "b0116 and b0726 and b0727"),
    ("SUCOAS", {"succoa_c": -1, "adp_c": -1, "pi_c": -1, "succ_c": 1, "coa_c": 1, "atp_c": 1}, True,
     "b0728 and b0729"),
    ("SUCDi", {"succ_c": -1, "q8_c": -1, "fum_c": 1, "q8h2_c": 1}, False, "b0721 and b0722 and b0723 and b0724"),
    ("FUM", {"fum_c": -1, "h2o_c": -1, "mal__L_c": 1}, True, "b1611 or b1612 or b4122"),
    ("MDH", {"mal__L_c": -1, "nad_c": -1, "oaa_c": 1, "nadh_c": 1, "h_c": 1}, True, "b3236"),
    ("ICL", {"icit_c": -1, "glx_c": 1, "succ_c": 1}, False, "b4015"),
    ("MALS", {"accoa_c": -1, "glx_c": -1, "h2o_c": -1, "mal__L_c": 1, "coa_c": 1, "h_c": 1}, False,
     "b4014 or b2976"),
    ("CITL", {"cit_c": -1, "ac_c": 1, "oaa_c": 1}, False, "b0615 and b0616"),
    ("DEAD", {"mal__L_c": -1, "orphan_c": 1}, False, "b9999"),
]

GENE_NAMES = {
    "MDH": {"b3236": "mdh"},
    "ICL": {"b4015": "aceA"},
    "CS": {"b0720": "gltA"},
}

COMPOUND_NAMES = {
    "oaa_c": "Oxaloacetate",
    "cit_c": "Citrate",
    "acon_C_c": "cis-Aconitate",
    "icit_c": "Isocitrate",
    "akg_c": "2-Oxoglutarate",
    "succoa_c": "Succinyl-CoA",
    "succ_c": "Succinate",
    "fum_c": "Fumarate",
    "mal__L_c": "L-Malate",
    "glx_c": "Glyoxylate",
    "ac_c": "Acetate",
}

TCA_COMMONS = DEFAULT_COMMONS | {"coa_c", "accoa_c", "nadp_c", "q8_c", "q8h2_c"}


def _build(**kwargs) -> ReactionNetwork:
    kwargs.setdefault("commons", TCA_COMMONS)
    reactions = [
        Reaction(rid, stoich, rule=rule, reversible=rev, aliases=GENE_NAMES.get(rid))
        for rid, stoich, rev, rule in TCA_REACTIONS
    ]
    nodes = [MetaboliteNode(i, cid, name, "c") for i, (cid, name) in enumerate(COMPOUND_NAMES.items())]
    return ReactionNetwork(reactions, nodes, name="tca", **kwargs)


@pytest.fixture
def make_network():
    return _build


@pytest.fixture
def network() -> ReactionNetwork:
    return _build()


@pytest.fixture
def search(network) -> PathwaySearch:
    return PathwaySearch(network)


@pytest.fixture
def tca_commons() -> frozenset[str]:
    return TCA_COMMONS


def _toy_model():
    """
    Minimal cobra model without a full GSM:
    a_c <=> b_c (R1, reversible), b_c -> 2 c_c (R2).
    """
    from cobra import Metabolite, Model, Reaction

    m = Model("toy")
    a = Metabolite("a_c", name="A", compartment="c")
    b = Metabolite("b_c", name="B", compartment="c")
    c = Metabolite("c_c", name="C", compartment="c")

    r1 = Reaction("R1")
    r1.name = "a to b"
    r1.add_metabolites({a: -1, b: 1})
    r1.lower_bound = -1000.0
    r1.upper_bound = 1000.0

    r2 = Reaction("R2")
    r2.name = "b to c"
    r2.add_metabolites({b: -1, c: 2})
    r2.lower_bound = 0.0
    r2.upper_bound = 1000.0

    m.add_reactions([r1, r2])
    r1.gene_reaction_rule = "g1 or g2"
    r2.gene_reaction_rule = "g3"
    m.genes.get_by_id("g3").name = "abcD"
    return m


@pytest.fixture
def toy_model():
    return _toy_model


@pytest.fixture
def toy_model_file(tmp_path):
    from cobra.io import save_json_model

    p = tmp_path / "toy.json"
    save_json_model(_toy_model(), str(p))
    return p
