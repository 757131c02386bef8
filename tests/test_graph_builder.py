import asyncio

import pytest

from citegraph.cache import RecordFileCache
from citegraph.clients.base import UpstreamError
from citegraph.exceptions import RecordNotFoundError, UpstreamUnavailableError, ValidationError
from citegraph.graph import CitationGraphBuilder, filter_edges
from citegraph.models import EdgeType, NetworkEdge, NetworkNode, TraversalMode
from citegraph.services import IdentifierResolverService, LinkDiscoveryService, MetadataFetcherService
from citegraph.storage import InMemoryNetworkStore

BOTH_MODES = pytest.mark.parametrize("mode", [TraversalMode.STAGED, TraversalMode.INTERLEAVED])


def make_builder(fake, tmp_path, *, store=None, **kwargs):
    store = store or InMemoryNetworkStore()
    builder = CitationGraphBuilder(
        resolver=IdentifierResolverService(fake),
        fetcher=MetadataFetcherService(fake, RecordFileCache(tmp_path / "cache")),
        links=LinkDiscoveryService(fake),
        store=store,
        **kwargs,
    )
    return builder, store


def levels(network):
    return {node.id: node.level for node in network.nodes}


def edge_pairs(network):
    return {(edge.source, edge.target) for edge in network.edges}


def assert_well_formed(network, depth):
    ids = [node.id for node in network.nodes]
    assert len(ids) == len(set(ids))
    assert all(0 <= node.level <= depth for node in network.nodes)
    for edge in network.edges:
        assert edge.source in ids and edge.target in ids
    assert network.metadata.total_nodes == len(network.nodes)
    assert network.metadata.total_edges == len(network.edges)


@BOTH_MODES
def test_single_hop_network(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.x/y": ["100"]},
        records=make_records(["100", "200", "300"]),
        citing={"100": ["200", "300"]},
    )
    builder, store = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.X/Y", 1))

    assert levels(network) == {"100": 0, "200": 1, "300": 1}
    assert edge_pairs(network) == {("200", "100"), ("300", "100")}
    assert all(edge.type is EdgeType.CITES for edge in network.edges)
    assert network.root_doi == "10.x/y"
    assert network.depth == 1
    assert network.id is not None
    assert network.metadata.max_depth == 1
    assert network.metadata.traversal_mode is mode
    assert store.get_by_root_and_depth("10.x/y", 1) == network
    assert store.get_paper_by_id("200").title == "Paper 200"


@BOTH_MODES
def test_related_edges_point_away_from_expanded_paper(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2", "3", "4"]),
        citing={"1": ["2", "3"]},
        related={"1": ["3", "4"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert levels(network) == {"1": 0, "2": 1, "3": 1, "4": 1}
    assert edge_pairs(network) == {("2", "1"), ("3", "1"), ("1", "4")}


@BOTH_MODES
def test_id_in_both_relations_gets_only_the_citing_edge(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "3"]),
        citing={"1": ["3", "3"]},
        related={"1": ["3"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert [(e.source, e.target, e.type) for e in network.edges] == [("3", "1", EdgeType.CITES)]


@BOTH_MODES
def test_corrupt_cache_entry_is_refetched(tmp_path, make_fake_eutils, make_records, mode):
    cache_dir = tmp_path / "cache"
    cache_dir.mkdir()
    (cache_dir / "2.xml").write_bytes(b"\xff\xfe\xfa garbage")
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "3"]),
        citing={"1": ["2", "3"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert levels(network) == {"1": 0, "3": 1}
    assert ("efetch", "2") in fake.calls


def test_unknown_doi_raises_and_stores_nothing(tmp_path, make_fake_eutils):
    builder, store = make_builder(make_fake_eutils(), tmp_path)

    with pytest.raises(RecordNotFoundError):
        asyncio.run(builder.build("10.0/missing", 2))

    assert store.list_networks() == []


def test_resolution_failure_raises_unavailable(tmp_path, make_fake_eutils):
    fake = make_fake_eutils(search={"10.1/root": UpstreamError("down")})
    builder, store = make_builder(fake, tmp_path)

    with pytest.raises(UpstreamUnavailableError):
        asyncio.run(builder.build("10.1/root", 1))

    assert store.list_networks() == []


def test_negative_depth_is_rejected(tmp_path, make_fake_eutils):
    builder, _ = make_builder(make_fake_eutils(), tmp_path)

    with pytest.raises(ValidationError):
        asyncio.run(builder.build("10.1/root", -1))


@BOTH_MODES
def test_stored_network_is_returned_without_upstream_calls(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2"]),
        citing={"1": ["2"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    first = asyncio.run(builder.build("10.1/root", 1))
    calls_after_first = list(fake.calls)
    second = asyncio.run(builder.build("https://doi.org/10.1/ROOT", 1))

    assert second == first
    assert fake.calls == calls_after_first


@BOTH_MODES
def test_depth_zero_yields_only_root(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2"]),
        citing={"1": ["2"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 0))

    assert levels(network) == {"1": 0}
    assert network.edges == []
    assert fake.calls_for("elink") == []


@BOTH_MODES
def test_root_without_links(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(search={"10.1/root": ["1"]}, records=make_records(["1"]))
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 3))

    assert levels(network) == {"1": 0}
    assert network.edges == []


@BOTH_MODES
def test_failed_fetch_keeps_visited_slot_and_is_not_retried(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["100"]},
        records=make_records(["100", "200"]),
        citing={"100": ["200", "300"], "200": ["300"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 2))

    assert levels(network) == {"100": 0, "200": 1}
    assert edge_pairs(network) == {("200", "100")}
    assert fake.calls_for("efetch").count(("efetch", "300")) == 1
    assert_well_formed(network, 2)


@BOTH_MODES
def test_unparseable_record_is_dropped(tmp_path, make_fake_eutils, make_records, mode):
    records = make_records(["1", "2"])
    records["3"] = "<PubmedArticleSet><PubmedArticle>"
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=records,
        citing={"1": ["2", "3"]},
    )
    builder, store = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert levels(network) == {"1": 0, "2": 1}
    assert store.get_paper_by_id("3") is None


@BOTH_MODES
def test_link_failure_only_loses_that_relation(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2"]),
        citing={"1": UpstreamError("elink down")},
        related={"1": ["2"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert levels(network) == {"1": 0, "2": 1}
    assert edge_pairs(network) == {("1", "2")}


@BOTH_MODES
def test_limits_bound_followed_links(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records([str(i) for i in range(1, 20)]),
        citing={"1": ["2", "3", "4", "5"]},
        related={"1": ["10", "11", "12"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode, citing_limit=2, related_limit=1)

    network = asyncio.run(builder.build("10.1/root", 1))

    assert levels(network) == {"1": 0, "2": 1, "3": 1, "10": 1}


@BOTH_MODES
def test_deeper_graph_is_well_formed(tmp_path, make_fake_eutils, make_records, mode):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records([str(i) for i in range(1, 12)]),
        citing={"1": ["2", "3"], "2": ["4", "5", "1"], "3": ["5", "6"], "4": ["7"], "6": ["8"]},
        related={"1": ["9"], "5": ["10", "2"], "9": ["11", "3"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=mode, max_concurrent_requests=2)

    network = asyncio.run(builder.build("10.1/root", 2))

    assert_well_formed(network, 2)
    assert levels(network)["1"] == 0
    assert {"7", "8"}.isdisjoint(levels(network))


def test_staged_mode_assigns_minimum_levels(tmp_path, make_fake_eutils, make_records):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2", "3", "4"]),
        citing={"1": ["2", "3"], "2": ["4"], "3": ["2"]},
        related={"1": ["4"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=TraversalMode.STAGED)

    network = asyncio.run(builder.build("10.1/root", 3))

    assert levels(network) == {"1": 0, "2": 1, "3": 1, "4": 1}


def test_staged_mode_fetches_in_batches(tmp_path, make_fake_eutils, article_xml):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        citing={"1": ["2", "3", "4", "5", "6"]},
    )
    builder, _ = make_builder(fake, tmp_path, mode=TraversalMode.STAGED, fetch_batch_size=2)

    in_flight = 0
    peak = 0
    fetched = []

    async def tracking_fetch(pmid):
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0)
        in_flight -= 1
        fetched.append(pmid)
        return article_xml(pmid)

    builder.fetcher.fetch = tracking_fetch

    network = asyncio.run(builder.build("10.1/root", 1))

    assert peak == 2
    assert sorted(fetched) == ["1", "2", "3", "4", "5", "6"]
    assert len(network.nodes) == 6


def test_mode_override_per_call(tmp_path, make_fake_eutils, make_records):
    fake = make_fake_eutils(search={"10.1/root": ["1"]}, records=make_records(["1"]))
    builder, _ = make_builder(fake, tmp_path, mode=TraversalMode.STAGED)

    network = asyncio.run(builder.build("10.1/root", 1, mode=TraversalMode.INTERLEAVED))

    assert network.metadata.traversal_mode is TraversalMode.INTERLEAVED


def test_records_are_served_from_cache_across_depths(tmp_path, make_fake_eutils, make_records):
    fake = make_fake_eutils(
        search={"10.1/root": ["1"]},
        records=make_records(["1", "2"]),
        citing={"1": ["2"]},
    )
    builder, _ = make_builder(fake, tmp_path)

    asyncio.run(builder.build("10.1/root", 1))
    asyncio.run(builder.build("10.1/root", 2))

    assert sorted(call[1] for call in fake.calls_for("efetch")) == ["1", "2"]


def test_invalid_builder_settings():
    with pytest.raises(ValueError):
        CitationGraphBuilder(resolver=None, fetcher=None, links=None, store=None, fetch_batch_size=0)


def test_filter_edges_drops_dangling_and_duplicate_edges():
    nodes = [NetworkNode(id="1", title="a", level=0), NetworkNode(id="2", title="b", level=1)]
    edges = [
        NetworkEdge(source="2", target="1"),
        NetworkEdge(source="2", target="1"),
        NetworkEdge(source="3", target="1"),
        NetworkEdge(source="1", target="2", type=EdgeType.CITED_BY),
    ]

    kept = filter_edges(nodes, edges)

    assert [(e.source, e.target, e.type) for e in kept] == [
        ("2", "1", EdgeType.CITES),
        ("1", "2", EdgeType.CITED_BY),
    ]
