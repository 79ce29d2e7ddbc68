"""End-to-end ingestion of tiny MIND archives into a local SQLite graph."""

import json
from pathlib import Path

import pytest

from conftest import FakeHTTPClient, behavior_line, entity_json, news_line, page_html
from mind_graph.commands import ingest as ingest_cmd
from mind_graph.core.dataset import TypeMap
from mind_graph.core.graph_schema import Edges, NegativeImpressionPolicy
from mind_graph.core.graph_store import NodeRef, SQLiteGraphStore
from mind_graph.core.html_cache import HtmlCache
from mind_graph.processors.commit_batcher import CommitBatcher
from mind_graph.processors.content_enricher import ContentEnricher
from mind_graph.processors.graph_builder import GraphBuilder
from mind_graph.processors.pipeline import IngestPipeline
from mind_graph.processors.record_reader import ArchiveDecodeError, RecordReader
from mind_graph.processors.scheduler import BoundedScheduler

N1_URL = "https://assets.msn.com/labs/mind/N1.html"


def build_pipeline(tmp_path, archive, pages=None, types=None, max_in_flight=20, commit_every=10000,
                   negative_policy=NegativeImpressionPolicy.IGNORED):
    store = SQLiteGraphStore(str(tmp_path / "graph.db"))
    builder = GraphBuilder(store, negative_policy=negative_policy)
    builder.register_schema()
    enricher = ContentEnricher(
        TypeMap(types if types is not None else {"N1": "ar"}),
        HtmlCache(tmp_path / "cache"),
        FakeHTTPClient(pages if pages is not None else {N1_URL: page_html(["Body of N1."])}),
    )
    pipeline = IngestPipeline(
        reader=RecordReader(archive),
        enricher=enricher,
        builder=builder,
        batcher=CommitBatcher(store, commit_every=commit_every),
        scheduler=BoundedScheduler(max_in_flight=max_in_flight),
    )
    return pipeline, store


def n1_archive(make_archive):
    news = [news_line("N1", title_entities=[entity_json("Q1", "Foo", ["Foo", "F."])])]
    behaviors = [behavior_line("1", "U1", history="N1", impressions="N1-1")]
    return make_archive(news, behaviors)


def test_single_article_single_user_end_to_end(tmp_path, make_archive):
    pipeline, store = build_pipeline(tmp_path, n1_archive(make_archive))

    summary = pipeline.run()

    assert summary.articles == 1
    assert summary.impressions == 1
    assert summary.enrichment_failures == 0
    assert summary.flushes == 2

    n1, u1 = NodeRef("Article", "N1"), NodeRef("User", "U1")
    q1, news = NodeRef("Entity", "Q1"), NodeRef("Category", "news")
    politics = NodeRef("Subcategory", "politics")

    assert store.get_node("Article", "N1")["full_text"] == "Body of N1."
    assert store.count_nodes("Article") == 1
    assert store.count_nodes("User") == 1
    assert store.count_nodes("Entity") == 1
    assert store.aliases_for(q1, "en") == ["Foo", "F."]
    assert store.has_edge(n1, Edges.Mentions, q1) and store.has_edge(q1, Edges.AppearsIn, n1)
    assert store.has_edge(n1, Edges.HasCategory, news) and store.has_edge(news, Edges.CategoryOf, n1)
    assert store.has_edge(n1, Edges.HasSubcategory, politics)
    assert store.has_edge(news, Edges.HasSubcategory, politics)
    # History and a clicked impression of the same article collapse to one edge.
    assert store.count_edges(Edges.Viewed) == 1
    assert store.has_edge(n1, Edges.ViewedBy, u1)
    assert store.count_edges(Edges.Ignored) == 0
    assert store.pending_count == 0


def test_failed_enrichment_does_not_abort_the_run(tmp_path, make_archive):
    news = [news_line("N1"), news_line("N2"), news_line("N3")]
    behaviors = [behavior_line("1", "U1", impressions="N2-0 N3-1")]
    pipeline, store = build_pipeline(tmp_path, make_archive(news, behaviors), types={"N1": "ar", "N2": "ar"})

    summary = pipeline.run()

    assert summary.articles == 3
    assert summary.enrichment_failures == 2
    assert store.count_nodes("Article") == 3
    assert store.get_node("Article", "N2")["timestamp"] == "1970-01-01T00:00:00+00:00"
    assert store.neighbors(NodeRef("User", "U1"), Edges.Ignored) == [NodeRef("Article", "N2")]
    assert store.neighbors(NodeRef("User", "U1"), Edges.Viewed) == [NodeRef("Article", "N3")]


def test_unparseable_page_does_not_stop_later_articles(tmp_path, make_archive):
    n2_url = "https://assets.msn.com/labs/mind/N2.html"
    pages = {N1_URL: "<p>x</p><![\x00", n2_url: page_html(["Body of N2."])}
    archive = make_archive([news_line("N1"), news_line("N2")], [])
    pipeline, store = build_pipeline(
        tmp_path, archive, pages=pages, types={"N1": "ar", "N2": "ar"}, max_in_flight=1,
    )

    summary = pipeline.run()

    assert summary.articles == 2
    assert summary.enrichment_failures == 1
    assert store.get_node("Article", "N1")["full_text"] is None
    assert store.get_node("Article", "N2")["full_text"] == "Body of N2."


@pytest.mark.parametrize("max_in_flight", [1, 4])
def test_result_does_not_depend_on_concurrency(tmp_path, make_archive, max_in_flight):
    news = [news_line(f"N{i}", title_entities=[entity_json("Q1", "Foo", ["Foo"])]) for i in range(30)]
    pipeline, store = build_pipeline(tmp_path, make_archive(news, []), max_in_flight=max_in_flight)

    pipeline.run()

    assert store.count_nodes("Article") == 30
    assert store.count_nodes("Entity") == 1
    assert store.count_edges(Edges.Mentions) == 30
    assert pipeline.scheduler.peak_in_flight <= max_in_flight


def test_impression_pass_commits_periodically(tmp_path, make_archive):
    behaviors = [behavior_line(str(i), f"U{i}", history="N1") for i in range(5)]
    pipeline, store = build_pipeline(tmp_path, make_archive([news_line("N1")], behaviors), commit_every=2)

    summary = pipeline.run()

    assert pipeline.batcher.barrier_flushes == 1
    assert pipeline.batcher.periodic_flushes == 2
    assert pipeline.batcher.final_flushes == 1
    assert summary.flushes == 4
    assert store.count_nodes("User") == 5


def test_viewed_policy_end_to_end(tmp_path, make_archive):
    archive = make_archive([news_line("N1")], [behavior_line("1", "U1", impressions="N1-0")])
    pipeline, store = build_pipeline(tmp_path, archive, negative_policy=NegativeImpressionPolicy.VIEWED)

    pipeline.run()

    assert store.count_edges(Edges.Viewed) == 1
    assert store.count_edges(Edges.Ignored) == 0


def test_malformed_archive_aborts_the_run(tmp_path, make_archive):
    archive = make_archive([news_line("N1")], [behavior_line("1", "U1", impressions="N1")])
    pipeline, store = build_pipeline(tmp_path, archive)

    with pytest.raises(ArchiveDecodeError):
        pipeline.run()

    # The article pass was already committed by the barrier.
    assert store.count_nodes("Article") == 1


def test_ingest_command_runs_offline_against_local_data(tmp_path, make_archive, monkeypatch):
    data_root = tmp_path / "runtime"
    monkeypatch.setenv("MIND_GRAPH_DATA_DIR", str(data_root))
    archives = data_root / "data"
    archives.mkdir(parents=True)

    archive = n1_archive(make_archive)
    (archives / "MINDsmall_train.zip").write_bytes(Path(archive).read_bytes())
    (archives / "MINDsmall_dev.zip").write_bytes(b"")
    (archives / "doc_type.json").write_text(json.dumps({"N1": "ar"}), encoding="utf-8")
    HtmlCache(data_root / "html_cache").put("N1", page_html(["Cached N1."]))

    graph_path = tmp_path / "graph.db"
    summary = ingest_cmd.run(
        str(tmp_path / "config" / "config.yaml"),
        "small",
        str(graph_path),
        "unused",
        max_in_flight=2,
        commit_every=1,
    )

    assert summary.articles == 1
    assert summary.impressions == 1
    assert summary.enrichment_failures == 0
    store = SQLiteGraphStore(str(graph_path))
    assert store.get_node("Article", "N1")["full_text"] == "Cached N1."
    assert store.count_edges(Edges.Viewed) == 1


def test_ingest_command_rejects_unknown_size(tmp_path, monkeypatch):
    monkeypatch.setenv("MIND_GRAPH_DATA_DIR", str(tmp_path))

    with pytest.raises(ValueError, match="Invalid type"):
        ingest_cmd.run(str(tmp_path / "config.yaml"), "medium", str(tmp_path / "g.db"), "t")
