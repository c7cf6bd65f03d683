import json

import pytest

from conftest import FailingEmbeddings, KeywordEmbeddings
from docvec.errors import ConfigError, EmbeddingError, IngestError, StorageError
from docvec.ingestion.catalog import check_invariants, load_catalog


def catalog_of(index):
    return load_catalog(index.catalog_path)


def test_upsert_then_delete(doc_index):
    doc = doc_index.upsert_document("f.txt", "hello world")
    document_id = doc.id
    assert doc_index.get_document_id("f.txt") == document_id
    assert doc_index.get_document_uri(document_id) == "f.txt"

    doc_index.delete_document("f.txt")

    assert doc_index.get_document_id("f.txt") is None
    assert doc_index.store.list_items_by_metadata({"documentId": document_id}) == []
    assert not (doc_index.folder_path / f"{document_id}.txt").exists()
    check_invariants(catalog_of(doc_index))


def test_upsert_twice_keeps_one_document(doc_index):
    first = doc_index.upsert_document("notes/a.md", "apple banana cherry")
    count_after_first = catalog_of(doc_index)["count"]
    second = doc_index.upsert_document("notes/a.md", "apple banana cherry")

    catalog = catalog_of(doc_index)
    assert catalog["count"] == count_after_first == 1
    assert catalog["uriToId"] == {"notes/a.md": second.id}
    assert doc_index.store.list_items_by_metadata({"documentId": first.id}) == []
    assert doc_index.store.list_items_by_metadata({"documentId": second.id})
    assert not (doc_index.folder_path / f"{first.id}.txt").exists()
    assert second.load_text() == "apple banana cherry"


def test_catalog_invariants_hold_after_each_operation(doc_index):
    uris = ["a.txt", "b.txt", "c.txt"]
    for uri in uris:
        doc_index.upsert_document(uri, f"{uri} hello world")
        check_invariants(catalog_of(doc_index))
    doc_index.delete_document("b.txt")
    doc_index.delete_document("missing.txt")
    catalog = catalog_of(doc_index)
    check_invariants(catalog)
    assert len(catalog["uriToId"]) == catalog["count"] == len(catalog["idToUri"]) == 2


def test_items_carry_positions_and_metadata(doc_index):
    text = "apple one two three four five six seven\n\nbanana eight nine ten eleven twelve"
    doc = doc_index.upsert_document("fruit.md", text, metadata={"lang": "en", "rank": 2})
    items = doc_index.store.list_items_by_metadata({"documentId": doc.id})
    assert len(items) >= 2
    for item in items:
        meta = item.metadata
        assert meta["lang"] == "en" and meta["rank"] == 2
        assert 0 <= meta["startPos"] <= meta["endPos"] < len(text)
        assert text[meta["startPos"]:meta["endPos"] + 1].strip()
    assert doc.has_metadata()
    assert doc.load_metadata() == {"lang": "en", "rank": 2}


def test_reserved_or_nested_metadata_is_rejected(doc_index):
    with pytest.raises(ConfigError):
        doc_index.upsert_document("x.txt", "hello", metadata={"documentId": "mine"})
    with pytest.raises(ConfigError):
        doc_index.upsert_document("x.txt", "hello", metadata={"tags": ["a", "b"]})
    assert doc_index.get_document_id("x.txt") is None


def test_query_ranks_documents(doc_index):
    doc_index.upsert_document("fruit/apple.md", "apple apple apple pie")
    doc_index.upsert_document("fruit/banana.md", "banana bread")
    doc_index.upsert_document("misc/hello.txt", "hello world")

    results = doc_index.query_documents("apple")
    assert results[0].uri == "fruit/apple.md"
    assert results[0].score == pytest.approx(1.0)
    scores = [r.score for r in results]
    assert scores == sorted(scores, reverse=True)
    assert len(doc_index.query_documents("apple", max_documents=1)) == 1


def test_query_with_metadata_filter(doc_index):
    doc_index.upsert_document("en.md", "apple pie", metadata={"lang": "en"})
    doc_index.upsert_document("de.md", "apple kuchen", metadata={"lang": "de"})
    results = doc_index.query_documents("apple", filter={"lang": "de"})
    assert [r.uri for r in results] == ["de.md"]


def test_query_max_chunks_bounds_hits(doc_index):
    doc_index.upsert_document("long.md", " ".join(["apple"] * 40))
    results = doc_index.query_documents("apple", max_chunks=2)
    assert sum(len(r.chunks) for r in results) <= 2


def test_embedding_failure_leaves_index_untouched(make_index):
    index = make_index(FailingEmbeddings())
    index.create_index()
    with pytest.raises(EmbeddingError):
        index.upsert_document("a.txt", "hello world")
    assert index.get_document_id("a.txt") is None
    assert sorted(p.name for p in index.folder_path.iterdir()) == ["catalog.json", "index.json"]


def test_rate_limited_response_is_an_embedding_error(make_index):
    index = make_index(FailingEmbeddings(status="rate_limited", message="slow down"))
    index.create_index()
    with pytest.raises(EmbeddingError, match="slow down"):
        index.upsert_document("a.txt", "hello world")


def test_missing_embeddings_model(make_index):
    index = make_index(None)
    index.create_index()
    with pytest.raises(ConfigError):
        index.upsert_document("a.txt", "hello")
    with pytest.raises(ConfigError):
        index.query_documents("hello")


def test_failed_commit_rolls_back(doc_index, monkeypatch):
    old = doc_index.upsert_document("a.txt", "apple version one")

    def broken_end_update():
        raise StorageError("disk full")

    monkeypatch.setattr(doc_index.store, "end_update", broken_end_update)
    with pytest.raises(IngestError) as info:
        doc_index.upsert_document("a.txt", "apple version two")
    assert info.value.uri == "a.txt"
    monkeypatch.undo()

    assert doc_index.get_document_id("a.txt") == old.id
    assert doc_index.store.list_items_by_metadata({"documentId": old.id})
    assert (doc_index.folder_path / f"{old.id}.txt").read_text(encoding="utf-8") == "apple version one"
    assert not list(doc_index.folder_path.glob("*.tmp"))
    assert not doc_index.store.update_in_progress


def test_failed_catalog_write_restores_the_snapshot(make_index, doc_index, monkeypatch):
    old = doc_index.upsert_document("a.txt", "apple version one")
    doc_index.upsert_document("b.txt", "banana bread")
    item_count = len(doc_index.store.list_items())

    def broken_commit(tmp_path, catalog_path):
        raise StorageError("rename refused")

    monkeypatch.setattr("docvec.ingestion.document_index.commit_staged", broken_commit)
    with pytest.raises(IngestError):
        doc_index.upsert_document("a.txt", "apple version two")
    with pytest.raises(StorageError):
        doc_index.delete_document("b.txt")
    monkeypatch.undo()

    assert doc_index.get_document_id("a.txt") == old.id
    assert len(doc_index.store.list_items()) == item_count
    assert sorted(r.uri for r in doc_index.list_documents()) == ["a.txt", "b.txt"]
    assert not list(doc_index.folder_path.glob("*.tmp"))

    reopened = make_index(KeywordEmbeddings())
    catalogued = set(catalog_of(reopened)["idToUri"])
    assert reopened.get_document_id("a.txt") == old.id
    assert {it.metadata["documentId"] for it in reopened.store.list_items()} == catalogued


def test_unexpected_error_during_delete_closes_the_update(make_index, doc_index, monkeypatch):
    doc_index.upsert_document("a.txt", "apple")

    def broken_remove(uri, document_id):
        raise RuntimeError("unexpected")

    monkeypatch.setattr(doc_index, "_remove_document", broken_remove)
    with pytest.raises(RuntimeError):
        doc_index.delete_document("a.txt")
    monkeypatch.undo()

    assert not doc_index.store.update_in_progress
    doc_index.delete_document("a.txt")
    assert doc_index.get_document_id("a.txt") is None
    assert make_index(KeywordEmbeddings()).get_document_id("a.txt") is None


def test_embedding_batches_respect_max_tokens(make_index):
    embeddings = KeywordEmbeddings(max_tokens=10)
    index = make_index(embeddings, chunk_size=4)
    index.create_index()
    text = "\n".join(f"apple line {i} here" for i in range(12))
    index.upsert_document("lines.txt", text)

    assert len(embeddings.calls) > 1
    tokenizer = index.tokenizer
    for batch in embeddings.calls:
        assert batch
        assert sum(len(tokenizer.encode(t)) for t in batch) <= 10
        assert all("\n" not in t for t in batch)


def test_reload_from_disk(make_index, doc_index):
    doc = doc_index.upsert_document("keep.txt", "hello world")
    reopened = make_index(KeywordEmbeddings())
    assert not reopened.is_loaded
    reopened.load()
    assert reopened.is_loaded
    assert reopened.get_document_id("keep.txt") == doc.id
    assert reopened.get_catalog_stats() == {"version": 1, "documents": 1, "chunks": 1}


def test_text_blob_is_byte_exact(doc_index):
    text = "line one\r\nline two\r\n\r\nhello world"
    doc = doc_index.upsert_document("crlf.txt", text)
    assert doc.load_text() == text
    assert (doc_index.folder_path / f"{doc.id}.txt").read_bytes() == text.encode("utf-8")


def test_list_documents(doc_index):
    doc_index.upsert_document("a.txt", "hello world")
    doc_index.upsert_document("b.txt", "apple pie")
    listed = {r.uri: r for r in doc_index.list_documents()}
    assert set(listed) == {"a.txt", "b.txt"}
    assert all(hit.score == 1.0 for r in listed.values() for hit in r.chunks)


def test_document_without_alphanumeric_text(doc_index):
    doc = doc_index.upsert_document("empty.txt", "  --  \n")
    assert doc_index.get_document_id("empty.txt") == doc.id
    assert doc_index.get_catalog_stats()["chunks"] == 0
    assert doc.load_text() == "  --  \n"


def test_corrupt_catalog(make_index, doc_index):
    doc_index.catalog_path.write_text(json.dumps({"count": 3, "uriToId": {}, "idToUri": {}}), encoding="utf-8")
    with pytest.raises(StorageError):
        make_index(KeywordEmbeddings()).load()


def test_create_and_delete_index(make_index):
    index = make_index(KeywordEmbeddings())
    assert not index.is_catalog_created()
    index.create_index()
    assert index.is_catalog_created()
    with pytest.raises(StorageError):
        index.create_index()
    index.upsert_document("a.txt", "hello")
    index.delete_index()
    assert not index.folder_path.exists()
    index.create_index()
    assert index.get_catalog_stats() == {"version": 1, "documents": 0, "chunks": 0}


def test_end_update_without_begin(doc_index):
    with pytest.raises(StorageError):
        doc_index.end_update()
