from types import SimpleNamespace

import pytest

from conftest import ByteTokenizer, WordTokenizer
from docvec.errors import StorageError
from docvec.ingestion.vector_store_np import ChunkHit, Item
from docvec.retrieval.document import LocalDocument
from docvec.retrieval.document_result import CONNECTOR, LocalDocumentResult

# "w00 w01 ... w99": word i spans [4i, 4i + 2]; one token per word.
WORDS = " ".join(f"w{i:02d}" for i in range(100))


def span(first: int, last: int) -> tuple:
    """Positions of words first..last, leading space included (except for word 0)."""
    return (4 * first - 1 if first else 0), 4 * last + 2


def hit(first: int, last: int, score: float) -> ChunkHit:
    start, end = span(first, last)
    return ChunkHit(item=Item(id=f"{first}-{last}", vector=[], metadata={"startPos": start, "endPos": end}), score=score)


@pytest.fixture
def fake_index(tmp_path):
    return SimpleNamespace(folder_path=tmp_path, tokenizer=WordTokenizer())


def make_result(fake_index, text, hits) -> LocalDocumentResult:
    (fake_index.folder_path / "doc.txt").write_text(text, encoding="utf-8")
    return LocalDocumentResult(fake_index, "doc", "words.txt", hits)


def test_small_document_is_one_section(fake_index):
    text = " ".join(f"w{i:02d}" for i in range(30))
    result = make_result(fake_index, text, [hit(3, 4, 0.2)])
    sections = result.render_sections(max_tokens=100, max_sections=3)
    assert len(sections) == 1
    assert sections[0].score == 1.0
    assert sections[0].token_count == 30
    assert sections[0].text == text


def test_adjacent_hits_merge_without_overlap(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 4, 0.9), hit(5, 9, 0.8), hit(50, 54, 0.2)])
    sections = result.render_sections(max_tokens=10, max_sections=1, overlapping_chunks=False)
    assert len(sections) == 1
    assert sections[0].text == WORDS[0:39]
    assert sections[0].token_count == 10
    assert sections[0].score == pytest.approx(0.85)


def test_sections_are_capped_by_max_sections(fake_index):
    hits = [hit(i * 10, i * 10 + 4, 0.1 * (i + 1)) for i in range(5)]
    result = make_result(fake_index, WORDS, hits)
    sections = result.render_sections(max_tokens=5, max_sections=2, overlapping_chunks=False)
    assert [s.score for s in sections] == pytest.approx([0.5, 0.4])
    assert all(s.token_count <= 5 for s in sections)


def test_connector_and_forward_growth(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 4, 0.9), hit(10, 14, 0.8)])
    [section] = result.render_sections(max_tokens=60, max_sections=1)
    assert section.token_count == 60
    assert section.text.startswith(WORDS[0:19] + CONNECTOR + WORDS[39:59])
    # nothing before word 0, so the whole budget grows forward
    assert section.text.endswith(" w62")


def test_growth_splits_budget_both_ways(fake_index):
    result = make_result(fake_index, WORDS, [hit(50, 54, 0.5)])
    [section] = result.render_sections(max_tokens=47, max_sections=1)
    assert section.token_count == 47
    assert section.text == WORDS[115:303]
    assert section.score == 0.5


def test_no_growth_with_small_leftover_budget(fake_index):
    result = make_result(fake_index, WORDS, [hit(50, 54, 0.5)])
    [section] = result.render_sections(max_tokens=45, max_sections=1)
    assert section.token_count == 5
    assert section.text == WORDS[199:219]


def test_oversized_hits_fall_back_to_best_truncated(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 19, 0.3), hit(30, 49, 0.7)])
    sections = result.render_sections(max_tokens=5, max_sections=3)
    assert len(sections) == 1
    assert sections[0].text == " w30 w31 w32 w33 w34"
    assert sections[0].token_count == 5
    assert sections[0].score == 0.7


def test_oversized_hits_are_dropped_when_others_fit(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 19, 0.9), hit(30, 32, 0.1)])
    sections = result.render_sections(max_tokens=5, max_sections=3, overlapping_chunks=False)
    assert [s.text for s in sections] == [WORDS[119:131]]


def test_render_all_sections_cuts_long_hits(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 4, 0.9), hit(40, 54, 0.4)])
    sections = result.render_all_sections(max_tokens=10)
    assert [s.token_count for s in sections] == [5, 10, 5]
    assert sections[0].text == WORDS[0:19]
    assert sections[1].text == WORDS[159:199]
    assert sections[2].text == WORDS[199:219]
    assert [s.score for s in sections] == pytest.approx([0.9, 0.4, 0.4])


def test_result_score_is_mean_of_hits(fake_index):
    result = make_result(fake_index, WORDS, [hit(0, 1, 0.2), hit(5, 6, 0.6)])
    assert result.score == pytest.approx(0.4)
    assert len(result.chunks) == 2
    assert make_result(fake_index, WORDS, []).score == 0.0


def test_long_document_without_hits_renders_nothing(fake_index):
    assert make_result(fake_index, WORDS, []).render_sections(max_tokens=10, max_sections=2) == []


def test_length_is_estimated_for_large_documents(fake_index):
    (fake_index.folder_path / "big.txt").write_text("a" * 40_001, encoding="utf-8")
    assert LocalDocument(fake_index, "big", "big.txt").get_length() == 10_001


def test_missing_text_blob(fake_index):
    with pytest.raises(StorageError):
        LocalDocument(fake_index, "ghost", "ghost.txt").load_text()
    assert not LocalDocument(fake_index, "ghost", "ghost.txt").has_metadata()


def test_render_all_sections_cuts_between_characters(tmp_path):
    text = "ü" * 10
    (tmp_path / "doc.txt").write_text(text, encoding="utf-8")
    index = SimpleNamespace(folder_path=tmp_path, tokenizer=ByteTokenizer())
    item = Item(id="u", vector=[], metadata={"startPos": 0, "endPos": 9})
    result = LocalDocumentResult(index, "doc", "umlaut.txt", [ChunkHit(item=item, score=0.5)])
    sections = result.render_all_sections(max_tokens=5)
    assert "".join(s.text for s in sections) == text
    assert [s.token_count for s in sections] == [4] * 5
