"""Natural keys and content hashing."""

import hashlib

from hypothesis import given
from hypothesis import strategies as st

from Labelstage.materializer.keys import NaturalKey, content_hash


def test_content_hash_is_sha256_hex():
    h = content_hash("Take with food.")
    assert h is not None
    assert len(h) == 64
    assert int(h, 16) >= 0


def test_content_hash_normalizes_whitespace():
    assert content_hash("Take  with\n\tfood. ") == content_hash("Take with food.")


def test_content_hash_normalizes_unicode():
    composed = "caf\u00e9"
    decomposed = "cafe\u0301"
    assert content_hash(composed) == content_hash(decomposed)


def test_content_hash_blank_is_none_unless_allowed():
    assert content_hash(None) is None
    assert content_hash("   \n ") is None
    empty = content_hash("", allow_empty=True)
    assert empty is not None
    assert empty == content_hash("  ", allow_empty=True)


def test_content_hash_differs_for_different_text():
    assert content_hash("10 mg") != content_hash("20 mg")


def test_content_hash_is_not_plain_text_digest():
    # Hash covers the canonical encoding, so it is stable across encoders
    assert content_hash("abc") != hashlib.sha256(b"abc").hexdigest()


_words = st.lists(
    st.text(alphabet=st.characters(categories=("L", "N")), min_size=1, max_size=8),
    min_size=1,
    max_size=6,
)
_gaps = st.text(alphabet=" \t\n\r", min_size=1, max_size=4)


@given(words=_words, gap=_gaps, lead=st.text(alphabet=" \n", max_size=3))
def test_content_hash_ignores_whitespace_layout(words, gap, lead):
    spaced = " ".join(words)
    reflowed = lead + gap.join(words) + lead
    assert content_hash(reflowed) == content_hash(spaced)


def test_natural_key_equality_and_hashing():
    doc = NaturalKey("document", ("abc", 1))
    a = NaturalKey("section", (doc, "s-1"))
    b = NaturalKey("section", (NaturalKey("document", ("abc", 1)), "s-1"))
    assert a == b
    assert hash(a) == hash(b)
    assert {a: 1}[b] == 1


def test_natural_key_digest_is_deterministic_and_family_scoped():
    a = NaturalKey("text_list", (7,))
    b = NaturalKey("text_table", (7,))
    assert a.digest() == NaturalKey("text_list", (7,)).digest()
    assert a.digest() != b.digest()
    assert str(a).startswith("text_list:")
    assert len(a.short().split(":")[1]) == 12


def test_natural_key_digest_handles_none_parts():
    k1 = NaturalKey("section_text_content", (3, None, "List", 1, None))
    k2 = NaturalKey("section_text_content", (3, None, "List", 2, None))
    assert k1.digest() != k2.digest()
