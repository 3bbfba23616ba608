import re

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from app.core.exceptions import SlugGenerationExhausted
from app.utils.slug import (
    INCREMENTAL_SUFFIX_LIMIT,
    generate_slug,
    is_canonical_slug,
    make_unique_slug,
    resolve_unique_slug,
    slugify_text,
    to_canonical_slug,
    to_phonetic_text,
)

FALLBACK_RE = re.compile(r"^post-[a-z0-9]{6}$")


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello World", "hello-world"),
        ("  Multiple   spaces -- and dashes  ", "multiple-spaces-and-dashes"),
        ("Café au lait", "cafe-au-lait"),
        ("Hello 世界", "hello-shi-jie"),
        ("你好世界", "ni-hao-shi-jie"),
        ("Release 2.0!", "release-2-0"),
        ("1,000 ways", "1-000-ways"),
        ("Tom &amp; Jerry", "tom-amp-jerry"),
        ("&#233;t&#233;", "233-t-233"),
    ],
)
def test_slugify_text(text, expected):
    assert slugify_text(text) == expected


def test_phonetic_text_separates_syllables():
    assert to_phonetic_text("Hello 世界") == "Hello Shi Jie"
    assert to_phonetic_text("   ") == ""


@pytest.mark.parametrize("text", ["", "   ", "!!!", "🎉🎉", None])
def test_slugify_text_can_be_empty(text):
    assert slugify_text(text) == ""


@pytest.mark.parametrize("text", ["", "!!!", "🎉"])
def test_canonical_slug_falls_back_to_random(text):
    assert FALLBACK_RE.match(to_canonical_slug(text))


def test_canonical_slug_is_idempotent():
    for text in ["Hello World", "Café au lait", "你好世界", "a--b"]:
        slug = to_canonical_slug(text)
        assert is_canonical_slug(slug)
        assert to_canonical_slug(slug) == slug


@pytest.mark.parametrize(
    "candidate, expected",
    [
        ("hello-world", True),
        ("a1", True),
        ("Hello-World", False),
        ("hello--world", False),
        ("-hello", False),
        ("hello-", False),
        (" hello", False),
        ("café", False),
        ("", False),
        (None, False),
    ],
)
def test_is_canonical_slug(candidate, expected):
    assert is_canonical_slug(candidate) is expected


def test_unique_slug_free_base():
    assert resolve_unique_slug("hello", {"other"}) == "hello"


def test_unique_slug_incremental_suffix():
    assert resolve_unique_slug("hello", {"hello"}) == "hello-2"
    assert resolve_unique_slug("hello", {"hello", "hello-2", "hello-3"}) == "hello-4"


def test_unique_slug_random_suffix_after_increments():
    taken = {"hello"} | {f"hello-{n}" for n in range(2, INCREMENTAL_SUFFIX_LIMIT + 2)}
    assert resolve_unique_slug("hello", taken, lambda: "abc123") == "hello-abc123"


def test_unique_slug_exhausted():
    taken = {"hello", "hello-abc123"} | {f"hello-{n}" for n in range(2, INCREMENTAL_SUFFIX_LIMIT + 2)}
    with pytest.raises(SlugGenerationExhausted) as exc_info:
        resolve_unique_slug("hello", taken, lambda: "abc123")
    assert exc_info.value.base_slug == "hello"


def test_unique_slug_empty_base():
    assert resolve_unique_slug("", set(), lambda: "zzz999") == "post-zzz999"


def test_make_unique_slug_checks_database(make_post, db):
    post = make_post(title="Hello World", slug="hello-world")

    assert make_unique_slug(db, "Hello World") == "hello-world-2"
    # The post being edited does not collide with itself
    assert make_unique_slug(db, "Hello World", exclude_post_id=post.id) == "hello-world"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("第一篇文章", "di-yi-pian-wen-zhang"),
        ("Hello World", "hello-world"),
        ("Hello 世界", "hello-shi-jie"),
        ("Café à la crème", "cafe-a-la-creme"),
    ],
)
def test_generate_slug_examples(text, expected):
    assert generate_slug(text) == expected


@pytest.mark.parametrize(
    "text, expected",
    [
        ("绿", "lu"),
        ("律", "lu"),
        ("Müller", "muller"),
    ],
)
def test_umlaut_and_pinyin_u_collapse_to_u(text, expected):
    assert slugify_text(text) == expected


cjk_text = st.text(
    alphabet=st.characters(min_codepoint=0x4E00, max_codepoint=0x9FFF),
    min_size=1,
    max_size=20,
)
canonical_slugs = st.from_regex(r"[a-z0-9]{1,12}(-[a-z0-9]{1,12}){0,3}", fullmatch=True)


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(st.text(max_size=20), cjk_text, st.text(max_size=20))
def test_cjk_titles_always_give_canonical_slugs(prefix: str, cjk: str, suffix: str):
    """Any title containing CJK characters yields a canonical slug."""
    slug = to_canonical_slug(prefix + cjk + suffix)

    assert is_canonical_slug(slug)
    assert to_canonical_slug(slug) == slug


@settings(suppress_health_check=[HealthCheck.function_scoped_fixture])
@given(canonical_slugs, st.data())
def test_unique_slug_is_never_taken(base: str, data):
    """The resolved slug is free, or every candidate was taken."""
    random_ids = [f"r{n}" for n in range(5)]
    candidates = (
        [base]
        + [f"{base}-{n}" for n in range(2, INCREMENTAL_SUFFIX_LIMIT + 2)]
        + [f"{base}-{random_id}" for random_id in random_ids]
    )
    taken = data.draw(st.sets(st.sampled_from(candidates)))
    suffixes = iter(random_ids)

    try:
        slug = resolve_unique_slug(base, taken, lambda: next(suffixes))
    except SlugGenerationExhausted:
        assert taken == set(candidates)
        return

    assert slug not in taken
    assert is_canonical_slug(slug)
    if base not in taken:
        assert slug == base
