import pytest

from guardbot.moderation.content_filter import DEFAULT_BAD_WORDS, ProfanityFilter


@pytest.mark.parametrize("word", DEFAULT_BAD_WORDS)
def test_every_default_word_is_flagged(word):
    profanity = ProfanityFilter()
    assert profanity.is_flagged(f"some text {word} more text")


def test_match_is_case_insensitive():
    profanity = ProfanityFilter(["shit"])
    result = profanity.check("What a SHIT day")
    assert result.is_filtered
    assert result.matched_word == "shit"
    assert result.reason == "filter:shit"


def test_substring_match_inside_longer_word():
    assert ProfanityFilter(["gali"]).is_flagged("galiyan mat do")


def test_clean_text_passes():
    profanity = ProfanityFilter()
    assert not profanity.is_flagged("When is the next lecture?")
    assert profanity.check("hello").matched_word is None


@pytest.mark.parametrize("text", ["", None])
def test_empty_or_missing_text_is_clean(text):
    assert ProfanityFilter().is_flagged(text) is False


def test_urdu_script_terms():
    assert ProfanityFilter().is_flagged("یہ حرام ہے")


def test_custom_words_are_normalized_and_deduplicated():
    profanity = ProfanityFilter([" Spam ", "spam", "", "EGGS"])
    assert profanity.words == ["spam", "eggs"]
