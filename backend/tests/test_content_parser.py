"""
Content Parser Unit Tests

Tag, due-date and prompt extraction over plain and rich text.
"""

from notekeeper.core.services.content_parser import (
    DueDateMarker,
    PromptKind,
    PromptTrigger,
    extract_due_date_marker,
    extract_prompt_spans,
    extract_tags,
    html_to_text,
    ordered_tags,
    replace_prompt_span,
)


class TestTags:
    def test_extracts_word_characters_after_hash(self):
        assert extract_tags("Buy milk #shopping #urgent today") == {"shopping", "urgent"}

    def test_empty_and_tagless_text(self):
        assert extract_tags("") == set()
        assert extract_tags(None) == set()
        assert extract_tags("no tags here") == set()

    def test_tag_stops_at_punctuation(self):
        assert extract_tags("#foo-bar #baz.") == {"foo", "baz"}

    def test_bare_hash_is_not_a_tag(self):
        assert extract_tags("issue # 5 and ##") == set()

    def test_ordered_tags_keep_first_occurrence_order(self):
        assert ordered_tags("#b then #a then #b again") == ["b", "a"]

    def test_repeated_calls_agree(self):
        text = "#a #b #a [[ask]] #c"
        first = extract_tags(text)
        assert extract_tags(text) == first == {"a", "b", "c"}
        assert extract_tags(text + " ") == first

    def test_unicode_word_characters(self):
        assert extract_tags("#café #日本") == {"café", "日本"}

    def test_rich_text_is_flattened_first(self):
        text = html_to_text('<p>Plan <a href="x#anchor">#trip</a></p><p>#packing</p>')
        assert ordered_tags(text) == ["trip", "packing"]


class TestHtmlToText:
    def test_plain_text_unchanged(self):
        assert html_to_text("just text") == "just text"

    def test_blocks_become_line_breaks(self):
        assert html_to_text("<p>one</p><p>two</p>") == "one\ntwo"

    def test_entities_are_decoded(self):
        assert html_to_text("<p>Tom &amp; Jerry</p>") == "Tom & Jerry"

    def test_style_and_script_bodies_are_dropped(self):
        markup = "<style>#header{color:red}</style><p>hello #work</p><script>location.hash = \"#top\"</script>"
        assert html_to_text(markup) == "hello #work"
        assert extract_tags(html_to_text(markup)) == {"work"}

    def test_attributes_are_ignored(self):
        assert "#hidden" not in html_to_text('<span data-tag="#hidden">shown</span>')

    def test_empty(self):
        assert html_to_text(None) == ""
        assert html_to_text("") == ""


class TestMeetingNote:
    def test_tags_and_due_date_from_one_line(self):
        content = "Meeting #work #urgent [15/03]"
        assert extract_tags(content) == {"work", "urgent"}
        assert extract_due_date_marker(content) == DueDateMarker("15", "03")


class TestDueDate:
    def test_first_marker_wins(self):
        assert extract_due_date_marker("Pay rent [01/04] or [15/04]") == DueDateMarker("01", "04")

    def test_requires_two_digits(self):
        assert extract_due_date_marker("Call [1/4]") is None

    def test_missing(self):
        assert extract_due_date_marker("nothing due") is None
        assert extract_due_date_marker(None) is None


class TestPromptSpans:
    def test_each_delimiter_selects_its_provider(self):
        cases = {
            "Intro \\\\summarize this\\\\": PromptKind.OPENAI,
            "Intro //summarize this//": PromptKind.ANTHROPIC,
            "Intro [[summarize this]]": PromptKind.PERPLEXITY,
        }
        for text, kind in cases.items():
            spans = extract_prompt_spans(text)
            assert len(spans) == 1
            assert spans[0].kind is kind
            assert spans[0].prompt == "summarize this"
            assert spans[0].preceding_text == "Intro "

    def test_only_last_span_is_actionable(self):
        text = "[[first]] some text //second//"
        spans = extract_prompt_spans(text)
        assert [s.prompt for s in spans] == ["second"]
        assert spans[0].preceding_text == "[[first]] some text "

    def test_unterminated_and_blank_prompts_are_ignored(self):
        assert extract_prompt_spans("//still typing") == []
        assert extract_prompt_spans("[[   ]]") == []
        assert extract_prompt_spans("") == []

    def test_url_scheme_is_not_a_prompt(self):
        assert extract_prompt_spans("See https://example.com and http://foo.org/") == []

    def test_replace_span_includes_delimiters(self):
        text = "Notes: [[capital of France]] done"
        span = extract_prompt_spans(text)[0]
        assert replace_prompt_span(text, span, "Paris") == "Notes: Paris done"


class TestPromptTrigger:
    def test_fires_once_per_prompt(self):
        trigger = PromptTrigger()
        first = trigger.feed("Hello //weather//")
        assert first is not None
        assert trigger.feed("Hello //weather//") is None
        # Typing after the prompt does not re-fire it
        assert trigger.feed("Hello //weather// and more") is None

    def test_new_prompt_fires(self):
        trigger = PromptTrigger()
        trigger.feed("//one//")
        second = trigger.feed("//one// //two//")
        assert second is not None
        assert second.prompt == "two"

    def test_same_prompt_at_new_position_fires_again(self):
        trigger = PromptTrigger()
        trigger.feed("//again//")
        assert trigger.feed("answer //again//") is not None

    def test_reset(self):
        trigger = PromptTrigger()
        trigger.feed("[[x]]")
        trigger.reset()
        assert trigger.feed("[[x]]") is not None
