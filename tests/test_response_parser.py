"""Tests for parsing untrusted model output into lesson content."""

import json

import pytest

from lessongen.content_reconciler import ContentReconciler
from lessongen.errors import MalformedResponse
from lessongen.models import GeneratedLessonContent, KeyPhrase, LessonForm, VocabularyEntry
from lessongen.response_parser import extract_json_object, parse


class TestParseValid:
    """Payloads that should produce a document."""

    def test_full_payload(self, lesson_payload):
        document = parse(lesson_payload)
        assert document.description.startswith("Learn how to order")
        assert document.objectives == ("Read a menu", "Order a meal politely")
        assert document.key_phrases[0] == KeyPhrase(
            phrase="I'd like the soup, please.",
            translation="Quisiera la sopa, por favor.",
            usage="Polite way to order",
        )
        assert document.vocabulary[1] == VocabularyEntry(
            word="order", translation="pedir", part_of_speech="verb"
        )

    def test_missing_lists_default_to_empty(self):
        document = parse({"description": "Only a description"})
        assert document.objectives == ()
        assert document.practical_situations == ()
        assert document.key_phrases == ()
        assert document.vocabulary == ()
        assert document.explanations == ()
        assert document.tips == ()

    def test_null_lists_default_to_empty(self):
        document = parse({"description": "d", "tips": None, "keyPhrases": None})
        assert document.tips == ()
        assert document.key_phrases == ()

    def test_optional_entry_fields_default_to_blank(self):
        document = parse({"description": "d", "vocabulary": [{"word": "menu"}]})
        assert document.vocabulary[0].translation == ""
        assert document.vocabulary[0].part_of_speech == ""

    def test_unknown_fields_ignored(self, lesson_payload):
        lesson_payload["difficulty"] = "easy"
        assert parse(lesson_payload) == parse({k: v for k, v in lesson_payload.items() if k != "difficulty"})

    def test_json_string(self, lesson_payload):
        assert parse(json.dumps(lesson_payload)) == parse(lesson_payload)

    def test_fenced_json_with_reasoning(self, lesson_payload):
        raw = (
            "<think>The user wants a restaurant lesson {maybe}.</think>\n"
            "Here is the lesson:\n```json\n" + json.dumps(lesson_payload) + "\n```"
        )
        assert parse(raw) == parse(lesson_payload)

    def test_streamed_chunks_are_joined(self, lesson_payload):
        text = json.dumps(lesson_payload)
        chunks = [text[i:i + 7] for i in range(0, len(text), 7)]
        assert parse(chunks) == parse(lesson_payload)


class TestParseMalformed:
    """Payloads that must be rejected."""

    @pytest.mark.parametrize("raw", [None, 42, 3.5, True, ["not", 1], "no json here", "[1, 2]"])
    def test_not_an_object(self, raw):
        with pytest.raises(MalformedResponse):
            parse(raw)

    def test_description_required(self, lesson_payload):
        del lesson_payload["description"]
        with pytest.raises(MalformedResponse, match="description"):
            parse(lesson_payload)

    def test_description_wrong_type(self):
        with pytest.raises(MalformedResponse):
            parse({"description": 123})

    def test_non_string_list_entry(self, lesson_payload):
        lesson_payload["objectives"] = ["Read a menu", {"text": "nested"}]
        with pytest.raises(MalformedResponse):
            parse(lesson_payload)

    def test_non_object_key_phrase(self, lesson_payload):
        lesson_payload["keyPhrases"] = ["I'd like the soup"]
        with pytest.raises(MalformedResponse):
            parse(lesson_payload)

    def test_vocabulary_field_wrong_type(self, lesson_payload):
        lesson_payload["vocabulary"] = [{"word": "menu", "partOfSpeech": 7}]
        with pytest.raises(MalformedResponse):
            parse(lesson_payload)

    def test_list_field_not_a_list(self, lesson_payload):
        lesson_payload["tips"] = "Practice every day"
        with pytest.raises(MalformedResponse):
            parse(lesson_payload)


class TestExtractJsonObject:

    def test_dict_passthrough(self):
        data = {"description": "d"}
        assert extract_json_object(data) is data

    def test_bare_object_inside_prose(self):
        assert extract_json_object('Sure! {"description": "d"} Enjoy.') == {"description": "d"}


class TestRoundTrip:
    """Applying a document to a form never alters the document."""

    def test_apply_then_reparse(self, lesson_payload):
        document = parse(lesson_payload)
        form = LessonForm(title="Ordering Food")

        rendered = ContentReconciler(form).apply(document, "Ordering Food")

        assert form.structured_content == document
        assert form.content == rendered.text
        assert parse(json.dumps(document.to_payload())) == document

    def test_round_trip_with_empty_lists(self):
        document = GeneratedLessonContent(description="Empty lesson")
        form = LessonForm(title="Empty")

        ContentReconciler(form).apply(document, "Empty")

        assert form.structured_content == document
        assert parse(form.structured_content.to_payload()) == document
