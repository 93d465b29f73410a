"""Tests for rendering generated content into the lesson form."""

import pytest

from lessongen.content_reconciler import ContentReconciler, render
from lessongen.models import ContentSource, GeneratedLessonContent, GenerationMetadata, LessonForm
from lessongen.response_parser import parse


@pytest.fixture
def document(lesson_payload) -> GeneratedLessonContent:
    return parse(lesson_payload)


class TestRender:
    """Markdown rendering of a lesson document."""

    def test_exact_layout(self, document):
        expected = (
            "# Ordering Food\n"
            "\n"
            "## Description\n"
            "Learn how to order food and drinks in a restaurant.\n"
            "\n"
            "## Learning Objectives\n"
            "- Read a menu\n"
            "- Order a meal politely\n"
            "\n"
            "## Practical Situations\n"
            "- Ordering at a cafe\n"
            "- Asking for the bill\n"
            "\n"
            "## Key Phrases\n"
            "- **I'd like the soup, please.** - Quisiera la sopa, por favor.\n"
            "  *Usage: Polite way to order*\n"
            "\n"
            "## Vocabulary\n"
            "- **menu** (noun) - menú\n"
            "- **order** (verb) - pedir\n"
            "\n"
            "## Explanations\n"
            "'Would like' is softer than 'want'.\n"
            "\n"
            "Use 'please' at the end.\n"
            "\n"
            "## Tips\n"
            "- Practice with a real menu\n"
            "- Role-play with a friend\n"
        )
        assert render(document, "Ordering Food") == expected

    def test_empty_sections_keep_headings(self):
        text = render(GeneratedLessonContent(description="Short"), "Greetings")
        assert text == (
            "# Greetings\n\n"
            "## Description\nShort\n\n"
            "## Learning Objectives\n\n"
            "## Practical Situations\n\n"
            "## Key Phrases\n\n"
            "## Vocabulary\n\n"
            "## Explanations\n"
            "## Tips\n"
        )

    def test_deterministic(self, document):
        assert render(document, "Ordering Food") == render(document, "Ordering Food")


class TestContentReconciler:
    """Form writes and provenance."""

    def test_apply_writes_form_without_touching_provenance(self, document):
        form = LessonForm(title="Ordering Food")
        rendered = ContentReconciler(form).apply(document, "Ordering Food")

        assert rendered.text == form.content
        assert rendered.title == "Ordering Food"
        assert form.structured_content == document
        assert form.content_source == ContentSource.MANUAL

    def test_accept_marks_ai_generated(self, document):
        form = LessonForm(title="Ordering Food")
        metadata = GenerationMetadata(
            generation_id="job-1",
            level="beginner",
            language="english",
            generated_at="2026-01-01T00:00:00.000+00:00",
        )
        ContentReconciler(form).accept(document, "Ordering Food", metadata)

        assert form.content_source == ContentSource.AI_GENERATED
        assert form.generation_metadata == metadata
        assert form.content.startswith("# Ordering Food\n\n## Description\n")

    def test_edit_then_revert(self, document):
        form = LessonForm(title="Ordering Food")
        reconciler = ContentReconciler(form)
        original = reconciler.accept(document, "Ordering Food").text

        form.edit_content(original + "\nTeacher note: bring menus.\n")
        assert form.content_source == ContentSource.MIXED

        reconciler.revert_to_original(document, "Ordering Food")
        assert form.content == original
        assert form.content_source == ContentSource.AI_GENERATED
        assert form.structured_content == document

    def test_revert_is_idempotent(self, document):
        form = LessonForm(title="Ordering Food")
        reconciler = ContentReconciler(form)
        reconciler.accept(document, "Ordering Food")

        first = reconciler.revert_to_original(document, "Ordering Food")
        assert form.content_source == ContentSource.AI_GENERATED

        form.edit_content("completely rewritten")
        assert form.content_source == ContentSource.MIXED

        second = reconciler.revert_to_original(document, "Ordering Food")
        assert first.text == second.text
        assert form.content == second.text
        assert form.content_source == ContentSource.AI_GENERATED

    def test_document_not_mutated_by_edits(self, document, lesson_payload):
        form = LessonForm(title="Ordering Food")
        ContentReconciler(form).accept(document, "Ordering Food")
        form.edit_content("edited")
        assert form.structured_content == parse(lesson_payload)
