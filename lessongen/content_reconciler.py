"""Renders generated lesson content into the editable lesson form."""

from lessongen.logger import get_logger
from lessongen.models import (
    ContentSource,
    GeneratedLessonContent,
    GenerationMetadata,
    LessonForm,
    RenderedContent,
)


def render(document: GeneratedLessonContent, title: str) -> str:
    """
    Render a lesson document as markdown with fixed section order.

    Args:
        document: The generated lesson content
        title: Lesson title used as the top heading

    Returns:
        Markdown text
    """
    lines = [f"# {title}", ""]

    lines += ["## Description", document.description, ""]

    lines.append("## Learning Objectives")
    lines += [f"- {objective}" for objective in document.objectives]
    lines.append("")

    lines.append("## Practical Situations")
    lines += [f"- {situation}" for situation in document.practical_situations]
    lines.append("")

    lines.append("## Key Phrases")
    for phrase in document.key_phrases:
        lines.append(f"- **{phrase.phrase}** - {phrase.translation}")
        lines.append(f"  *Usage: {phrase.usage}*")
    lines.append("")

    lines.append("## Vocabulary")
    for entry in document.vocabulary:
        lines.append(f"- **{entry.word}** ({entry.part_of_speech}) - {entry.translation}")
    lines.append("")

    lines.append("## Explanations")
    for explanation in document.explanations:
        lines += [explanation, ""]

    lines.append("## Tips")
    lines += [f"- {tip}" for tip in document.tips]

    return "\n".join(lines) + "\n"


class ContentReconciler:
    """Writes generated documents into one lesson form.

    The rendering is rebuilt from the document on every call, so the
    stored document is always enough to restore the AI version.
    """

    def __init__(self, form: LessonForm):
        self.form = form

    def apply(self, document: GeneratedLessonContent, form_title: str) -> RenderedContent:
        """Render the document and write it into the form."""
        text = render(document, form_title)
        self.form.structured_content = document
        self.form.content = text
        return RenderedContent(title=form_title, text=text)

    def accept(
        self,
        document: GeneratedLessonContent,
        title: str,
        metadata: GenerationMetadata | None = None,
    ) -> RenderedContent:
        """Apply a freshly generated document and mark the lesson AI-generated."""
        rendered = self.apply(document, title)
        self.form.content_source = ContentSource.AI_GENERATED
        if metadata is not None:
            self.form.generation_metadata = metadata
        return rendered

    def revert_to_original(self, document: GeneratedLessonContent, title: str) -> RenderedContent:
        """Discard user edits and restore the AI rendering."""
        rendered = self.apply(document, title)
        self.form.content_source = ContentSource.AI_GENERATED
        get_logger().info(f"Lesson '{title}' reset to AI-generated version")
        return rendered
