"""Tests for regenerating formatting around translated fragments."""

import pytest

from localizer.errors import ReconstructionError
from localizer.reconstructor import format_fragment, reconstruct
from localizer.segmenter import placeholder, segment
from localizer.structures import (
    ContentKind,
    Fragment,
    FragmentType,
    ParagraphFormat,
    SegmentedContent,
)

MARKDOWN_SAMPLE = (
    "# Title\n"
    "\n"
    "Some intro text\n"
    "over two lines.\n"
    "\n"
    "- first\n"
    "- second\n"
    "  - nested\n"
    "\n"
    "1. one\n"
    "2. two\n"
    "\n"
    "```python\n"
    "def f():\n"
    "    return 1\n"
    "```\n"
    "\n"
    "| Name | Value |\n"
    "|:-----|------:|\n"
    "| a    |     1 |\n"
    "\n"
    "> quoted line\n"
    "> second\n"
    "\n"
    "- [ ] todo\n"
    "- [x] done\n"
    "\n"
    "[^1]: A note.\n"
    "\n"
    "Term\n"
    ": Meaning\n"
    "\n"
    "::: warning\n"
    "Be careful\n"
    ":::\n"
    "\n"
    "<details>\n"
    "<summary>More</summary>\n"
    "Hidden text\n"
    "</details>\n"
    "\n"
    "$$\n"
    "E = mc^2\n"
    "$$\n"
    "\n"
    '<span class="x">Hi</span>\n'
)


def identity(segmented):
    return reconstruct(segmented, [fragment.text for fragment in segmented.fragments])


def only_fragment(content, kind=ContentKind.MARKDOWN):
    segmented = segment(content, kind)
    assert len(segmented) == 1
    return segmented.fragments[0]


def paragraph(text, position=0):
    return Fragment(
        text=text,
        type=FragmentType.PARAGRAPH,
        descriptor=ParagraphFormat(),
        position=position,
    )


class TestIdentityRoundTrip:

    def test_plain_text(self):
        content = "Hello world.\n\nSecond paragraph\nwith two lines.\n\n\n  Indented third.  \n"

        assert identity(segment(content, ContentKind.PLAIN_TEXT)) == content

    def test_markdown_with_every_construct(self):
        segmented = segment(MARKDOWN_SAMPLE, ContentKind.MARKDOWN)

        assert identity(segmented) == MARKDOWN_SAMPLE

    def test_nested_numbering_is_stable(self):
        content = "1. a\n   1. x\n   2. y\n2. b\n   1. z"

        assert identity(segment(content, ContentKind.MARKDOWN)) == content

    def test_whitespace_only_content(self):
        content = "\n\n   \n"

        assert identity(segment(content, ContentKind.MARKDOWN)) == content

    @pytest.mark.parametrize(
        "content",
        [
            "<details>\n<summary>More</summary>\n\nBody text.\n</details>\n",
            "<details>\n<summary>More</summary>\n\n- one\n- two\n\n</details>",
            "<details>\n\nNo summary here.\n</details>",
        ],
    )
    def test_details_keeps_blank_lines_around_its_body(self, content):
        assert identity(segment(content, ContentKind.MARKDOWN)) == content


class TestListFormatting:

    def test_numbers_are_regenerated_in_sequence(self):
        fragment = only_fragment("1. a\n2. b\n3. c")

        result = format_fragment(fragment, "1. alpha\n1. beta\n1. gamma")

        assert result == "1. alpha\n2. beta\n3. gamma"

    def test_missing_markers_are_restored(self):
        fragment = only_fragment("1. a\n2. b\n3. c")

        assert format_fragment(fragment, "alpha\nbeta\ngamma") == "1. alpha\n2. beta\n3. gamma"

    def test_unordered_markers_become_dashes(self):
        fragment = only_fragment("* a\n+ b")

        assert format_fragment(fragment, "* uno\n+ dos") == "- uno\n- dos"

    def test_nested_levels_keep_their_indentation(self):
        fragment = only_fragment("- a\n  - b")

        assert format_fragment(fragment, "- eins\n- zwei") == "- eins\n  - zwei"


class TestTableFormatting:

    def test_columns_widen_to_the_longest_translated_cell(self):
        fragment = only_fragment("| A | B |\n|---|---|\n| x | y |")

        result = format_fragment(fragment, "| Alpha | B |\n|---|---|\n| x | yellow |")

        assert result == (
            "| Alpha | B      |\n"
            "|-------|--------|\n"
            "| x     | yellow |"
        )

    def test_translated_separator_rows_are_ignored(self):
        fragment = only_fragment("| A | B |\n|:--|--:|\n| x | y |")

        result = format_fragment(fragment, "| A | B |\n| --- | --- |\n| x | y |")

        assert result.split("\n")[1] == "|:--|--:|"

    def test_empty_translated_cells_keep_original_text(self):
        fragment = only_fragment("| A | B |\n|---|---|\n| x | y |")

        result = format_fragment(fragment, "| A |  |\n|---|---|\n| x | y |")

        assert result.split("\n")[0] == "| A | B |"


class TestOtherFormatters:

    def test_header_level_comes_from_the_original(self):
        fragment = only_fragment("## Welcome")

        assert format_fragment(fragment, "# Bienvenue") == "## Bienvenue"

    def test_code_fence_and_indentation_are_preserved(self):
        fragment = only_fragment("```js\nif (x) {\n  go();\n}\n```")

        result = format_fragment(fragment, "if (x) {\ngo();\n}")

        assert result == "```js\nif (x) {\n  go();\n}\n```"

    def test_quote_prefixes_are_restored(self):
        fragment = only_fragment("> one\n> two")

        assert format_fragment(fragment, "un\n> deux") == "> un\n> deux"

    def test_task_boxes_come_from_the_original(self):
        fragment = only_fragment("- [ ] todo\n- [x] done")

        result = format_fragment(fragment, "- [x] à faire\n- [ ] fait")

        assert result == "- [ ] à faire\n- [x] fait"

    def test_definition_keeps_the_original_term(self):
        fragment = only_fragment("Term\n: Meaning")

        assert format_fragment(fragment, "Terme\n: Signification") == "Term\n: Signification"

    def test_details_summary_falls_back_to_the_original(self):
        fragment = only_fragment("<details>\n<summary>More</summary>\nHidden text\n</details>")

        result = format_fragment(fragment, "<details>\nTexte caché\n</details>")

        assert result == "<details>\n<summary>More</summary>\nTexte caché\n</details>"

    def test_self_closing_html_is_left_untouched(self):
        fragment = only_fragment('<img src="a.png"/>')

        assert format_fragment(fragment, "<img/>") == '<img src="a.png"/>'

    def test_html_tag_and_attributes_come_from_the_original(self):
        fragment = only_fragment('<span class="x">Hi</span>')

        assert format_fragment(fragment, "<span>Salut</span>") == '<span class="x">Salut</span>'

    def test_inline_math_keeps_single_dollars(self):
        fragment = only_fragment("$x^2$")

        assert format_fragment(fragment, "$$x^2$$") == "$x^2$"

    def test_surrounding_whitespace_is_restored(self):
        fragment = only_fragment("   Indented paragraph  ")

        assert format_fragment(fragment, "Paragraphe") == "   Paragraphe  "


class TestReconstructErrors:

    def test_translation_count_must_match(self):
        segmented = segment("One\n\nTwo", ContentKind.PLAIN_TEXT)

        with pytest.raises(ReconstructionError):
            reconstruct(segmented, ["Un"])

    def test_duplicate_placeholder_is_rejected(self):
        segmented = SegmentedContent(
            template=placeholder(0) + placeholder(0), fragments=[paragraph("Hi")]
        )

        with pytest.raises(ReconstructionError):
            reconstruct(segmented, ["Salut"])

    def test_out_of_range_placeholder_is_rejected(self):
        segmented = SegmentedContent(template=placeholder(1), fragments=[paragraph("Hi")])

        with pytest.raises(ReconstructionError):
            reconstruct(segmented, ["Salut"])

    def test_unused_fragment_is_rejected(self):
        segmented = SegmentedContent(template="no placeholders", fragments=[paragraph("Hi")])

        with pytest.raises(ReconstructionError):
            reconstruct(segmented, ["Salut"])

    def test_descriptor_of_the_wrong_type_is_rejected(self):
        fragment = Fragment(
            text="# Title",
            type=FragmentType.HEADER,
            descriptor=ParagraphFormat(),
            position=0,
        )

        with pytest.raises(ReconstructionError, match="HeaderFormat"):
            format_fragment(fragment, "# Titre")

    def test_placeholder_prefixes_do_not_collide(self):
        fragments = [paragraph(str(index), position=index) for index in range(11)]
        template = " ".join(placeholder(index) for index in range(11))
        segmented = SegmentedContent(template=template, fragments=fragments)

        result = reconstruct(segmented, [f"t{index}" for index in range(11)])

        assert result.split(" ") == [f"t{index}" for index in range(11)]
