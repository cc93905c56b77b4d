"""Tests for generated sections in issue bodies and clarification comments."""

from agent_workflow.core.models import Comment
from agent_workflow.parsing import (
    SectionName,
    build_updated_issue_body,
    extract_clarification_from_comment,
    extract_original_description,
    find_clarification_exchange,
    format_clarification_comment,
    is_clarification_comment,
    parse_issue_body,
)
from agent_workflow.parsing.sections import end_marker, start_marker


def _comment(body: str, comment_id: int = 1) -> Comment:
    return Comment(id=comment_id, body=body)


class TestIssueBodySections:
    def test_add_section_to_plain_body(self):
        body = build_updated_issue_body("Users want a dark theme.", SectionName.PRODUCT_DESIGN, "# Design\n\nDark.")

        assert body.startswith("Users want a dark theme.")
        assert start_marker(SectionName.PRODUCT_DESIGN) in body
        assert end_marker(SectionName.PRODUCT_DESIGN) in body
        sections = parse_issue_body(body)
        assert sections.original_description == "Users want a dark theme."
        assert sections.product_design == "# Design\n\nDark."
        assert sections.tech_design is None

    def test_update_is_idempotent(self):
        """Applying the same update twice gives the same body as applying it once."""
        once = build_updated_issue_body("Original", SectionName.TECH_DESIGN, "# Tech\n\nPlan")
        twice = build_updated_issue_body(once, SectionName.TECH_DESIGN, "# Tech\n\nPlan")
        assert once == twice

    def test_replacing_one_section_keeps_the_other(self):
        body = build_updated_issue_body("Original", SectionName.PRODUCT_DESIGN, "Product v1")
        body = build_updated_issue_body(body, SectionName.TECH_DESIGN, "Tech v1")
        body = build_updated_issue_body(body, SectionName.PRODUCT_DESIGN, "Product v2")

        sections = parse_issue_body(body)
        assert sections.product_design == "Product v2"
        assert sections.tech_design == "Tech v1"
        assert sections.original_description == "Original"
        assert "Product v1" not in body

    def test_sections_render_in_fixed_order(self):
        body = build_updated_issue_body("Original", SectionName.TECH_DESIGN, "Tech")
        body = build_updated_issue_body(body, SectionName.PRODUCT_DESIGN, "Product")
        assert body.index("Product") < body.index("Tech")

    def test_empty_content_removes_section(self):
        body = build_updated_issue_body("Original", SectionName.PRODUCT_DESIGN, "Product")
        body = build_updated_issue_body(body, SectionName.PRODUCT_DESIGN, "")
        assert body == "Original"

    def test_generated_timestamp_is_ignored(self):
        body = (
            "Original\n\n---\n\n## Product Design\n\n"
            "<!-- AUTO-GENERATED: PRODUCT DESIGN -->\n"
            "<!-- Generated: 2024-01-01T00:00:00Z -->\n\n"
            "Design text\n\n<!-- END PRODUCT DESIGN -->"
        )
        assert parse_issue_body(body).product_design == "Design text"

    def test_legacy_unmarked_sections(self):
        body = "Original\n\n---\n\n## Product Design\nOld design\n\n## Technical Design\nOld tech"
        sections = parse_issue_body(body)
        assert sections.original_description == "Original"
        assert "Old design" in sections.product_design
        assert "Old tech" in sections.tech_design

    def test_empty_body(self):
        assert extract_original_description(None) == ""
        assert parse_issue_body("").product_design is None


class TestClarificationComments:
    def test_format_and_detect(self):
        body = format_clarification_comment("Which database?", "[tech-design]")
        assert body.startswith("[tech-design]")
        assert is_clarification_comment(body)
        assert extract_clarification_from_comment(body) == "Which database?"

    def test_plain_comment_is_not_clarification(self):
        assert not is_clarification_comment("Looks good")
        assert not is_clarification_comment(None)

    def test_exchange_collects_human_replies(self):
        comments = [
            _comment("Earlier discussion", 1),
            _comment(format_clarification_comment("Postgres or SQLite?", "[tech-design]"), 2),
            _comment("Postgres.", 3),
            _comment("[tech-design] Thanks, continuing", 4),
            _comment("## ✅ Clarification Provided\nAlso add an index.", 5),
        ]
        question, answer = find_clarification_exchange(comments)
        assert question == "Postgres or SQLite?"
        assert answer == "Postgres.\n\nAlso add an index."

    def test_latest_clarification_wins(self):
        comments = [
            _comment(format_clarification_comment("First?", "[implementation]"), 1),
            _comment("Answer one", 2),
            _comment(format_clarification_comment("Second?", "[implementation]"), 3),
            _comment("Answer two", 4),
        ]
        assert find_clarification_exchange(comments) == ("Second?", "Answer two")

    def test_unanswered_question(self):
        comments = [_comment(format_clarification_comment("Anyone?", "[triage]"), 1)]
        assert find_clarification_exchange(comments) == ("Anyone?", None)

    def test_no_clarification(self):
        assert find_clarification_exchange([_comment("hello")]) == (None, None)
