"""Marker-delimited sections inside an issue body.

Grammar of a rendered body::

    body      := original [ section ]*
    section   := "\\n\\n---\\n\\n## " heading "\\n\\n" start "\\n\\n" content "\\n\\n" end
    start     := "<!-- AUTO-GENERATED: " NAME " -->"
    end       := "<!-- END " NAME " -->"

Sections are always rendered in SECTION_ORDER. Parsing also accepts the
older layout that had a ``<!-- Generated: ... -->`` timestamp line and the
unmarked ``## Product Design`` / ``## Technical Design`` headings.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class SectionName(str, Enum):
    PRODUCT_DESIGN = "PRODUCT DESIGN"
    TECH_DESIGN = "TECHNICAL DESIGN"


SECTION_HEADINGS: Dict[SectionName, str] = {
    SectionName.PRODUCT_DESIGN: "Product Design",
    SectionName.TECH_DESIGN: "Technical Design",
}
SECTION_ORDER = (SectionName.PRODUCT_DESIGN, SectionName.TECH_DESIGN)

_GENERATED_STAMP = re.compile(r"^\s*<!-- Generated: [^>]*-->\s*\n?", re.MULTILINE)


def start_marker(section: SectionName) -> str:
    return f"<!-- AUTO-GENERATED: {section.value} -->"


def end_marker(section: SectionName) -> str:
    return f"<!-- END {section.value} -->"


@dataclass
class IssueBodySections:
    """Parsed issue body: the human-written description plus generated sections."""
    original_description: str = ""
    product_design: Optional[str] = None
    tech_design: Optional[str] = None

    def get(self, section: SectionName) -> Optional[str]:
        if section == SectionName.PRODUCT_DESIGN:
            return self.product_design
        return self.tech_design

    def set(self, section: SectionName, content: Optional[str]) -> None:
        content = content.strip() if content else None
        if section == SectionName.PRODUCT_DESIGN:
            self.product_design = content
        else:
            self.tech_design = content


def _clean(content: str) -> str:
    return _GENERATED_STAMP.sub("", content).strip()


def _extract_marked(body: str, section: SectionName) -> Optional[str]:
    start = body.find(start_marker(section))
    end = body.find(end_marker(section))
    if start == -1 or end == -1 or end <= start:
        return None
    return _clean(body[start + len(start_marker(section)):end])


def extract_original_description(body: Optional[str]) -> str:
    """Text before the first generated section."""
    if not body:
        return ""
    boundaries = [start_marker(section) for section in SECTION_ORDER]
    boundaries += [f"---\n\n## {SECTION_HEADINGS[section]}" for section in SECTION_ORDER]
    end = len(body)
    for boundary in boundaries:
        index = body.find(boundary)
        if index != -1 and index < end:
            end = index
    description = body[:end].rstrip()
    # Drop a dangling separator left by the legacy layout
    if description.endswith("---"):
        description = description[:-3]
    return description.strip()


def extract_product_design(body: Optional[str]) -> Optional[str]:
    if not body:
        return None
    marked = _extract_marked(body, SectionName.PRODUCT_DESIGN)
    if marked is not None:
        return marked or None
    legacy_start = body.find("## Product Design\n")
    if legacy_start == -1:
        return None
    legacy_end = body.find("## Technical Design", legacy_start)
    legacy = body[legacy_start:legacy_end] if legacy_end != -1 else body[legacy_start:]
    return legacy.strip() or None


def extract_tech_design(body: Optional[str]) -> Optional[str]:
    if not body:
        return None
    marked = _extract_marked(body, SectionName.TECH_DESIGN)
    if marked is not None:
        return marked or None
    legacy_start = body.find("## Technical Design\n")
    if legacy_start == -1:
        return None
    return body[legacy_start:].strip() or None


def parse_issue_body(body: Optional[str]) -> IssueBodySections:
    return IssueBodySections(
        original_description=extract_original_description(body),
        product_design=extract_product_design(body),
        tech_design=extract_tech_design(body),
    )


def render_issue_body(sections: IssueBodySections) -> str:
    parts = [sections.original_description.strip()]
    for section in SECTION_ORDER:
        content = sections.get(section)
        if not content:
            continue
        parts.append(
            f"---\n\n## {SECTION_HEADINGS[section]}\n\n"
            f"{start_marker(section)}\n\n{content.strip()}\n\n{end_marker(section)}"
        )
    return "\n\n".join(part for part in parts if part)


def build_updated_issue_body(
    body: Optional[str],
    section: Union[SectionName, str],
    content: Optional[str],
) -> str:
    """Replace one generated section in place, keeping everything else.

    Applying the same update twice yields the same body as applying it once.
    Passing empty content removes the section.
    """
    sections = parse_issue_body(body)
    sections.set(SectionName(section), content)
    return render_issue_body(sections)
