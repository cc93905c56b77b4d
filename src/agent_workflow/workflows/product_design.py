"""Product Design: user-facing design, stored in the issue body and design-docs/."""

from typing import Dict, List

from .design import DesignWorkflowRunner
from .output_schemas import PRODUCT_DESIGN_OUTPUT_FORMAT
from .prompts import build_product_design_prompt
from ..artifacts import read_design_doc
from ..core.models import Comment, Status, WorkflowItem, WorkflowName
from ..parsing import SectionName


class ProductDesignWorkflow(DesignWorkflowRunner):
    workflow = WorkflowName.PRODUCT_DESIGN
    phase_name = "Product Design"
    status = Status.PRODUCT_DESIGN
    document_name = "Product Design"
    design_type = "product"
    section = SectionName.PRODUCT_DESIGN
    artifact_type = "product-design"
    output_format = PRODUCT_DESIGN_OUTPUT_FORMAT
    # Most bugs need a technical fix, not a redesign
    skip_bugs = True

    def context_documents(self, item: WorkflowItem) -> Dict[str, str]:
        pdd = read_design_doc(self.workspace, item.issue_number, "product-dev")
        if pdd:
            self.console.print("  Found Product Development Document, using it as context")
            return {"Product Development Document": pdd}
        return {}

    def build_new_prompt(self, item: WorkflowItem, comments: List[Comment], context: Dict[str, str]) -> str:
        return build_product_design_prompt(item, comments, context.get("Product Development Document"))

    def notify_ready(self, item: WorkflowItem, is_revision: bool) -> None:
        self.ctx.notifier.product_design_ready(item.title, item.issue_number, is_revision)
