"""Product Development: turn a raw request into a Product Development Document."""

from typing import Dict, List

from .design import DesignWorkflowRunner
from .output_schemas import PRODUCT_DEVELOPMENT_OUTPUT_FORMAT
from .prompts import build_product_development_prompt
from ..core.models import Comment, Status, WorkflowItem, WorkflowName


class ProductDevelopmentWorkflow(DesignWorkflowRunner):
    workflow = WorkflowName.PRODUCT_DEVELOPMENT
    phase_name = "Product Development"
    status = Status.PRODUCT_DEVELOPMENT
    document_name = "Product Development Document"
    design_type = "product-dev"
    output_format = PRODUCT_DEVELOPMENT_OUTPUT_FORMAT
    output_field = "document"
    skip_bugs = True

    def build_new_prompt(self, item: WorkflowItem, comments: List[Comment], context: Dict[str, str]) -> str:
        return build_product_development_prompt(item, comments)

    def notify_ready(self, item: WorkflowItem, is_revision: bool) -> None:
        self.ctx.notifier.product_development_ready(item.title, item.issue_number, is_revision)
