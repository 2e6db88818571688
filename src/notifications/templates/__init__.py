"""Template registry — maps template keys to template classes.

Each template renders ``{subject, body, html_body}`` from a context dict.
"""

from notifications.templates.order_status import OrderStatusTemplate
from notifications.templates.receipt_email import ReceiptEmailTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    ReceiptEmailTemplate.template_key: ReceiptEmailTemplate,
    OrderStatusTemplate.template_key: OrderStatusTemplate,
}


def get_template(template_key: str):
    """Look up a template class by key."""
    template_cls = TEMPLATE_REGISTRY.get(template_key)
    if template_cls is None:
        raise ValueError(f"No template registered for key: {template_key}")
    return template_cls
