import json
from enum import Enum
from typing import Any, Mapping, Optional

from soprano.agent.context import ContextSnapshot
from soprano.forms.clarification import get_field_metadata_for_ai
from soprano.forms.formatters import format_currency
from soprano.forms.schema import FieldDefinition


class PromptVersion(str, Enum):
    V1 = "v1"
    DEFAULT = "v1"


class PromptTemplate:
    def __init__(self, template: str, version: PromptVersion = PromptVersion.DEFAULT):
        self.template = template
        self.version = version

    def render(self, **kwargs: Any) -> str:
        return self.template.format(**kwargs)


SYSTEM_PROMPT_V1 = """You are Soprano, a friendly and helpful AI banking assistant integrated into a mobile banking app.

Your role is to help users with their banking tasks, answer questions, and provide guidance based on what they're currently viewing.

CURRENT CONTEXT:
{context}

GUIDELINES:
- Be concise and conversational - this is a voice interface
- Reference what the user is seeing on screen when relevant
- Keep responses under 2-3 sentences for voice delivery
- Use natural, friendly language - avoid overly formal banking jargon
- If you don't have enough context, ask clarifying questions
{navigation}{guided}"""

NAVIGATION_BLOCK_V1 = """
VISUAL GUIDANCE:
If the user asks where something is or how to do something on this screen, reply ONLY with this JSON:
{{"type": "navigation_guide", "elementId": "<one of the element ids below>", "instruction": "<one short spoken sentence>"}}
Elements on this screen:
{elements}
"""

GUIDED_BLOCK_V1 = """
GUIDED FORM MODE:
You are filling a form with the user one field at a time. Progress: field {current} of {total}.
Completed fields: {completed}
Recent answers:
{history}

CURRENT FIELD:
{field_metadata}
Field name: {field_name}
Field type: {field_type}
Required: {required}

Reply ONLY with a JSON object, no markdown:
{{"action": "fill_field" | "skip" | "go_back" | "cancel" | "clarify" | "scan_document" | "provide_clarification",
  "field": "{field_name}",
  "value": <the value for the field when action is fill_field>,
  "message": "<short spoken reply>",
  "documentType": "address" | "pan" (only for scan_document)}}

Rules:
- fill_field when the user gave a value for the current field; convert spoken numbers to digits and "name at bank" to name@bank
- skip only when the user asks to skip
- go_back when the user wants to change the previous answer
- cancel when the user wants to stop filling the form
- scan_document when the user wants to use the camera or a document
- provide_clarification when the user asks a question about the field; answer it in message
- clarify when the answer is unclear
"""

SYSTEM_PROMPTS = {
    PromptVersion.V1: PromptTemplate(SYSTEM_PROMPT_V1, PromptVersion.V1),
}
NAVIGATION_BLOCKS = {
    PromptVersion.V1: PromptTemplate(NAVIGATION_BLOCK_V1, PromptVersion.V1),
}
GUIDED_BLOCKS = {
    PromptVersion.V1: PromptTemplate(GUIDED_BLOCK_V1, PromptVersion.V1),
}


def _serialize_dashboard(data: Mapping[str, Any]) -> str:
    desc = "Dashboard Overview:\n"
    if data.get("balance") is not None:
        desc += f"- Account balance: {format_currency(data['balance'])}\n"
    transactions = data.get("recentTransactions")
    if isinstance(transactions, list):
        desc += f"- Showing {len(transactions)} recent transactions\n"
        for txn in transactions[:3]:
            desc += f"  - {txn.get('name')}: {format_currency(txn.get('amount', 0))}\n"
    return desc


def _serialize_transactions(data: Mapping[str, Any]) -> str:
    desc = "Transaction History:\n"
    if data.get("totalTransactions") is not None:
        desc += f"- Total transactions: {data['totalTransactions']}\n"
    if data.get("visibleTransactions") is not None:
        desc += f"- Currently visible: {data['visibleTransactions']}\n"
    if data.get("searchQuery"):
        desc += f"- Search query: \"{data['searchQuery']}\"\n"
    return desc


def _serialize_upi_payment(form_state: Mapping[str, Any]) -> str:
    desc = "UPI Payment Form:\n"
    desc += f"- UPI ID field: {form_state.get('upiId') or '(empty)'}\n"
    desc += f"- Amount field: {form_state.get('amount') or '(empty)'}\n"
    desc += f"- Note field: {form_state.get('note') or '(empty)'}\n"
    if form_state.get("focusedField"):
        desc += f"- User is currently focused on: {form_state['focusedField']}\n"
    errors = {k: v for k, v in (form_state.get("errors") or {}).items() if v}
    if errors:
        desc += "- Validation errors:\n"
        for field_name, error in errors.items():
            desc += f"  - {field_name}: {error}\n"
    return desc


def _serialize_upi_confirm(data: Mapping[str, Any]) -> str:
    desc = "Payment Confirmation:\n"
    if data.get("upiId"):
        desc += f"- Recipient UPI ID: {data['upiId']}\n"
    if data.get("amount") is not None:
        desc += f"- Amount to send: {format_currency(data['amount'])}\n"
    if data.get("recipientName"):
        desc += f"- Recipient name: {data['recipientName']}\n"
    if data.get("isNewRecipient"):
        desc += "- This is a first-time recipient\n"
    return desc


def _serialize_upi_success(data: Mapping[str, Any]) -> str:
    desc = "Payment Successful:\n"
    if data.get("transactionId"):
        desc += f"- Transaction ID: {data['transactionId']}\n"
    if data.get("amount") is not None:
        desc += f"- Amount sent: {format_currency(data['amount'])}\n"
    if data.get("recipientName"):
        desc += f"- Sent to: {data['recipientName']}\n"
    return desc


def _serialize_generic(screen_data: Mapping[str, Any], form_state: Mapping[str, Any]) -> str:
    desc = ""
    if screen_data:
        desc += "Screen Data:\n"
        for key, value in screen_data.items():
            desc += f"- {key}: {json.dumps(value, default=str)}\n"
    if form_state:
        desc += "Form State:\n"
        for key, value in form_state.items():
            desc += f"- {key}: {json.dumps(value, default=str)}\n"
    return desc or "No specific context data available.\n"


def serialize_context(snapshot: ContextSnapshot) -> str:
    """Describe the current screen in natural language for the model."""
    description = f"The user is currently on the {snapshot.screen} screen.\n\n"

    if snapshot.screen == "Dashboard":
        description += _serialize_dashboard(snapshot.screen_data)
    elif snapshot.screen == "Transactions":
        description += _serialize_transactions(snapshot.screen_data)
    elif snapshot.screen == "UPIPayment":
        description += _serialize_upi_payment(snapshot.form_state)
    elif snapshot.screen == "UPIConfirm":
        description += _serialize_upi_confirm(snapshot.screen_data)
    elif snapshot.screen == "UPISuccess":
        description += _serialize_upi_success(snapshot.screen_data)
    else:
        description += _serialize_generic(snapshot.screen_data, snapshot.form_state)

    return description.strip()


def _render_guided_block(snapshot: ContextSnapshot, version: PromptVersion) -> str:
    guided = snapshot.guided
    if guided is None or guided.current_field is None:
        return ""

    field = guided.current_field
    history = "\n".join(
        f"- {entry.field}: \"{entry.user_utterance}\" -> {entry.parsed_value!r}"
        for entry in guided.recent_history
    )
    return GUIDED_BLOCKS[version].render(
        current=guided.progress.current,
        total=guided.progress.total,
        completed=", ".join(guided.completed_fields) or "none",
        history=history or "- none yet",
        field_metadata=get_field_metadata_for_ai(field),
        field_name=field.name,
        field_type=field.type.value,
        required="yes" if field.required else "no (the user may skip it)",
    )


def _render_navigation_block(snapshot: ContextSnapshot, version: PromptVersion) -> str:
    if not snapshot.available_elements:
        return ""
    elements = "\n".join(
        f"- {element_id}: {description}" for element_id, description in snapshot.available_elements.items()
    )
    return NAVIGATION_BLOCKS[version].render(elements=elements)


def get_system_prompt(snapshot: ContextSnapshot, version: Optional[PromptVersion] = None) -> str:
    version = version or PromptVersion.DEFAULT
    return SYSTEM_PROMPTS[version].render(
        context=serialize_context(snapshot),
        navigation=_render_navigation_block(snapshot, version),
        guided=_render_guided_block(snapshot, version),
    )


def generate_field_prompt(field: FieldDefinition, is_first_field: bool) -> str:
    if is_first_field:
        return f"I'll help you fill this form. {field.prompt}"
    return field.prompt


def generate_error_prompt(field: FieldDefinition, error: str) -> str:
    return f"{error}. {field.prompt}"


def generate_final_message(total_fields: int) -> str:
    return f"All done! I've filled in all {total_fields} fields. You can review and submit when ready."
