import json
import re
from typing import Any, Optional

from langchain_core.language_models import BaseLanguageModel
from langchain_core.messages import HumanMessage, SystemMessage

from soprano.agent.context import ContextSnapshot
from soprano.agent.extractors import is_cancel_intent, is_go_back_intent, is_skip_intent
from soprano.agent.interpreter import extract_field_value
from soprano.agent.prompts import get_system_prompt
from soprano.core.exceptions import CompletionError
from soprano.core.logger import get_logger
from soprano.forms.clarification import generate_help_response, is_question_like
from soprano.forms.schema import FieldDefinition

logger = get_logger(__name__)

_SCAN_WORDS = ("scan", "camera", "photo", "picture", "document", "card")
_NAVIGATION_RE = re.compile(r"\b(where|how do i|how can i|how to|show me|find)\b")
_WORD_RE = re.compile(r"[a-z]+")


class CompletionService:
    """Sends the transcript and the turn snapshot to a chat model."""

    def __init__(self, chat_model: BaseLanguageModel):
        self._chat_model = chat_model

    async def complete(self, user_text: str, snapshot: ContextSnapshot) -> str:
        if not user_text or not user_text.strip():
            raise CompletionError("Empty user text provided")

        messages = [
            SystemMessage(content=get_system_prompt(snapshot)),
            HumanMessage(content=user_text),
        ]

        logger.info("Generating AI response...")
        try:
            response = await self._chat_model.ainvoke(messages)
        except Exception as e:
            logger.error(f"Completion error: {e}")
            raise CompletionError(f"Failed to generate response: {str(e)}") from e

        if hasattr(response, "content"):
            content = response.content
        else:
            content = str(response)

        if not isinstance(content, str) or not content.strip():
            raise CompletionError("Model returned an empty response")

        logger.info(f"Generated response: {content[:100]}...")
        return content


class OfflineCompletionService:
    """Keyword stand-in for the chat model.

    Answers in the same JSON shapes the real model is asked for, so the
    console demo and tests run the full pipeline without network access.
    """

    async def complete(self, user_text: str, snapshot: ContextSnapshot) -> str:
        if not user_text or not user_text.strip():
            raise CompletionError("Empty user text provided")

        guided = snapshot.guided
        if guided is not None and guided.current_field is not None:
            return json.dumps(self._guided_reply(user_text, guided.current_field))

        guide = self._navigation_reply(user_text, snapshot)
        if guide is not None:
            return json.dumps(guide)

        return f"I'm here to help with your banking. You're on the {snapshot.screen} screen, what would you like to do?"

    def _guided_reply(self, text: str, field: FieldDefinition) -> dict[str, Any]:
        lower_text = text.lower()

        if is_cancel_intent(text):
            return {"action": "cancel", "message": "No problem, I've stopped filling the form."}
        if is_go_back_intent(text):
            return {"action": "go_back", "message": "Sure, let's go back."}
        if is_skip_intent(text):
            return {"action": "skip", "message": f"Okay, skipping {field.label}."}
        if field.document_type is not None and any(word in lower_text for word in _SCAN_WORDS):
            return {
                "action": "scan_document",
                "documentType": field.document_type.value,
                "message": "Let's scan your document. Hold it steady in front of the camera.",
            }
        if is_question_like(text):
            return {"action": "provide_clarification", "message": generate_help_response(text, field)}

        value = extract_field_value(text, field)
        if value is None:
            return {"action": "clarify", "message": f"Sorry, I didn't catch that. {field.prompt}"}

        return {
            "action": "fill_field",
            "field": field.name,
            "value": value,
            "message": f"Got it, {value}.",
        }

    def _navigation_reply(self, text: str, snapshot: ContextSnapshot) -> Optional[dict[str, Any]]:
        lower_text = text.lower()
        if not snapshot.available_elements or not _NAVIGATION_RE.search(lower_text):
            return None

        query_words = {w for w in _WORD_RE.findall(lower_text) if len(w) > 2}
        best_id, best_score = None, 0
        for element_id, description in snapshot.available_elements.items():
            element_words = set(_WORD_RE.findall(f"{element_id} {description}".lower()))
            score = len(query_words & element_words)
            if score > best_score:
                best_id, best_score = element_id, score

        if best_id is None:
            return None
        return {
            "type": "navigation_guide",
            "elementId": best_id,
            "instruction": f"Here it is. {snapshot.available_elements[best_id]}",
        }
