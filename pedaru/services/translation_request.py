# pedaru/services/translation_request.py
"""
Translation/explanation requests for a resolved selection.

The backend receives {selectedText, contextBefore, contextAfter, modelId};
this module builds that payload, the prompts sent along with it, and turns
backend replies (or failures) into a TranslationOutcome for the popup.

Prompt file structure (optional, in prompts_dir):
- selection_translate.txt: translation of the selected text
- selection_explain.txt: plain-language explanation of the selected text

Placeholders: {selected_text}, {context_before}, {context_after}
"""

import json
import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from pedaru.models.types import TextSelection, TranslationOutcome, TranslationRequest
from pedaru.services.exceptions import BackendFailureError

# Module logger
logger = logging.getLogger(__name__)


# System instruction shared by both prompts
DEFAULT_SYSTEM_INSTRUCTION = """You help readers understand text selected in a PDF document.

Output MUST be valid JSON only, no markdown code blocks:
{"translation": "...", "points": ["...", "..."]}

"points" is a flat array of strings. Work ONLY on the selected text; the
context is for understanding only. The selected text sits exactly at the
boundary between "Context before" and "Context after"."""

DEFAULT_TRANSLATE_TEMPLATE = """SELECTED TEXT (translate this):
{selected_text}

Context before:
{context_before}

Context after:
{context_after}"""

DEFAULT_EXPLAIN_TEMPLATE = """Explain the following text in simple terms.

## Context before (for understanding only):
{context_before}

## Text to explain:
{selected_text}

## Context after (for understanding only):
{context_after}

Use the context to understand the meaning, but explain only the selected text."""

# ```json ... ``` fences some models wrap their reply in
_CODE_FENCE_PATTERN = re.compile(r'^\s*```(?:json)?\s*(.*?)\s*```\s*$', re.DOTALL)

_PLACEHOLDER_PATTERN = re.compile(r"\{(selected_text|context_before|context_after)\}")


def build_translation_request(selection: TextSelection, model_id: str) -> TranslationRequest:
    """
    Build the backend payload for a selection.

    Raises:
        ValueError: If the selection's context is still loading
    """
    if selection.context_loading:
        raise ValueError("Selection context is still loading")
    return TranslationRequest(
        selected_text=selection.selected_text,
        context_before=selection.context_before,
        context_after=selection.context_after,
        model_id=model_id,
    )


class PromptBuilder:
    """
    Builds translation and explanation prompts for a selection.
    """

    def __init__(self, prompts_dir: Optional[Path] = None):
        self.prompts_dir = prompts_dir
        self._translate_template = DEFAULT_TRANSLATE_TEMPLATE
        self._explain_template = DEFAULT_EXPLAIN_TEMPLATE
        self._load_templates()

    def _load_templates(self) -> None:
        """Load prompt templates from files or use defaults"""
        if not self.prompts_dir:
            return
        translate_file = self.prompts_dir / "selection_translate.txt"
        if translate_file.exists():
            self._translate_template = translate_file.read_text(encoding='utf-8')
        explain_file = self.prompts_dir / "selection_explain.txt"
        if explain_file.exists():
            self._explain_template = explain_file.read_text(encoding='utf-8')

    @property
    def system_instruction(self) -> str:
        return DEFAULT_SYSTEM_INSTRUCTION

    @staticmethod
    def _apply_placeholders(template: str, request: TranslationRequest) -> str:
        # Single pass: placeholder-like text inside the selection stays literal
        values = {
            "selected_text": request.selected_text,
            "context_before": request.context_before,
            "context_after": request.context_after,
        }
        return _PLACEHOLDER_PATTERN.sub(lambda m: values[m.group(1)], template)

    def build_translation_prompt(self, request: TranslationRequest) -> str:
        return self._apply_placeholders(self._translate_template, request)

    def build_explanation_prompt(self, request: TranslationRequest) -> str:
        return self._apply_placeholders(self._explain_template, request)


def parse_backend_reply(selected_text: str, reply: str) -> TranslationOutcome:
    """
    Parse a backend reply into a TranslationOutcome.

    Accepts {"translation"|"summary": str, "points": [str, ...]}, optionally
    wrapped in a code fence. Anything else is shown as plain translation
    text.
    """
    body = reply.strip()
    fenced = _CODE_FENCE_PATTERN.match(body)
    if fenced:
        body = fenced.group(1)

    try:
        data = json.loads(body)
    except json.JSONDecodeError:
        logger.debug("Backend reply is not JSON, using it verbatim")
        return TranslationOutcome(selected_text=selected_text, translation=reply.strip())

    if not isinstance(data, dict):
        return TranslationOutcome(selected_text=selected_text, translation=reply.strip())

    translation = data.get("translation") or data.get("summary") or ""
    points = data.get("points") or []
    if not isinstance(points, list):
        points = [points]
    return TranslationOutcome(
        selected_text=selected_text,
        translation=str(translation),
        explanation_points=[str(p) for p in points],
    )


class TranslationBackend(Protocol):
    """Remote model the popup talks to."""

    async def complete(self, request: TranslationRequest, prompt: str, system_instruction: str) -> str:
        ...


class SelectionTranslator:
    """
    Sends a resolved selection to the backend; failures become inline errors.

    Failed calls are not retried.
    """

    def __init__(
        self,
        backend: TranslationBackend,
        model_id: str,
        prompt_builder: Optional[PromptBuilder] = None,
    ):
        self.backend = backend
        self.model_id = model_id
        self.prompt_builder = prompt_builder or PromptBuilder()

    async def translate(self, selection: TextSelection, explain: bool = False) -> TranslationOutcome:
        """
        Translate (or explain) a selection.

        Raises:
            ValueError: If the selection's context is still loading
        """
        request = build_translation_request(selection, self.model_id)
        if explain:
            prompt = self.prompt_builder.build_explanation_prompt(request)
        else:
            prompt = self.prompt_builder.build_translation_prompt(request)

        try:
            reply = await self.backend.complete(request, prompt, self.prompt_builder.system_instruction)
        except BackendFailureError as e:
            logger.warning("Backend failed for %s: %s", selection.preview, e)
            return TranslationOutcome(selected_text=selection.selected_text, error_message=str(e))
        except Exception as e:  # backend clients raise their own error types
            logger.warning("Backend error for %s: %s", selection.preview, e)
            return TranslationOutcome(
                selected_text=selection.selected_text,
                error_message=f"{type(e).__name__}: {e}",
            )

        return parse_backend_reply(selection.selected_text, reply)
