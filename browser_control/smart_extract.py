"""
LLM-assisted extraction for Browser Control.

Forwards page markup and a natural-language query to a chat model and
returns its answer untouched. Correctness of the answer is the model's
business; this module only resolves the scope and forwards faithfully.
"""

import json
import logging
from typing import Any, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI

from .config import ControlConfig
from .errors import ErrorKind
from .tools import BrowserTools
from .types import ActionResult, error_message

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are an expert data extractor. Given the following HTML content, extract the information requested.

Request: {query}

HTML Content:
{content}

Return the extracted data in a clean, structured JSON format."""


def build_extraction_model(config: ControlConfig) -> ChatOpenAI:
    """Create the deterministic chat model used for extraction."""
    return ChatOpenAI(
        base_url=config.model_endpoint,
        api_key=config.api_key or "not-required",
        model=config.model,
        temperature=0,
        request_timeout=config.request_timeout,
    )


def stringify_response(response: Any) -> str:
    """Return a model answer as text, JSON-encoding anything that is not."""
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    return json.dumps(content, indent=2, default=str)


class SmartExtractor:
    """Answers natural-language extraction queries about the current page."""

    def __init__(self, tools: BrowserTools, llm: Optional[BaseChatModel] = None):
        """Initialize the extractor.

        Args:
            tools: Action layer providing the page and timeouts
            llm: Chat model; created from configuration on first use
        """
        self.tools = tools
        self._llm = llm

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = build_extraction_model(self.tools.config)
        return self._llm

    def smart_extract(self, query: str, selector: Optional[str] = None) -> ActionResult:
        """Extract data matching a query from the page or a scoped element.

        Args:
            query: What to extract, in natural language
            selector: Optional selector scoping the markup to its first match

        Returns:
            ActionResult carrying the model's answer verbatim
        """
        try:
            page = self.tools.current_page()
            if selector:
                locator = page.locator(selector)
                if locator.count() == 0:
                    return ActionResult.fail(
                        ErrorKind.NOT_FOUND,
                        f'No element found matching selector "{selector}".',
                    )
                content = locator.first.inner_html(
                    timeout=self.tools.bounded(self.tools.config.action_timeout)
                )
            else:
                content = page.content()
        except Exception as e:
            logger.warning(f"Smart extract scope error: {error_message(e)}")
            return ActionResult.from_exception("Error during smart extraction", e)

        prompt = EXTRACTION_PROMPT.format(query=query, content=content)
        logger.debug(f"Smart extract: {len(content)} chars of markup for query {query!r}")

        try:
            response = self.llm.invoke([HumanMessage(content=prompt)])
        except Exception as e:
            logger.warning(f"Extraction service error: {error_message(e)}")
            return ActionResult.fail(
                ErrorKind.EXTERNAL_SERVICE,
                f"Error during smart extraction: {error_message(e)}",
            )

        answer = stringify_response(response)
        if not answer.strip():
            return ActionResult.fail(
                ErrorKind.EXTERNAL_SERVICE,
                "Error during smart extraction: the extraction service returned no content.",
            )
        return ActionResult.ok(answer, data={"markup_chars": len(content)})
