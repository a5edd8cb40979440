"""
Semantic Labeler
================

Asks a vision-capable chat model which fillable fields exist on a page and
what kind each one is. The model is told WHAT fields exist, never WHERE:
geometry always comes from OCR.

Input to the model:
-------------------
- The rendered page image (PNG, base64 data URL)
- The page's OCR lines, numbered, so labels can be copied verbatim
- Table shapes and the number of detected selection marks

Output from the model:
----------------------
{"totalFieldCount": n, "fields": [{"labelText", "fieldType", "inputType",
                                   "section", "required"}, ...]}

Any transport error, timeout, non-JSON reply or payload that fails
validation raises SemanticAnalysisFailed; the pipeline then sends that page
down the fallback path. Temperature is 0 so the same page yields the same
answer.
"""

import json
import logging
import re
from typing import Any, Dict, List, Optional

import requests
from pydantic import ValidationError

from .descriptors import SemanticAnalysis, SemanticPageResponse
from .errors import SemanticAnalysisFailed
from .ocr_page import OcrPage

logger = logging.getLogger(__name__)

JSON_OBJECT_PATTERN = re.compile(r'\{[\s\S]*\}')


class SemanticLabeler:
    """OpenAI-compatible chat-completions client for page field identification."""
    
    SYSTEM_PROMPT = """You identify fillable fields on scanned forms. You never guess positions; you only say which fields exist, what they look like and which printed label belongs to each. Respond with JSON only."""
    
    PAGE_PROMPT = """I have already extracted all text on this form page using OCR.
Your job is to identify WHAT form fields exist on this page, not WHERE they are.

OCR TEXT FOUND ON THIS PAGE:
{text_list}

TABLES:
{table_info}

SELECTION MARKS:
{selection_info}

For EACH fillable form field you can see, provide:
1. "labelText": the exact label text associated with this field
   - MUST match one of the OCR texts above (copy exactly)
2. "fieldType": one of:
   - "underline": fill line next to the label
   - "box_with_title": fill box with its title below it
   - "digit_boxes": a row of boxes for individual digits (phone, ID)
   - "table_cell": input cell within a table
   - "title_right": title on one side with the fill area beside it
   - "selection_mark": checkbox or radio button
3. "inputType": "text" | "checkbox" | "radio" | "signature" | "dropdown"
4. "section": logical section name, in the form's language
5. "required": true/false

RULES:
- Identify EVERY fillable field on the page
- Digit boxes count as ONE field with fieldType "digit_boxes"
- Each table cell that expects user input is a separate field
- Selection marks are identified by their nearby label text
- Signature areas have inputType "signature"
- Return "totalFieldCount" with the total number of fields you identified

RETURN ONLY VALID JSON:
{{
  "totalFieldCount": <number>,
  "fields": [
    {{
      "labelText": "<exact OCR text>",
      "fieldType": "<type>",
      "inputType": "<type>",
      "section": "<section name>",
      "required": <true/false>
    }}
  ]
}}"""
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        api_base: str = "https://generativelanguage.googleapis.com/v1beta/openai",
        model_name: str = "gemini-1.5-pro",
        timeout: float = 60.0,
        rate_limiter: Optional[Any] = None
    ):
        """
        Initialize the semantic labeler.
        
        Args:
            api_key: API key for the chat-completions service
            api_base: Base URL of the OpenAI-compatible API
            model_name: Model name to use
            timeout: Request timeout in seconds
            rate_limiter: Optional RateLimiter shared with the OCR client
        """
        self.api_key = api_key
        self.api_base = api_base.rstrip('/')
        self.model_name = model_name
        self.timeout = timeout
        self.rate_limiter = rate_limiter
        self.service_name = 'semantic_labeler'
        
        if not self.api_key:
            logger.warning(
                "Semantic labeler API key not configured. Every page will use the fallback path. "
                "Set SEMANTIC_LABELER_API_KEY or GEMINI_API_KEY environment variable."
            )
    
    @property
    def is_available(self) -> bool:
        return bool(self.api_key)
    
    def build_prompt(self, page: OcrPage) -> str:
        """Per-page prompt listing the OCR inventory."""
        text_list = '\n'.join(
            f'  [{i}] "{line.content}"' for i, line in enumerate(page.lines, start=1)
        ) or '  (no text detected)'
        
        if page.tables:
            table_info = '\n'.join(
                f"  Table {i}: {t.row_count} rows x {t.column_count} cols"
                for i, t in enumerate(page.tables, start=1)
            )
        else:
            table_info = '  (no tables detected)'
        
        if page.selection_marks:
            selection_info = f"  {len(page.selection_marks)} selection marks (checkboxes/radio buttons)"
        else:
            selection_info = '  (no selection marks detected)'
        
        return self.PAGE_PROMPT.format(
            text_list=text_list,
            table_info=table_info,
            selection_info=selection_info
        )
    
    def _build_messages(self, prompt: str, page_image_b64: Optional[str]) -> List[Dict[str, Any]]:
        user_content: Any = prompt
        if page_image_b64:
            user_content = [
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": f"data:image/png;base64,{page_image_b64}"}}
            ]
        return [
            {"role": "system", "content": self.SYSTEM_PROMPT},
            {"role": "user", "content": user_content}
        ]
    
    def _request(self, page_number: int, messages: List[Dict[str, Any]]) -> str:
        if self.rate_limiter:
            can_call, reason = self.rate_limiter.acquire(self.service_name)
            if not can_call:
                logger.warning(f"Rate limit exceeded: {reason}")
                raise SemanticAnalysisFailed(page_number, f"rate limit exceeded: {reason}")
        
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }
        payload = {
            "model": self.model_name,
            "messages": messages,
            "temperature": 0.0
        }
        
        try:
            response = requests.post(
                f"{self.api_base}/chat/completions",
                headers=headers,
                json=payload,
                timeout=self.timeout
            )
            response.raise_for_status()
            result_data = response.json()
            content = result_data['choices'][0]['message']['content']
        except requests.Timeout as e:
            raise SemanticAnalysisFailed(page_number, f"request timed out after {self.timeout}s") from e
        except requests.RequestException as e:
            raise SemanticAnalysisFailed(page_number, f"request failed: {e}") from e
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise SemanticAnalysisFailed(page_number, f"unexpected response shape: {e}") from e
        
        if not isinstance(content, str):
            raise SemanticAnalysisFailed(page_number, "response content is not text")
        
        tokens_used = result_data.get('usage', {}).get('total_tokens', 0)
        logger.debug(f"Page {page_number}: semantic labeler used {tokens_used} tokens")
        return content
    
    def parse_response(self, page_number: int, response_text: str) -> SemanticPageResponse:
        """
        Extract and validate the JSON payload from a model reply.
        
        Raises:
            SemanticAnalysisFailed: If no valid payload can be extracted
        """
        text = response_text.strip()
        
        # Handle markdown code blocks
        if "```json" in text:
            json_start = text.find("```json") + 7
            json_end = text.find("```", json_start)
            text = text[json_start:json_end if json_end != -1 else None].strip()
        elif "```" in text:
            json_start = text.find("```") + 3
            json_end = text.find("```", json_start)
            text = text[json_start:json_end if json_end != -1 else None].strip()
        
        # Prose around the object
        if not text.startswith('{'):
            match = JSON_OBJECT_PATTERN.search(text)
            if match:
                text = match.group(0)
        
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise SemanticAnalysisFailed(page_number, f"reply is not JSON: {e}", raw_response=response_text) from e
        
        try:
            return SemanticPageResponse.model_validate(data)
        except ValidationError as e:
            raise SemanticAnalysisFailed(
                page_number,
                f"reply failed validation ({e.error_count()} errors)",
                raw_response=response_text
            ) from e
    
    def label_page(self, page: OcrPage, page_image_b64: Optional[str] = None) -> SemanticAnalysis:
        """
        Identify the fillable fields on one page.
        
        Args:
            page: OCR data for the page
            page_image_b64: Rendered page as base64 PNG
        
        Returns:
            SemanticAnalysis with the page's descriptors
        
        Raises:
            SemanticAnalysisFailed: On any transport or parsing problem
        """
        if not self.is_available:
            raise SemanticAnalysisFailed(page.page_number, "semantic labeler not configured")
        
        logger.info(f"Page {page.page_number}: requesting semantic labels ({len(page.lines)} OCR lines)")
        messages = self._build_messages(self.build_prompt(page), page_image_b64)
        response_text = self._request(page.page_number, messages)
        parsed = self.parse_response(page.page_number, response_text)
        
        logger.info(
            f"Page {page.page_number}: semantic labeler identified {parsed.reported_field_count} fields "
            f"({len(parsed.fields)} in detail)"
        )
        return SemanticAnalysis.from_response(parsed)
