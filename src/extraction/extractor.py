"""
Metadata Extraction - LiteLLM

Asks a vision-capable model to read the first pages of an uploaded score and
describe it (title, composer, parts, page ranges...). The model's JSON is
validated into ExtractedMetadata before anything else sees it.

Usage:
    from src.extraction import MetadataExtractor

    extractor = MetadataExtractor(model="gemini/gemini-2.0-flash")
    metadata = extractor.extract(pdf_bytes, file_name="march.pdf")

Environment variables needed: the provider key LiteLLM expects for the chosen
model (GEMINI_API_KEY, ANTHROPIC_API_KEY, OPENAI_API_KEY...).
"""

import json
import logging

import litellm
from django.conf import settings
from pydantic import ValidationError

from src.observability.tracing import init_tracing, trace_llm_call
from src.smart_upload.schemas import ExtractedMetadata
from src.tools.pdf import PdfError, count_pages, extract_text
from src.tools.render import RenderError, render_page

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    """The model could not be called or returned unusable output."""


SYSTEM_PROMPT = """You catalogue sheet music for a concert band library.
You are shown the first pages of an uploaded PDF (as images, plus any text layer).
Reply with a single JSON object and nothing else, using these keys:

- title: piece title
- composer: composer full name, or null
- publisher: publisher name, or null
- instrument: the instrument if this file is a single part, or null
- confidence_score: 0-100, how sure you are of title and composer
- file_type: one of FULL_SCORE, CONDUCTOR_SCORE, PART, CONDENSED_SCORE
- is_multi_part: true when the PDF holds several instrument parts back to back
- parts: list of {"instrument": ..., "part_name": ...} for every part you can see
- difficulty: GRADE_1 to GRADE_6, or null
- ensemble_type, key_signature, time_signature, tempo: strings or null
- cutting_instructions: for multi-part files, list of
  {"part_name": ..., "instrument": ..., "section": ..., "transposition": ...,
   "part_number": ..., "page_range": [first_page, last_page]}
  using 1-based page numbers of the whole document. Only include ranges you
  can see evidence for; leave pages out rather than guess.
"""


class MetadataExtractor:
    """Extract ExtractedMetadata from PDF bytes via LiteLLM."""

    def __init__(self, model: str | None = None, max_pages: int | None = None, enable_tracing: bool = True):
        self.model = model or getattr(settings, "SMART_UPLOAD_LLM_MODEL", "gemini/gemini-2.0-flash")
        self.max_pages = max_pages or getattr(settings, "SMART_UPLOAD_MAX_LLM_PAGES", 6)

        if enable_tracing:
            init_tracing()

    def build_messages(self, pdf_bytes: bytes, file_name: str) -> list[dict]:
        """User message holding file name, text layer and page images."""
        try:
            total_pages = count_pages(pdf_bytes)
            text = extract_text(pdf_bytes)
        except PdfError as e:
            raise ExtractionError(str(e)) from e

        content = [{
            "type": "text",
            "text": (
                f"File name: {file_name}\n"
                f"Total pages: {total_pages}\n"
                f"Text layer (may be empty):\n{text}"
            ),
        }]

        for index in range(min(total_pages, self.max_pages)):
            try:
                image_b64, _ = render_page(pdf_bytes, index, max_width=1024)
            except (RenderError, IndexError) as e:
                logger.warning(f"Skipping page {index} of {file_name} for extraction: {e}")
                continue
            content.append({
                "type": "image_url",
                "image_url": {"url": f"data:image/png;base64,{image_b64}"},
            })

        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": content},
        ]

    def extract(self, pdf_bytes: bytes, file_name: str = "upload.pdf") -> ExtractedMetadata:
        """
        Run extraction.

        Raises:
            ExtractionError: model call failed or its answer did not validate
        """
        messages = self.build_messages(pdf_bytes, file_name)

        with trace_llm_call(self.model, prompt=SYSTEM_PROMPT, metadata={"file_name": file_name}) as span:
            try:
                response = litellm.completion(
                    model=self.model,
                    messages=messages,
                    response_format={"type": "json_object"},
                    temperature=0,
                )
            except Exception as e:
                raise ExtractionError(f"LLM call failed: {e}") from e

            content = response.choices[0].message.content or ""
            span.update(output={"content": content})

        metadata = parse_metadata(content)
        logger.info(
            f"Extracted '{metadata.title}' from {file_name} "
            f"(confidence {metadata.confidence_score}, {len(metadata.parts)} parts)"
        )
        return metadata


def parse_metadata(content: str) -> ExtractedMetadata:
    """Validate a model reply, tolerating a ```json fence around it."""
    text = content.strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model did not return JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("Model returned JSON that is not an object")

    try:
        return ExtractedMetadata.model_validate(data)
    except ValidationError as e:
        raise ExtractionError(f"Model output failed validation: {e}") from e
