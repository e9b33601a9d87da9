"""Tests for LiteLLM metadata extraction."""

import json
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_pdf
from src.extraction import ExtractionError, MetadataExtractor
from src.extraction.extractor import SYSTEM_PROMPT, parse_metadata


def completion_returning(content):
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    return response


class TestParseMetadata:

    def test_plain_json(self):
        metadata = parse_metadata('{"title": "Sousa March", "confidence_score": 88}')
        assert metadata.title == "Sousa March"
        assert metadata.confidence_score == 88

    def test_fenced_json(self):
        metadata = parse_metadata('```json\n{"title": "Fenced"}\n```')
        assert metadata.title == "Fenced"

    def test_not_json(self):
        with pytest.raises(ExtractionError):
            parse_metadata("I think this is a march by Sousa.")

    def test_not_an_object(self):
        with pytest.raises(ExtractionError):
            parse_metadata('["title"]')

    def test_invalid_cutting_instruction_keeps_the_rest(self):
        content = json.dumps({
            "title": "March",
            "composer": "John Philip Sousa",
            "is_multi_part": True,
            "cutting_instructions": [
                {"part_name": "Flute", "instrument": "Flute", "page_range": [5, 2]},
                {"part_name": "Oboe", "instrument": "Oboe", "page_range": [3, 4]},
            ],
        })
        metadata = parse_metadata(content)
        assert metadata.title == "March"
        assert metadata.composer == "John Philip Sousa"
        assert [c.part_name for c in metadata.cutting_instructions] == ["Oboe"]

    def test_range_starting_at_zero_is_kept(self):
        content = json.dumps({
            "title": "March",
            "is_multi_part": True,
            "cutting_instructions": [
                {"part_name": "Flute", "instrument": "Flute", "page_range": [0, 2]},
                {"part_name": "Oboe", "instrument": "Oboe", "page_range": [3, 4]},
            ],
        })
        metadata = parse_metadata(content)
        assert [c.page_range for c in metadata.cutting_instructions] == [(0, 2), (3, 4)]

    def test_null_instrument_uses_part_name(self):
        content = json.dumps({
            "title": "March",
            "cutting_instructions": [{"part_name": "Horn in F", "instrument": None, "page_range": [1, 2]}],
        })
        metadata = parse_metadata(content)
        assert metadata.cutting_instructions[0].instrument == "Horn in F"


class TestMetadataExtractor:

    def test_defaults_come_from_settings(self):
        extractor = MetadataExtractor(enable_tracing=False)
        assert extractor.model == "test/model"
        assert extractor.max_pages == 6

    def test_build_messages_includes_page_images(self):
        extractor = MetadataExtractor(max_pages=2, enable_tracing=False)

        messages = extractor.build_messages(make_pdf(3), "march.pdf")

        assert messages[0] == {"role": "system", "content": SYSTEM_PROMPT}
        content = messages[1]["content"]
        assert "File name: march.pdf" in content[0]["text"]
        assert "Total pages: 3" in content[0]["text"]
        images = [c for c in content if c["type"] == "image_url"]
        assert len(images) == 2
        assert images[0]["image_url"]["url"].startswith("data:image/png;base64,")

    @patch("src.extraction.extractor.litellm")
    def test_extract(self, mock_litellm):
        mock_litellm.completion.return_value = completion_returning(json.dumps({
            "title": "The Liberty Bell",
            "composer": "John Philip Sousa",
            "confidence_score": 91,
            "is_multi_part": True,
            "parts": [{"instrument": "Flute"}, {"instrument": "Tuba"}],
        }))
        extractor = MetadataExtractor(max_pages=1, enable_tracing=False)

        metadata = extractor.extract(make_pdf(2), "liberty.pdf")

        assert metadata.title == "The Liberty Bell"
        assert len(metadata.parts) == 2
        kwargs = mock_litellm.completion.call_args.kwargs
        assert kwargs["model"] == "test/model"
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0

    @patch("src.extraction.extractor.litellm")
    def test_llm_failure(self, mock_litellm):
        mock_litellm.completion.side_effect = RuntimeError("rate limited")
        extractor = MetadataExtractor(max_pages=1, enable_tracing=False)

        with pytest.raises(ExtractionError, match="rate limited"):
            extractor.extract(make_pdf(1))

    def test_unreadable_pdf(self):
        extractor = MetadataExtractor(enable_tracing=False)

        with pytest.raises(ExtractionError):
            extractor.extract(b"not a pdf")
