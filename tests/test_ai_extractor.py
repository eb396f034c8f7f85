"""Tests for AI structured extraction (Gemini always mocked)."""

import json
import time
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from exam_parser.errors import AIExtractionError
from exam_parser.services.ai_extractor import (
    EXTRACTION_CONFIG,
    build_extraction_prompt,
    extract_questions_with_ai,
    normalize_sections,
    validate_sections,
)

AI_RESPONSE = {
    "sections": [
        {
            "name": "A",
            "description": "Multiple Choice Questions",
            "questions": [
                {
                    "text": "What is a CPU?",
                    "type": "multiple-choice",
                    "options": [
                        {"text": "Processor", "isCorrect": True},
                        {"text": "Monitor", "isCorrect": False},
                    ],
                    "correctAnswer": "Processor",
                    "points": 2,
                }
            ],
        },
        {
            "name": "B",
            "questions": [
                {"text": "Define RAM.", "type": "open-ended", "options": [],
                 "correctAnswer": "Random access memory", "points": 5},
            ],
        },
        {
            "name": "C",
            "description": "Essays",
            "questions": [
                {"text": "Discuss operating systems.", "type": "open-ended", "correctAnswer": "..."},
            ],
        },
    ]
}


@pytest.fixture
def mock_generate():
    with patch("exam_parser.services.ai_extractor.generate_text") as mock:
        yield mock


class TestPrompt:

    def test_prompt_embeds_text_and_json_shape(self):
        prompt = build_extraction_prompt("1. Define RAM.")

        assert "NESA exam structure" in prompt
        assert "1. Define RAM." in prompt
        assert '"sections": [' in prompt
        assert "Only return the JSON object" in prompt


class TestValidateSections:

    def test_missing_sections_array(self):
        with pytest.raises(ValueError, match="missing sections array"):
            validate_sections({"questions": []})

    def test_section_without_questions(self):
        with pytest.raises(ValueError, match="Invalid section structure in section B"):
            validate_sections({"sections": [{"name": "B"}]})

    def test_missing_descriptions_get_defaults(self):
        sections = validate_sections({"sections": [
            {"name": "B", "questions": []},
            {"name": "D", "questions": []},
        ]})

        assert sections[0]["description"] == "Short Answer Questions"
        assert sections[1]["description"] == "Section D"


class TestNormalizeSections:

    def test_keeps_correctness_and_points(self):
        structure = normalize_sections(validate_sections(json.loads(json.dumps(AI_RESPONSE))))

        question = structure.section("A").questions[0]
        assert question.options[0].is_correct is True
        assert question.correct_answer == "Processor"
        assert question.points == 2
        assert structure.section("B").description == "Short Answer Questions"
        assert structure.section("C").description == "Essays"
        # Missing points default by section
        assert structure.section("C").questions[0].points == 10

    def test_ids_in_order_of_appearance(self):
        structure = normalize_sections(validate_sections(json.loads(json.dumps(AI_RESPONSE))))

        assert [q.id for q in structure.all_questions()] == [0, 1, 2]

    def test_sections_out_of_order_and_unknown(self):
        sections = validate_sections({"sections": [
            {"name": "C", "questions": [{"text": "Discuss."}]},
            {"name": "Extra", "questions": [
                {"text": "Pick one", "options": ["Yes", "No"]},
                {"text": "Define ROM."},
                {"text": "   "},
            ]},
            {"name": "a", "questions": [{"text": "True or false?", "type": "multiple-choice"}]},
        ]})

        structure = normalize_sections(sections)

        assert [s.name for s in structure.sections] == ["A", "B", "C"]
        assert [q.text for q in structure.section("A").questions] == ["Pick one", "True or false?"]
        assert [q.text for q in structure.section("B").questions] == ["Define ROM."]
        assert [q.text for q in structure.section("C").questions] == ["Discuss."]
        assert structure.section("A").questions[0].type == "multiple-choice"


class TestExtractQuestionsWithAI:

    @pytest.mark.asyncio
    async def test_success(self, settings, mock_generate):
        mock_generate.return_value = "```json\n" + json.dumps(AI_RESPONSE) + "\n```"
        client = MagicMock()

        structure = await extract_questions_with_ai("exam text", client=client, settings=settings)

        assert structure.counts() == {"A": 1, "B": 1, "C": 1}
        args = mock_generate.call_args[0]
        assert args[0] is client
        assert args[1] == settings.extraction_model
        assert "exam text" in args[2]
        assert args[3] == EXTRACTION_CONFIG

    @pytest.mark.asyncio
    async def test_retries_then_succeeds(self, settings, mock_generate):
        mock_generate.side_effect = ["not json", json.dumps({"sections": "nope"}), json.dumps(AI_RESPONSE)]

        structure = await extract_questions_with_ai("exam text", client=MagicMock(), settings=settings)

        assert mock_generate.call_count == 3
        assert structure.total_questions() == 3

    @pytest.mark.asyncio
    async def test_fails_after_all_attempts(self, settings, mock_generate):
        mock_generate.return_value = "{}"

        with pytest.raises(AIExtractionError) as exc_info:
            await extract_questions_with_ai("exam text", client=MagicMock(), settings=settings)

        assert str(exc_info.value) == "Failed to extract questions with AI after multiple attempts"
        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_exception, ValueError)
        assert mock_generate.call_count == 3

    @pytest.mark.asyncio
    async def test_fixed_backoff_between_attempts(self, settings, mock_generate):
        settings.ai_extraction_backoff_seconds = 1.0
        mock_generate.side_effect = RuntimeError("unavailable")

        with patch("exam_parser.utils.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(AIExtractionError):
                await extract_questions_with_ai("exam text", client=MagicMock(), settings=settings)

        assert [call[0][0] for call in mock_sleep.call_args_list] == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_timeout_counts_as_failed_attempt(self, settings, mock_generate):
        settings.ai_extraction_timeout_seconds = 0.05
        settings.ai_extraction_max_attempts = 1

        def slow(*args, **kwargs):
            time.sleep(0.3)
            return json.dumps(AI_RESPONSE)

        mock_generate.side_effect = slow

        with pytest.raises(AIExtractionError) as exc_info:
            await extract_questions_with_ai("exam text", client=MagicMock(), settings=settings)

        assert isinstance(exc_info.value.last_exception, TimeoutError)

    @pytest.mark.asyncio
    async def test_missing_api_key(self, settings, mock_generate):
        with patch(
            "exam_parser.services.ai_extractor.get_gemini_client",
            side_effect=ValueError("GEMINI_API_KEY not set in environment."),
        ):
            with pytest.raises(AIExtractionError, match="GEMINI_API_KEY"):
                await extract_questions_with_ai("exam text", settings=settings)

        mock_generate.assert_not_called()
