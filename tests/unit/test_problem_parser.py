"""Unit tests for tutor/services/problem_parser.py"""

import pytest

from shared.utils.exceptions import InvalidInputError, ProviderError
from tutor.services.problem_parser import ProblemParser, identify_problem_type


class TestIdentifyProblemType:
    @pytest.mark.parametrize("text,expected", [
        ("Solve 2x + 5 = 13", "algebra"),
        ("Find the area of a rectangle 3 by 4", "geometry"),
        ("If Sam has 3 apples and buys 4 more, how many does he have?", "word_problem"),
        ("3 + 4 * 2", "multi_step"),
        ("12 + 7", "arithmetic"),
        ("hello there", "unknown"),
    ])
    def test_types(self, text, expected):
        assert identify_problem_type(text) == expected


class TestParseText:
    def test_strips_and_classifies(self):
        problem = ProblemParser().parse_text("  Solve 2x + 5 = 13  ")
        assert problem.text == "Solve 2x + 5 = 13"
        assert problem.type == "algebra"
        assert problem.confidence == 1.0

    def test_empty_rejected(self):
        with pytest.raises(InvalidInputError):
            ProblemParser().parse_text("   ")

    def test_too_long_rejected(self):
        with pytest.raises(InvalidInputError):
            ProblemParser(max_length=10).parse_text("1 + 2 + 3 + 4 + 5")


class TestParseImage:
    @pytest.mark.asyncio
    async def test_transcribes_image(self, mock_llm_service):
        mock_llm_service.complete.return_value = "  Solve 3x - 4 = 11 "
        parser = ProblemParser(mock_llm_service)

        problem = await parser.parse_image("data:image/png;base64,AAAA")

        assert problem.text == "Solve 3x - 4 = 11"
        assert problem.type == "algebra"
        assert problem.confidence == 0.9
        assert problem.image_url is None
        request = mock_llm_service.complete.await_args.args[0]
        assert request.image_data_url == "data:image/png;base64,AAAA"
        assert request.temperature == 0.0

    @pytest.mark.asyncio
    async def test_keeps_http_url(self, mock_llm_service):
        mock_llm_service.complete.return_value = "What is 3/4 of 12?"
        problem = await ProblemParser(mock_llm_service).parse_image("https://cdn.example.com/problem.png")
        assert problem.image_url == "https://cdn.example.com/problem.png"

    @pytest.mark.asyncio
    async def test_empty_transcription(self, mock_llm_service):
        mock_llm_service.complete.return_value = "   "
        with pytest.raises(ProviderError):
            await ProblemParser(mock_llm_service).parse_image("data:image/png;base64,AAAA")

    @pytest.mark.asyncio
    async def test_requires_llm(self):
        with pytest.raises(ProviderError):
            await ProblemParser().parse_image("data:image/png;base64,AAAA")

    @pytest.mark.asyncio
    async def test_empty_image(self, mock_llm_service):
        with pytest.raises(InvalidInputError):
            await ProblemParser(mock_llm_service).parse_image("")
        mock_llm_service.complete.assert_not_called()
