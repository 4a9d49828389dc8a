"""Tests for the content analyzer."""
import json
from collections.abc import AsyncGenerator

import httpx
import pytest
import respx

from core.config import Settings
from models.bookmark import BookmarkCategory
from services.content_analyzer import (
    CATEGORY_SYSTEM_PROMPT,
    EMPTY_SUMMARY_MESSAGE,
    SUMMARY_FAILED_MESSAGE,
    SUMMARY_SYSTEM_PROMPT,
    TAGS_SYSTEM_PROMPT,
    AnalysisUnavailableError,
    CredentialMissingError,
    analyze_content,
    categorize_by_url,
    determine_category,
    generate_summary,
    generate_tags,
    parse_tag_response,
)
from services.llm_client import ANTHROPIC_API_URL, OPENAI_API_URL, LLMProviderError

ARTICLE_URL = 'https://blog.example.com/posts/rust-ownership'


class FakeLLMClient:
    """LLMClient stand-in that answers per system prompt."""

    provider_name = 'fake'

    def __init__(
        self,
        answers: dict[str, str | Exception],
        content_char_limit: int = 1000,
    ) -> None:
        self.answers = answers
        self.content_char_limit = content_char_limit
        self.calls: list[tuple[str, str]] = []

    async def complete(
        self,
        system: str,
        user_content: str,
        *,
        max_tokens: int,  # noqa: ARG002
        temperature: float,  # noqa: ARG002
    ) -> str:
        self.calls.append((system, user_content))
        answer = self.answers[system]
        if isinstance(answer, Exception):
            raise answer
        return answer


def _anthropic_text(text: str) -> httpx.Response:
    return httpx.Response(200, json={'content': [{'type': 'text', 'text': text}]})


def _system_of(request: httpx.Request) -> str:
    return json.loads(request.content)['system']


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url='sqlite+aiosqlite:///:memory:', ai_provider='anthropic')


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient]:
    async with httpx.AsyncClient() as client:
        yield client


class TestCategorizeByUrl:
    """Tests for the deterministic URL shortcut."""

    @pytest.mark.parametrize(
        'url',
        [
            'https://youtube.com/watch?v=abc',
            'https://www.youtube.com/watch?v=abc',
            'https://vimeo.com/12345',
            'https://dailymotion.com/video/x1',
            'https://example.com/videos/intro',
        ],
    )
    def test__categorize_by_url__video(self, url: str) -> None:
        assert categorize_by_url(url) == BookmarkCategory.VIDEO

    @pytest.mark.parametrize(
        'url',
        [
            'https://arxiv.org/abs/1706.03762',
            'https://doi.org/10.1000/182',
            'https://example.com/research/findings',
            'https://example.com/white-paper',
        ],
    )
    def test__categorize_by_url__research(self, url: str) -> None:
        assert categorize_by_url(url) == BookmarkCategory.RESEARCH

    def test__categorize_by_url__case_insensitive(self) -> None:
        assert categorize_by_url('https://ArXiv.org/abs/1') == BookmarkCategory.RESEARCH

    def test__categorize_by_url__no_match(self) -> None:
        assert categorize_by_url(ARTICLE_URL) is None


class TestParseTagResponse:
    """Tests for parse_tag_response."""

    def test__parse_tag_response__json_array(self) -> None:
        assert parse_tag_response('["rust", "memory safety"]') == ['rust', 'memory safety']

    def test__parse_tag_response__code_fence(self) -> None:
        assert parse_tag_response('```json\n["rust", "systems"]\n```') == ['rust', 'systems']

    def test__parse_tag_response__array_inside_prose(self) -> None:
        assert parse_tag_response('Here are the tags: ["a", "b"]. Enjoy!') == ['a', 'b']

    def test__parse_tag_response__drops_non_string_items(self) -> None:
        assert parse_tag_response('["a", 1, null, {"x": 1}, "b"]') == ['a', 'b']

    @pytest.mark.parametrize(
        'raw', ['', 'rust, systems', '{"tags": ["a"]}', '["unterminated', 'null', '"just a string"'],
    )
    def test__parse_tag_response__malformed_is_empty(self, raw: str) -> None:
        assert parse_tag_response(raw) == []


class TestSubCalls:
    """Tests for the individual analysis requests."""

    async def test__generate_summary__strips_answer(self) -> None:
        client = FakeLLMClient({SUMMARY_SYSTEM_PROMPT: '  A short summary.  '})
        assert await generate_summary(client, 'text') == 'A short summary.'

    async def test__generate_summary__empty_answer_placeholder(self) -> None:
        client = FakeLLMClient({SUMMARY_SYSTEM_PROMPT: '   '})
        assert await generate_summary(client, 'text') == EMPTY_SUMMARY_MESSAGE

    async def test__generate_summary__cuts_text_to_provider_limit(self) -> None:
        client = FakeLLMClient({SUMMARY_SYSTEM_PROMPT: 'ok'}, content_char_limit=10)

        await generate_summary(client, 'x' * 50)

        assert client.calls[0][1] == 'x' * 10

    async def test__generate_tags__includes_url_and_cut_text(self) -> None:
        client = FakeLLMClient({TAGS_SYSTEM_PROMPT: '["rust"]'}, content_char_limit=5)

        tags = await generate_tags(client, ARTICLE_URL, 'abcdefghij')

        assert tags == ['rust']
        assert client.calls[0][1] == f'URL: {ARTICLE_URL}\n\nContent: abcde'

    async def test__generate_tags__malformed_answer_is_empty_list(self) -> None:
        client = FakeLLMClient({TAGS_SYSTEM_PROMPT: 'I think: rust, ownership'})
        assert await generate_tags(client, ARTICLE_URL, 'text') == []

    async def test__determine_category__shortcut_skips_provider(self) -> None:
        client = FakeLLMClient({})

        category = await determine_category(client, 'https://youtube.com/watch?v=1', 'text')

        assert category == BookmarkCategory.VIDEO
        assert client.calls == []

    async def test__determine_category__accepts_exact_answer(self) -> None:
        client = FakeLLMClient({CATEGORY_SYSTEM_PROMPT: ' Research\n'})
        assert await determine_category(client, ARTICLE_URL, 'text') == BookmarkCategory.RESEARCH

    @pytest.mark.parametrize('answer', ['research', 'Podcast', 'Article.', ''])
    async def test__determine_category__invalid_answer_defaults_to_article(
        self, answer: str,
    ) -> None:
        client = FakeLLMClient({CATEGORY_SYSTEM_PROMPT: answer})
        assert await determine_category(client, ARTICLE_URL, 'text') == BookmarkCategory.ARTICLE

    async def test__sub_calls__propagate_provider_errors(self) -> None:
        client = FakeLLMClient({SUMMARY_SYSTEM_PROMPT: LLMProviderError('fake', 'HTTP 500')})
        with pytest.raises(LLMProviderError):
            await generate_summary(client, 'text')


class TestAnalyzeContent:
    """Tests for analyze_content over the HTTP providers."""

    async def test__analyze_content__missing_credential_makes_no_request(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.post(ANTHROPIC_API_URL)
            for credential in (None, '', '   '):
                with pytest.raises(CredentialMissingError):
                    await analyze_content(
                        ARTICLE_URL, 'text', credential,
                        settings=settings, http_client=http_client,
                    )

        assert not route.called

    async def test__analyze_content__non_ascii_credential_is_unavailable(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        with respx.mock(assert_all_called=False) as respx_mock:
            route = respx_mock.post(ANTHROPIC_API_URL)
            with pytest.raises(AnalysisUnavailableError, match='non-ASCII'):
                await analyze_content(
                    ARTICLE_URL, 'text', 'sk-ant-\u2026key',
                    settings=settings, http_client=http_client,
                )

        assert not route.called

    async def test__analyze_content__success(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        answers = {
            SUMMARY_SYSTEM_PROMPT: 'Rust ownership explained.',
            TAGS_SYSTEM_PROMPT: '["rust", "ownership", "memory safety"]',
            CATEGORY_SYSTEM_PROMPT: 'Article',
        }
        with respx.mock as respx_mock:
            respx_mock.post(ANTHROPIC_API_URL).mock(
                side_effect=lambda request: _anthropic_text(answers[_system_of(request)]),
            )
            result = await analyze_content(
                ARTICLE_URL, 'Ownership is...', 'sk-ant', settings=settings,
                http_client=http_client,
            )

        assert result.summary == 'Rust ownership explained.'
        assert result.tags == ['rust', 'ownership', 'memory safety']
        assert result.category == BookmarkCategory.ARTICLE
        assert result.failed_calls == frozenset()
        assert not result.partially_failed

    async def test__analyze_content__partial_failure_uses_defaults(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        def respond(request: httpx.Request) -> httpx.Response:
            if _system_of(request) == SUMMARY_SYSTEM_PROMPT:
                return httpx.Response(500)
            if _system_of(request) == TAGS_SYSTEM_PROMPT:
                return _anthropic_text('["rust"]')
            return _anthropic_text('Research')

        with respx.mock as respx_mock:
            respx_mock.post(ANTHROPIC_API_URL).mock(side_effect=respond)
            result = await analyze_content(
                ARTICLE_URL, 'text', 'sk-ant', settings=settings, http_client=http_client,
            )

        assert result.summary == SUMMARY_FAILED_MESSAGE
        assert result.tags == ['rust']
        assert result.category == BookmarkCategory.RESEARCH
        assert result.failed_calls == frozenset({'summary'})
        assert result.partially_failed

    async def test__analyze_content__all_requests_failing_is_unavailable(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        with respx.mock as respx_mock:
            route = respx_mock.post(ANTHROPIC_API_URL).mock(
                return_value=httpx.Response(401, json={'error': 'invalid x-api-key'}),
            )
            with pytest.raises(AnalysisUnavailableError):
                await analyze_content(
                    ARTICLE_URL, 'text', 'bad-key', settings=settings, http_client=http_client,
                )

        assert route.call_count == 3

    async def test__analyze_content__shortcut_url_with_failing_provider_is_unavailable(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        with respx.mock as respx_mock:
            route = respx_mock.post(ANTHROPIC_API_URL).mock(return_value=httpx.Response(500))
            with pytest.raises(AnalysisUnavailableError):
                await analyze_content(
                    'https://youtube.com/watch?v=1', 'text', 'key',
                    settings=settings, http_client=http_client,
                )

        # The category request never reaches the provider
        assert route.call_count == 2

    async def test__analyze_content__malformed_tags_is_not_a_failure(
        self, settings: Settings, http_client: httpx.AsyncClient,
    ) -> None:
        answers = {
            SUMMARY_SYSTEM_PROMPT: 'Summary.',
            TAGS_SYSTEM_PROMPT: 'not json at all',
            CATEGORY_SYSTEM_PROMPT: 'Video',
        }
        with respx.mock as respx_mock:
            respx_mock.post(ANTHROPIC_API_URL).mock(
                side_effect=lambda request: _anthropic_text(answers[_system_of(request)]),
            )
            result = await analyze_content(
                ARTICLE_URL, 'text', 'key', settings=settings, http_client=http_client,
            )

        assert result.tags == []
        assert result.category == BookmarkCategory.VIDEO
        assert result.failed_calls == frozenset()

    async def test__analyze_content__uses_openai_when_configured(
        self, http_client: httpx.AsyncClient,
    ) -> None:
        settings = Settings(database_url='sqlite+aiosqlite:///:memory:', ai_provider='openai')
        with respx.mock as respx_mock:
            route = respx_mock.post(OPENAI_API_URL).mock(
                return_value=httpx.Response(
                    200, json={'choices': [{'message': {'content': '["python"]'}}]},
                ),
            )
            result = await analyze_content(
                'https://arxiv.org/abs/1', 'x' * 6000, 'sk-openai',
                settings=settings, http_client=http_client,
            )

        # summary + tags only: the arxiv URL decides the category
        assert route.call_count == 2
        assert result.category == BookmarkCategory.RESEARCH
        assert result.tags == ['python']
        summary_request = next(
            json.loads(call.request.content) for call in route.calls
            if json.loads(call.request.content)['messages'][0]['content'] == SUMMARY_SYSTEM_PROMPT
        )
        assert summary_request['messages'][1]['content'] == 'x' * 4000

    async def test__analyze_content__opens_own_client_when_none_given(
        self, settings: Settings,
    ) -> None:
        answers = {
            SUMMARY_SYSTEM_PROMPT: 'S.',
            TAGS_SYSTEM_PROMPT: '[]',
            CATEGORY_SYSTEM_PROMPT: 'Article',
        }
        with respx.mock as respx_mock:
            respx_mock.post(ANTHROPIC_API_URL).mock(
                side_effect=lambda request: _anthropic_text(answers[_system_of(request)]),
            )
            result = await analyze_content(ARTICLE_URL, 'text', 'key', settings=settings)

        assert result.summary == 'S.'
