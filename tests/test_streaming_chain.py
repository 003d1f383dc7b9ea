"""Tests for the streaming fallback chain across model providers."""

import asyncio
import unittest

from portfolio_ai.llm.errors import (
    AnalysisStreamError,
    MidStreamError,
    ModelChainExhaustedError,
    ModelProviderError,
    ProviderUnavailableError,
)
from portfolio_ai.llm.models import (
    AnalysisPrompt,
    ApiStyle,
    ModelProviderConfig,
    SessionState,
    StreamSession,
)
from portfolio_ai.llm.streaming import StreamingFallbackChain

PROMPT = AnalysisPrompt(system="sys", user="user")


def _config(model, provider="NVIDIA", api_style=ApiStyle.CHAT_COMPLETIONS):
    return ModelProviderConfig(
        provider=provider,
        base_url="https://models.example",
        api_key_env="TEST_KEY",
        model=model,
        api_style=api_style,
    )


class ScriptedAdapter:
    """
    Plays back a per-model script: strings are yielded, exceptions raised.

    Records which models were called and which streams were closed.
    """

    def __init__(self, scripts):
        self.scripts = scripts
        self.calls = []
        self.closed = []

    async def stream(self, prompt, config, max_tokens=None):
        self.calls.append(config.model)
        try:
            for step in self.scripts.get(config.model, []):
                if isinstance(step, BaseException):
                    raise step
                if step == "<hang>":
                    await asyncio.sleep(3600)
                yield step
        finally:
            self.closed.append(config.model)


async def _drain(chain, session=None):
    return [fragment async for fragment in chain.stream(PROMPT, session=session)]


class TestStreamingFallbackChain(unittest.IsolatedAsyncioTestCase):
    async def test_falls_back_until_a_provider_emits(self):
        adapter = ScriptedAdapter({
            "m1": [ProviderUnavailableError("NVIDIA_NIM_API_KEY is not set")],
            "m2": [ModelProviderError("HTTP 503")],
            "m3": [],
            "m4": ["Strong ", "fundamentals", "."],
        })
        configs = [_config("m1"), _config("m2"), _config("m3"), _config("m4", provider="OpenRouter")]
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, configs)
        session = StreamSession()

        fragments = await _drain(chain, session)

        self.assertEqual([f.text for f in fragments], ["Strong ", "fundamentals", "."])
        self.assertTrue(all(f.model == "m4" and f.provider == "OpenRouter" for f in fragments))
        self.assertEqual(adapter.calls, ["m1", "m2", "m3", "m4"])
        self.assertEqual(session.state, SessionState.SUCCEEDED)
        self.assertEqual(session.provider_index, 3)
        self.assertEqual(session.fragments, 3)
        self.assertEqual(len(session.attempts), 4)

    async def test_first_provider_success_skips_the_rest(self):
        adapter = ScriptedAdapter({"m1": ["ok"], "m2": ["never"]})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])

        fragments = await _drain(chain)

        self.assertEqual([f.text for f in fragments], ["ok"])
        self.assertEqual(adapter.calls, ["m1"])

    async def test_mid_stream_failure_does_not_switch_models(self):
        adapter = ScriptedAdapter({
            "m1": ["partial ", ModelProviderError("connection reset")],
            "m2": ["other model"],
        })
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])
        session = StreamSession()
        received = []

        with self.assertRaises(MidStreamError) as ctx:
            async for fragment in chain.stream(PROMPT, session=session):
                received.append(fragment.text)

        self.assertEqual(received, ["partial "])
        self.assertEqual(adapter.calls, ["m1"])
        self.assertEqual(ctx.exception.model, "m1")
        self.assertEqual(ctx.exception.code, "mid_stream")
        self.assertEqual(session.state, SessionState.FAILED)

    async def test_exhaustion_reports_last_error(self):
        adapter = ScriptedAdapter({
            "m1": [ModelProviderError("HTTP 500")],
            "m2": [ModelProviderError("HTTP 429")],
        })
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])

        with self.assertRaises(ModelChainExhaustedError) as ctx:
            await _drain(chain)

        self.assertIsInstance(ctx.exception, AnalysisStreamError)
        self.assertEqual(ctx.exception.code, "exhausted")
        self.assertEqual(len(ctx.exception.attempts), 2)
        self.assertIn("HTTP 429", str(ctx.exception))

    async def test_empty_stream_counts_as_failure(self):
        adapter = ScriptedAdapter({"m1": [], "m2": []})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])

        with self.assertRaises(ModelChainExhaustedError) as ctx:
            await _drain(chain)

        self.assertIn("No content streamed", str(ctx.exception.last_error))

    async def test_missing_adapter_style_falls_back(self):
        adapter = ScriptedAdapter({"m2": ["chat output"]})
        configs = [_config("m1", api_style=ApiStyle.RESPONSES), _config("m2")]
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, configs)

        fragments = await _drain(chain)

        self.assertEqual([f.model for f in fragments], ["m2"])
        self.assertEqual(adapter.calls, ["m2"])

    async def test_empty_chain_is_exhausted(self):
        chain = StreamingFallbackChain({}, [])

        with self.assertRaises(ModelChainExhaustedError):
            await _drain(chain)

    async def test_closing_consumer_closes_provider_stream(self):
        adapter = ScriptedAdapter({"m1": ["first", "<hang>", "never"], "m2": ["fallback"]})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])

        stream = chain.stream(PROMPT)
        first = await stream.__anext__()
        await stream.aclose()

        self.assertEqual(first.text, "first")
        self.assertEqual(adapter.closed, ["m1"])
        self.assertEqual(adapter.calls, ["m1"])

    async def test_cancelled_consumer_tries_no_further_provider(self):
        adapter = ScriptedAdapter({"m1": ["first", "<hang>"], "m2": ["fallback"]})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1"), _config("m2")])
        received = []

        async def consume():
            async for fragment in chain.stream(PROMPT):
                received.append(fragment.text)

        task = asyncio.create_task(consume())
        while not received:
            await asyncio.sleep(0)
        task.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await task

        self.assertEqual(received, ["first"])
        self.assertEqual(adapter.calls, ["m1"])
        self.assertEqual(adapter.closed, ["m1"])


class _RaisingOnCallAdapter:
    def stream(self, prompt, config, max_tokens=None):
        raise ProviderUnavailableError("no key")


class _PlainIterator:
    """Async iterator without ``aclose``."""

    def __init__(self, texts):
        self.texts = list(texts)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.texts:
            raise StopAsyncIteration
        return self.texts.pop(0)


class _PlainIteratorAdapter:
    def __init__(self, texts):
        self.texts = texts

    def stream(self, prompt, config, max_tokens=None):
        return _PlainIterator(self.texts)


class TestAdapterShapes(unittest.IsolatedAsyncioTestCase):
    async def test_adapter_raising_on_call_falls_back(self):
        adapter = ScriptedAdapter({"m2": ["from responses"]})
        configs = [_config("m1"), _config("m2", api_style=ApiStyle.RESPONSES)]
        chain = StreamingFallbackChain(
            {ApiStyle.CHAT_COMPLETIONS: _RaisingOnCallAdapter(), ApiStyle.RESPONSES: adapter},
            configs,
        )

        fragments = await _drain(chain)

        self.assertEqual([f.text for f in fragments], ["from responses"])
        self.assertEqual([f.model for f in fragments], ["m2"])

    async def test_adapter_raising_on_call_exhausts_with_chain_error(self):
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: _RaisingOnCallAdapter()}, [_config("m1")])

        with self.assertRaises(ModelChainExhaustedError) as ctx:
            await _drain(chain)

        self.assertIsInstance(ctx.exception.last_error, ProviderUnavailableError)

    async def test_plain_async_iterator_without_aclose(self):
        chain = StreamingFallbackChain(
            {ApiStyle.CHAT_COMPLETIONS: _PlainIteratorAdapter(["a", "b"])},
            [_config("m1")],
        )

        fragments = await _drain(chain)

        self.assertEqual([f.text for f in fragments], ["a", "b"])


class TestComplete(unittest.IsolatedAsyncioTestCase):
    async def test_complete_joins_fragments(self):
        adapter = ScriptedAdapter({"m1": ["steady ", "uptrend"]})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1")])

        completion = await chain.complete(PROMPT, max_tokens=50)

        self.assertEqual(completion.text, "steady uptrend")
        self.assertEqual(completion.model, "m1")

    async def test_complete_falls_back_after_partial_failure(self):
        adapter = ScriptedAdapter({
            "m1": ["half", ModelProviderError("reset")],
            "m2": ["   "],
            "m3": ["whole answer"],
        })
        configs = [_config("m1"), _config("m2"), _config("m3")]
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, configs)

        completion = await chain.complete(PROMPT)

        self.assertEqual(completion.text, "whole answer")
        self.assertEqual(adapter.calls, ["m1", "m2", "m3"])

    async def test_complete_exhausted(self):
        adapter = ScriptedAdapter({"m1": [""]})
        chain = StreamingFallbackChain({ApiStyle.CHAT_COMPLETIONS: adapter}, [_config("m1")])

        with self.assertRaises(ModelChainExhaustedError):
            await chain.complete(PROMPT)


if __name__ == "__main__":
    unittest.main()
