"""
Unit tests for the AI assistant and its caller-side fallbacks
"""

import unittest
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from ai_service import (
    CHAT_FALLBACK,
    CHAT_GREETING,
    DEFAULT_VISION_PROMPT,
    NO_ANALYSIS,
    VISION_FALLBACK,
    AIAssistant,
    ChatTranscript,
    describe_image,
    relay_chat,
    split_data_url,
)
from exceptions import AICollaboratorError


def delta_chunk(text):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=text))])


class FakeStream:
    def __init__(self, chunks, fail_after=None):
        self.chunks = chunks
        self.fail_after = fail_after

    def __aiter__(self):
        return self._gen()

    async def _gen(self):
        for i, chunk in enumerate(self.chunks):
            if self.fail_after is not None and i == self.fail_after:
                raise ConnectionError("stream dropped")
            yield chunk


def fake_client(create):
    client = MagicMock()
    client.chat.completions.create = create
    client.close = AsyncMock()
    return client


async def collect(agen):
    return [item async for item in agen]


class TestAIAssistant(unittest.IsolatedAsyncioTestCase):
    """Test provider calls"""

    async def test_stream_chat_yields_text_fragments(self):
        stream = FakeStream([delta_chunk("Hello"), SimpleNamespace(choices=[]), delta_chunk(None), delta_chunk(" world")])
        create = AsyncMock(return_value=stream)
        assistant = AIAssistant(fake_client(create), "test-model")

        fragments = await collect(assistant.stream_chat("hi"))

        self.assertEqual(fragments, ["Hello", " world"])
        kwargs = create.call_args.kwargs
        self.assertEqual(kwargs["model"], "test-model")
        self.assertTrue(kwargs["stream"])
        self.assertEqual(kwargs["messages"][0]["role"], "system")
        self.assertIn("LuxeTrack OMS", kwargs["messages"][0]["content"])
        self.assertEqual(kwargs["messages"][1], {"role": "user", "content": "hi"})

    async def test_stream_chat_wraps_provider_error(self):
        assistant = AIAssistant(fake_client(AsyncMock(side_effect=TimeoutError("timeout"))), "m")
        with self.assertRaises(AICollaboratorError):
            await collect(assistant.stream_chat("hi"))

    async def test_analyze_image_sends_inline_data_url(self):
        response = SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=" Dior, excellent "))])
        create = AsyncMock(return_value=response)
        assistant = AIAssistant(fake_client(create), "m")

        result = await assistant.analyze_image("QUJD", "What is it?", "image/png")

        self.assertEqual(result, "Dior, excellent")
        content = create.call_args.kwargs["messages"][0]["content"]
        self.assertEqual(content[0]["image_url"]["url"], "data:image/png;base64,QUJD")
        self.assertEqual(content[1], {"type": "text", "text": "What is it?"})

    async def test_analyze_image_wraps_provider_error(self):
        assistant = AIAssistant(fake_client(AsyncMock(side_effect=RuntimeError("500"))), "m")
        with self.assertRaises(AICollaboratorError):
            await assistant.analyze_image("QUJD")


class TestChatTranscript(unittest.TestCase):
    """Test the streamed reply accumulator"""

    def test_greeting(self):
        transcript = ChatTranscript()
        self.assertEqual(transcript.messages[0].content, CHAT_GREETING)
        self.assertEqual(ChatTranscript(greeting=None).messages, [])

    def test_reply_grows_in_place(self):
        transcript = ChatTranscript(greeting=None)
        entry = transcript.begin_reply()
        transcript.append(entry, "a")
        transcript.append(entry, "b")
        self.assertEqual(len(transcript.messages), 1)
        self.assertFalse(entry.complete)
        transcript.finish(entry)
        self.assertEqual(transcript.messages[0].content, "ab")
        self.assertTrue(transcript.messages[0].complete)

    def test_fail_on_empty_entry_replaces_content(self):
        transcript = ChatTranscript(greeting=None)
        entry = transcript.begin_reply()
        transcript.fail(entry)
        self.assertEqual([m.content for m in transcript.messages], [CHAT_FALLBACK])

    def test_fail_after_partial_keeps_partial(self):
        transcript = ChatTranscript(greeting=None)
        entry = transcript.begin_reply()
        transcript.append(entry, "partial")
        transcript.fail(entry)
        self.assertEqual([m.content for m in transcript.messages], ["partial", CHAT_FALLBACK])


class StubAssistant:
    def __init__(self, fragments=(), error=None, analysis="", vision_error=None):
        self.fragments = fragments
        self.error = error
        self.analysis = analysis
        self.vision_error = vision_error
        self.vision_calls = []

    async def stream_chat(self, message):
        for fragment in self.fragments:
            yield fragment
        if self.error:
            raise self.error

    async def analyze_image(self, image_base64, prompt, mime_type):
        self.vision_calls.append((image_base64, prompt, mime_type))
        if self.vision_error:
            raise self.vision_error
        return self.analysis


class TestRelayChat(unittest.IsolatedAsyncioTestCase):
    """Test chat streaming into the transcript"""

    async def test_success(self):
        transcript = ChatTranscript()
        out = await collect(relay_chat(StubAssistant(["Doanh ", "thu ", "tốt"]), transcript, "How are sales?"))

        self.assertEqual(out, ["Doanh ", "thu ", "tốt"])
        self.assertEqual(len(transcript.messages), 3)
        self.assertEqual(transcript.messages[1].role, "user")
        self.assertEqual(transcript.messages[1].content, "How are sales?")
        self.assertEqual(transcript.messages[2].content, "Doanh thu tốt")
        self.assertTrue(transcript.messages[2].complete)

    async def test_failure_before_any_chunk(self):
        transcript = ChatTranscript()
        out = await collect(relay_chat(StubAssistant(error=AICollaboratorError("chat")), transcript, "hi"))

        self.assertEqual(out, [CHAT_FALLBACK])
        self.assertEqual(transcript.messages[-1].content, CHAT_FALLBACK)
        self.assertTrue(transcript.messages[-1].complete)

    async def test_failure_mid_stream(self):
        transcript = ChatTranscript(greeting=None)
        out = await collect(relay_chat(StubAssistant(["Hel"], error=ValueError("boom")), transcript, "hi"))

        self.assertEqual(out, ["Hel", "\n\n" + CHAT_FALLBACK])
        self.assertEqual([m.content for m in transcript.messages], ["hi", "Hel", CHAT_FALLBACK])

    async def test_consumer_stops_early(self):
        transcript = ChatTranscript(greeting=None)
        agen = relay_chat(StubAssistant(["a", "b", "c"]), transcript, "hi")
        self.assertEqual(await agen.__anext__(), "a")
        await agen.aclose()

        self.assertEqual(transcript.messages[-1].content, "a")
        self.assertTrue(transcript.messages[-1].complete)


class TestDescribeImage(unittest.IsolatedAsyncioTestCase):
    """Test image analysis fallbacks"""

    def test_split_data_url(self):
        self.assertEqual(split_data_url("data:image/png;base64,QUJD"), ("image/png", "QUJD"))
        self.assertEqual(split_data_url("QUJD"), ("image/jpeg", "QUJD"))
        self.assertEqual(split_data_url("data:;base64,QUJD"), ("image/jpeg", "QUJD"))

    async def test_success_uses_default_prompt(self):
        assistant = StubAssistant(analysis="Gentle Monster Lilit 01")
        result = await describe_image(assistant, "data:image/png;base64,QUJD")

        self.assertEqual(result, "Gentle Monster Lilit 01")
        self.assertEqual(assistant.vision_calls, [("QUJD", DEFAULT_VISION_PROMPT, "image/png")])

    async def test_empty_result(self):
        self.assertEqual(await describe_image(StubAssistant(analysis=""), "QUJD"), NO_ANALYSIS)

    async def test_error_falls_back(self):
        assistant = StubAssistant(vision_error=AICollaboratorError("vision"))
        self.assertEqual(await describe_image(assistant, "QUJD", "label?"), VISION_FALLBACK)


if __name__ == "__main__":
    unittest.main()
