"""
AI assistant: chat and image analysis against the hosted model's
OpenAI-compatible endpoint, plus the caller-side helpers that keep provider
failures away from the user.
"""
from typing import AsyncIterator, List, Optional, Tuple

from openai import AsyncOpenAI

from exceptions import AICollaboratorError
from logging_config import get_logger
from schemas import ChatMessage
from settings import Settings

logger = get_logger(__name__)

CHAT_SYSTEM_INSTRUCTION = (
    'You are an expert AI assistant for "LuxeTrack OMS", a luxury Order Management System. '
    "You help users analyze sales data, provide business advice for luxury retail, and answer operational questions. "
    "Keep your tone professional, helpful, and concise. Format your answers in markdown."
)

DEFAULT_VISION_PROMPT = (
    "Analyze this luxury product image or shipping document. Identify the brand, product type, "
    "and estimate its condition or value if possible. If it is a shipping label, extract the "
    "tracking code and carrier name."
)

CHAT_GREETING = "Hello! I am your LuxeTrack AI assistant. How can I help you manage your luxury business today?"
CHAT_FALLBACK = "Sorry, I encountered an error. Please try again later."
VISION_FALLBACK = "Error analyzing image. Please try again."
NO_ANALYSIS = "No analysis available."

DEFAULT_IMAGE_MIME = "image/jpeg"


class AIAssistant:
    def __init__(self, client: AsyncOpenAI, model: str):
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings) -> "AIAssistant":
        client = AsyncOpenAI(api_key=settings.API_KEY or "", base_url=settings.AI_BASE_URL)
        return cls(client, settings.AI_MODEL)

    async def stream_chat(self, message: str) -> AsyncIterator[str]:
        """Send one user message and yield the reply's text fragments as they arrive."""
        try:
            stream = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CHAT_SYSTEM_INSTRUCTION},
                    {"role": "user", "content": message},
                ],
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                text = chunk.choices[0].delta.content
                if text:
                    yield text
        except Exception as e:
            raise AICollaboratorError("chat", str(e)) from e

    async def analyze_image(
        self,
        image_base64: str,
        prompt: str = DEFAULT_VISION_PROMPT,
        mime_type: str = DEFAULT_IMAGE_MIME,
    ) -> str:
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "image_url", "image_url": {"url": f"data:{mime_type};base64,{image_base64}"}},
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )
        except Exception as e:
            raise AICollaboratorError("vision", str(e)) from e

        if not resp.choices:
            return ""
        return (resp.choices[0].message.content or "").strip()

    async def close(self) -> None:
        await self.client.close()


class ChatTranscript:
    """Display-local chat history.

    A streamed reply is a single assistant entry that grows in place; the
    caller holding the entry finalizes it when its stream ends or fails.
    """

    def __init__(self, greeting: Optional[str] = CHAT_GREETING):
        self.messages: List[ChatMessage] = []
        if greeting:
            self.messages.append(ChatMessage(role="assistant", content=greeting))

    def add_user(self, text: str) -> ChatMessage:
        msg = ChatMessage(role="user", content=text)
        self.messages.append(msg)
        return msg

    def begin_reply(self) -> ChatMessage:
        entry = ChatMessage(role="assistant", content="", complete=False)
        self.messages.append(entry)
        return entry

    def append(self, entry: ChatMessage, fragment: str) -> None:
        entry.content += fragment

    def finish(self, entry: ChatMessage) -> None:
        entry.complete = True

    def fail(self, entry: ChatMessage, fallback: str = CHAT_FALLBACK) -> None:
        # keep any partial reply and add the fallback after it
        entry.complete = True
        if entry.content:
            self.messages.append(ChatMessage(role="assistant", content=fallback))
        else:
            entry.content = fallback

    def snapshot(self) -> List[ChatMessage]:
        return [m.model_copy() for m in self.messages]


async def relay_chat(assistant: AIAssistant, transcript: ChatTranscript, message: str) -> AsyncIterator[str]:
    """Stream a reply into the transcript, yielding each fragment to the caller.

    Provider errors are logged and replaced by the fallback message; nothing
    is raised to the consumer.
    """
    transcript.add_user(message)
    entry = transcript.begin_reply()
    try:
        async for fragment in assistant.stream_chat(message):
            transcript.append(entry, fragment)
            yield fragment
    except Exception:
        logger.exception("Chat error")
        partial = bool(entry.content)
        transcript.fail(entry)
        yield ("\n\n" if partial else "") + CHAT_FALLBACK
    finally:
        if not entry.complete:
            transcript.finish(entry)


def split_data_url(image: str) -> Tuple[str, str]:
    """Return (mime_type, base64_data) for a data: URL or bare base64 string."""
    image = image.strip()
    if not image.startswith("data:"):
        return DEFAULT_IMAGE_MIME, image
    header, _, data = image.partition(",")
    mime = header[len("data:"):].split(";")[0].strip()
    return mime or DEFAULT_IMAGE_MIME, data.strip()


async def describe_image(assistant: AIAssistant, image: str, prompt: Optional[str] = None) -> str:
    mime_type, data = split_data_url(image)
    try:
        result = await assistant.analyze_image(data, prompt or DEFAULT_VISION_PROMPT, mime_type)
    except Exception:
        logger.exception("Vision analysis error")
        return VISION_FALLBACK
    return result or NO_ANALYSIS
