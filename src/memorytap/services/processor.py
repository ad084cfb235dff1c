"""Transcription and classification of recordings using Groq."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from groq import AsyncGroq

from ..memory.errors import ProcessingError
from ..memory.models import AudioArtifact, ProcessingResult

logger = logging.getLogger(__name__)

CLASSIFICATION_PROMPT = """You are an intelligent personal assistant. Analyze the text and extract:
1. A concise summary (max 2 sentences)
2. A short, catchy title (max 5 words)
3. Category: 'task', 'reminder', 'idea', or 'note'
   - Use 'task' for actionable items
   - Use 'reminder' for time-sensitive notes
   - Use 'idea' for creative thoughts or suggestions
   - Use 'note' for general information

Respond ONLY with valid JSON in this exact format:
{
  "summary": "...",
  "title": "...",
  "category": "task|reminder|idea|note"
}"""


def strip_code_fence(content: str) -> str:
    """Remove a surrounding markdown code block, if the model added one."""
    text = content.strip()
    if not text.startswith("```"):
        return text
    lines = [line for line in text.split("\n") if not line.startswith("```")]
    return "\n".join(lines)


def decode_json_object(content: str) -> dict[str, Any]:
    """Decode an LLM reply into a JSON object.

    Raises:
        ValueError: If the reply is not a JSON object.
    """
    data = json.loads(strip_code_fence(content))
    if not isinstance(data, dict):
        raise ValueError("Expected a JSON object")
    return data


class AudioProcessor(ABC):
    """Turns a recording into a transcript, title, summary and category."""

    @abstractmethod
    async def process(self, artifact: AudioArtifact) -> ProcessingResult:
        """Process a recording. Raises ProcessingError on any failure."""
        ...


class GroqAudioProcessor(AudioProcessor):
    """Whisper transcription followed by a JSON-mode chat classification."""

    def __init__(
        self,
        client: AsyncGroq,
        model: str = "llama-3.3-70b-versatile",
        transcription_model: str = "whisper-large-v3",
        language: str | None = "en",
    ) -> None:
        """Initialize the processor.

        Args:
            client: The Groq client for API calls.
            model: Chat model used for classification.
            transcription_model: Speech-to-text model.
            language: Spoken language hint, or None to auto-detect.
        """
        self.client = client
        self.model = model
        self.transcription_model = transcription_model
        self.language = language

    async def process(self, artifact: AudioArtifact) -> ProcessingResult:
        transcript = await self.transcribe(artifact)
        return await self.classify(transcript)

    async def transcribe(self, artifact: AudioArtifact) -> str:
        """Transcribe a recording to text."""
        kwargs: dict[str, Any] = {
            "file": (artifact.filename, artifact.data),
            "model": self.transcription_model,
        }
        if self.language:
            kwargs["language"] = self.language

        try:
            transcription = await self.client.audio.transcriptions.create(**kwargs)
        except Exception as e:
            logger.warning(f"Transcription failed: {e}")
            raise ProcessingError("Failed to transcribe audio") from e

        text = (getattr(transcription, "text", None) or "").strip()
        if not text:
            raise ProcessingError("No speech detected in recording")
        return text

    async def classify(self, transcript: str) -> ProcessingResult:
        """Derive title, summary and category from a transcript."""
        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": CLASSIFICATION_PROMPT},
                    {"role": "user", "content": transcript},
                ],
                temperature=0.3,
                max_tokens=200,
                response_format={"type": "json_object"},
            )
            content = response.choices[0].message.content or ""
        except Exception as e:
            logger.warning(f"Classification failed: {e}")
            raise ProcessingError("Failed to process transcription") from e

        try:
            payload = decode_json_object(content)
        except ValueError as e:
            logger.warning(f"Failed to parse classification response: {e}")
            raise ProcessingError("Malformed classification response") from e

        return ProcessingResult.from_payload(payload, transcript=transcript)
