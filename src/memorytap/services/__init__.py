"""External collaborators: audio capture, transcription and insights."""

from .capture import AudioCapture, CaptureHandle, FileAudioCapture
from .insights import Briefing, GroqInsightGenerator, HabitAnalysis, InsightGenerator
from .processor import AudioProcessor, GroqAudioProcessor

__all__ = [
    "AudioCapture",
    "AudioProcessor",
    "Briefing",
    "CaptureHandle",
    "FileAudioCapture",
    "GroqAudioProcessor",
    "GroqInsightGenerator",
    "HabitAnalysis",
    "InsightGenerator",
]
