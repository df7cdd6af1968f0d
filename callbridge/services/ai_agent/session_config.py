"""Voice agent language presets and browser session configuration."""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

GEMINI_VOICES = ("Aoede", "Charon", "Fenrir", "Kore", "Leda", "Puck")
DEFAULT_GEMINI_VOICE = "Aoede"
GEMINI_WS_ENDPOINT = (
    "wss://generativelanguage.googleapis.com/ws/"
    "google.ai.generativelanguage.v1beta.GenerativeService.BidiGenerateContent"
)
SAMPLE_RATE = 16000


class LanguagePreset(BaseModel):
    """Voice and scripted prompts for one agent language."""
    voice: str
    system_prompt: str
    greeting: str
    farewell: str


class LanguagePresets:
    """Language presets loaded from YAML."""

    def __init__(self, presets_file: Optional[str] = None):
        """Initialize with optional presets file path."""
        if presets_file is None:
            presets_file = Path(__file__).parent / "data" / "languages.yaml"
        self.presets_file = Path(presets_file)
        self._presets: Optional[Dict[str, LanguagePreset]] = None
        self._default_language = "ko"

    def _load(self) -> Dict[str, LanguagePreset]:
        if self._presets is None:
            with open(self.presets_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
            self._default_language = data.get("default_language", self._default_language)
            self._presets = {
                code: LanguagePreset(**preset)
                for code, preset in data.get("languages", {}).items()
            }
        return self._presets

    @property
    def languages(self) -> List[str]:
        return list(self._load().keys())

    def get(self, language: Optional[str]) -> LanguagePreset:
        """Preset for ``language``, or the default language's preset when unknown."""
        presets = self._load()
        return presets.get(language or "") or presets[self._default_language]

    def resolve_language(self, language: Optional[str]) -> str:
        return language if language in self._load() else self._default_language


class GeminiSessionConfig(BaseModel):
    voice: str
    language: str
    systemPrompt: str
    greeting: Optional[str] = None
    sampleRate: int = SAMPLE_RATE
    responseModalities: List[str] = ["AUDIO"]


def validate_voice(voice: Optional[str]) -> str:
    if voice in GEMINI_VOICES:
        return voice
    return DEFAULT_GEMINI_VOICE


def build_gemini_session(
    presets: LanguagePresets,
    api_key: Optional[str],
    model: str,
    language: Optional[str] = None,
    voice: Optional[str] = None,
    system_prompt: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build the live-voice session description handed to the browser.

    Without an API key the browser is told to run in mock mode.
    """
    language = language or presets.resolve_language(None)
    preset = presets.get(language)
    config = GeminiSessionConfig(
        voice=validate_voice(voice or preset.voice),
        language=language,
        systemPrompt=system_prompt or preset.system_prompt,
        greeting=preset.greeting,
    )

    if not api_key:
        return {
            "mockMode": True,
            "message": "Gemini API key not configured. Using mock mode.",
            "config": config.model_dump(include={"language", "voice", "systemPrompt"}),
        }

    return {
        "mockMode": False,
        "provider": "gemini",
        "model": model,
        "wsEndpoint": GEMINI_WS_ENDPOINT,
        "apiKey": api_key,
        "config": config.model_dump(),
    }
