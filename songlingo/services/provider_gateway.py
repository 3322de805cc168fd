"""Uniform adapter around the three external AI providers.

``ProviderGateway`` wraps Amazon Bedrock (exercise generation), Amazon Polly
(speech synthesis) and Amazon Transcribe (speech recognition). Each operation
is a single call with a fixed timeout, no retries, one normalized error
taxonomy (``songlingo.services.errors``) and a latency/status log line.
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, TypeVar

from botocore.exceptions import BotoCoreError, ClientError
from fastapi.concurrency import run_in_threadpool

from songlingo.config.settings import Settings
from songlingo.services.aws import create_boto3_client
from songlingo.services.errors import (
    InvalidAudio,
    ProviderAuthFailure,
    ProviderUnavailable,
    SchemaViolation,
    UnsupportedLanguage,
)
from songlingo.services.response_contract import parse_json_payload
from songlingo.services.transcribe import (
    AudioConversionError,
    StreamingTranscriber,
    StreamingTranscriptionError,
    TranscriptionResult,
)
from songlingo.telemetry import observe_provider_call

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

GENERATION_TOOL_NAME = "record_pronunciation_exercises"

_AUTH_ERROR_CODES = {
    "AccessDeniedException",
    "UnrecognizedClientException",
    "InvalidSignatureException",
    "ExpiredTokenException",
    "InvalidClientTokenId",
    "SignatureDoesNotMatch",
}
_THROTTLING_ERROR_CODES = {
    "ThrottlingException",
    "TooManyRequestsException",
    "ThrottledException",
    "ServiceQuotaExceededException",
}


def _decode_bedrock_api_key(secret_value: Optional[str]) -> tuple[str, str] | None:
    """Decode the BEDROCK_API_KEY secret into access/secret key components."""

    if not secret_value:
        return None

    try:
        decoded_bytes = base64.b64decode(secret_value.strip(), validate=True)
    except ValueError:
        decoded_bytes = secret_value.encode("utf-8", "ignore")

    filtered = "".join(chr(b) for b in decoded_bytes if 31 < b < 127)
    if ":" not in filtered:
        return None
    access_key, secret_key = filtered.split(":", 1)
    return access_key, secret_key


@dataclass(frozen=True)
class ProviderConfig:
    """Explicit provider configuration handed to the gateway."""

    generation_region: str = "us-east-1"
    generation_model_id: str = "amazon.nova-lite-v1:0"
    generation_max_tokens: int = 2048
    generation_temperature: float = 0.3
    generation_top_p: float = 0.95
    generation_credentials: tuple[str, str] | None = None
    tts_region: str = "us-east-1"
    tts_engine: str = "neural"
    tts_sample_rate: str = "22050"
    voices: Mapping[str, str] = field(default_factory=dict)
    stt_region: str = "us-east-1"
    stt_sample_rate_hz: int = 16000
    stt_language_codes: Mapping[str, str] = field(default_factory=dict)
    stt_default_language_code: str = "es-ES"
    stt_realtime_pacing: bool = False
    max_audio_bytes: int = 10 * 1024 * 1024
    aws_credentials: tuple[str, str] | None = None
    timeout_seconds: float = 30.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "ProviderConfig":
        aws_credentials = None
        if settings.s3.access_key and settings.s3.secret_key:
            aws_credentials = (settings.s3.access_key, settings.s3.secret_key)

        bedrock_credentials = None
        if settings.bedrock.api_key:
            bedrock_credentials = _decode_bedrock_api_key(
                settings.bedrock.api_key.get_secret_value()
            )

        return cls(
            generation_region=settings.bedrock.region,
            generation_model_id=settings.bedrock.model_id,
            generation_max_tokens=settings.bedrock.max_tokens,
            generation_temperature=settings.bedrock.temperature,
            generation_top_p=settings.bedrock.top_p,
            generation_credentials=bedrock_credentials or aws_credentials,
            tts_region=settings.polly.region,
            tts_engine=settings.polly.engine,
            tts_sample_rate=settings.polly.sample_rate,
            voices={k.lower(): v for k, v in settings.polly.voices.items()},
            stt_region=settings.transcribe.region,
            stt_sample_rate_hz=settings.transcribe.sample_rate_hz,
            stt_language_codes={
                k.lower(): v for k, v in settings.transcribe.language_codes.items()
            },
            stt_default_language_code=settings.transcribe.default_language_code,
            stt_realtime_pacing=settings.transcribe.realtime_pacing,
            max_audio_bytes=settings.transcribe.max_audio_bytes,
            aws_credentials=aws_credentials,
            timeout_seconds=settings.pipeline.provider_timeout_seconds,
        )


def _normalize_client_error(provider: str, exc: ClientError) -> Exception:
    response = exc.response or {}
    error = response.get("Error", {}) or {}
    code = error.get("Code") or ""
    status_code = response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    body = json.dumps(error) if error else str(exc)

    if status_code in (401, 403) or code in _AUTH_ERROR_CODES:
        return ProviderAuthFailure(
            provider, error.get("Message") or code, status_code=status_code or 403, body=body
        )
    if code in _THROTTLING_ERROR_CODES:
        status_code = 429
    return ProviderUnavailable(
        provider, error.get("Message") or code or str(exc), status_code=status_code, body=body
    )


class ProviderGateway:
    """Single entry point for generation, synthesis and transcription calls."""

    def __init__(
        self,
        config: ProviderConfig,
        *,
        llm_client: Any | None = None,
        tts_client: Any | None = None,
        transcriber: Any | None = None,
    ) -> None:
        self._config = config
        self._voices = {k.lower(): v for k, v in config.voices.items()}
        self._llm_client = llm_client
        self._tts_client = tts_client
        self._transcriber = transcriber

    @property
    def config(self) -> ProviderConfig:
        return self._config

    @property
    def max_audio_bytes(self) -> int:
        return self._config.max_audio_bytes

    # -- lazily created SDK clients -------------------------------------------------

    def _credentials(self, override: tuple[str, str] | None = None) -> dict[str, str | None]:
        pair = override or self._config.aws_credentials
        return {
            "aws_access_key_id": pair[0] if pair else None,
            "aws_secret_access_key": pair[1] if pair else None,
        }

    def _bedrock(self) -> Any:
        if self._llm_client is None:
            self._llm_client = create_boto3_client(
                "bedrock-runtime",
                region_name=self._config.generation_region,
                timeout_seconds=self._config.timeout_seconds,
                **self._credentials(self._config.generation_credentials),
            )
        return self._llm_client

    def _polly(self) -> Any:
        if self._tts_client is None:
            self._tts_client = create_boto3_client(
                "polly",
                region_name=self._config.tts_region,
                timeout_seconds=self._config.timeout_seconds,
                **self._credentials(),
            )
        return self._tts_client

    def _stt(self) -> Any:
        if self._transcriber is None:
            credentials = self._credentials()
            self._transcriber = StreamingTranscriber(
                region=self._config.stt_region,
                media_sample_rate_hz=self._config.stt_sample_rate_hz,
                access_key_id=credentials["aws_access_key_id"],
                secret_access_key=credentials["aws_secret_access_key"],
                realtime_pacing=self._config.stt_realtime_pacing,
            )
        return self._transcriber

    # -- call wrapper ---------------------------------------------------------------

    async def _call(
        self,
        provider: str,
        operation: str,
        factory: Callable[[], Awaitable[_T]],
    ) -> _T:
        """Run one provider call with timeout, error normalization and telemetry."""

        start = time.perf_counter()
        outcome = "ok"
        try:
            return await asyncio.wait_for(factory(), timeout=self._config.timeout_seconds)
        except asyncio.TimeoutError as exc:
            outcome = "timeout"
            raise ProviderUnavailable(
                provider,
                f"{operation} timed out after {self._config.timeout_seconds:.1f}s",
                status_code=504,
            ) from exc
        except ClientError as exc:
            normalized = _normalize_client_error(provider, exc)
            outcome = "auth_failure" if isinstance(normalized, ProviderAuthFailure) else "error"
            raise normalized from exc
        except BotoCoreError as exc:
            outcome = "error"
            raise ProviderUnavailable(provider, str(exc)) from exc
        except StreamingTranscriptionError as exc:
            if exc.status_code in (401, 403):
                outcome = "auth_failure"
                raise ProviderAuthFailure(
                    provider, str(exc), status_code=exc.status_code, body=exc.body
                ) from exc
            outcome = "error"
            raise ProviderUnavailable(
                provider, str(exc), status_code=exc.status_code, body=exc.body
            ) from exc
        except Exception:
            outcome = "error"
            raise
        finally:
            elapsed = time.perf_counter() - start
            observe_provider_call(provider, operation, outcome, elapsed)
            logger.info(
                "provider=%s operation=%s outcome=%s latency_ms=%.1f",
                provider,
                operation,
                outcome,
                elapsed * 1000,
            )

    # -- generation -----------------------------------------------------------------

    async def generate_exercises(self, prompt: str, schema: Mapping[str, Any]) -> dict[str, Any]:
        """Ask the model for exercises constrained by ``schema``; return the JSON object."""

        client = self._bedrock()
        tool_config = {
            "tools": [
                {
                    "toolSpec": {
                        "name": GENERATION_TOOL_NAME,
                        "description": "Record the generated pronunciation exercises.",
                        "inputSchema": {"json": dict(schema)},
                    }
                }
            ],
            "toolChoice": {"tool": {"name": GENERATION_TOOL_NAME}},
        }
        inference_cfg = {
            "maxTokens": self._config.generation_max_tokens,
            "temperature": self._config.generation_temperature,
            "topP": self._config.generation_top_p,
        }

        def _converse() -> dict[str, Any]:
            return client.converse(
                modelId=self._config.generation_model_id,
                messages=[{"role": "user", "content": [{"text": prompt}]}],
                inferenceConfig=inference_cfg,
                toolConfig=tool_config,
            )

        response = await self._call(
            "bedrock", "generate_exercises", lambda: run_in_threadpool(_converse)
        )
        return self._extract_structured_output(response)

    @staticmethod
    def _extract_structured_output(response: Mapping[str, Any]) -> dict[str, Any]:
        content_blocks = (
            (response or {}).get("output", {}).get("message", {}).get("content", [])
        )
        texts: list[str] = []
        for block in content_blocks:
            tool_use = block.get("toolUse")
            if tool_use is not None:
                payload = tool_use.get("input")
                if isinstance(payload, str):
                    payload = parse_json_payload(payload)
                if not isinstance(payload, dict):
                    raise SchemaViolation("Tool input is not a JSON object.")
                data = payload
                break
            if block.get("text"):
                texts.append(block["text"])
        else:
            if not texts:
                raise SchemaViolation("Model returned no content.")
            data = parse_json_payload("\n".join(texts))

        if not isinstance(data.get("exercises"), list):
            raise SchemaViolation("Model response has no 'exercises' array.")
        return data

    # -- speech synthesis -----------------------------------------------------------

    def voice_for(self, language: str) -> str:
        """Resolve the synthesis voice; unmapped languages fail before any call."""

        voice = self._voices.get((language or "").strip().lower())
        if not voice:
            raise UnsupportedLanguage(language)
        return voice

    async def synthesize_speech(self, text: str, voice_id: str) -> bytes:
        """Return MP3 bytes for ``text`` spoken by ``voice_id``."""

        if not text.strip():
            raise ProviderUnavailable("polly", "Refusing to synthesize empty text", status_code=400)
        client = self._polly()

        def _synthesize() -> bytes:
            response = client.synthesize_speech(
                Text=text,
                VoiceId=voice_id,
                Engine=self._config.tts_engine,
                OutputFormat="mp3",
                SampleRate=self._config.tts_sample_rate,
            )
            audio_stream = response.get("AudioStream")
            if audio_stream is None:
                return b""
            return audio_stream.read()

        audio_bytes = await self._call(
            "polly", "synthesize_speech", lambda: run_in_threadpool(_synthesize)
        )
        if not audio_bytes:
            raise ProviderUnavailable("polly", "Polly returned an empty audio stream.")
        return audio_bytes

    # -- speech recognition ---------------------------------------------------------

    def language_code_for(self, language: str | None) -> str:
        if not language:
            return self._config.stt_default_language_code
        key = language.strip().lower()
        if key in self._config.stt_language_codes:
            return self._config.stt_language_codes[key]
        # Accept explicit BCP-47 codes such as "es-US".
        if "-" in key:
            return language.strip()
        return self._config.stt_default_language_code

    async def transcribe_speech(
        self,
        audio_bytes: bytes,
        mime_type: str,
        *,
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe a recording; payload problems fail before dispatch."""

        if not audio_bytes:
            raise InvalidAudio("The uploaded audio file is empty.")
        if len(audio_bytes) > self._config.max_audio_bytes:
            raise InvalidAudio(
                f"Audio payload of {len(audio_bytes)} bytes exceeds the "
                f"{self._config.max_audio_bytes} byte limit."
            )

        transcriber = self._stt()
        language_code = self.language_code_for(language)
        try:
            return await self._call(
                "transcribe",
                "transcribe_speech",
                lambda: transcriber.transcribe(
                    audio_bytes, language_code=language_code, mime_type=mime_type
                ),
            )
        except AudioConversionError as exc:
            raise InvalidAudio(str(exc)) from exc


def build_provider_gateway(settings: Settings) -> ProviderGateway:
    """Create a gateway from application settings."""

    return ProviderGateway(ProviderConfig.from_settings(settings))


__all__ = [
    "ProviderConfig",
    "ProviderGateway",
    "GENERATION_TOOL_NAME",
    "build_provider_gateway",
]
