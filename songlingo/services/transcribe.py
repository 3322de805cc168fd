"""Amazon Transcribe integration helpers using Streaming API."""

from __future__ import annotations

import asyncio
import logging
import os
import subprocess
import tempfile
from dataclasses import dataclass

from amazon_transcribe.auth import StaticCredentialResolver
from amazon_transcribe.client import TranscribeStreamingClient
from amazon_transcribe.exceptions import ServiceException
from amazon_transcribe.handlers import TranscriptResultStreamHandler
from amazon_transcribe.model import TranscriptEvent
from fastapi.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)

# Streaming exceptions carry no HTTP status; map the modelled ones.
_SERVICE_STATUS = {
    "BadRequestException": 400,
    "ConflictException": 409,
    "LimitExceededException": 429,
    "InternalFailureException": 500,
    "ServiceUnavailableException": 503,
}


@dataclass(frozen=True)
class TranscriptionResult:
    """Transcript text plus the mean word confidence (None when not reported)."""

    text: str
    confidence: float | None = None


class StreamingTranscriptionError(RuntimeError):
    """Raised when the Transcribe stream fails upstream."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body or message


class AudioConversionError(RuntimeError):
    """Raised when ffmpeg cannot decode the submitted recording."""


class StreamingTranscriber:
    """High-level facade for streaming audio to Amazon Transcribe."""

    def __init__(
        self,
        *,
        region: str,
        media_sample_rate_hz: int = 16000,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        chunk_size: int = 8192,
        realtime_pacing: bool = False,
        client: TranscribeStreamingClient | None = None,
    ) -> None:
        self._media_sample_rate_hz = media_sample_rate_hz
        self._chunk_size = chunk_size
        # Pacing makes streaming take as long as the recording itself.
        self._realtime_pacing = realtime_pacing
        if client is not None:
            self._client = client
        elif access_key_id and secret_access_key:
            resolver = StaticCredentialResolver(
                access_key_id=access_key_id,
                secret_access_key=secret_access_key,
            )
            self._client = TranscribeStreamingClient(
                region=region, credential_resolver=resolver
            )
        else:
            self._client = TranscribeStreamingClient(region=region)

    async def transcribe(
        self,
        audio_bytes: bytes,
        *,
        language_code: str,
        mime_type: str | None = None,
    ) -> TranscriptionResult:
        """Stream audio to Transcribe and return the final transcript."""

        try:
            pcm_data = await run_in_threadpool(self._convert_to_pcm_sync, audio_bytes)
        except FileNotFoundError as exc:
            raise StreamingTranscriptionError("ffmpeg is not installed") from exc
        if not pcm_data:
            raise AudioConversionError(f"No audio frames decoded from {mime_type or 'upload'}")

        try:
            stream = await self._client.start_stream_transcription(
                language_code=language_code,
                media_sample_rate_hz=self._media_sample_rate_hz,
                media_encoding="pcm",
            )
            handler = _CollectingTranscriptHandler(stream.output_stream)
            await asyncio.gather(
                self._write_chunks(stream, pcm_data),
                handler.handle_events(),
            )
        except ServiceException as exc:
            name = type(exc).__name__
            status_code = getattr(exc, "status_code", None) or _SERVICE_STATUS.get(name)
            raise StreamingTranscriptionError(
                f"{name}: {exc}", status_code=status_code, body=str(exc)
            ) from exc

        logger.info(
            "Transcription complete. language=%s length=%s",
            language_code,
            len(handler.transcript),
        )
        return TranscriptionResult(
            text=handler.transcript.strip(),
            confidence=handler.confidence,
        )

    async def _write_chunks(self, stream, pcm_data: bytes) -> None:
        # 16-bit mono: two bytes per sample.
        bytes_per_sec = self._media_sample_rate_hz * 2
        sleep_time = self._chunk_size / bytes_per_sec if self._realtime_pacing else 0

        for i in range(0, len(pcm_data), self._chunk_size):
            chunk = pcm_data[i : i + self._chunk_size]
            await stream.input_stream.send_audio_event(audio_chunk=chunk)
            if sleep_time:
                await asyncio.sleep(sleep_time)

        await stream.input_stream.end_stream()

    def _convert_to_pcm_sync(self, audio_bytes: bytes) -> bytes:
        """Synchronous ffmpeg conversion using a temporary file to support seeking."""

        with tempfile.NamedTemporaryFile(delete=False, suffix=".tmp") as tmp_file:
            tmp_file.write(audio_bytes)
            tmp_path = tmp_file.name

        try:
            process = subprocess.run(
                [
                    "ffmpeg",
                    "-y",
                    "-i", tmp_path,
                    "-f", "s16le",
                    "-ac", "1",
                    "-ar", str(self._media_sample_rate_hz),
                    "pipe:1",
                ],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
            return process.stdout
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace") if exc.stderr else "No stderr"
            logger.error("ffmpeg failed. stderr: %s", error_msg)
            raise AudioConversionError(f"ffmpeg failed to convert audio to PCM: {error_msg}") from exc
        finally:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)


class _CollectingTranscriptHandler(TranscriptResultStreamHandler):
    def __init__(self, transcript_result_stream):
        super().__init__(transcript_result_stream)
        self.transcript = ""
        self._confidences: list[float] = []

    async def handle_transcript_event(self, transcript_event: TranscriptEvent):
        for result in transcript_event.transcript.results:
            if result.is_partial or not result.alternatives:
                continue
            best = result.alternatives[0]
            self.transcript += best.transcript + " "
            for item in best.items or []:
                if getattr(item, "confidence", None) is not None:
                    self._confidences.append(float(item.confidence))

    @property
    def confidence(self) -> float | None:
        if not self._confidences:
            return None
        return sum(self._confidences) / len(self._confidences)


__all__ = [
    "StreamingTranscriber",
    "StreamingTranscriptionError",
    "AudioConversionError",
    "TranscriptionResult",
]
