import asyncio
import os
import sys

# Add project root to path so we can import songlingo
sys.path.append(os.getcwd())

from songlingo.config.settings import settings
from songlingo.services.errors import PronunciationError
from songlingo.services.provider_gateway import build_provider_gateway


async def main():
    gateway = build_provider_gateway(settings)

    file_path = "out.mp3"
    if len(sys.argv) > 1:
        file_path = sys.argv[1]
    language = sys.argv[2] if len(sys.argv) > 2 else None

    if not os.path.exists(file_path):
        print(f"File '{file_path}' not found. Please provide a path to an audio file.")
        print("Usage: python scripts/transcribe_file.py [path/to/audio.mp3] [language]")
        return

    print(f"Reading {file_path}...")
    with open(file_path, "rb") as f:
        audio_bytes = f.read()

    print(f"Transcribing {len(audio_bytes)} bytes using Amazon Transcribe Streaming...")
    try:
        result = await gateway.transcribe_speech(audio_bytes, "audio/mpeg", language=language)
    except PronunciationError as e:
        print(f"\nTranscription Error: {e}")
        return

    print("\n--- Transcript Result ---")
    print(result.text)
    print(f"confidence={result.confidence}")
    print("-------------------------")


if __name__ == "__main__":
    asyncio.run(main())
