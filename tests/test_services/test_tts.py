"""Tests for TTS services (ElevenLabs, Edge TTS).

Tests are organized as:
- Voice and prosody mapping
- Resampler and exception hierarchy
- Synthesizers with the remote engines stubbed out
"""

import math

import numpy as np
import pytest

from src.core.voice_analyzer import Gender, VoiceProfile
from src.services.tts import EdgeSynthesizer, ElevenLabsSynthesizer, build_synthesizer
from src.services.tts import edge as edge_module
from src.services.tts.elevenlabs import elevenlabs_speed
from src.services.tts.exceptions import (
    TTSConnectionError,
    TTSResamplingError,
    TTSServiceError,
    TTSSynthesisError,
)
from src.services.tts.resampler import AudioResampler, downsample_pcm16
from src.services.tts.voices import EDGE_VOICES, edge_prosody, edge_voice


def generate_sine_wave(
    frequency: float,
    duration_seconds: float,
    sample_rate: int,
    amplitude: float = 0.5,
) -> bytes:
    """Generate a sine wave as 16-bit PCM bytes."""
    num_samples = int(duration_seconds * sample_rate)
    t = np.linspace(0, duration_seconds, num_samples, endpoint=False)
    signal = amplitude * np.sin(2 * math.pi * frequency * t)
    return (signal * 32767).astype(np.int16).tobytes()


class TestEdgeVoices:
    """Tests for Edge voice and prosody selection."""

    def test_voice_by_gender(self) -> None:
        """Test female speakers get the female voice, others the male one."""
        assert edge_voice("es", Gender.FEMALE) == "es-ES-ElviraNeural"
        assert edge_voice("es", Gender.MALE) == "es-ES-AlvaroNeural"
        assert edge_voice("es", Gender.NEUTRAL) == "es-ES-AlvaroNeural"

    def test_region_tags_use_base_language(self) -> None:
        """Test regional tags map to the base language's voices."""
        assert edge_voice("hi-IN", Gender.FEMALE) == EDGE_VOICES["hi"][1]

    def test_unknown_language_falls_back_to_english(self) -> None:
        """Test languages without voices fall back to English."""
        assert edge_voice("xx", Gender.MALE) == EDGE_VOICES["en"][0]

    def test_neutral_prosody(self) -> None:
        """Test the neutral profile leaves speech unchanged."""
        assert edge_prosody(VoiceProfile.neutral()) == {
            "rate": "+0%",
            "pitch": "+0Hz",
            "volume": "+0%",
        }

    def test_prosody_from_profile(self) -> None:
        """Test rate, pitch and volume follow the profile."""
        profile = VoiceProfile(pitch=-6, speed=1.2, energy=3, gender=Gender.MALE)
        assert edge_prosody(profile) == {"rate": "+20%", "pitch": "-12Hz", "volume": "+15%"}


class TestElevenLabsSpeed:
    """Tests for ElevenLabs speed clamping."""

    @pytest.mark.parametrize(
        ("speed", "expected"),
        [(0.75, 0.75), (1.0, 1.0), (1.5, 1.2), (0.5, 0.7)],
    )
    def test_speed_is_clamped(self, speed: float, expected: float) -> None:
        """Test the profile speed is clamped to the supported range."""
        assert elevenlabs_speed(VoiceProfile(speed=speed)) == pytest.approx(expected)


class TestTTSExceptions:
    """Tests for TTS exception hierarchy."""

    @pytest.mark.parametrize("exc_cls", [TTSSynthesisError, TTSConnectionError, TTSResamplingError])
    def test_inherits_from_base(self, exc_cls: type[Exception]) -> None:
        """Test every TTS error is a TTSServiceError."""
        assert issubclass(exc_cls, TTSServiceError)


class TestAudioResampler:
    """Tests for downsampling TTS output to the telephony rate."""

    def test_needs_resampling(self) -> None:
        """Test 8kHz input is left alone."""
        assert AudioResampler(24000).needs_resampling is True
        assert AudioResampler(8000).needs_resampling is False

    @pytest.mark.asyncio
    async def test_telephony_rate_passthrough(self) -> None:
        """Test audio already at 8kHz is returned as is."""
        audio = generate_sine_wave(440, 0.1, 8000)
        assert await AudioResampler(8000).to_telephony(audio) == audio

    @pytest.mark.asyncio
    async def test_empty_data(self) -> None:
        """Test empty input stays empty."""
        assert await AudioResampler(24000).to_telephony(b"") == b""

    @pytest.mark.asyncio
    async def test_edge_rate_to_telephony(self) -> None:
        """Test 24kHz → 8kHz keeps the duration."""
        audio = generate_sine_wave(440, 1.0, 24000)
        resampled = await AudioResampler(24000).to_telephony(audio)

        assert len(resampled) // 2 == pytest.approx(8000, abs=10)

    def test_downsample_keeps_level(self) -> None:
        """Test a tone keeps roughly its amplitude after downsampling."""
        audio = generate_sine_wave(440, 0.5, 16000, amplitude=0.5)
        samples = np.frombuffer(downsample_pcm16(audio, 16000), dtype=np.int16)

        assert len(samples) == pytest.approx(4000, abs=10)
        assert np.abs(samples[200:-200]).max() == pytest.approx(0.5 * 32767, rel=0.05)

    @pytest.mark.asyncio
    async def test_failure_raises_resampling_error(self, monkeypatch) -> None:
        """Test soxr errors surface as TTSResamplingError."""

        def broken(*args, **kwargs):
            raise ValueError("bad rate")

        monkeypatch.setattr("src.services.tts.resampler.soxr.resample", broken)

        with pytest.raises(TTSResamplingError):
            await AudioResampler(24000).to_telephony(b"\x00\x01" * 100)


class TestEdgeSynthesizer:
    """Tests for EdgeSynthesizer with the Edge service stubbed out."""

    @pytest.fixture
    def fake_edge(self, monkeypatch):
        """Replace the Edge client and MP3 decoder."""
        calls: list[dict] = []

        class FakeCommunicate:
            def __init__(self, text: str, voice: str, **prosody: str) -> None:
                calls.append({"text": text, "voice": voice, **prosody})

            async def stream(self):
                yield {"type": "WordBoundary"}
                yield {"type": "audio", "data": b"mp3-bytes"}

        def fake_decode(mp3_data: bytes) -> tuple[bytes, int]:
            assert mp3_data == b"mp3-bytes"
            return generate_sine_wave(300, 0.5, 24000), 24000

        monkeypatch.setattr(edge_module.edge_tts, "Communicate", FakeCommunicate)
        monkeypatch.setattr(edge_module, "_decode_mp3_to_pcm", fake_decode)
        return calls

    @pytest.mark.asyncio
    async def test_synthesize_returns_mulaw(self, settings, fake_edge) -> None:
        """Test decoded audio is resampled to 8kHz µ-law."""
        synthesizer = EdgeSynthesizer(settings)
        profile = VoiceProfile(pitch=4, speed=0.9, energy=-2, gender=Gender.FEMALE)

        audio = await synthesizer.synthesize("hola", "es", profile)

        assert audio is not None
        assert len(audio) == pytest.approx(4000, abs=10)  # 0.5s at 8kHz, one byte per sample
        assert fake_edge == [
            {"text": "hola", "voice": "es-ES-ElviraNeural", "rate": "-10%", "pitch": "+8Hz", "volume": "-10%"}
        ]
        assert synthesizer.last_metadata is not None
        assert synthesizer.last_metadata.resampled is True

    @pytest.mark.asyncio
    async def test_empty_text(self, settings, fake_edge) -> None:
        """Test blank text is not sent to the service."""
        assert await EdgeSynthesizer(settings).synthesize("  ", "es", VoiceProfile()) is None
        assert fake_edge == []

    @pytest.mark.asyncio
    async def test_service_failure_returns_none(self, settings, monkeypatch) -> None:
        """Test a failing Edge connection yields no audio."""

        class BrokenCommunicate:
            def __init__(self, *args, **kwargs) -> None:
                pass

            async def stream(self):
                raise OSError("network down")
                yield  # pragma: no cover

        monkeypatch.setattr(edge_module.edge_tts, "Communicate", BrokenCommunicate)

        assert await EdgeSynthesizer(settings).synthesize("hola", "es", VoiceProfile()) is None

    @pytest.mark.asyncio
    async def test_undecodable_mp3_returns_none(self, settings, monkeypatch) -> None:
        """Test garbage MP3 data yields no audio."""

        class GarbageCommunicate:
            def __init__(self, *args, **kwargs) -> None:
                pass

            async def stream(self):
                yield {"type": "audio", "data": b"definitely not an mp3"}

        monkeypatch.setattr(edge_module.edge_tts, "Communicate", GarbageCommunicate)

        assert await EdgeSynthesizer(settings).synthesize("hola", "es", VoiceProfile()) is None


class TestElevenLabsSynthesizer:
    """Tests for ElevenLabsSynthesizer."""

    def test_voice_id_for_gender(self, settings_factory) -> None:
        """Test the female voice only for female speakers."""
        settings = settings_factory(
            elevenlabs_male_voice_id="male-id", elevenlabs_female_voice_id="female-id"
        )
        synthesizer = ElevenLabsSynthesizer(settings)

        assert synthesizer.voice_id_for(Gender.FEMALE) == "female-id"
        assert synthesizer.voice_id_for(Gender.MALE) == "male-id"
        assert synthesizer.voice_id_for(Gender.NEUTRAL) == "male-id"

    @pytest.mark.asyncio
    async def test_missing_key_returns_none(self, settings) -> None:
        """Test synthesis without an API key yields no audio."""
        synthesizer = ElevenLabsSynthesizer(settings)
        assert await synthesizer.synthesize("hola", "es", VoiceProfile()) is None

    @pytest.mark.asyncio
    async def test_synthesize_passes_ulaw_through(self, settings_factory, monkeypatch) -> None:
        """Test API audio is returned as-is."""
        synthesizer = ElevenLabsSynthesizer(settings_factory(elevenlabs_api_key="el-key"))
        seen: list[tuple[str, str, float]] = []

        def fake_convert(text: str, voice_id: str, profile: VoiceProfile) -> bytes:
            seen.append((text, voice_id, elevenlabs_speed(profile)))
            return b"\x7f" * 800

        monkeypatch.setattr(synthesizer, "_synthesize_to_ulaw", fake_convert)
        audio = await synthesizer.synthesize("hola", "es", VoiceProfile(speed=1.4, gender=Gender.FEMALE))

        assert audio == b"\x7f" * 800
        assert seen == [("hola", synthesizer.voice_id_for(Gender.FEMALE), 1.2)]
        assert synthesizer.last_metadata is not None
        assert synthesizer.last_metadata.output_duration_ms == pytest.approx(100.0)


class TestBuildSynthesizer:
    """Tests for provider selection."""

    def test_auto_without_key_uses_edge(self, settings_factory) -> None:
        """Test auto falls back to Edge when ElevenLabs has no key."""
        assert isinstance(build_synthesizer(settings_factory(tts_provider="auto")), EdgeSynthesizer)

    def test_auto_with_key_uses_elevenlabs(self, settings_factory) -> None:
        """Test auto prefers ElevenLabs when a key is set."""
        settings = settings_factory(tts_provider="auto", elevenlabs_api_key="el-key")
        assert isinstance(build_synthesizer(settings), ElevenLabsSynthesizer)

    def test_explicit_edge(self, settings_factory) -> None:
        """Test an explicit provider wins over a configured key."""
        settings = settings_factory(tts_provider="edge", elevenlabs_api_key="el-key")
        assert isinstance(build_synthesizer(settings), EdgeSynthesizer)
