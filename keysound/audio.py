import logging
import math
import threading
from dataclasses import dataclass

import numpy as np
import soundfile as sf
from pydub import AudioSegment
from pydub.exceptions import CouldntDecodeError

from keysound.config import MAX_VOICES, MIN_DB, OUTPUT_BLOCKSIZE, OUTPUT_CHANNELS, OUTPUT_SAMPLE_RATE
from keysound.errors import AudioBackendError

logger = logging.getLogger(__name__)

# PortAudio is a shared library; a missing one surfaces as OSError at import time.
try:
    import sounddevice as sd
except (ImportError, OSError) as e:
    logger.warning("sounddevice unavailable, audio output disabled: %s", e)
    sd = None


class DecodeError(Exception):
    pass


@dataclass
class DecodedSound:
    path: str
    samples: np.ndarray  # float32, shape (frames, OUTPUT_CHANNELS), in [-1, 1]
    sample_rate: int = OUTPUT_SAMPLE_RATE

    @property
    def duration(self):
        return len(self.samples) / self.sample_rate


# --- Gain ---
def amplitude_to_db(amplitude):
    """Linear amplitude to decibels; silence maps to MIN_DB instead of -inf."""
    if amplitude <= 0.0:
        return MIN_DB
    return 20.0 * math.log10(amplitude)


def db_to_amplitude(db):
    if db <= MIN_DB:
        return 0.0
    return 10.0 ** (db / 20.0)


# --- Decoding ---
def _read_soundfile(path):
    samples, sample_rate = sf.read(path, dtype="float32", always_2d=True)
    return samples, sample_rate


def _read_pydub(path):
    try:
        segment = AudioSegment.from_file(path)
    except CouldntDecodeError as e:
        raise DecodeError(f"Cannot decode {path}: {e}") from e
    samples = np.array(segment.get_array_of_samples()).astype(np.float32)
    # Normalize samples to [-1.0, 1.0]
    samples /= 2 ** (segment.sample_width * 8 - 1)
    return samples.reshape((-1, max(1, segment.channels))), segment.frame_rate


def _conform(samples, sample_rate):
    """Match the output stream: OUTPUT_CHANNELS channels at OUTPUT_SAMPLE_RATE."""
    channels = samples.shape[1]
    if channels == 1:
        samples = np.repeat(samples, OUTPUT_CHANNELS, axis=1)
    elif channels > OUTPUT_CHANNELS:
        samples = samples[:, :OUTPUT_CHANNELS]
    elif channels < OUTPUT_CHANNELS:
        samples = np.pad(samples, ((0, 0), (0, OUTPUT_CHANNELS - channels)), mode="edge")

    if sample_rate != OUTPUT_SAMPLE_RATE and len(samples) > 1:
        frames = max(1, int(round(len(samples) * OUTPUT_SAMPLE_RATE / sample_rate)))
        src = np.arange(len(samples)) / sample_rate
        dst = np.arange(frames) / OUTPUT_SAMPLE_RATE
        samples = np.column_stack([np.interp(dst, src, samples[:, c]) for c in range(OUTPUT_CHANNELS)])

    return np.ascontiguousarray(np.clip(samples, -1.0, 1.0), dtype=np.float32)


def decode_sound(path):
    """Decode ``path`` fully into memory.

    libsndfile handles wav/ogg (and mp3 from 1.1 on); anything it rejects is
    retried through pydub/ffmpeg. Raises DecodeError when neither can read it.
    """
    try:
        samples, sample_rate = _read_soundfile(path)
    except RuntimeError as sf_error:  # sf.LibsndfileError
        logger.debug("libsndfile could not read %s (%s), trying pydub", path, sf_error)
        try:
            samples, sample_rate = _read_pydub(path)
        except (OSError, IndexError) as e:
            raise DecodeError(f"Cannot decode {path}: {e}") from e
    if len(samples) == 0:
        raise DecodeError(f"{path} contains no audio frames")
    return DecodedSound(path=path, samples=_conform(samples, sample_rate))


# --- Output ---
class MixerBackend:
    """One sounddevice output stream mixing any number of overlapping one-shots."""

    def __init__(self, device=None, max_voices=MAX_VOICES):
        if sd is None:
            raise AudioBackendError("Audio output unavailable: sounddevice/PortAudio could not be loaded")
        self._lock = threading.Lock()
        self._voices = []  # [samples, position, gain]
        self._max_voices = max_voices
        try:
            self._stream = sd.OutputStream(samplerate=OUTPUT_SAMPLE_RATE, channels=OUTPUT_CHANNELS,
                                           dtype="float32", blocksize=OUTPUT_BLOCKSIZE,
                                           device=device, callback=self._callback)
            self._stream.start()
        except sd.PortAudioError as e:
            raise AudioBackendError(f"Failed to create audio output: {e}") from e

    def _callback(self, outdata, frames, time_info, status):
        if status:
            logger.debug("Stream status: %s", status)
        outdata.fill(0)
        with self._lock:
            for voice in self._voices:
                samples, position, gain = voice
                chunk = samples[position:position + frames]
                outdata[:len(chunk)] += chunk * gain
                voice[1] = position + len(chunk)
            self._voices = [v for v in self._voices if v[1] < len(v[0])]
        np.clip(outdata, -1.0, 1.0, out=outdata)

    def play(self, sound, gain_db):
        """Fire-and-forget: queue ``sound`` at ``gain_db``; the oldest voice is dropped past the cap."""
        gain = db_to_amplitude(gain_db)
        if gain <= 0.0:
            return
        with self._lock:
            if len(self._voices) >= self._max_voices:
                self._voices.pop(0)
            self._voices.append([sound.samples, 0, gain])

    def close(self):
        with self._lock:
            self._voices = []
        try:
            self._stream.stop()
            self._stream.close()
        except sd.PortAudioError as e:
            logger.warning("Error closing audio stream: %s", e)
