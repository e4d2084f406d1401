"""Melodies and tones for audible flight event notifications."""

import enum


class Note(enum.IntEnum):
    """Note frequencies in Hz; ``REST`` is silence."""

    REST = 0
    C4 = 262
    CS4 = 277
    D4 = 294
    DS4 = 311
    E4 = 330
    F4 = 349
    FS4 = 370
    G4 = 392
    GS4 = 415
    A4 = 440
    AS4 = 466
    B4 = 494
    C5 = 523
    CS5 = 554
    D5 = 587
    DS5 = 622
    E5 = 659
    F5 = 698
    FS5 = 740
    G5 = 784
    GS5 = 831
    A5 = 880
    AS5 = 932
    B5 = 988
    C6 = 1047


class SongType(enum.Enum):
    STARTUP = "startup"
    LAUNCH_DETECTED = "launch_detected"
    APOGEE_DETECTED = "apogee_detected"
    ERROR_WARNING = "error_warning"
    MARIO_THEME = "mario_theme"
    STAR_WARS = "star_wars"
    TETRIS = "tetris"
    NOKIA_RINGTONE = "nokia_ringtone"


_N = Note
_R = Note.REST

# Each song is (notes, durations, tempo in beats per minute).  A duration
# is a note-value divider (4 = quarter note); a negative one is dotted.
SONGS = {
    SongType.STARTUP: (
        (_N.C4, _N.D4, _N.E4, _N.F4, _N.G4, _N.A4, _N.B4, _N.C5),
        (4, 4, 4, 4, 4, 4, 4, 2),
        120,
    ),
    SongType.LAUNCH_DETECTED: (
        (_N.C5, _N.G4, _N.C5, _N.G4, _N.C5, _N.E5, _N.G5),
        (8, 8, 8, 8, 4, 4, 2),
        140,
    ),
    SongType.APOGEE_DETECTED: (
        (_N.C5, _N.C5, _N.C5, _N.C5, _N.G4, _N.A4, _N.C5),
        (8, 8, 8, 2, 4, 4, 2),
        130,
    ),
    SongType.ERROR_WARNING: (
        (_N.A5, _R, _N.A5, _R, _N.A5, _R, _N.A5),
        (8, 8, 8, 8, 8, 8, 4),
        180,
    ),
    SongType.MARIO_THEME: (
        (
            _N.E5, _N.E5, _R, _N.E5, _R, _N.C5, _N.E5, _R,
            _N.G5, _R, _R, _R, _N.G4, _R, _R, _R,
            _N.C5, _R, _R, _N.G4, _R, _R, _N.E4, _R,
            _R, _N.A4, _R, _N.B4, _R, _N.AS4, _N.A4, _R,
            _N.G4, _N.E5, _N.G5, _N.A5, _R, _N.F5, _N.G5,
            _R, _N.E5, _R, _N.C5, _N.D5, _N.B4,
        ),
        (
            8, 4, 8, 4, 8, 8, 4, 8,
            4, 8, 8, 8, 4, 8, 8, 8,
            4, 8, 8, 4, 8, 8, 4, 8,
            8, 4, 8, 4, 8, 8, 4, 8,
            8, 8, 8, 4, 8, 8, 4,
            8, 4, 8, 8, 8, 4,
        ),
        144,
    ),
    SongType.STAR_WARS: (
        (
            _N.A4, _N.A4, _N.A4, _N.F4, _N.C5,
            _N.A4, _N.F4, _N.C5, _N.A4, _R,
            _N.E5, _N.E5, _N.E5, _N.F5, _N.C5,
            _N.GS4, _N.F4, _N.C5, _N.A4, _R,
        ),
        (
            4, 4, 4, -4, 16,
            4, -4, 16, 2, 8,
            4, 4, 4, -4, 16,
            4, -4, 16, 2, 4,
        ),
        120,
    ),
    SongType.TETRIS: (
        (
            _N.E5, _N.B4, _N.C5, _N.D5, _N.C5, _N.B4,
            _N.A4, _N.A4, _N.C5, _N.E5, _N.D5, _N.C5,
            _N.B4, _N.C5, _N.D5, _N.E5,
            _N.C5, _N.A4, _N.A4, _R,
            _N.D5, _N.F5, _N.A5, _N.G5, _N.F5,
            _N.E5, _N.C5, _N.E5, _N.D5, _N.C5,
            _N.B4, _N.C5, _N.D5, _N.E5,
            _N.C5, _N.A4, _N.A4,
        ),
        (
            4, 8, 8, 4, 8, 8,
            4, 8, 8, 4, 8, 8,
            -4, 8, 4, 4,
            4, 4, 8, 4,
            -4, 8, 4, 8, 8,
            -4, 8, 4, 8, 8,
            4, 8, 8, 4, 4,
            4, 4, 4,
        ),
        144,
    ),
    SongType.NOKIA_RINGTONE: (
        (
            _N.E5, _N.D5, _N.FS4, _N.GS4,
            _N.CS5, _N.B4, _N.D4, _N.E4,
            _N.B4, _N.A4, _N.CS4, _N.E4,
            _N.A4,
        ),
        (
            8, 8, 4, 4,
            8, 8, 4, 4,
            8, 8, 4, 4,
            2,
        ),
        120,
    ),
}


def note_schedule(melody, durations, tempo):
    """Yield ``(frequency, sound_ms, duration_ms)`` for each note of ``melody``.

    ``sound_ms`` is 90% of the note's length, leaving a short gap before the
    next one; for a rest the frequency is 0.  Extra durations are ignored.
    """
    if len(durations) < len(melody):
        raise ValueError("fewer durations than notes")
    whole_note = (60000 * 4) // tempo
    for frequency, divider in zip(melody, durations):
        if divider > 0:
            duration = whole_note // divider
        elif divider < 0:
            duration = int((whole_note // abs(divider)) * 1.5)
        else:
            duration = 0
        yield int(frequency), int(duration * 0.9), duration


class Buzzer:
    """Plays tones and songs through ``output``.

    ``output`` provides ``tone(frequency, duration_ms)``, ``no_tone()`` and
    ``sleep(duration_ms)``.  Songs play synchronously.
    """

    def __init__(self, output):
        self._output = output
        self._playing = False

    @property
    def playing(self):
        return self._playing

    def play_song(self, song):
        """Play one of the built-in songs to the end."""
        melody, durations, tempo = SONGS[SongType(song)]
        self._play_melody(melody, durations, tempo)

    def _play_melody(self, melody, durations, tempo):
        for frequency, sound_ms, duration_ms in note_schedule(melody, durations, tempo):
            if frequency != Note.REST:
                self._output.tone(frequency, sound_ms)
            self._output.sleep(duration_ms)
            self._output.no_tone()

    def play_tone(self, frequency, duration):
        """Start a tone; a non-positive frequency waits ``duration`` ms instead."""
        if frequency > 0:
            self._output.tone(frequency, duration)
        else:
            self._output.sleep(duration)

    def stop_tone(self):
        self._output.no_tone()
        self._playing = False