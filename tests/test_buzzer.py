import pytest

from flightcomputer.buzzer import SONGS, Buzzer, Note, SongType, note_schedule


class _Output:
    def __init__(self):
        self.events = []

    def tone(self, frequency, duration):
        self.events.append(("tone", frequency, duration))

    def no_tone(self):
        self.events.append(("no_tone",))

    def sleep(self, duration):
        self.events.append(("sleep", duration))

    def of_kind(self, kind):
        return [e for e in self.events if e[0] == kind]


@pytest.fixture
def out():
    return _Output()


def test_note_frequencies_match_definitions():
    schedule = note_schedule([Note.A4, Note.C6, Note.REST], [4, 4, 4], 120)
    frequencies = [frequency for frequency, _, _ in schedule]
    assert frequencies == [440, 1047, 0]


def test_startup_schedule_first_note():
    melody, durations, tempo = SONGS[SongType.STARTUP]
    first = next(note_schedule(melody, durations, tempo))
    assert first == (262, 450, 500)


def test_dotted_note_is_half_again_as_long():
    plain = list(note_schedule([Note.A4], [4], 120))[0][2]
    dotted = list(note_schedule([Note.A4], [-4], 120))[0][2]
    assert dotted == 750
    assert dotted == int(plain * 1.5)


def test_zero_divider_gives_zero_length():
    assert list(note_schedule([Note.A4], [0], 120)) == [(440, 0, 0)]


def test_sound_never_exceeds_note_length():
    for melody, durations, tempo in SONGS.values():
        for _, sound_ms, duration_ms in note_schedule(melody, durations, tempo):
            assert 0 <= sound_ms <= duration_ms


def test_extra_durations_are_ignored():
    melody, durations, tempo = SONGS[SongType.TETRIS]
    assert len(durations) > len(melody)
    assert len(list(note_schedule(melody, durations, tempo))) == len(melody)


def test_too_few_durations_raise():
    with pytest.raises(ValueError):
        list(note_schedule([Note.A4, Note.B4], [4], 120))


def test_startup_song_plays_ascending_scale(out):
    Buzzer(out).play_song(SongType.STARTUP)
    frequencies = [e[1] for e in out.of_kind("tone")]
    assert frequencies == [262, 294, 330, 349, 392, 440, 494, 523]


def test_rests_are_silent_but_still_wait(out):
    Buzzer(out).play_song(SongType.ERROR_WARNING)
    melody, _, _ = SONGS[SongType.ERROR_WARNING]
    sounded = [n for n in melody if n != Note.REST]
    assert len(out.of_kind("tone")) == len(sounded)
    assert len(out.of_kind("sleep")) == len(melody)
    assert len(out.of_kind("no_tone")) == len(melody)


def test_song_total_wait_matches_schedule(out):
    Buzzer(out).play_song(SongType.STAR_WARS)
    melody, durations, tempo = SONGS[SongType.STAR_WARS]
    expected = [d for _, _, d in note_schedule(melody, durations, tempo)]
    assert [e[1] for e in out.of_kind("sleep")] == expected


def test_play_song_accepts_value(out):
    Buzzer(out).play_song("nokia_ringtone")
    melody, _, _ = SONGS[SongType.NOKIA_RINGTONE]
    assert [e[1] for e in out.of_kind("tone")] == [int(n) for n in melody]


def test_unknown_song_raises(out):
    with pytest.raises(ValueError):
        Buzzer(out).play_song("polka")


def test_play_tone_sounds_positive_frequency(out):
    Buzzer(out).play_tone(Note.C4, 200)
    assert out.events == [("tone", Note.C4, 200)]


def test_play_tone_zero_frequency_waits(out):
    Buzzer(out).play_tone(0, 200)
    assert out.events == [("sleep", 200)]


def test_stop_tone_silences(out):
    buzzer = Buzzer(out)
    buzzer.stop_tone()
    assert out.events == [("no_tone",)]
    assert buzzer.playing is False