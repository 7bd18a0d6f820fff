from frontend.typewriter import LONG_WORD_DELAY, SHORT_WORD_DELAY, Typewriter, typing_frames, word_delay


def test_word_delay():
    assert word_delay("cat") == SHORT_WORD_DELAY
    assert word_delay("sixsix") == SHORT_WORD_DELAY
    assert word_delay("seventh") == LONG_WORD_DELAY


def test_frames_reveal_word_by_word():
    frames = [text for text, _ in typing_frames("Use the quadratic formula")]
    assert frames == ["Use", "Use the", "Use the quadratic", "Use the quadratic formula"]


def test_frames_keep_original_spacing():
    frames = list(typing_frames("a  b"))
    assert frames[-1][0] == "a  b"


def test_type_out_renders_every_frame():
    sleeps, rendered = [], []
    typewriter = Typewriter(sleep=sleeps.append)

    finished = typewriter.type_out("one two three", rendered.append, typewriter.new_token())

    assert finished is True
    assert rendered == ["one", "one two", "one two three"]
    assert sleeps == [SHORT_WORD_DELAY] * 3


def test_newer_token_stops_older_animation():
    rendered = []
    typewriter = Typewriter(sleep=lambda _: None)
    token = typewriter.new_token()

    def render(text):
        rendered.append(text)
        typewriter.new_token()

    assert typewriter.type_out("one two three", render, token) is False
    assert rendered == ["one"]


def test_cancel_and_visibility_stop_animation():
    typewriter = Typewriter(sleep=lambda _: None)
    token = typewriter.new_token()
    typewriter.cancel()
    assert typewriter.type_out("one two", lambda _: None, token) is False

    rendered = []
    assert typewriter.type_out("one two", rendered.append, typewriter.new_token(),
                               still_visible=lambda: False) is False
    assert rendered == []
