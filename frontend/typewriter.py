import time
from typing import Callable, Iterator, Tuple

LONG_WORD_LENGTH = 6
SHORT_WORD_DELAY = 0.04
LONG_WORD_DELAY = 0.08

def word_delay(word: str) -> float:
    """Pause after revealing a word; longer words take a little longer"""
    return LONG_WORD_DELAY if len(word) > LONG_WORD_LENGTH else SHORT_WORD_DELAY

def typing_frames(content: str) -> Iterator[Tuple[str, float]]:
    """Yield the progressively revealed text and the pause that follows it"""
    revealed = ""
    for i, word in enumerate(content.split(" ")):
        revealed += (" " if i > 0 else "") + word
        yield revealed, word_delay(word)

class Typewriter:
    """Word-by-word reveal of assistant answers.

    Each animation runs under a render token. Issuing a new token (a new
    animation, or cancel()) makes every older animation stop before its next
    frame.
    """

    def __init__(self, sleep: Callable[[float], None] = time.sleep):
        self._sleep = sleep
        self._latest_token = 0

    def new_token(self) -> int:
        self._latest_token += 1
        return self._latest_token

    def cancel(self) -> None:
        self._latest_token += 1

    def is_current(self, token: int) -> bool:
        return token == self._latest_token

    def type_out(self, content: str, render: Callable[[str], None], token: int,
                 still_visible: Callable[[], bool] = lambda: True) -> bool:
        """Render ``content`` frame by frame; False if the animation was abandoned"""
        for revealed, delay in typing_frames(content):
            if not self.is_current(token) or not still_visible():
                return False
            render(revealed)
            self._sleep(delay)
        return True
