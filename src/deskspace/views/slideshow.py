"""Timer state machine driving the present projection."""

from enum import Enum

from pydantic import BaseModel

from deskspace.desktop.schemas import PRESENT_DELAY_MAX, PRESENT_DELAY_MIN


class SlideshowState(str, Enum):
    """Whether the slideshow is advancing on its own."""

    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"


class EndBehavior(str, Enum):
    """What auto-advance does after the last slide."""

    LOOP = "loop"
    STOP = "stop"


class SlideshowStatus(BaseModel):
    """Point-in-time view of a slideshow.

    Attributes:
        state: Current timer state.
        index: Slide currently shown.
        remaining_ms: Time until the next auto-advance, if one is pending.
    """

    state: SlideshowState
    index: int
    remaining_ms: int | None = None


class Slideshow:
    """Cooperative slideshow timer.

    Time is passed in explicitly as milliseconds, so the machine never
    reads a clock and can be driven deterministically. While playing,
    ``poll`` advances one slide for every full delay that has elapsed.
    Manual navigation restarts the countdown; pausing keeps both the
    current slide and the time left on the countdown.
    """

    def __init__(
        self,
        slide_count: int,
        delay_ms: int = 5000,
        *,
        auto: bool = False,
        end_behavior: EndBehavior = EndBehavior.LOOP,
        now_ms: int = 0,
    ) -> None:
        """Initialize slideshow.

        Args:
            slide_count: Number of slides in the deck.
            delay_ms: Auto-advance delay, clamped to the supported range.
            auto: Start playing immediately. When False the show starts
                idle and never advances on its own.
            end_behavior: Wrap to the first slide or stop on the last.
            now_ms: Current time.

        Raises:
            ValueError: If slide_count is negative.
        """
        if slide_count < 0:
            raise ValueError("slide_count must not be negative")
        self.slide_count = slide_count
        self.delay_ms = min(max(delay_ms, PRESENT_DELAY_MIN), PRESENT_DELAY_MAX)
        self.auto = auto
        self.end_behavior = end_behavior
        self.index = 0
        self.state = SlideshowState.IDLE
        self._deadline: int | None = None
        self._remaining: int | None = None
        if auto:
            self.play(now_ms)

    @property
    def at_last_slide(self) -> bool:
        return self.index >= self.slide_count - 1

    def play(self, now_ms: int) -> SlideshowState:
        """Start or resume auto-advance.

        A show created with ``auto=False`` or without slides stays idle.
        """
        if not self.auto or self.slide_count == 0:
            return self.state
        if self.state is SlideshowState.PAUSED and self._remaining is not None:
            self._deadline = now_ms + self._remaining
        elif self.state is SlideshowState.IDLE:
            self._deadline = now_ms + self.delay_ms
        self._remaining = None
        self.state = SlideshowState.PLAYING
        return self.state

    def pause(self, now_ms: int) -> SlideshowState:
        """Stop auto-advance, keeping the slide and the remaining time."""
        if self.state is SlideshowState.PLAYING and self._deadline is not None:
            self._remaining = max(self._deadline - now_ms, 0)
            self._deadline = None
            self.state = SlideshowState.PAUSED
        return self.state

    def next(self, now_ms: int) -> int:
        """Go to the following slide."""
        if self.slide_count:
            if not self.at_last_slide:
                self.index += 1
            elif self.end_behavior is EndBehavior.LOOP:
                self.index = 0
        self._restart_countdown(now_ms)
        return self.index

    def prev(self, now_ms: int) -> int:
        """Go to the preceding slide."""
        if self.slide_count:
            if self.index > 0:
                self.index -= 1
            elif self.end_behavior is EndBehavior.LOOP:
                self.index = self.slide_count - 1
        self._restart_countdown(now_ms)
        return self.index

    def jump(self, index: int, now_ms: int) -> int:
        """Go straight to a slide.

        Raises:
            IndexError: If the index is outside the deck.
        """
        if not 0 <= index < self.slide_count:
            raise IndexError(f"Slide {index} out of range")
        self.index = index
        self._restart_countdown(now_ms)
        return self.index

    def poll(self, now_ms: int) -> int:
        """Apply every auto-advance due by ``now_ms`` and return the slide."""
        while (
            self.state is SlideshowState.PLAYING
            and self._deadline is not None
            and now_ms >= self._deadline
        ):
            if self.at_last_slide:
                if self.end_behavior is EndBehavior.STOP:
                    self.state = SlideshowState.IDLE
                    self._deadline = None
                    break
                self.index = 0
            else:
                self.index += 1
            self._deadline += self.delay_ms
        return self.index

    def remaining_ms(self, now_ms: int) -> int | None:
        """Time until the next auto-advance, or None when none is pending."""
        if self.state is SlideshowState.PLAYING and self._deadline is not None:
            return max(self._deadline - now_ms, 0)
        if self.state is SlideshowState.PAUSED:
            return self._remaining
        return None

    def status(self, now_ms: int) -> SlideshowStatus:
        """Current state, slide and countdown."""
        return SlideshowStatus(
            state=self.state,
            index=self.index,
            remaining_ms=self.remaining_ms(now_ms),
        )

    def _restart_countdown(self, now_ms: int) -> None:
        if self.state is SlideshowState.PLAYING:
            self._deadline = now_ms + self.delay_ms
        elif self.state is SlideshowState.PAUSED:
            self._remaining = self.delay_ms
