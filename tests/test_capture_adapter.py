"""Tests for the speech capture adapter."""

import asyncio

import pytest

from config.settings import Settings
from schemas.transcript import SegmentKind
from speech.capture_adapter import SpeechCaptureAdapter
from speech.recognizer import NullMicrophone, ScriptedRecognizer


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


class RecognizerSupply:
    """Recognizer factory that records every instance it creates."""

    def __init__(self, fail_starts_after_first=0, first_fail_starts=0):
        self.created = []
        self.fail_starts_after_first = fail_starts_after_first
        self.first_fail_starts = first_fail_starts

    def __call__(self):
        fail_starts = self.first_fail_starts if not self.created else self.fail_starts_after_first
        recognizer = ScriptedRecognizer(fail_starts=fail_starts)
        self.created.append(recognizer)
        return recognizer


class TestSpeechCaptureAdapter:
    """Test restart, recovery and silence behavior."""

    def setup_method(self):
        """Set up test fixtures."""
        self.settings = Settings(
            restart_delay_s=0.01,
            error_backoff_step_s=0.01,
            error_backoff_cap_s=0.05,
            silence_check_interval_s=10.0,
            status_display_s=0.05,
        )
        self.capture_wanted = True
        self.clock = FakeClock()
        self.supply = RecognizerSupply()
        self.microphone = NullMicrophone()
        self.adapter = self.make_adapter(self.supply)

    def make_adapter(self, factory):
        return SpeechCaptureAdapter(
            recognizer_factory=factory,
            should_capture=lambda: self.capture_wanted,
            microphone=self.microphone,
            settings=self.settings,
            clock=self.clock,
        )

    async def started_adapter(self):
        await self.adapter.acquire_microphone()
        assert self.adapter.initialize() is True
        assert await self.adapter.start() is True
        return self.adapter.recognizer

    @pytest.mark.asyncio
    async def test_start_activates_recognition(self):
        """Test a normal start."""
        recognizer = await self.started_adapter()

        assert self.adapter.active is True
        assert recognizer.start_calls == 1
        assert self.microphone.acquired is True

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_start_skipped_when_capture_not_wanted(self):
        """Test that start asks the live capture query."""
        self.capture_wanted = False
        self.adapter.initialize()

        assert await self.adapter.start() is False
        assert self.adapter.recognizer.start_calls == 0

    @pytest.mark.asyncio
    async def test_unsupported_recognizer(self):
        """Test that a factory returning None reports unsupported."""
        adapter = self.make_adapter(lambda: None)

        assert adapter.initialize() is False
        assert await adapter.start() is False

    @pytest.mark.asyncio
    async def test_start_failure_reinitializes_once(self):
        """Test that a refused start recreates the recognizer and retries."""
        supply = RecognizerSupply(first_fail_starts=1)
        self.adapter = self.make_adapter(supply)

        await self.adapter.acquire_microphone()
        self.adapter.initialize()
        started = await self.adapter.start()

        assert started is True
        assert len(supply.created) == 2
        assert self.adapter.recognizer is supply.created[1]

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_unexpected_end_restarts(self):
        """Test that recognition restarts after ending on its own."""
        recognizer = await self.started_adapter()

        await recognizer.stop()
        assert self.adapter.active is False
        await asyncio.sleep(0.05)

        assert self.adapter.active is True
        assert recognizer.start_calls == 2

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_no_speech_is_not_an_error(self):
        """Test that a no-speech event does not count as an error."""
        errors = []
        self.adapter.on_error = errors.append
        recognizer = await self.started_adapter()

        recognizer.fail("no-speech")
        await asyncio.sleep(0.05)

        assert errors == []
        assert self.adapter.error_count == 0
        assert self.adapter.show_recognition_status is False
        assert self.adapter.active is True

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_recoverable_error_shows_status_briefly(self):
        """Test the transient recognition-status flag."""
        recognizer = await self.started_adapter()

        recognizer.fail("network")

        assert self.adapter.error_count == 1
        assert self.adapter.show_recognition_status is True
        await asyncio.sleep(0.1)
        assert self.adapter.show_recognition_status is False

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_repeated_errors_trigger_reinitialization(self):
        """Test that four consecutive errors recreate the recognizer."""
        await self.started_adapter()
        first = self.supply.created[0]

        for _ in range(4):
            first.fail("network")
            await asyncio.sleep(0.1)

        assert len(self.supply.created) == 2
        assert self.adapter.recognizer is self.supply.created[1]
        assert self.adapter.active is True
        assert self.adapter.error_count == 0

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_no_reinitialization_below_threshold(self):
        """Test that three errors only restart the existing recognizer."""
        recognizer = await self.started_adapter()

        for _ in range(3):
            recognizer.fail("network")
            await asyncio.sleep(0.1)

        assert len(self.supply.created) == 1
        assert self.adapter.error_count == 3
        assert self.adapter.active is True

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_reinitialization_failures_are_fatal(self):
        """Test that repeatedly failing re-initialization reports a fatal error."""
        supply = RecognizerSupply(fail_starts_after_first=1)
        self.adapter = self.make_adapter(supply)
        fatal = []
        self.adapter.on_fatal = fatal.append
        recognizer = await self.started_adapter()

        for _ in range(4):
            recognizer.fail("network")
            await asyncio.sleep(0.1)
        await asyncio.sleep(0.3)

        assert len(fatal) == 1
        assert "reconnect" in fatal[0]
        assert self.adapter.reinit_failures == self.settings.max_reinit_failures

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_no_restart_when_capture_not_wanted(self):
        """Test that ending while paused does not restart."""
        recognizer = await self.started_adapter()

        self.capture_wanted = False
        recognizer.fail("network")
        await asyncio.sleep(0.1)

        assert self.adapter.active is False
        assert recognizer.start_calls == 1

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_pending_restart_rechecks_conditions(self):
        """Test that a restart timer re-checks capture conditions when it fires."""
        recognizer = await self.started_adapter()

        recognizer.fail("network")
        self.capture_wanted = False
        await asyncio.sleep(0.1)

        assert recognizer.start_calls == 1
        assert self.adapter.active is False

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_result_resets_error_count(self):
        """Test that delivered speech clears the error counter."""
        recognizer = await self.started_adapter()
        recognizer.fail("network")
        await asyncio.sleep(0.05)
        assert self.adapter.error_count == 1

        recognizer.say("hello")

        assert self.adapter.error_count == 0

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_partial_and_final_segments(self):
        """Test that results become transcript segments with word timings."""
        partials = []
        finals = []
        self.adapter.on_partial = partials.append
        self.adapter.on_final = finals.append
        recognizer = await self.started_adapter()

        recognizer.say("hello wor", confidence=0.5, is_final=False)
        recognizer.say("hello world", confidence=0.9)

        assert partials[0].kind == SegmentKind.PARTIAL
        assert finals[0].kind == SegmentKind.FINAL
        assert finals[0].text == "hello world"
        assert [w.word for w in finals[0].words] == ["hello", "world"]
        assert finals[0].words[0].end_ms <= finals[0].words[1].start_ms
        assert finals[0].audio_end_ms - finals[0].audio_start_ms == pytest.approx(2000.0)

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_silence_detection(self):
        """Test the advisory listening-without-speech flag."""
        flags = []
        self.adapter.on_listening_no_speech = flags.append
        recognizer = await self.started_adapter()

        self.clock.now += 5
        assert self.adapter.check_silence() is False

        self.clock.now += 4
        assert self.adapter.check_silence() is True
        assert self.adapter.listening_no_speech is True

        recognizer.say("I'm here")
        assert self.adapter.listening_no_speech is False
        assert flags == [True, False]

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_silence_flag_requires_capture(self):
        """Test that the silence flag stays off while paused."""
        await self.started_adapter()

        self.capture_wanted = False
        self.clock.now += 20

        assert self.adapter.check_silence() is False

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_suspend_stops_without_restart(self):
        """Test suspend while capture is no longer wanted."""
        recognizer = await self.started_adapter()

        self.capture_wanted = False
        await self.adapter.suspend()
        await asyncio.sleep(0.05)

        assert self.adapter.active is False
        assert recognizer.stop_calls == 1
        assert self.microphone.paused is True

        await self.adapter.teardown()

    @pytest.mark.asyncio
    async def test_teardown_is_idempotent(self):
        """Test that teardown releases everything and can repeat."""
        recognizer = await self.started_adapter()

        await self.adapter.teardown()
        await self.adapter.teardown()

        assert self.adapter.recognizer is None
        assert self.adapter.active is False
        assert self.microphone.acquired is False
        assert recognizer.stop_calls == 1
        assert await self.adapter.start() is False

    @pytest.mark.asyncio
    async def test_refused_start_schedules_recovery(self):
        """Test that a start refused twice falls back to the backoff policy."""
        supply = RecognizerSupply(first_fail_starts=1, fail_starts_after_first=1)
        self.adapter = self.make_adapter(supply)
        await self.adapter.acquire_microphone()
        self.adapter.initialize()

        started = await self.adapter.start()

        assert started is False
        assert self.adapter.error_count == 1
        await asyncio.sleep(0.1)
        assert self.adapter.active is True
        assert len(supply.created) == 2

        await self.adapter.teardown()
