import unittest

from twin_client.notify import (
    BUZZ_TONE,
    BUZZ_VIBRATION_MS,
    MESSAGE_TONE,
    Arrival,
    NotificationEngine,
    classify_arrival,
)
from twin_client.session_store import MemorySessionStorage, SessionContext

from tests.helpers.recording import RecordingPresentation, RecordingSink, message


class ClassifyArrivalTests(unittest.TestCase):
    def test_own_messages_are_echoes(self) -> None:
        self.assertIs(classify_arrival(message(1, mine=True)), Arrival.OWN_ECHO)
        self.assertIs(classify_arrival(message(2, mine=True, buzz=True)), Arrival.OWN_ECHO)

    def test_unread_incoming_buzz(self) -> None:
        self.assertIs(classify_arrival(message(1, buzz=True)), Arrival.INCOMING_BUZZ)

    def test_read_buzz_falls_back_to_text(self) -> None:
        self.assertIs(classify_arrival(message(1, buzz=True, read=True)), Arrival.INCOMING_TEXT)

    def test_plain_incoming_text(self) -> None:
        self.assertIs(classify_arrival(message(1)), Arrival.INCOMING_TEXT)


class NotificationEngineTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session = SessionContext(MemorySessionStorage())
        self.sink = RecordingSink(granted=True)
        self.view = RecordingPresentation()
        self.engine = NotificationEngine(self.session, self.sink, self.view)

    def test_buzz_plays_tone_vibrates_and_shakes(self) -> None:
        self.engine.handle_arrivals([message(1, buzz=True)])
        self.assertEqual(self.sink.tones, [BUZZ_TONE])
        self.assertEqual(self.sink.vibrations, [BUZZ_VIBRATION_MS])
        self.assertEqual(self.view.shakes, [(10, 8, True)])

    def test_own_echo_is_silent(self) -> None:
        self.engine.handle_arrivals([message(1, mine=True), message(2, mine=True, buzz=True)])
        self.assertEqual(self.sink.tones, [])
        self.assertEqual(self.view.shakes, [])

    def test_text_in_foreground_plays_tone_without_os_notification(self) -> None:
        self.engine.handle_arrivals([message(1)])
        self.assertEqual(self.sink.tones, [MESSAGE_TONE])
        self.assertEqual(self.sink.notifications, [])

    def test_text_in_background_counts_pending(self) -> None:
        self.view.foreground = False
        self.engine.handle_arrivals([message(1), message(2)])
        bodies = [n.body for n in self.sink.notifications]
        self.assertEqual(bodies, ["You have 1 new message(s).", "You have 2 new message(s)."])
        self.assertTrue(all(n.tag == "new-message" for n in self.sink.notifications))
        self.engine.mark_seen()
        self.engine.handle_arrivals([message(3)])
        self.assertEqual(self.sink.notifications[-1].body, "You have 1 new message(s).")

    def test_initial_history_text_is_silent_but_unread_buzz_alerts(self) -> None:
        self.engine.handle_arrivals([message(1), message(2, buzz=True)], initial=True)
        self.assertEqual(self.sink.tones, [BUZZ_TONE])

    def test_returning_to_foreground_restarts_pending_count(self) -> None:
        self.view.foreground = False
        self.engine.handle_arrivals([message(1), message(2)])
        self.view.foreground = True
        self.engine.foreground_changed(True)
        self.view.foreground = False
        self.engine.handle_arrivals([message(3)])
        self.assertEqual(self.sink.notifications[-1].body, "You have 1 new message(s).")

    def test_text_seen_in_foreground_clears_pending(self) -> None:
        self.view.foreground = False
        self.engine.handle_arrivals([message(1), message(2)])
        self.view.foreground = True
        self.engine.handle_arrivals([message(3)])
        self.assertEqual(self.engine.pending, 0)

    def test_initial_history_text_counts_nothing_in_background(self) -> None:
        self.view.foreground = False
        self.engine.handle_arrivals([message(1), message(2)], initial=True)
        self.assertEqual(self.sink.tones, [])
        self.assertEqual(self.sink.notifications, [])
        self.assertEqual(self.engine.pending, 0)

    def test_preference_off_mutes_audio_haptics_and_os(self) -> None:
        self.session.set_sound_enabled(False)
        self.view.foreground = False
        self.engine.handle_arrivals([message(1), message(2, buzz=True)])
        self.engine.handle_unread_increase(3)
        self.assertEqual(self.sink.tones, [])
        self.assertEqual(self.sink.vibrations, [])
        self.assertEqual(self.sink.notifications, [])
        self.assertEqual(self.view.shakes, [(10, 8, True)])

    def test_os_notification_needs_permission(self) -> None:
        self.sink.granted = False
        self.view.foreground = False
        self.engine.handle_arrivals([message(1)])
        self.assertEqual(self.sink.notifications, [])
        self.assertEqual(self.sink.tones, [MESSAGE_TONE])

    def test_unread_increase_notifies_with_delta(self) -> None:
        self.engine.handle_unread_increase(4)
        self.engine.handle_unread_increase(0)
        self.assertEqual([n.body for n in self.sink.notifications], ["You have 4 new message(s)."])
        self.assertEqual(self.sink.tones, [MESSAGE_TONE])

    def test_permission_requested_once(self) -> None:
        self.engine.request_permission_once()
        self.engine.request_permission_once()
        self.assertEqual(self.sink.permission_requests, 1)

    def test_toggle_sound_confirms_when_enabling(self) -> None:
        self.assertFalse(self.engine.toggle_sound())
        self.assertEqual(self.sink.tones, [])
        self.assertTrue(self.engine.toggle_sound())
        self.assertEqual(self.sink.tones, [MESSAGE_TONE])

    def test_buzz_sent_shakes_gently(self) -> None:
        self.engine.buzz_sent()
        self.assertEqual(self.view.shakes, [(5, 3, False)])


if __name__ == "__main__":
    unittest.main()
