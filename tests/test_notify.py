"""Tests for desktop notifications."""

from unittest.mock import patch

from oob_probe.notify import APP_NAME, Notifier


class TestNotifier:
    def test_disabled_never_spawns(self):
        notifier = Notifier(enabled=False, binary="/usr/bin/notify-send")

        with patch("oob_probe.notify.subprocess.Popen") as mock_popen:
            assert notifier.notify("New connection on port 4444") is False

        mock_popen.assert_not_called()

    def test_spawns_notify_send(self):
        notifier = Notifier(binary="/usr/bin/notify-send")

        with patch("oob_probe.notify.subprocess.Popen") as mock_popen:
            assert notifier.notify("New HTTP request on port 8080") is True

        args = mock_popen.call_args.args[0]
        assert args == [
            "/usr/bin/notify-send",
            "--app-name",
            APP_NAME,
            APP_NAME,
            "New HTTP request on port 8080",
        ]

    def test_missing_binary(self):
        notifier = Notifier()

        with (
            patch("oob_probe.notify.shutil.which", return_value=None) as mock_which,
            patch("oob_probe.notify.subprocess.Popen") as mock_popen,
        ):
            assert notifier.notify("first") is False
            assert notifier.notify("second") is False

        mock_which.assert_called_once_with("notify-send")
        mock_popen.assert_not_called()

    def test_spawn_failure_is_swallowed(self):
        notifier = Notifier(binary="/usr/bin/notify-send")

        with patch("oob_probe.notify.subprocess.Popen", side_effect=OSError("no display")):
            assert notifier.notify("New connection on port 4444") is False
