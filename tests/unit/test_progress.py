from __future__ import annotations

from unittest.mock import Mock, patch

from schedule_importer.services.progress import PhaseProgress, SheetProgressIndicator, is_tty_enabled


def test_is_tty_enabled_returns_stdout_isatty():
    with patch("sys.stdout.isatty", return_value=True):
        assert is_tty_enabled() is True
    with patch("sys.stdout.isatty", return_value=False):
        assert is_tty_enabled() is False


class TestPhaseProgress:
    def test_init_with_tty_enabled(self):
        with patch("schedule_importer.services.progress.is_tty_enabled", return_value=True), \
             patch("schedule_importer.services.progress.tqdm") as mock_tqdm:
            progress = PhaseProgress(6)

            assert progress.enabled is True
            mock_tqdm.assert_called_once_with(
                total=6,
                desc="Importing",
                unit="phase",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )

    def test_init_with_tty_disabled(self):
        with patch("schedule_importer.services.progress.is_tty_enabled", return_value=False):
            progress = PhaseProgress(6)
            assert progress.enabled is False
            assert progress.pbar is None
            # 無効時も呼び出しは安全
            progress.start_phase("booths")
            progress.finish_phase(ok=1)
            progress.close()
            assert progress.current_phase == 1

    def test_phase_lifecycle_updates_bar(self):
        mock_pbar = Mock()
        with patch("schedule_importer.services.progress.is_tty_enabled", return_value=True), \
             patch("schedule_importer.services.progress.tqdm", return_value=mock_pbar):
            with PhaseProgress(6) as progress:
                progress.start_phase("booths")
                assert progress.current_label == "booths"
                mock_pbar.set_description.assert_called_with("Importing (booths)")

                progress.finish_phase(ok=3, failed=0)
                mock_pbar.set_postfix.assert_called_once_with(ok=3, failed=0)
                mock_pbar.update.assert_called_once_with(1)
                assert progress.current_label is None

        mock_pbar.close.assert_called_once()


class TestSheetProgressIndicator:
    def test_prints_status_when_enabled(self, capsys):
        with patch("schedule_importer.services.progress.is_tty_enabled", return_value=True):
            indicator = SheetProgressIndicator("schedule.xlsx", 2)
            indicator.start_sheet("2024-05-01")
            indicator.finish_sheet(success=True, sessions_parsed=4)
            indicator.start_sheet("Notes")
            indicator.finish_sheet(success=False)

        out = capsys.readouterr().out
        assert "Sheet 1/2: 2024-05-01 - 4 sessions ✓" in out
        assert "Sheet 2/2: Notes ✗" in out

    def test_silent_when_disabled(self, capsys):
        with patch("schedule_importer.services.progress.is_tty_enabled", return_value=False):
            indicator = SheetProgressIndicator("schedule.xlsx", 1)
            indicator.start_sheet("2024-05-01")
            indicator.finish_sheet(success=True, sessions_parsed=1)
        assert capsys.readouterr().out == ""
