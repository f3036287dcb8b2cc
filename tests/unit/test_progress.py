from __future__ import annotations

from unittest.mock import patch

from stock_intake.services.progress import MIN_ROWS_FOR_BAR, RowProgress


def test_disabled_when_not_tty():
    with patch("stock_intake.services.progress.is_tty_enabled", return_value=False):
        with RowProgress(MIN_ROWS_FOR_BAR * 2) as progress:
            progress.advance(3)
    assert progress.enabled is False
    assert progress.pbar is None
    assert progress.done == 3


def test_disabled_for_small_sheets():
    with patch("stock_intake.services.progress.is_tty_enabled", return_value=True):
        progress = RowProgress(MIN_ROWS_FOR_BAR - 1)
    assert progress.enabled is False


def test_enabled_on_tty_for_large_sheets():
    with patch("stock_intake.services.progress.is_tty_enabled", return_value=True), \
            patch("stock_intake.services.progress.tqdm") as fake_tqdm:
        with RowProgress(MIN_ROWS_FOR_BAR, description="Validating rows") as progress:
            progress.advance()
        bar = fake_tqdm.return_value
        fake_tqdm.assert_called_once()
        assert fake_tqdm.call_args.kwargs["total"] == MIN_ROWS_FOR_BAR
        bar.update.assert_called_once_with(1)
        bar.close.assert_called_once()
