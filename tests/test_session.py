import pytest

from tws.transfer.session import TransferMode, TransferSession


def fixed(total, buffer_size=16384):
    return TransferSession.for_source(total, buffer_size, 'text/plain')


def streaming(buffer_size=16384):
    return TransferSession.for_source(-1, buffer_size, 'text/plain')


class TestTransferSession:
    def test_mode_from_size(self):
        assert fixed(0).mode is TransferMode.FIXED_LENGTH
        assert streaming().mode is TransferMode.STREAMING
        assert streaming().total_bytes == -1

    def test_buffer_size_must_be_positive(self):
        with pytest.raises(ValueError):
            fixed(10, buffer_size=0)

    def test_fixed_length_needs_size(self):
        with pytest.raises(ValueError):
            TransferSession(TransferMode.FIXED_LENGTH, -1, 1024, 'text/plain')

    def test_next_read_size_capped_by_remaining(self):
        session = fixed(100000)
        session.record_sent(6 * 16384)

        assert session.remaining == 1696
        assert session.next_read_size() == 1696

        session.record_sent(1696)
        assert session.next_read_size() == 0

    def test_streaming_reads_full_buffer(self):
        session = streaming(4096)
        session.record_sent(10 ** 9)

        assert session.next_read_size() == 4096
        assert session.remaining == -1

    def test_cannot_overshoot_content_length(self):
        session = fixed(10)
        session.record_sent(8)

        with pytest.raises(ValueError):
            session.record_sent(3)
        assert session.sent_bytes == 8

    def test_negative_count_refused(self):
        with pytest.raises(ValueError):
            fixed(10).record_sent(-1)

    def test_throughput(self):
        session = fixed(1000)
        session.start(100.0)
        session.record_sent(500)

        assert session.throughput(100.0) == 0.0
        assert session.throughput(102.0) == 250.0

    def test_percent(self):
        session = fixed(200)
        assert session.percent() == 0
        session.record_sent(50)
        assert session.percent() == 25
        session.record_sent(150)
        assert session.percent() == 100

        assert fixed(0).percent() == 0
        assert streaming().percent() == 0

    def test_eta(self):
        session = fixed(100)
        session.start(0.0)

        assert session.display_time(5.0) == 0.0  # nothing sent yet

        session.record_sent(25)
        assert session.display_time(10.0) == pytest.approx(30.0)

    def test_streaming_display_is_elapsed(self):
        session = streaming()
        session.start(10.0)
        session.record_sent(1)

        assert session.display_time(17.5) == 7.5

    def test_refresh_bookkeeping(self):
        session = fixed(10)
        session.start(0.0)

        assert not session.refresh_due(0.3, 0.3)
        assert session.refresh_due(0.31, 0.3)

        session.mark_refreshed(0.31)
        assert session.interval_count == 1
        assert not session.refresh_due(0.5, 0.3)
