# ===================================================================================
# ==                 DSP Latency Test: Sender Tests                                ==
# ===================================================================================

import asyncio
import random

import pytest
import zmq

from dsp_latency.channels.sender import Sender
from dsp_latency.channels.sockets import bind_push
from dsp_latency.correlation.store import CorrelationStore

from conftest import FakePushSocket


def make_sender(socket, store, seed=1234, drain_timeout=0.0, **kwargs):
    return Sender(
        socket,
        store,
        rng=random.Random(seed),
        drain_timeout_seconds=drain_timeout,
        drain_poll_seconds=0.01,
        **kwargs,
    )


class TestSendPhase:
    """Request generation, wire format and store bookkeeping."""

    @pytest.mark.asyncio
    async def test_rate_10_for_half_a_second_sends_five(self, fake_push_socket, domains, ips):
        """Exactly 5 requests with ids 1..5."""
        store = CorrelationStore()
        sender = make_sender(fake_push_socket, store)

        result = await sender.run(10, 0.5, domains, ips)

        assert result.sent == 5
        assert fake_push_socket.sent_ids == [1, 2, 3, 4, 5]
        assert len(set(fake_push_socket.sent_ids)) == 5
        assert store.sent == 5
        assert store.pending == 5
        assert all(i in store for i in range(1, 6))

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate,duration,expected", [
        (200, 0.05, 10),
        (3, 0.5, 2),
        (20, 0.125, 3),
        (50, 0, 0),
    ])
    async def test_request_count_is_rounded_product(self, domains, ips, rate, duration, expected):
        socket = FakePushSocket()
        store = CorrelationStore()

        result = await make_sender(socket, store).run(rate, duration, domains, ips)

        assert result.sent == expected
        assert store.sent == expected

    @pytest.mark.asyncio
    async def test_frames_carry_id_domain_and_ip(self, fake_push_socket, domains, ips):
        await make_sender(fake_push_socket, CorrelationStore()).run(1000, 0.003, domains, ips)

        for expected_id, frames in enumerate(fake_push_socket.sent, start=1):
            assert len(frames) == 3
            assert frames[0] == expected_id.to_bytes(4, "big")
            assert frames[1].decode() in domains
            assert frames[2].decode() in ips

    @pytest.mark.asyncio
    async def test_seeded_payload_selection_is_reproducible(self, domains, ips):
        first, second = FakePushSocket(), FakePushSocket()

        await make_sender(first, CorrelationStore(), seed=7).run(1000, 0.02, domains, ips)
        await make_sender(second, CorrelationStore(), seed=7).run(1000, 0.02, domains, ips)

        assert first.sent == second.sent

    @pytest.mark.asyncio
    async def test_failed_send_is_not_recorded_or_retried(self, domains, ips):
        socket = FakePushSocket(fail_ids={3})
        store = CorrelationStore()

        result = await make_sender(socket, store).run(1000, 0.005, domains, ips)

        assert result.sent == 4
        assert result.failed == 1
        assert socket.sent_ids == [1, 2, 4, 5]
        assert 3 not in store

    @pytest.mark.asyncio
    async def test_socket_closed_with_linger(self, fake_push_socket, domains, ips):
        sender = make_sender(fake_push_socket, CorrelationStore(), linger_ms=1000)

        await sender.run(1000, 0.002, domains, ips)
        sender.close()

        assert fake_push_socket.close_calls == 1
        assert fake_push_socket.linger == 1000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("rate,duration", [(0, 1), (-5, 1), (10, -1)])
    async def test_invalid_rate_or_duration_rejected(self, fake_push_socket, domains, ips, rate, duration):
        with pytest.raises(ValueError):
            await make_sender(fake_push_socket, CorrelationStore()).run(rate, duration, domains, ips)

    @pytest.mark.asyncio
    async def test_empty_pools_rejected(self, fake_push_socket, domains):
        with pytest.raises(ValueError):
            await make_sender(fake_push_socket, CorrelationStore()).run(10, 1, domains, [])


class TestPacing:
    """Schedule-from-start pacing."""

    @pytest.mark.asyncio
    async def test_requests_never_sent_before_their_slot(self, fake_push_socket, domains, ips):
        sender = make_sender(fake_push_socket, CorrelationStore())

        await sender.run(100, 0.2, domains, ips)

        tick_us = 1_000
        assert len(fake_push_socket.send_times) == 20
        for i, sent_at in enumerate(fake_push_socket.send_times):
            offset_us = (sent_at - sender.started_ns) // 1_000
            assert offset_us >= i * 10_000 - tick_us

    @pytest.mark.asyncio
    async def test_send_phase_tracks_schedule_without_drift(self, fake_push_socket, domains, ips):
        sender = make_sender(fake_push_socket, CorrelationStore())

        result = await sender.run(100, 0.3, domains, ips)

        # last slot is due at 290ms; cumulative drift would push it well past
        last_offset_s = (fake_push_socket.send_times[-1] - sender.started_ns) / 1e9
        assert 0.289 <= last_offset_s < 0.5
        assert result.elapsed_seconds >= last_offset_s

    @pytest.mark.asyncio
    async def test_late_loop_sends_immediately(self, domains, ips):
        """After a stall the backlog goes out without extra delay."""
        socket = FakePushSocket()
        store = CorrelationStore()
        sender = make_sender(socket, store)
        original_send = socket.send_multipart
        stalled = False

        async def stalling_send(frames, flags=0):
            nonlocal stalled
            await original_send(frames, flags)
            if not stalled:
                stalled = True
                await asyncio.sleep(0.1)

        socket.send_multipart = stalling_send

        await sender.run(100, 0.1, domains, ips)

        # slots 1..9 were all due by the end of the stall
        backlog = socket.send_times[1:10]
        assert (backlog[-1] - backlog[0]) / 1e9 < 0.02


class TestDrain:
    """Bounded wait for outstanding replies."""

    @pytest.mark.asyncio
    async def test_no_replies_waits_full_window(self, fake_push_socket, domains, ips):
        """Pending is unchanged after the drain window."""
        store = CorrelationStore()
        sender = make_sender(fake_push_socket, store, drain_timeout=0.3)

        result = await sender.run(100, 0.05, domains, ips)

        assert result.drained is False
        assert store.pending == 5
        assert store.received == 0
        assert result.elapsed_seconds >= 0.3

    @pytest.mark.asyncio
    async def test_drain_ends_when_all_replies_arrive(self, fake_push_socket, domains, ips):
        store = CorrelationStore()
        sender = make_sender(fake_push_socket, store, drain_timeout=5.0)

        async def reply_later():
            while store.sent < 5:
                await asyncio.sleep(0.005)
            await asyncio.sleep(0.05)
            for request_id in range(1, 6):
                store.record_reply(request_id)

        replier = asyncio.create_task(reply_later())
        result = await sender.run(100, 0.05, domains, ips)
        await replier

        assert result.drained is True
        assert store.pending == 0
        assert result.elapsed_seconds < 1.0


class TestPeerWait:
    """Behaviour when the DSP is late or never connects."""

    @pytest.mark.asyncio
    async def test_waits_for_peer_before_sending(self, fake_push_socket, domains, ips):
        sender = make_sender(fake_push_socket, CorrelationStore(), peer_wait_seconds=2.5)

        await sender.run(100, 0.02, domains, ips)

        assert fake_push_socket.poll_calls == [(2500, zmq.POLLOUT)]

    @pytest.mark.asyncio
    async def test_no_peer_counts_requests_as_failed(self, domains, ips):
        socket = FakePushSocket(peer_connected=False)
        store = CorrelationStore()
        sender = make_sender(socket, store, peer_wait_seconds=0.05)

        result = await sender.run(100, 0.05, domains, ips)

        assert result.sent == 0
        assert result.failed == 5
        assert result.drained is True
        assert store.sent == 0
        assert socket.closed

    @pytest.mark.asyncio
    async def test_bound_socket_without_peer_does_not_hang(self, zmq_context, inproc_address, domains, ips):
        store = CorrelationStore()
        socket = bind_push(zmq_context, inproc_address("nobody"), linger_ms=0)
        sender = make_sender(socket, store, drain_timeout=0.3, peer_wait_seconds=0.1, linger_ms=0)

        result = await asyncio.wait_for(sender.run(10, 0.2, domains, ips), timeout=5)

        assert result.sent == 0
        assert result.failed == 2
        assert store.sent == 0
        assert store.pending == 0

    @pytest.mark.asyncio
    async def test_late_peer_receives_every_request(self, zmq_context, inproc_address, domains, ips):
        address = inproc_address("late")
        store = CorrelationStore()
        socket = bind_push(zmq_context, address)
        sender = make_sender(socket, store, peer_wait_seconds=2.0)
        dsp = zmq_context.socket(zmq.PULL)

        async def connect_later():
            await asyncio.sleep(0.1)
            dsp.connect(address)

        connector = asyncio.create_task(connect_later())
        result = await asyncio.wait_for(sender.run(100, 0.05, domains, ips), timeout=5)
        await connector

        received = [await asyncio.wait_for(dsp.recv_multipart(), timeout=2) for _ in range(5)]
        dsp.close(linger=0)

        assert result.sent == 5
        assert result.failed == 0
        assert [int.from_bytes(frames[0], "big") for frames in received] == [1, 2, 3, 4, 5]
