"""Tests for the per-host collection cycle."""

import asyncio
from unittest.mock import MagicMock

import pytest

from src.alerts.models import AlertEvent
from src.data.blocks.window import BlockWindowCache
from src.data.chain.models import MinerChainInfo
from src.data.chain.stats import ChainStatReader
from src.monitor.host import HostMonitor
from tests.fakes import FakeChain, FakeRuntime, account_of, make_block, no_jitter


HOST = "10.0.0.2"
NOW = 1_700_010_000


def build_monitor(
    runtime: FakeRuntime,
    chain: FakeChain,
    **kwargs: object,
) -> HostMonitor:
    cache = BlockWindowCache(chain, 10)
    options: dict[str, object] = {
        "jitter": no_jitter,
        "clock": lambda: NOW,
        "account_from_mnemonic": account_of,
    }
    options.update(kwargs)
    return HostMonitor(HOST, runtime, ChainStatReader(chain, cache), MagicMock(), cache, **options)


def submitted(monitor: HostMonitor) -> list[AlertEvent]:
    return [call.args[0] for call in monitor.dispatcher.submit.call_args_list]


class TestAlerts:
    """Tests for alerts raised from chain readings."""

    @pytest.mark.asyncio
    async def test_frozen_miner_past_grace_period(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "frozen miner", created=NOW - 4000)
        chain = FakeChain(head=100)
        chain.miners["cXfrozenminer"] = MinerChainInfo(state="frozen")
        monitor = build_monitor(runtime, chain)

        assert await monitor.run_cycle()

        events = submitted(monitor)
        assert len(events) == 1
        event = events[0]
        assert event.host == HOST
        assert event.signature_acc == "cXfrozenminer"
        assert event.block_number == 100
        assert event.detail_url == "https://scan.cess.network/account/cXfrozenminer"
        assert "cXfrozenminer" in event.description
        assert "(frozen)" in event.description
        assert HOST in event.description

    @pytest.mark.asyncio
    async def test_frozen_miner_within_grace_period(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "new miner", created=NOW - 600)
        chain = FakeChain(head=100)
        chain.miners["cXnewminer"] = MinerChainInfo(state="frozen")
        monitor = build_monitor(runtime, chain)

        assert await monitor.run_cycle()

        assert submitted(monitor) == []

    @pytest.mark.asyncio
    async def test_positive_miner_is_not_alerted(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "healthy miner", created=NOW - 86400)
        chain = FakeChain(head=100)
        chain.miners["cXhealthyminer"] = MinerChainInfo(state="positive", collaterals=10**21)
        monitor = build_monitor(runtime, chain)

        assert await monitor.run_cycle()

        assert submitted(monitor) == []
        record = monitor.registry["cXhealthyminer"]
        assert record.stat.status == "positive"
        assert record.stat.collaterals == "1000.0000"

    @pytest.mark.asyncio
    async def test_punishment_alerted_every_cycle_while_in_window(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "punished miner", created=NOW - 86400)
        chain = FakeChain(head=100)
        chain.miners["cXpunishedminer"] = MinerChainInfo(state="positive")
        monitor = build_monitor(runtime, chain)
        monitor.block_cache.push(make_block(95, ("cXpunishedminer",)))
        monitor.block_cache.push(make_block(96, ("cXsomeoneelse",)))

        await monitor.run_cycle()
        await monitor.run_cycle()

        events = submitted(monitor)
        assert [event.description for event in events] == [
            "cXpunishedminer get punishment at block 95",
            "cXpunishedminer get punishment at block 95",
        ]
        assert events[0].detail_url == "https://scan.cess.network/block/95"
        assert events[0].block_number == 95
        assert events[0].host == HOST

    @pytest.mark.asyncio
    async def test_unparseable_config_is_alerted(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "unused")
        runtime.outputs["c1"] = b"\x01\x00\x00\x00\x00\x00\x00\x04- a\n"
        monitor = build_monitor(runtime, FakeChain(head=100))

        assert await monitor.run_cycle()

        assert monitor.registry == {}
        [event] = submitted(monitor)
        assert event.container_id == "c1"
        assert event.container_name == "miner-c1"
        assert event.description.startswith("Failed to parse storage node config file for container c1")
        assert event.description.endswith(f"on host: {HOST}")


class TestCycle:
    """Tests for registration, reconciliation and error isolation."""

    @pytest.mark.asyncio
    async def test_registers_only_miner_containers(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "first miner")
        runtime.add_miner("c2", "chain node", image="cesslab/cess-chain:latest")
        chain = FakeChain(head=1)
        chain.miners["cXfirstminer"] = MinerChainInfo(state="positive")
        monitor = build_monitor(runtime, chain)

        await monitor.run_cycle()
        await monitor.run_cycle()

        assert list(monitor.registry) == ["cXfirstminer"]
        assert runtime.exec_calls == ["c1"]
        container = monitor.registry["cXfirstminer"].container
        assert (container.cpu_percent, container.memory_percent, container.memory_usage) == (
            12.5,
            40.0,
            2048,
        )

    @pytest.mark.asyncio
    async def test_failing_miner_does_not_block_others(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "good one")
        runtime.add_miner("c2", "bad one")
        chain = FakeChain(head=1)
        chain.miners["cXgoodone"] = MinerChainInfo(state="positive")
        chain.miners["cXbadone"] = MinerChainInfo(state="positive")
        chain.failing["miner_info"] = {"cXbadone"}
        monitor = build_monitor(runtime, chain)

        assert await monitor.run_cycle()

        assert set(monitor.registry) == {"cXgoodone", "cXbadone"}
        assert monitor.registry["cXgoodone"].stat.status == "positive"
        assert monitor.registry["cXbadone"].stat.status == ""

    @pytest.mark.asyncio
    async def test_stats_failure_keeps_record(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "first miner")
        runtime.fail_stats.add("c1")
        chain = FakeChain(head=1)
        chain.miners["cXfirstminer"] = MinerChainInfo(state="positive")
        monitor = build_monitor(runtime, chain)

        assert await monitor.run_cycle()

        record = monitor.registry["cXfirstminer"]
        assert record.container.cpu_percent == 0.0
        assert record.stat.status == "positive"

    @pytest.mark.asyncio
    async def test_account_derivation_failure_skips_container(self) -> None:
        def reject(mnemonic: str) -> str:
            raise ValueError("invalid mnemonic")

        runtime = FakeRuntime()
        runtime.add_miner("c1", "first miner")
        monitor = build_monitor(runtime, FakeChain(head=1), account_from_mnemonic=reject)

        assert await monitor.run_cycle()

        assert monitor.registry == {}
        assert submitted(monitor) == []

    @pytest.mark.asyncio
    async def test_removed_container_is_dropped(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c1", "first miner")
        runtime.add_miner("c2", "second miner")
        chain = FakeChain(head=1)
        chain.miners["cXfirstminer"] = MinerChainInfo(state="positive")
        chain.miners["cXsecondminer"] = MinerChainInfo(state="positive")
        monitor = build_monitor(runtime, chain)
        await monitor.run_cycle()

        runtime.containers = [c for c in runtime.containers if c.id != "c1"]
        await monitor.run_cycle()

        assert list(monitor.registry) == ["cXsecondminer"]

    @pytest.mark.asyncio
    async def test_list_failure_ends_cycle(self) -> None:
        runtime = FakeRuntime()
        runtime.fail_list = True
        monitor = build_monitor(runtime, FakeChain(head=1))

        assert not await monitor.run_cycle()
        assert not monitor.is_updating

    @pytest.mark.asyncio
    async def test_cycles_are_exclusive(self) -> None:
        release = asyncio.Event()

        async def gate() -> None:
            await release.wait()

        runtime = FakeRuntime()
        monitor = build_monitor(runtime, FakeChain(head=1), jitter=gate)

        first = asyncio.create_task(monitor.run_cycle())
        await asyncio.sleep(0)
        assert monitor.is_updating

        assert not await monitor.run_cycle()

        release.set()
        assert await first
        assert not monitor.is_updating


class TestLifecycle:
    """Tests for snapshots, the run loop and shutdown."""

    @pytest.mark.asyncio
    async def test_snapshot_redacts_and_copies(self) -> None:
        runtime = FakeRuntime()
        runtime.add_miner("c2", "second miner")
        runtime.add_miner("c1", "first miner")
        chain = FakeChain(head=1)
        chain.miners["cXfirstminer"] = MinerChainInfo(state="positive")
        chain.miners["cXsecondminer"] = MinerChainInfo(state="positive")
        monitor = build_monitor(runtime, chain)
        await monitor.run_cycle()

        state = await monitor.snapshot()

        assert state.host == HOST
        assert state.active
        assert not state.updating
        assert [record.container.name for record in state.miners] == ["miner-c1", "miner-c2"]
        assert all(record.conf.chain.mnemonic == "-" for record in state.miners)
        assert monitor.registry["cXfirstminer"].conf.chain.mnemonic == "first miner"

        state.miners[0].stat.status = "frozen"
        assert monitor.registry["cXfirstminer"].stat.status == "positive"

    @pytest.mark.asyncio
    async def test_run_forever_stops_when_deactivated(self) -> None:
        cycles = 0
        runtime = FakeRuntime()
        monitor = build_monitor(runtime, FakeChain(head=1))

        async def count_and_stop() -> None:
            nonlocal cycles
            cycles += 1
            monitor.deactivate()

        monitor.jitter = count_and_stop

        await asyncio.wait_for(monitor.run_forever(0), timeout=1)

        assert cycles == 1
        assert not monitor.active

    @pytest.mark.asyncio
    async def test_run_forever_survives_unexpected_error(self, caplog: pytest.LogCaptureFixture) -> None:
        cycles = 0
        monitor = build_monitor(FakeRuntime(), FakeChain(head=1))

        async def fail_then_stop() -> None:
            nonlocal cycles
            cycles += 1
            if cycles == 1:
                raise RuntimeError("docker socket vanished")
            monitor.deactivate()

        monitor.jitter = fail_then_stop

        await asyncio.wait_for(monitor.run_forever(0), timeout=1)

        assert cycles == 2
        assert not monitor.is_updating
        failures = [record for record in caplog.records if "Unexpected error" in record.getMessage()]
        assert len(failures) == 1
        assert failures[0].exc_info is not None
        assert "docker socket vanished" in str(failures[0].exc_info[1])

    @pytest.mark.asyncio
    async def test_close_releases_clients(self) -> None:
        runtime = FakeRuntime()
        chain = FakeChain(head=1)
        monitor = build_monitor(runtime, chain)

        await monitor.close()

        assert not monitor.active
        assert runtime.closed
        assert chain.closed
