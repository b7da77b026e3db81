import aiohttp
import pytest

from cathome_sync.health import HealthReporter, HealthServer


@pytest.mark.asyncio
async def test_health_reporter_snapshot():
    reporter = HealthReporter()

    await reporter.update("network", True)
    await reporter.update("backend", False, "Timed out reaching Realtime Database")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    component_list = snapshot.get("components", [])
    assert isinstance(component_list, list)
    components = {item["name"]: item for item in component_list}
    assert components["network"]["healthy"] is True
    assert components["backend"]["healthy"] is False
    assert components["backend"]["detail"] == "Timed out reaching Realtime Database"


@pytest.mark.asyncio
async def test_unhealthy_channel_does_not_degrade_service():
    reporter = HealthReporter()

    await reporter.update("network", True)
    await reporter.update("backend", True)
    await reporter.update("channel:heater", True, "subscribed")
    await reporter.update("channel:laser_x", False, "timed out")

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "ok"
    assert snapshot["degradedChannels"] == ["channel:laser_x"]


@pytest.mark.asyncio
async def test_health_reporter_agent_state_affects_status():
    reporter = HealthReporter()

    await reporter.update("network", True)
    await reporter.set_agent_state("awaiting_backend", healthy=False)

    snapshot = await reporter.snapshot()

    assert snapshot["status"] == "degraded"
    agent = snapshot.get("agentState")
    assert agent is not None
    assert agent["state"] == "awaiting_backend"
    assert agent["healthy"] is False


@pytest.mark.asyncio
async def test_health_server_serves_snapshot_and_channels(unused_tcp_port):
    reporter = HealthReporter()
    await reporter.update("network", True)

    host = "127.0.0.1"
    port = unused_tcp_port
    channels = [{"name": "heater", "subscribed": True}]
    server = HealthServer(reporter, host, port, channels=lambda: channels)
    await server.start()

    try:
        async with aiohttp.ClientSession() as session:
            async with session.get(f"http://{host}:{port}/healthz") as response:
                payload = await response.json()
                assert response.status == 200
                assert payload["status"] == "ok"

            async with session.get(f"http://{host}:{port}/channels") as response:
                assert response.status == 200
                assert await response.json() == {"channels": channels}

            await reporter.update("backend", False, "offline")
            async with session.get(f"http://{host}:{port}/healthz") as response:
                assert response.status == 503
    finally:
        await server.stop()
