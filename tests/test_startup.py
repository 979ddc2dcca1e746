"""
Tests for service wiring and the command-line entry point
"""

import json

import pytest

import main
from config.sync_config import SyncConfig
from database.database import MemoryBlobStore
from node.startup import create_services, shutdown, startup

from conftest import FakeTransport, story_result


def make_services(responses=None, store=None):
    return create_services(
        SyncConfig(),
        store=store or MemoryBlobStore(),
        transport=FakeTransport(responses),
        api_url="https://node",
    )


def test_services_share_one_limiter():
    services = make_services()
    assert services.client.rate_limiter is services.rate_limiter
    assert services.coordinator.client is services.client
    assert services.health.rate_limiter is services.rate_limiter
    assert services.polling.lifecycle is services.lifecycle


@pytest.mark.asyncio
async def test_startup_and_shutdown_persist_state():
    store = MemoryBlobStore()
    services = make_services({"get-story-counter": 1, ("get-story", 1): story_result()}, store=store)

    await startup(services)
    assert services.event_bus.running
    await services.coordinator.fetch_all_entities()
    await shutdown(services)

    assert not services.event_bus.running
    assert services.transport.closed
    saved = json.loads(store.data["@sonichain_app_state"])
    assert [s["id"] for s in saved["story_chains"]] == ["1"]

    restored = make_services(store=store)
    await startup(restored)
    assert restored.state.get_story(1).title == "A dark and stormy night"
    await shutdown(restored)


def test_parser():
    parser = main.build_parser()
    args = parser.parse_args(["story", "3", "--refresh"])
    assert (args.command, args.story_id, args.refresh) == ("story", 3, True)
    args = parser.parse_args(["--log-level", "DEBUG", "watch", "--interval", "5"])
    assert (args.log_level, args.interval, args.duration) == ("DEBUG", 5.0, None)


@pytest.mark.asyncio
async def test_stories_command(monkeypatch, capsys):
    services = make_services({"get-story-counter": 1, ("get-story", 1): story_result(prompt="Hi")})
    monkeypatch.setattr("main.create_services", lambda config: services)

    code = await main.main(main.build_parser().parse_args(["stories"]))

    assert code == 0
    output = json.loads(capsys.readouterr().out)
    assert [s["title"] for s in output] == ["Hi"]


@pytest.mark.asyncio
async def test_user_command_rejects_bad_address(monkeypatch, capsys):
    services = make_services()
    monkeypatch.setattr("main.create_services", lambda config: services)

    code = await main.main(main.build_parser().parse_args(["user", "not-an-address"]))

    assert code == 2
    assert json.loads(capsys.readouterr().out)["error"] == "Invalid Address"
    assert services.transport.calls == []


@pytest.mark.asyncio
async def test_story_command_not_found(monkeypatch, capsys):
    services = make_services({"get-story": None})
    monkeypatch.setattr("main.create_services", lambda config: services)

    code = await main.main(main.build_parser().parse_args(["story", "9"]))

    assert code == 1
    assert json.loads(capsys.readouterr().out)["error"] == "Not Found"
