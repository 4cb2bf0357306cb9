import pytest

from flasharb.visibility.notifier import BotEvent, EventKind, Notifier, TelegramSink, WebhookSink, format_event


class RecordingSink:
    name = "recording"

    def __init__(self):
        self.events = []

    async def __call__(self, event):
        self.events.append(event)


class BrokenSink:
    name = "broken"

    async def __call__(self, event):
        raise RuntimeError("sink down")


@pytest.mark.asyncio
async def test_events_reach_every_sink():
    a, b = RecordingSink(), RecordingSink()
    notifier = Notifier([a, b])
    event = await notifier.emit(EventKind.OPPORTUNITY, "Opportunity Found!", pair="DAI/WETH")
    assert a.events == [event]
    assert b.events == [event]
    assert event.data == {"pair": "DAI/WETH"}
    assert list(notifier.recent) == [event]


@pytest.mark.asyncio
async def test_failing_sink_never_raises():
    good = RecordingSink()
    notifier = Notifier([BrokenSink(), good])
    await notifier.emit(EventKind.FATAL, "Fatal bot error: boom")
    assert len(good.events) == 1


@pytest.mark.asyncio
async def test_recent_is_bounded():
    notifier = Notifier(recent_limit=3)
    for i in range(5):
        await notifier.emit(EventKind.WARNING, f"w{i}")
    assert [e.message for e in notifier.recent] == ["w2", "w3", "w4"]


def test_format_event():
    event = BotEvent(kind=EventKind.TRADE_PROFIT, message="Arbitrage successful! Profit: 0.5")
    assert format_event(event) == "[TRADE_PROFIT] Arbitrage successful! Profit: 0.5"


@pytest.mark.asyncio
async def test_http_sinks_post_payloads(monkeypatch):
    posted = []

    async def fake_post(session, url, payload):
        posted.append((url, payload))

    monkeypatch.setattr("flasharb.visibility.notifier._post", fake_post)
    event = BotEvent(kind=EventKind.STOPPED, message="Bot stopped")
    await TelegramSink("TOKEN", "42", api_base="http://tg")(event)
    await WebhookSink(["http://hook"])(event)
    assert posted[0] == ("http://tg/botTOKEN/sendMessage", {"chat_id": "42", "text": "[STOPPED] Bot stopped"})
    assert posted[1][0] == "http://hook"
    assert posted[1][1]["kind"] == "stopped"
