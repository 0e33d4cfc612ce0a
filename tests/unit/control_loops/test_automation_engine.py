import pytest

from bridge.control_loops.automation_engine import Activation, AutomationEngine, decide
from bridge.domain.actuators import Device
from bridge.domain.settings import Threshold
from bridge.domain.telemetry import TelemetrySample
from bridge.services.settings_store import SettingsStore


class RecordingSink:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.commands: list[tuple[Device, bool]] = []

    def __call__(self, device: Device, on: bool) -> bool:
        self.commands.append((device, on))
        return self.accept


@pytest.fixture()
def store():
    store = SettingsStore()
    store.merge({"automations": {"hum": True, "fan": True, "led": True}})
    return store


@pytest.fixture()
def sink():
    return RecordingSink()


@pytest.fixture()
def engine(store, sink):
    return AutomationEngine(store, sink)


@pytest.mark.parametrize(
    "activation,value,expected",
    [
        (Activation.LOW, 29.0, True),
        (Activation.LOW, 30.0, True),
        (Activation.LOW, 50.0, None),
        (Activation.LOW, 70.0, False),
        (Activation.LOW, 71.0, False),
        (Activation.HIGH, 70.0, True),
        (Activation.HIGH, 50.0, None),
        (Activation.HIGH, 30.0, False),
    ],
)
def test_decide_with_inclusive_boundaries(activation, value, expected):
    assert decide(activation, value, Threshold(min=30, max=70)) is expected


def test_soil_moisture_cycle_turns_humidifier_on_then_off(engine, sink):
    # soil threshold is 30..70 by default
    issued = [engine.evaluate(TelemetrySample(soil_moisture=value)) for value in (25.0, 45.0, 65.0, 75.0)]

    assert issued == [[(Device.HUMIDIFIER, True)], [], [], [(Device.HUMIDIFIER, False)]]
    assert sink.commands == [(Device.HUMIDIFIER, True), (Device.HUMIDIFIER, False)]
    assert engine.state_of(Device.HUMIDIFIER) is False


def test_no_repeat_command_while_state_matches(engine, sink):
    for value in (20.0, 10.0, 29.0, 30.0):
        engine.evaluate(TelemetrySample(soil_moisture=value))

    assert sink.commands == [(Device.HUMIDIFIER, True)]


def test_oscillation_inside_band_never_toggles(engine, sink):
    engine.evaluate(TelemetrySample(soil_moisture=25.0))
    for value in (31.0, 69.0, 35.0, 68.0, 40.0):
        engine.evaluate(TelemetrySample(soil_moisture=value))

    assert sink.commands == [(Device.HUMIDIFIER, True)]


def test_fan_switches_on_when_temperature_rises(engine, sink):
    # temp threshold is 15..30
    engine.evaluate(TelemetrySample(temperature=31.0))
    engine.evaluate(TelemetrySample(temperature=22.0))
    engine.evaluate(TelemetrySample(temperature=14.0))

    assert sink.commands == [(Device.FAN, True), (Device.FAN, False)]


def test_light_follows_illuminance(engine, sink):
    engine.evaluate(TelemetrySample(illuminance=120.0))
    assert sink.commands == [(Device.LIGHT, True)]


def test_disabled_automation_issues_nothing(sink):
    engine = AutomationEngine(SettingsStore(), sink)

    engine.evaluate(TelemetrySample(soil_moisture=5.0, temperature=40.0, illuminance=0.0))

    assert sink.commands == []


def test_missing_reading_is_skipped(engine, sink):
    engine.evaluate(TelemetrySample(pressure=1000.0))
    assert sink.commands == []


def test_failed_handoff_leaves_state_and_retries(store):
    sink = RecordingSink(accept=False)
    engine = AutomationEngine(store, sink)

    engine.evaluate(TelemetrySample(soil_moisture=25.0))
    assert engine.state_of(Device.HUMIDIFIER) is None

    sink.accept = True
    engine.evaluate(TelemetrySample(soil_moisture=26.0))

    assert sink.commands == [(Device.HUMIDIFIER, True), (Device.HUMIDIFIER, True)]
    assert engine.state_of(Device.HUMIDIFIER) is True
    assert engine.commands_issued == 1


def test_device_echo_is_reconciled_before_rules(engine, sink):
    # Device already reports the humidifier on: no command needed.
    engine.evaluate(TelemetrySample(soil_moisture=25.0, humidifier_on=True))
    assert sink.commands == []

    # Someone switched it off behind our back; the rule fires again.
    engine.evaluate(TelemetrySample(soil_moisture=25.0, humidifier_on=False))
    assert sink.commands == [(Device.HUMIDIFIER, True)]


def test_manual_command_updates_state(engine, sink):
    engine.note_command(Device.HUMIDIFIER, True)
    engine.evaluate(TelemetrySample(soil_moisture=20.0))

    assert sink.commands == []


def test_threshold_change_applies_to_next_sample(engine, store, sink):
    engine.evaluate(TelemetrySample(soil_moisture=40.0))
    assert sink.commands == []

    store.merge({"thresholds": {"soil": {"min": 45}}})
    engine.evaluate(TelemetrySample(soil_moisture=40.0))

    assert sink.commands == [(Device.HUMIDIFIER, True)]


def test_snapshot_reports_every_device(engine):
    engine.note_command(Device.FAN, False)
    assert engine.snapshot() == {"led": None, "hum": None, "fan": False}
