import pytest

from bridge.domain.actuators import Device, command_token, parse_command
from bridge.domain.exceptions import ValidationError


@pytest.mark.parametrize(
    "device,on,token",
    [
        (Device.LIGHT, True, "LED_ON"),
        (Device.LIGHT, False, "LED_OFF"),
        (Device.HUMIDIFIER, True, "HUM_ON"),
        (Device.FAN, False, "FAN_OFF"),
    ],
)
def test_command_token(device, on, token):
    assert command_token(device, on) == token
    assert parse_command(token) == (device, on)


def test_parse_command_is_case_insensitive():
    assert parse_command(" fan_on ") == (Device.FAN, True)


@pytest.mark.parametrize("token", ["", "LED", "LED_DIM", "PUMP_ON", "ON", "_ON", None, 1, {"cmd": "LED_ON"}])
def test_parse_command_rejects_unknown_tokens(token):
    with pytest.raises(ValidationError):
        parse_command(token)
