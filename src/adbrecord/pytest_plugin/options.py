import pytest


def pytest_addoption(parser: pytest.Parser) -> None:
    """
    Registers command-line options for screen recording.

    Adds:
      --adbrecord                 : Record a video (and screenshot) of every test.
      --adbrecord-config <path>   : Path to the YAML configuration file.
      --adbrecord-device <serial> : Device to record; defaults to the first attached device.
    """
    g = parser.getgroup("adbrecord")
    g.addoption(
        "--adbrecord",
        action="store_true",
        default=False,
        help="Record the screen of an Android device during each test",
    )
    g.addoption(
        "--adbrecord-config",
        action="store",
        default=None,
        help="Path to YAML configuration file",
    )
    g.addoption(
        "--adbrecord-device",
        action="store",
        default=None,
        help="Serial of the device to record (default: first attached device)",
    )
