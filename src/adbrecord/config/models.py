from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict


class RecordingType(str, Enum):
    """
    Recording backend.

    - NATIVE: `adb shell screenrecord` running on the device, file pulled afterwards
    - MIRROR: scrcpy running on the host, writing the mp4 directly
    """

    NATIVE = "native"
    MIRROR = "mirror"


class AdbSettings(BaseModel):
    """Configuration of the adb command bridge."""

    path: str | None = None  # Path to adb; resolved from local.properties/ANDROID_HOME/PATH if None
    command_timeout_sec: float = 40.0  # Timeout for short queries (screenshot, getprop)


class NativeRecorderSettings(BaseModel):
    """Timeouts and paths used by the device-native (screenrecord) backend."""

    remote_dir: str = "/sdcard"  # Where screenrecord and screencap write on the device
    kill_timeout_sec: float = 20.0  # Wait for the on-device SIGINT command
    exit_timeout_sec: float = 20.0  # Wait for the local adb bridge process to exit
    pull_timeout_sec: float = 60.0  # Wait for `adb pull` of the video
    cleanup_timeout_sec: float = 60.0  # Wait for `adb shell rm` of the remote file


class MirrorRecorderSettings(BaseModel):
    """Configuration of the mirroring (scrcpy) backend."""

    path: str | None = None  # Path to scrcpy; required when recording_type is "mirror"
    process_name: str = "scrcpy"  # Image name used for PID lookup and name-based stop
    bitrate: str = "2M"  # Video bitrate passed as -b
    startup_marker: str = "INFO: Recording started"  # Output line that means recording began
    startup_timeout_sec: float = 30.0  # Max wait for the startup marker
    settle_delay_sec: float = 5.0  # Pause after the marker; scrcpy timestamps lag actual start
    exit_timeout_sec: float = 60.0  # Wait for scrcpy to exit after the interrupt


class TerminationSettings(BaseModel):
    """Retry policy for host PID lookup and graceful interrupt."""

    pid_lookup_attempts: int = Field(default=5, ge=1)
    pid_lookup_interval_sec: float = 0.5
    interrupt_attempts: int = Field(default=5, ge=1)
    interrupt_backoff_sec: float = 2.0
    interrupt_helper: str = "windows-kill"  # Ctrl-C injector used on Windows


class ReportingSettings(BaseModel):
    """Configuration for recorded artifacts."""

    dest_dir: str = "build/reports/adbScreenRecord"  # Root of <class>/<method>/<device>.*
    thumbnail_size: int = Field(default=640, gt=0)  # Max width/height of the JPEG screenshot
    attach_to_allure: bool = True  # Attach screenshot and video to Allure (pytest plugin)


class ServerSettings(BaseModel):
    """Bind address of the coordinating HTTP service."""

    host: str = "127.0.0.1"
    port: int = 0  # 0 - pick a free port


class Settings(BaseSettings):
    """
    Main configuration class for the recorder.

    Loads values from the following sources:
    - Environment variables (with prefix ADBRECORD_)
    - Initialization values (e.g., from YAML)
    - .env file
    - Secret files
    """

    model_config = SettingsConfigDict(env_prefix="ADBRECORD_", env_nested_delimiter="__")

    recording_type: RecordingType = RecordingType.NATIVE
    min_sdk: int = 22  # screenrecord is unreliable below Android 5.1
    adb: AdbSettings = Field(default_factory=AdbSettings)
    native: NativeRecorderSettings = Field(default_factory=NativeRecorderSettings)
    mirror: MirrorRecorderSettings = Field(default_factory=MirrorRecorderSettings)
    termination: TerminationSettings = Field(default_factory=TerminationSettings)
    reporting: ReportingSettings = Field(default_factory=ReportingSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,  # type: type[BaseSettings]
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """
        Configure the order of configuration sources.

        Loading priority:
        1. Environment variables
        2. Initialization values (e.g., from YAML)
        3. .env file
        4. Secret files
        """
        return (env_settings, init_settings, dotenv_settings, file_secret_settings)
