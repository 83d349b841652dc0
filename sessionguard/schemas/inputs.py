"""
SessionGuard Input Schemas

This module defines Pydantic V2 models for everything the engine consumes:
- Pointer movement samples (MovementSample)
- Discrete input events used for timing analysis (InputEvent)
- Environment attributes reported by capability collectors (EnvironmentAttributes)

Signal acquisition itself is done by the embedding application.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Enums
# =============================================================================

class InputCategory(str, Enum):
    """Input modality. Natural human timing variance differs per category."""
    POINTER = "POINTER"
    KEYBOARD = "KEYBOARD"
    CLICK = "CLICK"


class InputAction(str, Enum):
    """Press/release edge of a discrete input event."""
    PRESS = "PRESS"
    RELEASE = "RELEASE"


# =============================================================================
# Interaction Telemetry
# =============================================================================

class MovementSample(BaseModel):
    """Single captured pointer position."""
    model_config = ConfigDict(frozen=True)

    x: float = Field(..., description="X coordinate in CSS pixels")
    y: float = Field(..., description="Y coordinate in CSS pixels")
    t: float = Field(..., description="Monotonic timestamp in milliseconds")


class InputEvent(BaseModel):
    """Single key or button edge captured by the client wrapper."""
    model_config = ConfigDict(frozen=True)

    category: InputCategory = Field(..., description="KEYBOARD or CLICK")
    action: InputAction = Field(..., description="PRESS or RELEASE edge")
    source: str = Field("primary", description="Key code or button identifier")
    t: float = Field(..., description="Monotonic timestamp in milliseconds")


# =============================================================================
# Environment Attributes
# =============================================================================

class EnvironmentAttributes(BaseModel):
    """
    Capability signals reported by the environment collectors.

    Every field is optional: None means the collector could not read the
    attribute, which is different from a reported falsy value.
    """
    model_config = ConfigDict(frozen=True)

    # Identity
    user_agent: Optional[str] = Field(None, description="Raw user agent string")
    platform: Optional[str] = Field(None, description="Reported platform (e.g. Win32)")

    # Display
    screen_width: Optional[int] = Field(None, description="Screen width in pixels")
    screen_height: Optional[int] = Field(None, description="Screen height in pixels")
    color_depth: Optional[int] = Field(None, description="Screen color depth in bits")
    device_pixel_ratio: Optional[float] = Field(None, description="Device pixel ratio")
    outer_width: Optional[int] = Field(None, description="Outer window width")
    outer_height: Optional[int] = Field(None, description="Outer window height")
    css_bits_per_color: Optional[int] = Field(None, description="Highest matching CSS color media query")

    # Graphics
    webgl_available: Optional[bool] = Field(None, description="WebGL context could be created")
    webgl_vendor: Optional[str] = Field(None, description="Unmasked WebGL vendor")
    webgl_renderer: Optional[str] = Field(None, description="Unmasked WebGL renderer")
    webgl_hash: Optional[str] = Field(None, description="Hash of the WebGL rendering probe")
    display_adapters: Optional[List[str]] = Field(None, description="Display adapter names")

    # Automation surface
    webdriver: Optional[bool] = Field(None, description="navigator.webdriver flag")
    has_chrome_object: Optional[bool] = Field(None, description="window.chrome is present")
    has_install_trigger: Optional[bool] = Field(None, description="InstallTrigger is present")
    has_safari_object: Optional[bool] = Field(None, description="window.safari is present")
    plugins_count: Optional[int] = Field(None, description="Number of installed plugins")
    plugin_names: Optional[List[str]] = Field(None, description="Installed plugin names")
    notification_permission: Optional[str] = Field(None, description="Notification.permission value")
    notification_query_state: Optional[str] = Field(None, description="Permissions API state for notifications")

    # Fingerprinting surfaces
    canvas_available: Optional[bool] = Field(None, description="2D canvas context could be created")
    canvas_readable: Optional[bool] = Field(None, description="Canvas pixel data could be exported")
    canvas_data_length: Optional[int] = Field(None, description="Length of exported canvas data")
    canvas_api_modified: Optional[bool] = Field(None, description="Canvas export functions are not native")
    canvas_hash: Optional[str] = Field(None, description="Hash of the canvas rendering probe")
    navigator_tampered_props: Optional[List[str]] = Field(
        None, description="Navigator properties whose getters are not native (userAgent, platform, ...)"
    )

    # Hardware
    audio_sample_rate: Optional[int] = Field(None, description="Audio context sample rate (Hz)")
    hardware_concurrency: Optional[int] = Field(None, description="Logical CPU count")
    benchmark_ms: Optional[float] = Field(None, description="Duration of a fixed compute benchmark")
