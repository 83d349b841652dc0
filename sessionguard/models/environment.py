"""
Environment Heuristic Evaluators

Stateless rule batteries over environment attributes. Each evaluator runs a
fixed set of independent tests and reports a bounded [0, 1] score.

No ML. No external calls. Just rules.

Scoring:
    score = min(1.0, sum(weights of triggered tests) / tests run)

A test whose attribute was not reported raises MissingCapability and is
left out of both the numerator and the denominator. An evaluator with no
runnable test is "not applicable" and contributes nothing.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, NamedTuple, Optional, Tuple, TypeVar

from user_agents import parse as parse_user_agent

from sessionguard.config import DEFAULT_CONFIG, EvaluatorThresholds
from sessionguard.schemas.inputs import EnvironmentAttributes
from sessionguard.schemas.outputs import AnalyzerResult

T = TypeVar("T")


# =============================================================================
# Exceptions
# =============================================================================

class MissingCapability(Exception):
    """Raised by a test when the attribute it needs was not reported."""
    pass


def require(value: Optional[T], name: str) -> T:
    """Return value, or raise MissingCapability when it is None."""
    if value is None:
        raise MissingCapability(name)
    return value


# =============================================================================
# Signatures
# =============================================================================

HEADLESS_UA_PATTERN = re.compile(r"headless|puppet|phantomjs|nightmare|selenium|webdriver", re.IGNORECASE)

VIRTUAL_GPU_MARKERS = (
    "vmware",
    "virtualbox",
    "llvmpipe",
    "swiftshader",
    "microsoft basic render",
    "parallels",
    "svga3d",
)

EMULATED_RENDERER_MARKERS = ("vmware", "virtual", "llvmpipe", "swiftshader", "virtualbox")

COMMON_REMOTE_RESOLUTIONS = {
    (1024, 768),
    (1280, 720),
    (1280, 800),
    (1366, 768),
    (1440, 900),
    (1600, 900),
    (1920, 1080),
}

COMMON_AUDIO_SAMPLE_RATES = {44100, 48000, 96000, 192000}

REMOTE_ACCESS_SIGNATURES: Dict[str, Tuple[str, ...]] = {
    "Microsoft Remote Desktop": ("rdpudd", "microsoft remote display adapter", "remotefx"),
    "TeamViewer": ("teamviewer",),
    "AnyDesk": ("anydesk",),
    "Chrome Remote Desktop": ("chrome remote desktop", "chromoting"),
    "VNC": ("vnc mirror", "tightvnc", "ultravnc", "realvnc", "mirage driver"),
    "Citrix": ("citrix",),
    "Parsec": ("parsec virtual display",),
    "Splashtop": ("splashtop",),
}


# =============================================================================
# Snapshot + Test Plumbing
# =============================================================================

@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Everything an evaluator may read during one cycle."""
    attributes: EnvironmentAttributes = field(default_factory=EnvironmentAttributes)
    input_latencies: Tuple[float, ...] = ()


class Finding(NamedTuple):
    """A triggered test."""
    weight: float
    reason: str


TestFn = Callable[[EnvironmentSnapshot], Optional[Finding]]


class HeuristicEvaluator:
    """
    Base class for one environment evaluator.

    Subclasses list their tests as (name, method) pairs. A test returns a
    Finding when it triggers, None when it ran clean, and raises
    MissingCapability when it could not run.
    """

    name: str = "evaluator"

    def __init__(self, thresholds: Optional[EvaluatorThresholds] = None) -> None:
        self.thresholds = thresholds or DEFAULT_CONFIG.evaluators

    def tests(self) -> List[Tuple[str, TestFn]]:
        raise NotImplementedError

    def evaluate(self, snapshot: EnvironmentSnapshot) -> AnalyzerResult:
        triggered = 0.0
        ran = 0
        reasons: List[str] = []
        detail: Dict[str, float] = {}

        for test_name, test in self.tests():
            try:
                finding = test(snapshot)
            except MissingCapability:
                continue
            ran += 1
            if finding is not None:
                triggered += finding.weight
                reasons.append(finding.reason)
                detail[test_name] = finding.weight

        if ran == 0:
            return AnalyzerResult.insufficient(self.name, "no readable capabilities")

        detail["tests_run"] = float(ran)
        return AnalyzerResult(
            name=self.name,
            score=min(1.0, triggered / ran),
            reasons=reasons,
            detail=detail,
            matches=self.matches(snapshot),
        )

    def matches(self, snapshot: EnvironmentSnapshot) -> List[str]:
        return []


def _graphics_strings(attrs: EnvironmentAttributes) -> str:
    parts = [s for s in (attrs.webgl_vendor, attrs.webgl_renderer) if s]
    if not parts:
        raise MissingCapability("webgl_renderer")
    return " ".join(parts).lower()


def _is_windows(attrs: EnvironmentAttributes) -> bool:
    platform = (attrs.platform or "").lower()
    return platform.startswith("win") or "Windows" in (attrs.user_agent or "")


# =============================================================================
# Headless Browser
# =============================================================================

class HeadlessEvaluator(HeuristicEvaluator):
    """Automation frameworks and headless browser builds."""

    name = "headless_indicator"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("headless_user_agent", self._headless_user_agent),
            ("bot_user_agent", self._bot_user_agent),
            ("webdriver", self._webdriver),
            ("chrome_object_missing", self._chrome_object_missing),
            ("permissions_inconsistent", self._permissions_inconsistent),
            ("no_plugins", self._no_plugins),
        ]

    def _headless_user_agent(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ua = require(snapshot.attributes.user_agent, "user_agent")
        if HEADLESS_UA_PATTERN.search(ua):
            return Finding(1.0, "Headless browser detected in user agent")
        return None

    def _bot_user_agent(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ua = parse_user_agent(require(snapshot.attributes.user_agent, "user_agent"))
        if ua.is_bot:
            return Finding(1.0, "User agent identifies as a bot")
        return None

    def _webdriver(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if require(snapshot.attributes.webdriver, "webdriver"):
            return Finding(1.0, "WebDriver automation flag is set")
        return None

    def _chrome_object_missing(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        ua = require(attrs.user_agent, "user_agent")
        if "Chrome" in ua and not require(attrs.has_chrome_object, "has_chrome_object"):
            return Finding(0.8, "Chrome user agent without the chrome object")
        return None

    def _permissions_inconsistent(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        permission = require(attrs.notification_permission, "notification_permission")
        state = require(attrs.notification_query_state, "notification_query_state")
        if state == "denied" and permission == "default":
            return Finding(0.7, "Notification permission state is inconsistent")
        return None

    def _no_plugins(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if require(snapshot.attributes.plugins_count, "plugins_count") == 0:
            return Finding(0.3, "No browser plugins installed")
        return None


# =============================================================================
# User Agent Consistency
# =============================================================================

class UserAgentEvaluator(HeuristicEvaluator):
    """User agent claims that contradict each other or the runtime."""

    name = "user_agent_inconsistency"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("firefox_without_install_trigger", self._firefox_without_install_trigger),
            ("safari_without_safari_object", self._safari_without_safari_object),
            ("chrome_without_chrome_object", self._chrome_without_chrome_object),
            ("windows_and_mac", self._windows_and_mac),
            ("android_and_windows", self._android_and_windows),
            ("multiple_browser_versions", self._multiple_browser_versions),
        ]

    def _firefox_without_install_trigger(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        ua = parse_user_agent(require(attrs.user_agent, "user_agent"))
        if ua.browser.family == "Firefox" and not require(attrs.has_install_trigger, "has_install_trigger"):
            return Finding(1.0, "Firefox user agent without Firefox runtime objects")
        return None

    def _safari_without_safari_object(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        raw = require(attrs.user_agent, "user_agent")
        ua = parse_user_agent(raw)
        if ua.browser.family == "Safari" and "Chrome" not in raw:
            if not require(attrs.has_safari_object, "has_safari_object"):
                return Finding(1.0, "Safari user agent without Safari runtime objects")
        return None

    def _chrome_without_chrome_object(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        ua = require(attrs.user_agent, "user_agent")
        if "Chrome" in ua and not require(attrs.has_chrome_object, "has_chrome_object"):
            return Finding(1.0, "Chrome user agent without Chrome runtime objects")
        return None

    def _windows_and_mac(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ua = require(snapshot.attributes.user_agent, "user_agent")
        if "Windows" in ua and "Mac OS X" in ua:
            return Finding(1.0, "User agent claims both Windows and macOS")
        return None

    def _android_and_windows(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ua = require(snapshot.attributes.user_agent, "user_agent")
        if "Android" in ua and "Windows" in ua:
            return Finding(1.0, "User agent claims both Android and Windows")
        return None

    def _multiple_browser_versions(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ua = require(snapshot.attributes.user_agent, "user_agent")
        if re.search(r"Chrome/\d", ua) and re.search(r"Firefox/\d", ua):
            return Finding(1.0, "User agent carries both Chrome and Firefox versions")
        return None


# =============================================================================
# Screen Resolution
# =============================================================================

class ResolutionEvaluator(HeuristicEvaluator):
    """Impossible or implausible screen geometry."""

    name = "unusual_resolution"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("tiny_screen", self._tiny_screen),
            ("huge_screen", self._huge_screen),
            ("window_exceeds_screen", self._window_exceeds_screen),
            ("aspect_ratio", self._aspect_ratio),
        ]

    def _screen(self, attrs: EnvironmentAttributes) -> Tuple[int, int]:
        return require(attrs.screen_width, "screen_width"), require(attrs.screen_height, "screen_height")

    def _tiny_screen(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        width, height = self._screen(snapshot.attributes)
        if width <= 1 or height <= 1:
            return Finding(1.0, f"Screen is {width}x{height}")
        return None

    def _huge_screen(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        width, height = self._screen(snapshot.attributes)
        limit = self.thresholds.max_screen_dimension
        if width > limit or height > limit:
            return Finding(0.8, f"Screen dimension above {limit}px")
        return None

    def _window_exceeds_screen(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        width, height = self._screen(attrs)
        outer_w = require(attrs.outer_width, "outer_width")
        outer_h = require(attrs.outer_height, "outer_height")
        if outer_w > width or outer_h > height:
            return Finding(0.9, "Browser window is larger than the screen")
        return None

    def _aspect_ratio(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        width, height = self._screen(snapshot.attributes)
        if height <= 0:
            raise MissingCapability("aspect_ratio")
        ratio = width / height
        if ratio < self.thresholds.min_aspect_ratio or ratio > self.thresholds.max_aspect_ratio:
            return Finding(0.7, f"Unusual aspect ratio {ratio:.2f}")
        return None


# =============================================================================
# Remote Desktop
# =============================================================================

class RemoteDesktopEvaluator(HeuristicEvaluator):
    """Display and input characteristics of a remote desktop session."""

    name = "remote_desktop"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("color_depth", self._color_depth),
            ("css_color_bits", self._css_color_bits),
            ("common_remote_resolution", self._common_remote_resolution),
            ("fractional_pixel_ratio", self._fractional_pixel_ratio),
            ("input_latency", self._input_latency),
        ]

    def _color_depth(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        depth = require(attrs.color_depth, "color_depth")
        if depth <= 8:
            return Finding(0.9, f"{depth}-bit color depth")
        if depth <= 16:
            return Finding(0.7, f"{depth}-bit color depth")
        if depth == 24 and _is_windows(attrs):
            return Finding(0.3, "24-bit color depth on Windows")
        return None

    def _css_color_bits(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        bits = require(snapshot.attributes.css_bits_per_color, "css_bits_per_color")
        if bits <= 6:
            return Finding(0.8, f"Display reports {bits} bits per color channel")
        return None

    def _common_remote_resolution(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        size = (require(attrs.screen_width, "screen_width"), require(attrs.screen_height, "screen_height"))
        if size in COMMON_REMOTE_RESOLUTIONS:
            return Finding(0.2, f"Common remote session resolution {size[0]}x{size[1]}")
        return None

    def _fractional_pixel_ratio(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        ratio = require(snapshot.attributes.device_pixel_ratio, "device_pixel_ratio")
        if ratio != int(ratio):
            return Finding(0.3, f"Non-integer device pixel ratio {ratio}")
        return None

    def _input_latency(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        latencies = snapshot.input_latencies[-self.thresholds.input_latency_window:]
        if len(latencies) < self.thresholds.input_latency_min_samples:
            raise MissingCapability("input_latency")
        average = sum(latencies) / len(latencies)
        if average > self.thresholds.input_latency_ms:
            return Finding(0.6, f"High input latency ({average:.0f}ms)")
        return None


# =============================================================================
# Virtualization
# =============================================================================

class VirtualizationEvaluator(HeuristicEvaluator):
    """Hypervisor and emulated hardware indicators."""

    name = "virtualization"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("virtual_gpu", self._virtual_gpu),
            ("audio_sample_rate", self._audio_sample_rate),
            ("single_cpu", self._single_cpu),
            ("slow_benchmark", self._slow_benchmark),
        ]

    def _virtual_gpu(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        graphics = _graphics_strings(snapshot.attributes)
        for marker in VIRTUAL_GPU_MARKERS:
            if marker in graphics:
                return Finding(1.0, f"Virtual GPU detected ({marker})")
        return None

    def _audio_sample_rate(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        rate = require(snapshot.attributes.audio_sample_rate, "audio_sample_rate")
        if rate not in COMMON_AUDIO_SAMPLE_RATES:
            return Finding(0.4, f"Uncommon audio sample rate {rate}Hz")
        return None

    def _single_cpu(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if require(snapshot.attributes.hardware_concurrency, "hardware_concurrency") <= 1:
            return Finding(0.3, "Single logical CPU")
        return None

    def _slow_benchmark(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        elapsed = require(snapshot.attributes.benchmark_ms, "benchmark_ms")
        if elapsed > self.thresholds.slow_benchmark_ms:
            return Finding(0.5, f"Compute benchmark took {elapsed:.0f}ms")
        return None


# =============================================================================
# Fingerprinting Surfaces
# =============================================================================

class FingerprintEvaluator(HeuristicEvaluator):
    """Blocked, blank or tampered fingerprinting surfaces."""

    name = "fingerprint_anomalies"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("canvas_blocked", self._canvas_blocked),
            ("canvas_unreadable", self._canvas_unreadable),
            ("canvas_blank", self._canvas_blank),
            ("webgl_unavailable", self._webgl_unavailable),
            ("emulated_renderer", self._emulated_renderer),
            ("canvas_api_modified", self._canvas_api_modified),
            ("navigator_api_modified", self._navigator_api_modified),
            ("webgl_hash_missing", self._webgl_hash_missing),
        ]

    def _canvas_blocked(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if not require(snapshot.attributes.canvas_available, "canvas_available"):
            return Finding(0.5, "Canvas is blocked")
        return None

    def _canvas_unreadable(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if not require(snapshot.attributes.canvas_readable, "canvas_readable"):
            return Finding(0.7, "Canvas data cannot be exported")
        return None

    def _canvas_blank(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        length = require(snapshot.attributes.canvas_data_length, "canvas_data_length")
        if length < self.thresholds.min_canvas_data_length:
            return Finding(0.8, "Canvas output is blank or truncated")
        return None

    def _webgl_unavailable(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if not require(snapshot.attributes.webgl_available, "webgl_available"):
            return Finding(0.4, "WebGL is unavailable")
        return None

    def _emulated_renderer(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        renderer = require(snapshot.attributes.webgl_renderer, "webgl_renderer").lower()
        for marker in EMULATED_RENDERER_MARKERS:
            if marker in renderer:
                return Finding(0.6, "Software or virtual WebGL renderer")
        return None

    def _canvas_api_modified(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        if require(snapshot.attributes.canvas_api_modified, "canvas_api_modified"):
            return Finding(0.8, "Canvas API has been modified")
        return None

    def _navigator_api_modified(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        tampered = require(snapshot.attributes.navigator_tampered_props, "navigator_tampered_props")
        if tampered:
            return Finding(0.8, f"Navigator properties overridden: {', '.join(tampered)}")
        return None

    def _webgl_hash_missing(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        attrs = snapshot.attributes
        require(attrs.canvas_hash, "canvas_hash")
        if require(attrs.webgl_available, "webgl_available") and attrs.webgl_hash is None:
            return Finding(0.3, "WebGL reported available but produced no fingerprint")
        return None


# =============================================================================
# Remote Access Software
# =============================================================================

def match_remote_access(text: str) -> List[str]:
    """Names of the remote-access products whose markers appear in text."""
    lowered = text.lower()
    return [
        product
        for product, markers in REMOTE_ACCESS_SIGNATURES.items()
        if any(marker in lowered for marker in markers)
    ]


class RemoteAccessSoftwareEvaluator(HeuristicEvaluator):
    """Named remote-access products visible through graphics, adapters or plugins."""

    name = "remote_access_software"

    def tests(self) -> List[Tuple[str, TestFn]]:
        return [
            ("graphics", self._graphics),
            ("display_adapters", self._display_adapters),
            ("plugins", self._plugins),
        ]

    def _sources(self, attrs: EnvironmentAttributes) -> List[Callable[[], str]]:
        return [
            lambda: _graphics_strings(attrs),
            lambda: " | ".join(require(attrs.display_adapters, "display_adapters")),
            lambda: " | ".join(require(attrs.plugin_names, "plugin_names")),
        ]

    def _check(self, text: str, source: str) -> Optional[Finding]:
        products = match_remote_access(text)
        if products:
            return Finding(1.0, f"{', '.join(products)} detected via {source}")
        return None

    def _graphics(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        return self._check(_graphics_strings(snapshot.attributes), "graphics renderer")

    def _display_adapters(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        adapters = require(snapshot.attributes.display_adapters, "display_adapters")
        return self._check(" | ".join(adapters), "display adapters")

    def _plugins(self, snapshot: EnvironmentSnapshot) -> Optional[Finding]:
        plugins = require(snapshot.attributes.plugin_names, "plugin_names")
        return self._check(" | ".join(plugins), "plugins")

    def matches(self, snapshot: EnvironmentSnapshot) -> List[str]:
        found: List[str] = []
        for source in self._sources(snapshot.attributes):
            try:
                text = source()
            except MissingCapability:
                continue
            for product in match_remote_access(text):
                if product not in found:
                    found.append(product)
        return sorted(found)


def build_evaluators(thresholds: Optional[EvaluatorThresholds] = None) -> List[HeuristicEvaluator]:
    """The full evaluator battery in a fixed order."""
    return [
        HeadlessEvaluator(thresholds),
        UserAgentEvaluator(thresholds),
        ResolutionEvaluator(thresholds),
        RemoteDesktopEvaluator(thresholds),
        VirtualizationEvaluator(thresholds),
        FingerprintEvaluator(thresholds),
        RemoteAccessSoftwareEvaluator(thresholds),
    ]
