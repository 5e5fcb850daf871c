"""Session - launch/attach state machine for the app under test."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

import structlog

from ios_test_launcher import MIN_SERVER_VERSION, __version__
from ios_test_launcher.actions import InstrumentsActions
from ios_test_launcher.compat import check_compatibility
from ios_test_launcher.config import LauncherSettings, get_settings
from ios_test_launcher.device.probe import Device, DeviceProbe
from ios_test_launcher.errors import (
    LaunchTimeoutError,
    ServerNotRespondingError,
    launch_error,
    not_supported_error,
)
from ios_test_launcher.http.probe import ConnectivityProbe
from ios_test_launcher.launch.config import LaunchConfig
from ios_test_launcher.launch.host_cache import HostCache
from ios_test_launcher.launch.invoker import Attachment, LaunchInvoker
from ios_test_launcher.usage import UsageTracker
from ios_test_launcher.version import VersionCache, default_version_cache

if TYPE_CHECKING:
    from ios_test_launcher.interfaces import (
        ActionDispatcher,
        ConnectivityChecker,
        DeviceControlTool,
        LaunchTool,
        UsageReporter,
    )

logger = structlog.get_logger()

ATTACH_RETRIES = 1
ATTACH_TIMEOUT = 10.0


class Session:
    """Owns the attachment to the app under test and the objects bound to it.

    ``attachment`` is set by a successful relaunch or attach and cleared by
    stop. The action dispatcher only exists while there is an attachment
    with a process id.
    """

    def __init__(
        self,
        launch_tool: LaunchTool | None = None,
        device_tool: DeviceControlTool | None = None,
        *,
        settings: LauncherSettings | None = None,
        connectivity: ConnectivityChecker | None = None,
        host_cache: HostCache | None = None,
        version_cache: VersionCache | None = None,
        usage_reporter: UsageReporter | None = None,
        dispatcher_factory: Callable[[], ActionDispatcher] = InstrumentsActions,
        on_launch: Callable[[Session], None] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._host_cache = host_cache or HostCache(self._settings.state_dir)
        self._invoker = (
            LaunchInvoker(launch_tool, self._host_cache) if launch_tool is not None else None
        )
        self._device_probe = (
            DeviceProbe(device_tool, self._settings) if device_tool is not None else None
        )
        self.connectivity: ConnectivityChecker = connectivity or ConnectivityProbe(
            self._settings.device_endpoint
        )
        self._version_cache = version_cache or default_version_cache()
        self._usage_reporter: UsageReporter = usage_reporter or UsageTracker(
            self._settings.usage_url, enabled=self._settings.usage_tracking
        )
        self._dispatcher_factory = dispatcher_factory
        self._on_launch = on_launch

        self.attachment: Attachment | None = None
        self.launch_args: LaunchConfig | None = None
        self._device: Device | None = None
        self._actions: ActionDispatcher | None = None

    def __str__(self) -> str:
        lines = [type(self).__name__]
        if self.attachment is not None:
            lines.append(f"Log file: {self.attachment.log_file}")
        else:
            lines.append("Not attached to instruments.")
            lines.append("Start your app with relaunch()")
            lines.append("If your app is already running, try attach()")
        return "\n".join(lines)

    @property
    def settings(self) -> LauncherSettings:
        return self._settings

    @property
    def is_active(self) -> bool:
        """True while an attachment is held, whether or not its pid is known."""
        return self.attachment is not None

    @property
    def uses_external_process(self) -> bool:
        """True if the app was launched by the instrumentation tool."""
        return self.attachment is not None and self.attachment.pid is not None

    @property
    def quit_app_after_scenario(self) -> bool:
        return self._settings.quit_app_after_scenario

    @property
    def device(self) -> Device:
        """Device for the running app, resolved from the live server on first use.

        Raises:
            ServerNotRespondingError: If the server cannot be reached
        """
        if self._device is None:
            _, payload = self.connectivity.ensure_connectivity()
            self._device = Device.from_payload(self._settings.device_endpoint, payload)
        return self._device

    @device.setter
    def device(self, new_device: Device | None) -> None:
        self._device = new_device

    @property
    def actions(self) -> ActionDispatcher | None:
        """Dispatcher for the current attachment; attaches first if there is none."""
        if self._actions is None:
            self.attach()
        return self._actions

    def relaunch(self, config: LaunchConfig | None = None, **options: Any) -> Session:
        """Launch the app and wait for its server.

        Args:
            config: Base launch configuration
            **options: Overrides applied on top of ``config``

        Raises:
            LaunchError: If every launch attempt timed out
            ServerNotRespondingError: If the server never answered after launch
        """
        if self._invoker is None:
            raise not_supported_error("relaunch", "no launch tool configured")

        effective = config or LaunchConfig()
        if options:
            effective = effective.merged(**options)
        sim_control = (effective.model_extra or {}).get("sim_control")
        effective = effective.with_defaults(
            simctl=sim_control or self._settings.simctl,
            instruments=self._settings.instruments,
            xcode=self._settings.xcode,
            app=self._settings.app,
            device=self._settings.device_target,
        )
        self.launch_args = effective

        self.attachment = self._launch_with_retries(effective)
        self._actions = self._dispatcher_factory()
        self._device = None

        if not effective.calabash_lite:
            _, payload = self.connectivity.ensure_connectivity()
            self._device = Device.from_payload(self._settings.device_endpoint, payload)
            # Injected dylibs carry their own server build
            if not effective.inject_dylib and self._settings.check_server_compatibility:
                self._check_compatibility_after_launch()

        self._report_usage()

        # Test-framework hook: a constructor callback, or on_launch() on a subclass
        if self._on_launch is not None:
            self._on_launch(self)
        elif callable(getattr(self, "on_launch", None)):
            self.on_launch()  # type: ignore[attr-defined]

        return self

    def _launch_with_retries(self, config: LaunchConfig) -> Attachment:
        assert self._invoker is not None
        retries = config.launch_retries
        last_err: LaunchTimeoutError | None = None
        for attempt in range(1, retries + 1):
            try:
                attachment = self._invoker.launch(config)
            except LaunchTimeoutError as exc:
                last_err = exc
                logger.warning("launch_attempt_timed_out", attempt=attempt, retries=retries)
                continue
            logger.info("launch_succeeded", attempt=attempt, pid=attachment.pid)
            return attachment

        raise launch_error(last_err, retries) from last_err

    def _check_compatibility_after_launch(self) -> None:
        try:
            self.check_server_compatibility()
        except (ServerNotRespondingError, OSError) as exc:
            logger.warning(
                "compatibility_check_skipped", reason=f"{type(exc).__name__}: {exc}"
            )

    def _report_usage(self) -> None:
        try:
            self._usage_reporter.report_async()
        except Exception:
            logger.debug("usage_report_error", exc_info=True)

    def attach(
        self, retries: int = ATTACH_RETRIES, timeout: float = ATTACH_TIMEOUT
    ) -> Session | Literal[False]:
        """Connect to an app that is already running, without launching it.

        Returns:
            The session, or False if the server could not be reached
        """
        if self._settings.xtc:
            logger.warning("attach_unavailable", reason="not available on the hosted device cloud")
            return False

        candidate = self._host_cache.read()

        try:
            _, payload = self.connectivity.ensure_connectivity(retries=retries, timeout=timeout)
        except ServerNotRespondingError as exc:
            logger.warning(
                "attach_failed",
                endpoint=self._settings.device_endpoint,
                reason=exc.context.get("reason"),
                hint=(
                    "If your app is running, check that DEVICE_ENDPOINT is set correctly. "
                    "If it is not running, start it with relaunch()."
                ),
            )
            return False

        self.attachment = candidate
        self._device = Device.from_payload(self._settings.device_endpoint, payload)
        if candidate.pid is not None:
            self._actions = self._dispatcher_factory()
            logger.info("attached", pid=candidate.pid)
        else:
            self._actions = None
            logger.warning(
                "attached_without_instruments",
                message=(
                    "Connected to an app that was not launched with instruments. "
                    "Queries will work, but gestures will not."
                ),
            )
        return self

    def stop(self) -> None:
        """Stop the launched app, if any. Always drops the attachment; never raises."""
        if self.attachment is None:
            return

        attachment = self.attachment
        try:
            if attachment.pid is not None:
                if self._invoker is None:
                    logger.warning("stop_without_launch_tool", pid=attachment.pid)
                else:
                    self._invoker.stop(attachment)
        except Exception:
            logger.warning("app_stop_failed", pid=attachment.pid, exc_info=True)
        finally:
            self.attachment = None
            self._actions = None

    def ping_app(self) -> tuple[int, dict[str, Any]]:
        """Check the server answers right now.

        Raises:
            ServerNotRespondingError: If it does not
        """
        return self.connectivity.ensure_connectivity(retries=1, timeout=ATTACH_TIMEOUT)

    def reset_simulator(self, device: Device | str | None = None) -> Device:
        """Erase a simulator (the default target when ``device`` is None).

        Raises:
            ValueError: If the target is a physical device
            DeviceNotFoundError: If the target cannot be resolved
        """
        if self._device_probe is None:
            raise not_supported_error("reset_simulator", "no device-control tool configured")
        return self._device_probe.reset_simulator(device)

    def detect_device(self, options: dict[str, Any] | None = None) -> Device:
        """Resolve a device descriptor through the device-control tool."""
        if self._device_probe is None:
            raise not_supported_error("detect_device", "no device-control tool configured")
        return self._device_probe.detect_device(options)

    def check_server_compatibility(self) -> bool:
        """Warn if the embedded server is older than this client supports."""
        app = self.launch_args.app if self.launch_args else self._settings.app
        if app and Path(app).is_dir():
            server_version = self._version_cache.from_bundle(app)
        else:
            server_version = self._version_cache.from_server(lambda: self.device)
        return check_compatibility(server_version, __version__, MIN_SERVER_VERSION)


_launcher: Session | None = None


def launcher(factory: Callable[[], Session] | None = None) -> Session:
    """The process-wide session, created on first use."""
    global _launcher
    if _launcher is None:
        _launcher = factory() if factory is not None else Session()
    return _launcher


def launcher_if_used() -> Session | None:
    """The process-wide session, or None if nothing has created it."""
    return _launcher


def attach_to_launcher() -> Session | Literal[False]:
    """Return the shared session, attaching it first if it is not active."""
    session = launcher()
    if session.is_active:
        return session
    return session.attach()


def instruments_in_use() -> bool:
    """True if the shared session drives an instrumentation-launched app."""
    session = launcher_if_used()
    return session is not None and session.uses_external_process


def reset_launcher() -> None:
    """Forget the shared session. The app is not stopped."""
    global _launcher
    _launcher = None
