from typing import Optional

from perfwatch.features.scan.schemas.audit import AuditOptions, FormFactor, RunOutcome
from perfwatch.features.scan.services.audit.browser import ChromeLauncher
from perfwatch.features.scan.services.audit.errors import AuditFailure, AuditRunError
from perfwatch.features.scan.services.audit.lighthouse_engine import LighthouseEngine
from perfwatch.features.scan.services.audit.screenshot import ScreenshotCapturer
from perfwatch.features.scan.services.audit.summary_extractor import extract_summary
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)


class AuditRunner:
    """
    One audit pass: launch Chrome, run Lighthouse, screenshot in the same
    browser, tear Chrome down.

    Every pass that spawned a process terminates it exactly once, whether the
    pass succeeds, Chrome never becomes reachable, or Lighthouse fails.
    """

    def __init__(
        self,
        launcher: Optional[ChromeLauncher] = None,
        engine: Optional[LighthouseEngine] = None,
        capturer: Optional[ScreenshotCapturer] = None,
    ):
        self.launcher = launcher or ChromeLauncher()
        self.engine = engine or LighthouseEngine()
        self.capturer = capturer or ScreenshotCapturer()

    def run_once(self, url: str, options: AuditOptions) -> RunOutcome:
        form_factor = FormFactor(options.form_factor)

        # LaunchFailure here means no process was spawned
        session = self.launcher.start()
        try:
            session.wait_until_ready()

            report = self.engine.run(url, session.port, options)
            summary = extract_summary(report)

            screenshot = self.capturer.capture(
                session.debugger_address, summary.final_url or url, form_factor
            )
            return RunOutcome(report=report, summary=summary, screenshot=screenshot)
        except AuditRunError:
            raise
        except Exception as e:
            raise AuditFailure(f"Lighthouse run failed: {e}", cause=e) from e
        finally:
            try:
                session.terminate()
            except Exception as e:
                logger.warning(f"Chrome teardown on port {session.port} failed: {e}")
