import base64
from typing import Callable, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from selenium.webdriver.chrome.webdriver import WebDriver

from perfwatch.features.scan.schemas.audit import FormFactor, ScreenshotArtifact
from perfwatch.features.scan.services.audit.devices import screenshot_viewport
from perfwatch.features.scan.services.audit.errors import CaptureFailure
from perfwatch.platform.config import settings
from perfwatch.platform.logger import get_logger

logger = get_logger(__name__)

PAGE_LOAD_TIMEOUT_SECONDS = 30
SCREENSHOT_FORMAT = "webp"
SCREENSHOT_QUALITY = 85


def attach_driver(debugger_address: str) -> WebDriver:
    """WebDriver bound to an already running Chrome instead of launching one."""
    chrome_options = Options()
    chrome_options.debugger_address = debugger_address

    if settings.CHROMEDRIVER_PATH:
        driver_service = Service(executable_path=settings.CHROMEDRIVER_PATH)
        return webdriver.Chrome(service=driver_service, options=chrome_options)
    return webdriver.Chrome(options=chrome_options)


class ScreenshotCapturer:
    """
    Full-page WebP capture in the browser the audit just used.

    capture() never raises: any failure is logged and gives None, so a broken
    screenshot cannot fail the audit.
    """

    def __init__(self, driver_factory: Callable[[str], WebDriver] = attach_driver):
        self.driver_factory = driver_factory

    def capture(self, debugger_address: str, url: str,
                form_factor: FormFactor) -> Optional[ScreenshotArtifact]:
        form_factor = FormFactor(form_factor)
        try:
            return self._capture(debugger_address, url, form_factor)
        except CaptureFailure as e:
            logger.error(f"Screenshot in Lighthouse session failed ({form_factor.value}): {e}")
            return None
        except Exception as e:
            # Selenium lets transport errors (urllib3, dropped sockets) through unwrapped
            logger.error(
                f"Screenshot in Lighthouse session failed ({form_factor.value}): {type(e).__name__}: {e}"
            )
            return None

    def _capture(self, debugger_address: str, url: str, form_factor: FormFactor) -> ScreenshotArtifact:
        try:
            driver = self.driver_factory(debugger_address)
        except WebDriverException as e:
            raise CaptureFailure(f"could not attach to Chrome at {debugger_address}: {e.msg}") from e

        try:
            viewport = screenshot_viewport(form_factor)
            driver.switch_to.new_window("tab")
            driver.execute_cdp_cmd("Emulation.setDeviceMetricsOverride", {
                "width": viewport.width,
                "height": viewport.height,
                "deviceScaleFactor": viewport.device_scale_factor,
                "mobile": viewport.mobile,
            })
            driver.set_page_load_timeout(PAGE_LOAD_TIMEOUT_SECONDS)
            driver.get(url)
            driver.execute_script("window.scrollTo(0, 0);")

            layout = driver.execute_cdp_cmd("Page.getLayoutMetrics", {})
            content = layout.get("cssContentSize") or layout.get("contentSize") or {}
            width = max(viewport.width, int(content.get("width") or 0))
            height = max(viewport.height, int(content.get("height") or 0))

            shot = driver.execute_cdp_cmd("Page.captureScreenshot", {
                "format": SCREENSHOT_FORMAT,
                "quality": SCREENSHOT_QUALITY,
                "captureBeyondViewport": True,
                "clip": {"x": 0, "y": 0, "width": width, "height": height, "scale": 1},
            })
            buffer = base64.b64decode(shot["data"])
            if not buffer:
                raise CaptureFailure("browser returned an empty image")
            return ScreenshotArtifact(buffer=buffer, ext=SCREENSHOT_FORMAT)
        except TimeoutException as e:
            raise CaptureFailure(f"page load timeout after {PAGE_LOAD_TIMEOUT_SECONDS}s for {url}") from e
        except WebDriverException as e:
            raise CaptureFailure(f"WebDriver error capturing {url}: {e.msg}") from e
        except (KeyError, TypeError, ValueError) as e:
            raise CaptureFailure(f"unexpected capture response for {url}: {e}") from e
        finally:
            try:
                driver.quit()
            except Exception as e:
                logger.warning(f"WebDriver quit failed after capture: {e}")
