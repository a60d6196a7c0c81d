import logging
from typing import Optional

import httpx

from blog_api.config import Settings
from blog_api.errors import UpstreamVerificationFailed

logger = logging.getLogger(__name__)


class CaptchaVerifier:
    """
    Checks a client-supplied challenge token with the reCAPTCHA verify API.

    Any failure (remote says no, HTTP error, timeout, unreadable reply) is a
    rejection. When disabled every token is accepted.
    """

    def __init__(
        self,
        secret: Optional[str],
        verify_url: str,
        timeout: float = 5.0,
        enabled: bool = True,
        client: Optional[httpx.Client] = None,
    ):
        if enabled and not secret:
            raise RuntimeError("CAPTCHA verification is enabled but no secret key is configured.")
        self.enabled = enabled
        self._secret = secret
        self._verify_url = verify_url
        self._client = client or httpx.Client(timeout=timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "CaptchaVerifier":
        return cls(
            settings.recaptcha_secret_key,
            settings.recaptcha_verify_url,
            timeout=settings.captcha_timeout_seconds,
            enabled=settings.captcha_enabled,
        )

    # PUBLIC_INTERFACE
    def verify(self, token: str, remote_ip: Optional[str] = None) -> None:
        """Raise UpstreamVerificationFailed unless the token checks out."""
        if not self.enabled:
            return

        data = {"secret": self._secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip

        try:
            response = self._client.post(self._verify_url, data=data)
            response.raise_for_status()
            result = response.json()
        except httpx.TimeoutException:
            logger.warning("CAPTCHA verification timed out")
            raise UpstreamVerificationFailed()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("CAPTCHA verification request failed: %s", exc)
            raise UpstreamVerificationFailed()

        if not isinstance(result, dict) or result.get("success") is not True:
            codes = result.get("error-codes") if isinstance(result, dict) else None
            logger.info("CAPTCHA rejected: %s", codes or "no error codes")
            raise UpstreamVerificationFailed()

    # PUBLIC_INTERFACE
    def close(self) -> None:
        self._client.close()
