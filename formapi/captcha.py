import logging
from functools import lru_cache
from typing import Optional, Protocol

import httpx

from formapi.config import config

logger = logging.getLogger(__name__)


class CaptchaVerifier(Protocol):
    async def verify(self, token: Optional[str]) -> bool: ...


class RecaptchaVerifier:
    """Checks a client token against the reCAPTCHA siteverify endpoint.

    ``verify`` never raises: any failure to get a clear ``success: true``
    from the service counts as a failed check.
    """

    def __init__(
        self,
        secret: Optional[str],
        verify_url: str = "https://www.google.com/recaptcha/api/siteverify",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._secret = secret
        self._verify_url = verify_url
        self._timeout = timeout
        self._transport = transport

    async def verify(self, token: Optional[str]) -> bool:
        if not self._secret:
            logger.error("reCAPTCHA secret is not configured, rejecting token")
            return False
        if not token:
            logger.debug("No CAPTCHA token supplied")
            return False

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    self._verify_url, params={"secret": self._secret, "response": token}
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"reCAPTCHA verification failed: HTTP {e.response.status_code}")
            return False
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # the exception text can carry the request URL, and with it the secret
            logger.error(f"reCAPTCHA verification failed: {e.__class__.__name__}")
            return False
        except ValueError:
            logger.error("reCAPTCHA verification failed: response is not JSON")
            return False

        if not isinstance(payload, dict):
            logger.error("reCAPTCHA verification failed: unexpected response body")
            return False

        success = payload.get("success") is True
        if not success:
            logger.info(
                "reCAPTCHA rejected token", extra={"error_codes": payload.get("error-codes")}
            )
        return success


@lru_cache()
def get_captcha_verifier() -> CaptchaVerifier:
    secret = config.RECAPTCHA_SECRET_KEY
    return RecaptchaVerifier(
        secret=secret.get_secret_value() if secret else None,
        verify_url=config.RECAPTCHA_VERIFY_URL,
        timeout=config.RECAPTCHA_TIMEOUT,
    )
