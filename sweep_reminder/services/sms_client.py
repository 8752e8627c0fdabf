"""SMS client for sending reminder messages through Twilio"""
import time
from typing import Callable
import requests

from ..utils.logger import setup_logger

logger = setup_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class SMSClient:
    """Twilio REST client for outbound SMS"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: int = 30,
        sleep: Callable[[float], None] = time.sleep
    ):
        """
        Initialize SMS client

        Args:
            account_sid: Twilio account SID
            auth_token: Twilio auth token
            from_number: Sending phone number (E.164)
            timeout: HTTP timeout in seconds
            sleep: Sleep function used between retries
        """
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.sleep = sleep
        self.session = requests.Session()
        self.session.auth = (account_sid, auth_token)

    @property
    def messages_url(self) -> str:
        return f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/Messages.json"

    def send_sms(self, to: str, body: str) -> bool:
        """
        Send a single SMS

        Args:
            to: Recipient phone number (E.164)
            body: Message text

        Returns:
            True if Twilio accepted the message
        """
        try:
            response = self.session.post(
                self.messages_url,
                data={"To": to, "From": self.from_number, "Body": body},
                timeout=self.timeout
            )
            response.raise_for_status()
            message_sid = response.json().get("sid")
            logger.info(f"Sent SMS to {to} (sid {message_sid})")
            return True

        except requests.HTTPError as e:
            logger.error(f"Twilio API error sending SMS to {to}: {e}")
            return False
        except requests.RequestException as e:
            logger.error(f"Failed to reach Twilio: {e}")
            return False

    def send_with_retry(self, to: str, body: str, max_retries: int = 3) -> bool:
        """
        Send SMS with exponential backoff retry

        Args:
            to: Recipient phone number
            body: Message text
            max_retries: Maximum number of attempts

        Returns:
            True if the message was sent
        """
        for attempt in range(max_retries):
            if self.send_sms(to, body):
                return True

            if attempt < max_retries - 1:
                wait_time = 2 ** attempt  # Exponential backoff
                logger.info(f"Retrying SMS in {wait_time} seconds...")
                self.sleep(wait_time)

        logger.error(f"Failed to send SMS to {to} after {max_retries} attempts")
        return False
