from unittest.mock import MagicMock

import requests

from sweep_reminder.services.sms_client import SMSClient


def make_client():
    sleeps = []
    client = SMSClient("AC123", "secret", "+14155550000", sleep=sleeps.append)
    client.session = MagicMock()
    return client, sleeps


def ok_response():
    response = MagicMock()
    response.json.return_value = {"sid": "SM1"}
    return response


def test_send_sms_posts_to_twilio():
    client, _ = make_client()
    client.session.post.return_value = ok_response()

    assert client.send_sms("+14155550100", "hello") is True
    client.session.post.assert_called_once_with(
        "https://api.twilio.com/2010-04-01/Accounts/AC123/Messages.json",
        data={"To": "+14155550100", "From": "+14155550000", "Body": "hello"},
        timeout=30,
    )


def test_send_sms_reports_http_errors():
    client, _ = make_client()
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("400 Bad Request")
    client.session.post.return_value = response

    assert client.send_sms("+14155550100", "hello") is False


def test_send_with_retry_backs_off():
    client, sleeps = make_client()
    client.session.post.side_effect = [
        requests.ConnectionError("down"),
        requests.ConnectionError("down"),
        ok_response(),
    ]

    assert client.send_with_retry("+14155550100", "hello") is True
    assert sleeps == [1, 2]


def test_send_with_retry_gives_up():
    client, sleeps = make_client()
    client.session.post.side_effect = requests.ConnectionError("down")

    assert client.send_with_retry("+14155550100", "hello", max_retries=2) is False
    assert client.session.post.call_count == 2
    assert sleeps == [1]
