from learnpay.common.config import CommonSettings
from learnpay.common.startup import redacted_settings


def test_secrets_are_masked_but_public_key_id_is_shown():
    settings = CommonSettings(
        database_dsn="postgresql+psycopg://u:pw@db/learnpay",
        api_key="k",
        razorpay_key_id="rzp_live_abc",
        razorpay_key_secret="shh",
        email_api_key="",
    )

    view = redacted_settings(
        settings,
        ["database_dsn", "razorpay_key_id", "razorpay_key_secret", "email_api_key", "free_order_prefix"],
    )

    assert view == {
        "database_dsn": "<redacted>",
        "razorpay_key_id": "rzp_live_abc",
        "razorpay_key_secret": "<redacted>",
        "email_api_key": "<unset>",
        "free_order_prefix": "dummy_",
    }
