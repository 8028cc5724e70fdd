"""Phone number to transport address (JID) conversion."""

from notifier.models.common import digits_only

USER_SUFFIX = "@s.whatsapp.net"


def to_jid(
    phone: str | None,
    country_code: str = "55",
    strip_mobile_ninth_digit: bool = True,
) -> str | None:
    """Convert a phone number to a user JID. Returns None for unusable input.

    Values that already carry a domain (``...@s.whatsapp.net``, ``...@g.us``)
    are passed through. Brazilian mobile numbers are registered without the
    ninth digit, so 55 + DDD + 9 + 8 digits becomes 55 + DDD + 8 digits.
    """
    if not phone:
        return None
    phone = phone.strip()
    if "@" in phone:
        return phone

    number = digits_only(phone)
    if len(number) < 8:
        return None
    # DDD 55 exists, so a bare 10/11 digit Brazilian number still needs the prefix
    if not number.startswith(country_code) or (country_code == "55" and len(number) <= 11):
        number = country_code + number

    if (
        strip_mobile_ninth_digit
        and country_code == "55"
        and len(number) == 13
        and number[4] == "9"
    ):
        number = number[:4] + number[5:]

    return number + USER_SUFFIX


def jid_to_phone(jid: str) -> str:
    return jid.split("@", 1)[0].split(":", 1)[0]
