# labdesk/core/formatting.py

"""
수납 화면에 표시할 금액 형식을 만드는 모듈입니다.

기본값은 인도 검사실 기준(en-IN, INR)이며 `₹1,23,456.78`처럼
마지막 세 자리 이후 두 자리씩 묶는 lakh 단위 구분을 사용합니다.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation
from typing import Optional, Union

from labdesk.core.config import settings

Number = Union[int, float, Decimal, str]

CURRENCY_SYMBOLS = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
}

# 두 자리씩 묶는 남아시아식 자릿수 구분을 사용하는 로케일
LAKH_GROUPING_LOCALES = {"en-IN", "hi-IN", "bn-IN", "ta-IN", "te-IN", "mr-IN"}


def _group_digits(digits: str, locale: str) -> str:
    if len(digits) <= 3:
        return digits
    head, tail = digits[:-3], digits[-3:]
    size = 2 if locale in LAKH_GROUPING_LOCALES else 3
    groups = []
    while head:
        groups.insert(0, head[-size:])
        head = head[:-size]
    return ",".join(groups + [tail])


def format_currency(
    amount: Optional[Number],
    currency: Optional[str] = None,
    locale: Optional[str] = None,
) -> str:
    """
    금액을 통화 기호와 자릿수 구분이 적용된 문자열로 변환합니다.
    None은 0으로 취급하며, 숫자로 해석할 수 없는 값은 ValueError를 발생시킵니다.
    """
    currency = (currency or settings.CURRENCY_CODE).upper()
    locale = locale or settings.CURRENCY_LOCALE

    try:
        value = Decimal(str(amount if amount is not None else 0))
    except InvalidOperation:
        raise ValueError(f"Cannot format non-numeric amount: {amount!r}")
    if not value.is_finite():
        raise ValueError(f"Cannot format non-finite amount: {amount!r}")

    value = value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    negative = value < 0
    integer_part, fraction = f"{abs(value):.2f}".split(".")

    symbol = CURRENCY_SYMBOLS.get(currency)
    prefix = symbol if symbol else f"{currency}\u00a0"
    text = f"{prefix}{_group_digits(integer_part, locale)}.{fraction}"
    return f"-{text}" if negative else text
