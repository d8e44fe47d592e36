"""UPI 결제 안내(딥링크) 생성."""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel

from ..models.transaction import Transaction


# encodeURIComponent 와 같은 비예약 문자 집합
_URI_COMPONENT_SAFE = "-_.!~*'()"


class PaymentInstruction(BaseModel):
    """pending 거래와 유저가 외부 UPI 앱으로 결제할 때 쓸 안내 정보."""

    transaction: Transaction
    upi_link: str
    payee_upi_id: str
    merchant_name: str
    amount: int
    note: str


def build_upi_link(amount: int, payee: str, merchant_name: str, note: str) -> str:
    """upi://pay 딥링크를 만든다. 결제 금액 단위는 INR."""

    return (
        f"upi://pay?pa={payee}"
        f"&pn={quote(merchant_name, safe=_URI_COMPONENT_SAFE)}"
        f"&am={amount}"
        "&cu=INR"
        f"&tn={quote(note, safe=_URI_COMPONENT_SAFE)}"
    )
