"""Request bodies of the facilitator endpoints."""

from pydantic import BaseModel, ConfigDict, Field

from ..mechanisms.svm.constants import U64_MAX, USDC_DEVNET_ADDRESS
from ..mechanisms.svm.split.types import SplitAmount


class VerifyRequest(BaseModel):
    """Request body for ``POST /verify``."""

    model_config = ConfigDict(extra="forbid")

    transaction: str = Field(min_length=1, description="Base64 wire transaction")


class SplitAmountModel(BaseModel):
    model_config = ConfigDict(extra="forbid")

    recipient: str = Field(min_length=1)
    amount: int = Field(ge=0, le=U64_MAX, description="Amount in minor units")

    def to_split(self) -> SplitAmount:
        return SplitAmount(recipient=self.recipient, amount=self.amount)


class SettleRequest(BaseModel):
    """Request body for ``POST /settle``."""

    model_config = ConfigDict(
        extra="forbid",
        json_schema_extra={
            "example": {
                "transaction": "AQAAAA...",
                "payment_splits": [
                    {"recipient": "5oo5EhwdroKz5Jgrm2ezKsXrWrAVC2guejze8rGc1Kvo", "amount": 700000},
                    {"recipient": "2jririfhBQ6qkcyiS1G4hjxgoz2zVUhEC3dv38LukgTa", "amount": 300000},
                ],
                "payer": "3njbEQNmCTh3omVFrkLcq92MZkQ9Dfrvn6LN6SKHpVmr",
            }
        },
    )

    transaction: str = Field(min_length=1)
    payment_splits: list[SplitAmountModel] = Field(min_length=1)
    payer: str = Field(min_length=1)

    def splits(self) -> list[SplitAmount]:
        return [s.to_split() for s in self.payment_splits]


class PaymentInstructionRequest(BaseModel):
    """Request body for ``POST /get-payment-instruction``."""

    model_config = ConfigDict(extra="forbid")

    transaction: str = Field(min_length=1)
    fee_token: str = USDC_DEVNET_ADDRESS
    source_wallet: str = Field(min_length=1)
