from __future__ import annotations

"""
Portfolio report contract (schema-first).

Design goals:
- Immutable instances (frozen) so reports are not edited after the fact.
- Strict parsing (extra="forbid"): a report carries exactly these fields.
- Decimals serialize as strings; pending values serialize as null next to an
  explicit `price_status`, so consumers never read pending as zero.
- Deterministic: identical results produce byte-identical `model_dump_json()`.
"""

from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.types import AwareDatetime

from positionbook.ledger.errors import LedgerError, describe
from positionbook.ledger.models import ClosedPosition, OpenLot, OpenSummary
from positionbook.ledger.portfolio import PortfolioResult
from positionbook.ledger.returns import OpenValuation, is_pending


REPORT_SCHEMA = "positionbook.portfolio_report"
SCHEMA_VERSION_V1 = "1.0"


def _num(v: Any) -> Optional[Decimal]:
    return None if is_pending(v) else v


class ContractFragment(BaseModel):
    """Base for nested report fragments."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )


class OpenLotOut(ContractFragment):
    quantity_remaining: int = Field(..., gt=0)
    unit_cost: Decimal
    acquired_at: AwareDatetime
    record_id: Optional[str] = None

    @classmethod
    def from_lot(cls, lot: OpenLot) -> "OpenLotOut":
        return cls(
            quantity_remaining=lot.quantity_remaining,
            unit_cost=lot.unit_cost,
            acquired_at=lot.acquired_at,
            record_id=lot.record_id,
        )


class OpenHoldingOut(ContractFragment):
    instrument: str = Field(..., min_length=1)
    quantity_open: int = Field(..., ge=0)
    weighted_average_cost: Decimal
    total_invested: Decimal
    total_distributions_received: Decimal
    lifetime_acquired_value: Decimal
    first_acquisition_at: Optional[AwareDatetime] = None
    elapsed_days: int = Field(..., ge=0)

    price_status: Literal["priced", "pending"]
    current_price: Optional[Decimal] = Field(default=None, description="null while the price is pending.")
    current_value: Optional[Decimal] = None
    return_value: Optional[Decimal] = None
    return_percent: Optional[Decimal] = None
    monthly_return_percent: Optional[Decimal] = None

    lots: list[OpenLotOut] = Field(default_factory=list)

    @classmethod
    def from_parts(cls, summary: OpenSummary, valuation: OpenValuation) -> "OpenHoldingOut":
        return cls(
            instrument=summary.instrument,
            quantity_open=summary.quantity_open,
            weighted_average_cost=summary.weighted_average_cost,
            total_invested=summary.total_invested,
            total_distributions_received=summary.total_distributions_received,
            lifetime_acquired_value=summary.lifetime_acquired_value,
            first_acquisition_at=summary.first_acquisition_at,
            elapsed_days=valuation.elapsed_days,
            price_status=valuation.price_status,
            current_price=_num(valuation.current_price),
            current_value=_num(valuation.current_value),
            return_value=_num(valuation.return_value),
            return_percent=_num(valuation.return_percent),
            monthly_return_percent=_num(valuation.monthly_return_percent),
            lots=[OpenLotOut.from_lot(lot) for lot in summary.lots],
        )


class ClosedPositionOut(ContractFragment):
    instrument: str = Field(..., min_length=1)
    quantity: int = Field(..., gt=0)
    unit_cost: Decimal
    disposal_price: Decimal
    acquired_at: AwareDatetime
    disposed_at: AwareDatetime
    acquisition_value: Decimal
    disposal_value: Decimal
    attributed_distributions: Decimal
    holding_days: int = Field(..., ge=0)
    realized_return_value: Decimal
    realized_return_percent: Decimal
    monthly_return_percent: Decimal
    acquisition_record_id: Optional[str] = None
    disposal_record_id: Optional[str] = None

    @classmethod
    def from_position(cls, c: ClosedPosition) -> "ClosedPositionOut":
        return cls(
            instrument=c.instrument,
            quantity=c.quantity,
            unit_cost=c.unit_cost,
            disposal_price=c.disposal_price,
            acquired_at=c.acquired_at,
            disposed_at=c.disposed_at,
            acquisition_value=c.acquisition_value,
            disposal_value=c.disposal_value,
            attributed_distributions=c.attributed_distributions,
            holding_days=c.holding_days,
            realized_return_value=c.realized_return_value,
            realized_return_percent=c.realized_return_percent,
            monthly_return_percent=c.monthly_return_percent,
            acquisition_record_id=c.acquisition_record_id,
            disposal_record_id=c.disposal_record_id,
        )


class TotalsOut(ContractFragment):
    total_invested: Decimal
    priced_invested: Decimal
    total_current_value: Decimal
    return_value: Decimal
    return_percent: Decimal
    realized_return_value: Decimal
    pending_instruments: list[str] = Field(default_factory=list)
    all_priced: bool


class LedgerErrorOut(ContractFragment):
    kind: Literal["invalid_input", "over_disposal", "ledger_error"]
    instrument: str
    record_id: Optional[str] = None
    reason: Optional[str] = None
    requested: Optional[int] = None
    available: Optional[int] = None
    shortfall: Optional[int] = None

    @classmethod
    def from_error(cls, err: LedgerError) -> "LedgerErrorOut":
        return cls(**describe(err))  # type: ignore[arg-type]


OWNER_ID_MAX_LENGTH = 128


class PortfolioReport(BaseModel):
    """
    A point-in-time, serializable view of one owner's portfolio.
    """

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        populate_by_name=True,
    )

    schema_name: Literal["positionbook.portfolio_report"] = Field(default=REPORT_SCHEMA, alias="schema")
    schema_version: Literal["1.0"] = SCHEMA_VERSION_V1

    as_of: AwareDatetime = Field(..., description="Evaluation instant used for open-holding elapsed days.")
    owner_id: Optional[str] = Field(default=None, max_length=OWNER_ID_MAX_LENGTH)

    holdings: list[OpenHoldingOut] = Field(default_factory=list)
    closed_positions: list[ClosedPositionOut] = Field(default_factory=list)
    totals: TotalsOut
    errors: list[LedgerErrorOut] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: PortfolioResult, *, owner_id: Optional[str] = None) -> "PortfolioReport":
        t = result.totals
        return cls(
            as_of=result.as_of,
            owner_id=owner_id,
            holdings=[OpenHoldingOut.from_parts(s, v) for s, v in zip(result.open_summaries, result.valuations)],
            closed_positions=[ClosedPositionOut.from_position(c) for c in result.closed_positions],
            totals=TotalsOut(
                total_invested=t.total_invested,
                priced_invested=t.priced_invested,
                total_current_value=t.total_current_value,
                return_value=t.return_value,
                return_percent=t.return_percent,
                realized_return_value=t.realized_return_value,
                pending_instruments=list(t.pending_instruments),
                all_priced=t.all_priced,
            ),
            errors=[LedgerErrorOut.from_error(e) for e in result.errors],
        )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


__all__ = [
    "ClosedPositionOut",
    "LedgerErrorOut",
    "OpenHoldingOut",
    "OpenLotOut",
    "PortfolioReport",
    "TotalsOut",
]
