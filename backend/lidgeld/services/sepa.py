"""
SEPA Direct Debit Batches

Builds ISO 20022 pain.008.001.02 files for the open fees members pay by
SEPA direct debit (domiciliëring), ready to upload to the bank.

Only fees with a signed mandate and a valid IBAN are collected; the others
are reported as warnings so they can be fixed before the next run.
"""
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, List, Optional
from xml.dom import minidom

from lidgeld.core.config import settings
from lidgeld.core.exceptions import SepaBatchError
from lidgeld.models.fee import Fee, FeeStatus, PaymentMethod
from lidgeld.services.logging import structured_logger
from lidgeld.services.money import is_valid_iban, normalize_iban
from lidgeld.services.period import format_date_be, today_be

PAIN_008_NAMESPACE = "urn:iso:std:iso:20022:tech:xsd:pain.008.001.02"
CENTS = Decimal("0.01")
MIN_INSTRUCTED_AMOUNT = Decimal("0.01")


@dataclass
class SepaCreditor:
    """The organisation collecting the fees."""
    name: str
    iban: str
    creditor_id: str
    bic: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "SepaCreditor":
        if not settings.sepa_creditor_configured:
            raise SepaBatchError("SEPA-schuldeiser is niet geconfigureerd (IBAN en incassant-ID)")
        return cls(
            name=settings.SEPA_CREDITOR_NAME,
            iban=normalize_iban(settings.SEPA_CREDITOR_IBAN),
            creditor_id=settings.SEPA_CREDITOR_ID,
            bic=settings.SEPA_CREDITOR_BIC,
        )


@dataclass
class SepaBatch:
    batch_ref: str
    xml: str
    count: int
    total: Decimal
    fee_ids: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def select_sepa_fees(fees: Iterable[Fee]) -> List[Fee]:
    """Open fees paid by direct debit."""
    return [
        fee for fee in fees
        if fee.method == PaymentMethod.SEPA and fee.status == FeeStatus.OPEN
    ]


def has_collectable_amount(fee: Fee) -> bool:
    """pain.008 instructed amounts are at least 0.01 EUR."""
    return Decimal(fee.amount).quantize(CENTS) >= MIN_INSTRUCTED_AMOUNT


def is_collectable(fee: Fee) -> bool:
    return (
        fee.has_mandate
        and bool(fee.iban)
        and is_valid_iban(fee.iban)
        and has_collectable_amount(fee)
    )


def sepa_warnings(fees: Iterable[Fee]) -> List[str]:
    """Problems to show before generating a batch (Dutch, user-facing)."""
    sepa_fees = select_sepa_fees(fees)
    if not sepa_fees:
        return ["Geen SEPA-transacties gevonden"]

    warnings = []
    without_mandate = [fee for fee in sepa_fees if not fee.has_mandate]
    if without_mandate:
        warnings.append(f"{len(without_mandate)} SEPA-lidgelden zonder mandaat")

    without_iban = [fee for fee in sepa_fees if not fee.iban or not is_valid_iban(fee.iban)]
    if without_iban:
        warnings.append(f"{len(without_iban)} SEPA-lidgelden zonder geldig IBAN")

    without_amount = [fee for fee in sepa_fees if not has_collectable_amount(fee)]
    if without_amount:
        warnings.append(f"{len(without_amount)} SEPA-lidgelden zonder bedrag")
    return warnings


def make_batch_ref(now: datetime) -> str:
    return f"SEPA-{now.strftime('%Y%m%d-%H%M%S')}"


def _amount(value: Decimal) -> str:
    return f"{Decimal(value).quantize(CENTS):.2f}"


def _remittance(fee: Fee) -> str:
    member = fee.member_number or fee.member_id
    return (
        f"Lidgeld {member} "
        f"{format_date_be(fee.period_start)} - {format_date_be(fee.period_end)}"
    )[:140]


def build_direct_debit_xml(
    fees: List[Fee],
    batch_ref: str,
    collection_date: date,
    creditor: SepaCreditor,
    created_at: Optional[datetime] = None,
) -> str:
    """
    Render a pain.008.001.02 document with one payment information block.

    ``fees`` must already be collectable (mandate and valid IBAN).
    """
    created_at = created_at or datetime.now(timezone.utc)
    count = str(len(fees))
    control_sum = _amount(sum((Decimal(fee.amount) for fee in fees), Decimal("0")))

    root = ET.Element("Document", xmlns=PAIN_008_NAMESPACE)
    initiation = ET.SubElement(root, "CstmrDrctDbtInitn")

    # Group header
    header = ET.SubElement(initiation, "GrpHdr")
    ET.SubElement(header, "MsgId").text = batch_ref
    ET.SubElement(header, "CreDtTm").text = created_at.replace(microsecond=0).isoformat()
    ET.SubElement(header, "NbOfTxs").text = count
    ET.SubElement(header, "CtrlSum").text = control_sum
    ET.SubElement(ET.SubElement(header, "InitgPty"), "Nm").text = creditor.name

    # Payment information
    payment = ET.SubElement(initiation, "PmtInf")
    ET.SubElement(payment, "PmtInfId").text = f"{batch_ref}-001"
    ET.SubElement(payment, "PmtMtd").text = "DD"
    ET.SubElement(payment, "NbOfTxs").text = count
    ET.SubElement(payment, "CtrlSum").text = control_sum

    payment_type = ET.SubElement(payment, "PmtTpInf")
    ET.SubElement(ET.SubElement(payment_type, "SvcLvl"), "Cd").text = "SEPA"
    ET.SubElement(ET.SubElement(payment_type, "LclInstrm"), "Cd").text = "CORE"
    ET.SubElement(payment_type, "SeqTp").text = "RCUR"

    ET.SubElement(payment, "ReqdColltnDt").text = collection_date.isoformat()
    ET.SubElement(ET.SubElement(payment, "Cdtr"), "Nm").text = creditor.name
    ET.SubElement(ET.SubElement(ET.SubElement(payment, "CdtrAcct"), "Id"), "IBAN").text = creditor.iban

    creditor_agent = ET.SubElement(ET.SubElement(payment, "CdtrAgt"), "FinInstnId")
    if creditor.bic:
        ET.SubElement(creditor_agent, "BIC").text = creditor.bic
    else:
        ET.SubElement(ET.SubElement(creditor_agent, "Othr"), "Id").text = "NOTPROVIDED"

    ET.SubElement(payment, "ChrgBr").text = "SLEV"

    scheme = ET.SubElement(ET.SubElement(ET.SubElement(payment, "CdtrSchmeId"), "Id"), "PrvtId")
    scheme_other = ET.SubElement(scheme, "Othr")
    ET.SubElement(scheme_other, "Id").text = creditor.creditor_id
    ET.SubElement(ET.SubElement(scheme_other, "SchmeNm"), "Prtry").text = "SEPA"

    # One transaction per fee
    for index, fee in enumerate(fees, start=1):
        tx = ET.SubElement(payment, "DrctDbtTxInf")
        ET.SubElement(ET.SubElement(tx, "PmtId"), "EndToEndId").text = f"{batch_ref}-{index:04d}"
        ET.SubElement(tx, "InstdAmt", Ccy="EUR").text = _amount(fee.amount)

        mandate = ET.SubElement(ET.SubElement(tx, "DrctDbtTx"), "MndtRltdInf")
        ET.SubElement(mandate, "MndtId").text = fee.mandate_id or fee.member_number or fee.member_id
        signed_on = fee.mandate_signed_on or fee.created_at.date()
        ET.SubElement(mandate, "DtOfSgntr").text = signed_on.isoformat()

        debtor_agent = ET.SubElement(ET.SubElement(tx, "DbtrAgt"), "FinInstnId")
        ET.SubElement(ET.SubElement(debtor_agent, "Othr"), "Id").text = "NOTPROVIDED"
        ET.SubElement(ET.SubElement(tx, "Dbtr"), "Nm").text = fee.member_name or fee.member_id
        ET.SubElement(ET.SubElement(ET.SubElement(tx, "DbtrAcct"), "Id"), "IBAN").text = normalize_iban(fee.iban)
        ET.SubElement(ET.SubElement(tx, "RmtInf"), "Ustrd").text = _remittance(fee)

    xml_str = ET.tostring(root, encoding="unicode")
    return minidom.parseString(xml_str).toprettyxml(indent="  ", encoding="UTF-8").decode("utf-8")


def generate_batch(
    fees: Iterable[Fee],
    now: Optional[datetime] = None,
    collection_date: Optional[date] = None,
    creditor: Optional[SepaCreditor] = None,
) -> SepaBatch:
    """
    Build a direct-debit batch from the collectable open SEPA fees.

    Raises:
        SepaBatchError: If the creditor is not configured or no fee can be collected
    """
    fees = list(fees)
    now = now or datetime.now(timezone.utc)
    creditor = creditor or SepaCreditor.from_settings()
    collection_date = collection_date or today_be() + timedelta(days=settings.SEPA_COLLECTION_DAYS)

    warnings = sepa_warnings(fees)
    included = [fee for fee in select_sepa_fees(fees) if is_collectable(fee)]
    if not included:
        raise SepaBatchError(warnings[0] if warnings else "Geen SEPA-transacties gevonden")

    batch_ref = make_batch_ref(now)
    total = sum((Decimal(fee.amount) for fee in included), Decimal("0")).quantize(CENTS)
    xml = build_direct_debit_xml(included, batch_ref, collection_date, creditor, created_at=now)

    structured_logger.sepa_batch_generated(batch_ref, len(included), total, warnings)
    return SepaBatch(
        batch_ref=batch_ref,
        xml=xml,
        count=len(included),
        total=total,
        fee_ids=[fee.id for fee in included],
        warnings=warnings,
    )
