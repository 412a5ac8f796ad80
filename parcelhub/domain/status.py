"""
Shipment status lifecycle

    pending ──assign expedition──▶ dikirim ◀──▶ transit / customs_hold / delivery_failed
       │                              │
       └──cancel (refund)──▶ canceled └──▶ sukses

``pending`` leaves only through expedition assignment or cancellation;
``sukses`` and ``canceled`` are terminal.
"""
from parcelhub.core.exceptions import InvalidStatusTransitionError
from parcelhub.db.models.shipment import ShipmentStatus

IN_TRANSIT_STATUSES = frozenset({
    ShipmentStatus.DIKIRIM,
    ShipmentStatus.TRANSIT,
    ShipmentStatus.CUSTOMS_HOLD,
    ShipmentStatus.DELIVERY_FAILED,
})

TERMINAL_STATUSES = frozenset({ShipmentStatus.SUKSES, ShipmentStatus.CANCELED})

STATUS_TRANSITIONS: dict[ShipmentStatus, frozenset[ShipmentStatus]] = {
    ShipmentStatus.PENDING: frozenset({ShipmentStatus.DIKIRIM, ShipmentStatus.CANCELED}),
    ShipmentStatus.SUKSES: frozenset(),
    ShipmentStatus.CANCELED: frozenset(),
    **{
        status: IN_TRANSIT_STATUSES | {ShipmentStatus.SUKSES}
        for status in IN_TRANSIT_STATUSES
    },
}

# Tracking descriptions written by the settlement workflow
DESCRIPTION_REGISTERED = "Paket telah terdaftar dan menunggu diproses"
DESCRIPTION_HANDED_TO_EXPEDITION = "Paket telah diserahkan ke ekspedisi untuk pengiriman"
DESCRIPTION_CANCELED = (
    "Pesanan dibatalkan oleh admin. Saldo telah dikembalikan ke akun pelanggan."
)


def is_in_transit(status: ShipmentStatus) -> bool:
    return ShipmentStatus(status) in IN_TRANSIT_STATUSES


def can_transition(current: ShipmentStatus, target: ShipmentStatus) -> bool:
    """True when ``current`` -> ``target`` is an edge of the lifecycle"""
    return ShipmentStatus(target) in STATUS_TRANSITIONS[ShipmentStatus(current)]


def ensure_transition(
    current: ShipmentStatus,
    target: ShipmentStatus,
    shipment_id: int | None = None,
) -> None:
    """Raise ``InvalidStatusTransitionError`` unless ``current`` -> ``target`` is allowed"""
    current = ShipmentStatus(current)
    target = ShipmentStatus(target)
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            current_status=current.value,
            target_status=target.value,
            shipment_id=shipment_id,
        )
