"""Position sizing — pure math, no I/O.

Converts the configured trade quantity (in lots) into the volume in
units the platform expects.
"""


def quantity_to_units(
    quantity_lots: float,
    lot_size: int = 100_000,
) -> float:
    """Calculate order volume in units.

    Formula::

        units = quantity_lots × lot_size

    Args:
        quantity_lots: Trade size in lots (e.g. 0.01 for a micro lot).
        lot_size: Units per standard lot.  Default 100,000 (forex).

    Returns:
        Volume in units (always positive).

    Raises:
        ValueError: If any input is non-positive.
    """
    if quantity_lots <= 0:
        raise ValueError(f"quantity_lots must be positive, got {quantity_lots}")
    if lot_size <= 0:
        raise ValueError(f"lot_size must be positive, got {lot_size}")

    return quantity_lots * lot_size
