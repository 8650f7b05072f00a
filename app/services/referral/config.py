"""
Referral commission configuration.

Single commission model: a flat percentage of one subscription charge,
computed in integer cents and rounded down.
"""


def calculate_commission(charge_amount: int, commission_rate: int) -> int:
    """
    Calculate the commission for a charge.

    Formula: floor(charge_amount * commission_rate / 100)

    Args:
        charge_amount: Charge in cents
        commission_rate: Integer percentage (0-100)

    Returns:
        Commission in cents

    Example:
        >>> calculate_commission(4900, 40)
        1960
        >>> calculate_commission(999, 40)
        399
    """
    if charge_amount < 0:
        raise ValueError("Charge amount cannot be negative")
    if not 0 <= commission_rate <= 100:
        raise ValueError("Commission rate must be between 0 and 100")
    return charge_amount * commission_rate // 100
